"""
Settings provider - loads extraction settings collections from JSON files

One provider is built by the entry point and passed to whatever needs settings.
Parsed collections are cached per resolved path; the cache is guarded by a lock
with a double-checked lookup so concurrent callers parse a file at most once.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import ValidationError

from roomtrace.services.error_types import SettingsError
from roomtrace.services.extraction_settings import ExtractionSettings, SettingsCollection

logger = logging.getLogger(__name__)


class SettingsProvider:
    """Cached access to settings collections on disk"""

    def __init__(self, settings_path: Union[str, Path]):
        """
        Args:
            settings_path: JSON settings collection used when no path is passed
        """
        self.settings_path = Path(settings_path)
        self._cache: Dict[str, SettingsCollection] = {}
        self._lock = threading.Lock()

    def _cache_key(self, path: Optional[Union[str, Path]]) -> str:
        return str(Path(path or self.settings_path).resolve())

    def load_collection(self, path: Optional[Union[str, Path]] = None) -> SettingsCollection:
        """
        Load a settings collection, falling back to defaults on any problem.

        Args:
            path: Collection file, defaults to the provider's settings path

        Returns:
            The cached or freshly parsed SettingsCollection
        """
        key = self._cache_key(path)
        collection = self._cache.get(key)
        if collection is not None:
            return collection

        with self._lock:
            collection = self._cache.get(key)
            if collection is None:
                try:
                    collection = self._read_collection(Path(key))
                except SettingsError as e:
                    logger.warning(f"Using default settings: {e}")
                    collection = SettingsCollection()
                self._cache[key] = collection
            return collection

    def get_settings(self, document_name: str = "", path: Optional[Union[str, Path]] = None) -> ExtractionSettings:
        """Settings for one document, resolved against the collection"""
        settings = self.load_collection(path).resolve(document_name)
        logger.debug(f"Resolved settings for '{document_name}'")
        return settings

    def save_collection(
        self,
        collection: SettingsCollection,
        path: Optional[Union[str, Path]] = None
    ) -> Path:
        """Write a collection as camelCase JSON and refresh its cache entry"""
        key = self._cache_key(path)
        target = Path(key)
        with self._lock:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(
                json.dumps(collection.model_dump(by_alias=True), indent=2),
                encoding="utf-8"
            )
            self._cache[key] = collection
        logger.info(f"Saved settings collection to {target}")
        return target

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _read_collection(self, path: Path) -> SettingsCollection:
        if not path.exists():
            raise SettingsError("Settings file not found", {"path": str(path)})

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SettingsError("Settings file unreadable", {"path": str(path), "error": str(e)}) from e

        if not isinstance(raw, dict):
            raise SettingsError("Settings file must hold a JSON object", {"path": str(path)})

        try:
            collection = SettingsCollection.model_validate(raw)
        except ValidationError as e:
            raise SettingsError(
                "Settings file failed validation",
                {"path": str(path), "errors": e.error_count()}
            ) from e

        logger.info(f"Loaded settings from {path} ({len(collection.pdf_types)} document overrides)")
        return collection
