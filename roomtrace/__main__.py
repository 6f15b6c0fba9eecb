#!/usr/bin/env python3
"""
Extract room polygons from a floor-plan PDF page and print them as JSON
"""

import argparse
import logging
import sys
from pathlib import Path

from roomtrace.config import DEBUG, SETTINGS_PATH, setup_logging
from roomtrace.parser.pdf_extractor import Unavailable
from roomtrace.services.error_types import RoomTraceError
from roomtrace.services.pipeline_orchestrator import PipelineOrchestrator
from roomtrace.services.room_mapper import room_mapper
from roomtrace.services.settings_provider import SettingsProvider

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Extract room polygons from a floor-plan PDF')
    parser.add_argument('pdf_path', help='PDF file to read')
    parser.add_argument('--page', type=int, default=0, help='0-based page index')
    parser.add_argument('--settings', default=SETTINGS_PATH, help='Settings collection JSON file')
    parser.add_argument('--backend', default='pymupdf', help='Extraction backend: pymupdf or pdfplumber')
    parser.add_argument('--debug', action='store_true', default=DEBUG, help='Enable debug logging')
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    orchestrator = PipelineOrchestrator(settings_provider=SettingsProvider(args.settings))
    try:
        result = orchestrator.run_document(args.pdf_path, args.page, args.backend)
    except RoomTraceError as e:
        logger.error(f"Extraction failed: {e}")
        return 1

    if isinstance(result, Unavailable):
        logger.error(f"Backend {result.backend} unavailable: {result.reason}")
        return 1

    response = room_mapper.to_response(result, Path(args.pdf_path).name, args.page)
    print(response.model_dump_json(by_alias=True, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
