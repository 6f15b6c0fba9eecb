"""
Page extraction - vector paths and text labels from a PDF page

Two backends: PyMuPDF drawings (default) and pdfplumber path objects replayed
through the drawing operator variants. Backends that cannot serve a request
return Unavailable instead of raising.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Tuple, Optional, Sequence, Union, Iterable, Dict, Any

import fitz  # PyMuPDF
import pdfplumber

from roomtrace.parser.drawing_operators import (
    DrawOperator,
    SetLineWidth,
    MoveTo,
    LineTo,
    CurveTo,
    ClosePath,
    Stroke,
    Fill,
    FillStroke,
    EndPath,
    replay_operators,
)
from roomtrace.parser.exceptions import DocumentOpenError, PageOutOfRangeError
from roomtrace.parser.segment import Segment, Label, Point

logger = logging.getLogger(__name__)

# Characters kept in label tokens besides letters and digits
LABEL_TOKEN_PATTERN = re.compile(r"[^\w-]")
# Words whose tops differ by less than this share a line (pdfplumber)
LINE_GROUPING_TOLERANCE = 1.0


class ExtractionBackend(str, Enum):
    PYMUPDF = "pymupdf"
    PDFPLUMBER = "pdfplumber"
    RASTER = "raster"


@dataclass(frozen=True)
class PageExtraction:
    """Everything the geometry core needs from one page"""
    segments: Tuple[Segment, ...]
    labels: Tuple[Label, ...]
    page_width: float
    page_height: float
    page_count: int
    page_index: int
    backend: str


@dataclass(frozen=True)
class Unavailable:
    """A backend that cannot serve the request"""
    backend: str
    reason: str


ExtractionOutcome = Union[PageExtraction, Unavailable]


def _xy(point) -> Point:
    return (float(point[0]), float(point[1]))


def clean_label_text(text: str) -> str:
    return LABEL_TOKEN_PATTERN.sub("", text)


class PageExtractor:
    """Reads segments and labels from one page of a PDF"""

    def __init__(self, label_keywords: Optional[Sequence[str]] = None):
        """
        Args:
            label_keywords: Only keep labels containing one of these words
        """
        self.label_keywords = [k.upper() for k in label_keywords] if label_keywords else []

    def extract(self, pdf_path: str, page_index: int = 0, backend: str = "pymupdf") -> ExtractionOutcome:
        """
        Extract one page.

        Args:
            pdf_path: Path to the PDF
            page_index: 0-based page number
            backend: Backend name, see ExtractionBackend

        Returns:
            PageExtraction, or Unavailable when the backend cannot run

        Raises:
            DocumentOpenError: The file is missing or not a readable PDF
            PageOutOfRangeError: The page does not exist
        """
        try:
            selected = ExtractionBackend(backend.lower())
        except ValueError:
            return Unavailable(backend, f"Unknown extraction backend '{backend}'")

        if selected == ExtractionBackend.RASTER:
            return Unavailable(backend, "Raster extraction is not implemented")

        if not Path(pdf_path).is_file():
            raise DocumentOpenError(pdf_path, "file not found")

        if selected == ExtractionBackend.PDFPLUMBER:
            extraction = self._extract_pdfplumber(pdf_path, page_index)
        else:
            extraction = self._extract_pymupdf(pdf_path, page_index)

        logger.info(f"Extracted {len(extraction.segments)} segments and {len(extraction.labels)} labels "
                    f"from page {page_index + 1} of {pdf_path} via {extraction.backend}")
        return extraction

    def _extract_pymupdf(self, pdf_path: str, page_index: int) -> PageExtraction:
        try:
            doc = fitz.open(pdf_path)
        except Exception as e:
            raise DocumentOpenError(pdf_path, str(e)) from e

        try:
            page_count = len(doc)
            if page_index < 0 or page_index >= page_count:
                raise PageOutOfRangeError(pdf_path, page_index, page_count)
            page = doc[page_index]
            segments = self.drawings_to_segments(page.get_drawings())
            labels = self.words_to_labels(page.get_text("words"))
            return PageExtraction(
                segments=tuple(segments),
                labels=tuple(labels),
                page_width=float(page.rect.width),
                page_height=float(page.rect.height),
                page_count=page_count,
                page_index=page_index,
                backend=ExtractionBackend.PYMUPDF.value,
            )
        finally:
            doc.close()

    def drawings_to_segments(self, drawings: Iterable[Dict[str, Any]]) -> List[Segment]:
        """
        Convert PyMuPDF drawing dictionaries to segments.

        Connected 'l' and 'c' items form one polyline; 're' and 'qu' items
        become closed segments of their own.
        """
        segments: List[Segment] = []

        for drawing in drawings:
            items = drawing.get("items") or []
            paint_type = drawing.get("type") or "s"
            width = drawing.get("width")
            attrs = {
                "line_width": float(width) if width is not None else 0.0,
                "is_stroked": "s" in paint_type,
                "is_filled": "f" in paint_type,
            }

            polylines: List[Tuple[List[Point], bool]] = []
            current: List[Point] = []
            current_curves = False

            def flush():
                nonlocal current, current_curves
                if len(current) >= 2:
                    polylines.append((current, current_curves))
                current = []
                current_curves = False

            for item in items:
                kind = item[0]
                if kind in ("l", "c"):
                    start, end = _xy(item[1]), _xy(item[-1])
                    if current and current[-1] != start:
                        flush()
                    if not current:
                        current.append(start)
                    current.append(end)
                    current_curves = current_curves or kind == "c"
                elif kind == "re":
                    flush()
                    x0, y0, x1, y1 = (float(v) for v in tuple(item[1])[:4])
                    polylines.append(([(x0, y0), (x1, y0), (x1, y1), (x0, y1), (x0, y0)], False))
                elif kind == "qu":
                    flush()
                    quad = item[1]
                    corners = [_xy(quad.ul), _xy(quad.ur), _xy(quad.lr), _xy(quad.ll)]
                    polylines.append((corners + [corners[0]], False))
            flush()

            if drawing.get("closePath") and polylines:
                points, curves = polylines[-1]
                if len(points) >= 3 and points[0] != points[-1]:
                    polylines[-1] = (points + [points[0]], curves)

            for points, curves in polylines:
                segments.append(Segment(
                    points=tuple(points),
                    origin_index=len(segments),
                    has_curves=curves,
                    **attrs
                ))

        return segments

    def words_to_labels(self, words: Iterable[Sequence]) -> List[Label]:
        """Group PyMuPDF words by (block, line) into labels"""
        lines: Dict[Tuple[int, int], List[Sequence]] = {}
        for word in words:
            lines.setdefault((int(word[5]), int(word[6])), []).append(word)

        labels = []
        for line_words in lines.values():
            boxes = [(float(w[0]), float(w[1]), float(w[2]), float(w[3])) for w in line_words]
            label = self._make_label([str(w[4]) for w in line_words], boxes)
            if label is not None:
                labels.append(label)
        return labels

    def _make_label(self, tokens: List[str], boxes: List[Tuple[float, float, float, float]]) -> Optional[Label]:
        text = " ".join(t for t in (clean_label_text(token) for token in tokens) if t)
        if not text:
            return None
        if self.label_keywords and not any(k in text.upper() for k in self.label_keywords):
            return None
        x0 = min(b[0] for b in boxes)
        y0 = min(b[1] for b in boxes)
        x1 = max(b[2] for b in boxes)
        y1 = max(b[3] for b in boxes)
        return Label(text=text, center_x=(x0 + x1) / 2, center_y=(y0 + y1) / 2)

    def _extract_pdfplumber(self, pdf_path: str, page_index: int) -> PageExtraction:
        try:
            pdf = pdfplumber.open(pdf_path)
        except Exception as e:
            raise DocumentOpenError(pdf_path, str(e)) from e

        with pdf:
            page_count = len(pdf.pages)
            if page_index < 0 or page_index >= page_count:
                raise PageOutOfRangeError(pdf_path, page_index, page_count)
            page = pdf.pages[page_index]
            operators = self.objects_to_operators(list(page.lines) + list(page.rects) + list(page.curves))
            segments = replay_operators(operators)
            labels = self.plumber_words_to_labels(page.extract_words())
            return PageExtraction(
                segments=tuple(segments),
                labels=tuple(labels),
                page_width=float(page.width),
                page_height=float(page.height),
                page_count=page_count,
                page_index=page_index,
                backend=ExtractionBackend.PDFPLUMBER.value,
            )

    def objects_to_operators(self, objects: Iterable[Dict[str, Any]]) -> List[DrawOperator]:
        """Operator sequence equivalent to pdfplumber line, rect and curve objects"""
        operators: List[DrawOperator] = []
        for obj in objects:
            operators.append(SetLineWidth(float(obj.get("linewidth") or 0.0)))
            path = obj.get("path")
            if path:
                operators.extend(self._path_operators(path))
            else:
                pts = [_xy(p) for p in obj.get("pts") or []]
                if len(pts) < 2:
                    continue
                operators.append(MoveTo(*pts[0]))
                operators.extend(LineTo(*p) for p in pts[1:])
                if obj.get("object_type") == "rect":
                    operators.append(ClosePath())

            stroked = bool(obj.get("stroke"))
            filled = bool(obj.get("fill"))
            even_odd = bool(obj.get("evenodd", False))
            if stroked and filled:
                operators.append(FillStroke(even_odd))
            elif stroked:
                operators.append(Stroke())
            elif filled:
                operators.append(Fill(even_odd))
            else:
                operators.append(EndPath())
        return operators

    def _path_operators(self, path: Sequence[Sequence]) -> List[DrawOperator]:
        operators: List[DrawOperator] = []
        for command in path:
            op = command[0]
            if op == "m":
                operators.append(MoveTo(*_xy(command[1])))
            elif op == "l":
                operators.append(LineTo(*_xy(command[1])))
            elif op == "c":
                (x1, y1), (x2, y2), (x3, y3) = (_xy(p) for p in command[1:4])
                operators.append(CurveTo(x1, y1, x2, y2, x3, y3))
            elif op == "h":
                operators.append(ClosePath())
        return operators

    def plumber_words_to_labels(self, words: Iterable[Dict[str, Any]]) -> List[Label]:
        """Group neighbouring pdfplumber words on one text line into labels"""
        rows: List[List[Dict[str, Any]]] = []
        for word in sorted(words, key=lambda w: float(w["top"])):
            if rows and abs(float(rows[-1][0]["top"]) - float(word["top"])) < LINE_GROUPING_TOLERANCE:
                rows[-1].append(word)
            else:
                rows.append([word])

        lines: List[List[Dict[str, Any]]] = []
        for row in rows:
            row.sort(key=lambda w: float(w["x0"]))
            current = [row[0]]
            for word in row[1:]:
                previous = current[-1]
                height = float(previous["bottom"]) - float(previous["top"])
                # Words further apart than 1.5 line heights belong to different labels
                if float(word["x0"]) - float(previous["x1"]) <= 1.5 * height:
                    current.append(word)
                else:
                    lines.append(current)
                    current = [word]
            lines.append(current)

        labels = []
        for line_words in lines:
            boxes = [(float(w["x0"]), float(w["top"]), float(w["x1"]), float(w["bottom"])) for w in line_words]
            label = self._make_label([str(w["text"]) for w in line_words], boxes)
            if label is not None:
                labels.append(label)
        return labels


page_extractor = PageExtractor()
