"""
Input errors raised while reading a floor-plan document
"""

from typing import Optional

from roomtrace.services.error_types import RoomTraceError


class DocumentOpenError(RoomTraceError):
    """Raised when the source document cannot be opened"""

    def __init__(self, pdf_path: str, reason: Optional[str] = None):
        message = f"Could not open document: {pdf_path}"
        details = {
            "error_type": "document_open_failed",
            "pdf_path": pdf_path,
            "reason": reason,
        }
        super().__init__(message, details)


class PageOutOfRangeError(RoomTraceError):
    """Raised when the requested page does not exist"""

    def __init__(self, pdf_path: str, page_index: int, page_count: int):
        message = f"Page index {page_index} out of range (document has {page_count} pages)"
        details = {
            "error_type": "page_out_of_range",
            "pdf_path": pdf_path,
            "page_index": page_index,
            "page_count": page_count,
        }
        super().__init__(message, details)
