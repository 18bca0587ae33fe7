"""
PDF Parser client.

Uploads care-plan PDFs for structured extraction. Files are checked
locally first (size, magic bytes, active content) so obviously bad or
dangerous documents never reach the parser. No fallback: a parse result
cannot be synthesized.
"""

import logging
import re
from dataclasses import replace
from typing import Optional

from service_clients.clients.base import RequestOptions, ResilientClient
from service_clients.clients.pdf_parser.schemas import (
    FileValidationResult,
    ParsedCarePlanResponse,
    ParsePreviewResponse,
)
from service_clients.constants import MAX_PDF_BYTES, MAX_PDF_URI_ACTIONS, PDF_PARSER, PDF_PREVIEW_TIMEOUT
from service_clients.errors import ValidationError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
UPLOAD_FIELD = "file"
UPLOAD_FILENAME = "document.pdf"

# (pattern, rejection message)
_BLOCKED_CONTENT: list[tuple[re.Pattern, str]] = [
    (re.compile(rb"/(?:JavaScript|JS)\s", re.IGNORECASE), "PDF contains JavaScript which is not allowed"),
    (re.compile(rb"/EmbeddedFile", re.IGNORECASE), "PDF contains embedded files which are not allowed"),
    (re.compile(rb"/Launch\s", re.IGNORECASE), "PDF contains launch actions which are not allowed"),
]
_URI_ACTION = re.compile(rb"/URI\s", re.IGNORECASE)


class PdfParserClient(ResilientClient):
    """Client for the PDF parser service."""

    def __init__(self, base_url: str, *, enable_security_scan: bool = True, **kwargs):
        super().__init__(PDF_PARSER, base_url, **kwargs)
        self.enable_security_scan = enable_security_scan

    async def parse(self, file: bytes, options: Optional[RequestOptions] = None) -> ParsedCarePlanResponse:
        """
        Parse a PDF into a structured care plan.

        Raises:
            ValidationError: File rejected by local checks
        """
        self._require_valid(file)
        return await self.post(
            "/api/v1/parse",
            files=self._files(file),
            options=options,
            parse=ParsedCarePlanResponse.from_wire,
        )

    async def preview(self, file: bytes, options: Optional[RequestOptions] = None) -> ParsePreviewResponse:
        """Quick scan of a PDF (15s timeout by default)."""
        self._require_valid(file)
        opts = options or RequestOptions()
        if opts.timeout is None:
            opts = replace(opts, timeout=PDF_PREVIEW_TIMEOUT)
        return await self.post(
            "/api/v1/preview",
            files=self._files(file),
            options=opts,
            parse=ParsePreviewResponse.from_wire,
        )

    def validate_file(self, file: bytes) -> FileValidationResult:
        """Check size, PDF magic bytes and (optionally) active content."""
        size = len(file)
        if size > MAX_PDF_BYTES:
            return FileValidationResult(
                valid=False,
                error=f"File size {size} bytes exceeds maximum {MAX_PDF_BYTES} bytes (10MB)",
                size_bytes=size,
            )

        if not file.startswith(PDF_MAGIC):
            return FileValidationResult(
                valid=False,
                error="File does not appear to be a valid PDF",
                size_bytes=size,
                mime_type="unknown",
            )

        if self.enable_security_scan:
            for pattern, message in _BLOCKED_CONTENT:
                if pattern.search(file):
                    return FileValidationResult(valid=False, error=message, size_bytes=size, mime_type="application/pdf")
            if len(_URI_ACTION.findall(file)) > MAX_PDF_URI_ACTIONS:
                return FileValidationResult(
                    valid=False,
                    error="PDF contains excessive external links",
                    size_bytes=size,
                    mime_type="application/pdf",
                )

        return FileValidationResult(valid=True, size_bytes=size, mime_type="application/pdf")

    def _require_valid(self, file: bytes) -> None:
        result = self.validate_file(file)
        if not result.valid:
            logger.info("Rejected PDF upload before sending: %s", result.error)
            raise ValidationError(
                result.error or "Invalid PDF",
                service=self.service_name,
                details={"size_bytes": result.size_bytes},
            )

    @staticmethod
    def _files(file: bytes) -> dict:
        return {UPLOAD_FIELD: (UPLOAD_FILENAME, file, "application/pdf")}
