from service_clients.clients.pdf_parser.client import PdfParserClient
from service_clients.clients.pdf_parser.schemas import (
    FileValidationResult,
    ParsedCarePlanResponse,
    ParsePreviewResponse,
)

__all__ = [
    "PdfParserClient",
    "FileValidationResult",
    "ParsedCarePlanResponse",
    "ParsePreviewResponse",
]
