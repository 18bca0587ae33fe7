from service_clients.logging.safe_logging import header_presence, payload_shape, safe_headers, token_presence
from service_clients.logging.structured import JSONFormatter, PHIRedactionFilter, setup_structured_logging

__all__ = [
    "header_presence",
    "payload_shape",
    "safe_headers",
    "token_presence",
    "JSONFormatter",
    "PHIRedactionFilter",
    "setup_structured_logging",
]
