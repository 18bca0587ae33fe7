"""Outbound auth, text sanitization and PHI redaction."""

from service_clients.security.content_sanitizer import sanitize_text, strip_control_characters
from service_clients.security.pii_detector import PHIDetector, PHIType, redact_phi
from service_clients.security.service_auth import ServiceAuthConfig, ServiceTokenSigner

__all__ = [
    "sanitize_text",
    "strip_control_characters",
    "PHIDetector",
    "PHIType",
    "redact_phi",
    "ServiceAuthConfig",
    "ServiceTokenSigner",
]
