"""
PHI Detector - Protected Health Information detection and redaction.

Used to scrub text that originates outside this process (upstream error
bodies, exception messages) before it is attached to an exception or a
log record. Request payloads are never logged in the first place; this is
the second line for text we do not control.

Patterns are regex only. Names are only caught when introduced by a
label ("patient", "name", "pt"), which keeps false positives on clinical
vocabulary low.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class PHIType(str, Enum):
    """Types of PHI that can be detected."""

    SSN = "ssn"
    MRN = "mrn"
    EMAIL = "email"
    PHONE = "phone"
    DATE_OF_BIRTH = "date_of_birth"
    PATIENT_NAME = "patient_name"
    CUSTOM = "custom"


@dataclass
class PHIMatch:
    """A detected PHI match."""

    phi_type: PHIType
    value: str
    start: int
    end: int


class RedactionStrategy(str, Enum):
    """How to redact detected PHI."""

    MASK = "mask"  # Replace with [REDACTED]
    TYPE_LABEL = "type_label"  # Replace with [PHI_TYPE_REDACTED]
    REMOVE = "remove"


# =============================================================================
# PHI PATTERNS
# =============================================================================

PHI_PATTERNS: dict[PHIType, re.Pattern] = {
    PHIType.SSN: re.compile(r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b"),
    PHIType.MRN: re.compile(r"\b(?:MRN|mrn|Medical Record(?: Number)?)[:#\s]*[A-Z0-9-]{4,}\b"),
    PHIType.EMAIL: re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    PHIType.PHONE: re.compile(r"(?<!\d)(?:\+1[-.\s]?)?\(?\d{3}\)?[-.\s]\d{3}[-.\s]\d{4}\b"),
    PHIType.DATE_OF_BIRTH: re.compile(
        r"\b(?:0?[1-9]|1[0-2])[/\-](?:0?[1-9]|[12][0-9]|3[01])[/\-](?:19|20)\d{2}\b"
    ),
    PHIType.PATIENT_NAME: re.compile(
        r"\b(?:[Pp]atient|[Nn]ame|[Pp]t)[:\s]+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+"
    ),
}


class PHIDetector:
    """
    Detect and redact PHI from free text.

    Usage:
        detector = PHIDetector()
        detector.redact("SSN 123-45-6789")  # 'SSN [SSN_REDACTED]'
    """

    def __init__(
        self,
        enabled_types: Optional[list[PHIType]] = None,
        custom_patterns: Optional[dict[str, re.Pattern]] = None,
        strategy: RedactionStrategy = RedactionStrategy.TYPE_LABEL,
    ):
        self.enabled_types = enabled_types or list(PHI_PATTERNS.keys())
        self.strategy = strategy

        self.patterns: dict[PHIType | str, re.Pattern] = {
            phi_type: PHI_PATTERNS[phi_type] for phi_type in self.enabled_types if phi_type in PHI_PATTERNS
        }
        for name, pattern in (custom_patterns or {}).items():
            self.patterns[name] = pattern

    def scan(self, text: str) -> list[PHIMatch]:
        """
        Scan text for PHI.

        Returns:
            Non-overlapping matches ordered by position
        """
        if not text:
            return []

        matches = []
        for phi_type, pattern in self.patterns.items():
            for match in pattern.finditer(text):
                matches.append(
                    PHIMatch(
                        phi_type=phi_type if isinstance(phi_type, PHIType) else PHIType.CUSTOM,
                        value=match.group(),
                        start=match.start(),
                        end=match.end(),
                    )
                )

        # Longest match wins on overlap
        matches.sort(key=lambda m: (m.start, -(m.end - m.start)))
        result: list[PHIMatch] = []
        for match in matches:
            if result and match.start < result[-1].end:
                continue
            result.append(match)
        return result

    def redact(self, text: str, strategy: Optional[RedactionStrategy] = None) -> str:
        """Return text with every detected PHI span replaced."""
        if not text:
            return text

        strategy = strategy or self.strategy
        matches = self.scan(text)
        if not matches:
            return text

        result = text
        for match in reversed(matches):
            result = result[: match.start] + self._replacement(match, strategy) + result[match.end :]
        return result

    def contains_phi(self, text: str) -> bool:
        return bool(self.scan(text))

    @staticmethod
    def _replacement(match: PHIMatch, strategy: RedactionStrategy) -> str:
        if strategy == RedactionStrategy.TYPE_LABEL:
            return f"[{match.phi_type.value.upper()}_REDACTED]"
        if strategy == RedactionStrategy.REMOVE:
            return ""
        return "[REDACTED]"


_default_detector = PHIDetector()


def redact_phi(text: str | None, max_length: int = 500) -> str:
    """
    Redact PHI and truncate text destined for errors or logs.

    Args:
        text: Untrusted text (may be None)
        max_length: Truncate after redaction to this many characters

    Returns:
        Redacted string, empty when text is falsy
    """
    if not text:
        return ""
    redacted = _default_detector.redact(str(text))
    if len(redacted) > max_length:
        redacted = redacted[:max_length] + "..."
    return redacted
