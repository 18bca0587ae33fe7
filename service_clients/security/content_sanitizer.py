"""
Content Sanitizer

Cleans free text (transcripts, clinical notes) before it is sent to an
ML service: control characters are stripped, and model control tokens
can optionally be neutralized so transcribed speech cannot smuggle
prompt delimiters into downstream LLM prompts.
"""

import logging
import re

logger = logging.getLogger(__name__)


# C0 and C1 controls and DEL, keeping tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


CONTROL_TOKENS = [
    "<|im_start|>", "<|im_end|>", "<<SYS>>", "<</SYS>>",
    "[INST]", "[/INST]", "<s>", "</s>"
]


def strip_control_characters(text: str) -> str:
    """Remove control characters other than \\t, \\n and \\r."""
    if not text:
        return text
    return _CONTROL_CHARS.sub("", text)


def remove_control_tokens(text: str) -> str:
    """Drop known LLM control tokens (case-insensitive)."""
    if not text:
        return text
    cleaned = text
    for token in CONTROL_TOKENS:
        cleaned = re.sub(re.escape(token), "", cleaned, flags=re.IGNORECASE)
    return cleaned


def sanitize_text(text: str, strip_control_tokens: bool = False) -> str:
    """
    Sanitize text for transmission to an ML service.

    Args:
        text: Raw text
        strip_control_tokens: Also remove LLM control tokens

    Returns:
        Cleaned text
    """
    cleaned = strip_control_characters(text)
    if strip_control_tokens:
        before = len(cleaned)
        cleaned = remove_control_tokens(cleaned)
        if len(cleaned) != before:
            logger.info("Removed LLM control tokens from outbound text")
    return cleaned
