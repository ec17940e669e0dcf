"""
Voice Provider Credential Sanitizer.

Cleans web tokens copied into .env files with the usual formatting
mistakes (double equals, wrapping quotes, stray whitespace) and classifies
the cleaned value as a UUID or a "pk_" public key.

Sanitizing never raises. An unrecognised value is still returned so the
caller can decide whether to fail and how to report it.

Last Grunted: 10/14/2026
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


__all__ = [
    "TokenFormat",
    "SanitizedCredential",
    "sanitize_token",
    "classify_token",
    "inspect_credential",
    "mask_token",
]


logger = logging.getLogger(__name__)


_TOKEN_PATTERN = re.compile(r"(pk_)?[0-9a-f-]{36}", re.IGNORECASE)
_UUID_PATTERN = re.compile(r"^[0-9a-f-]{36}$", re.IGNORECASE)
_PUBLIC_KEY_PATTERN = re.compile(r"^pk_[0-9a-f-]{36}$", re.IGNORECASE)
_QUOTE_CHARS = ("'", '"')


class TokenFormat(str, Enum):
    """Shape of a sanitized credential."""

    UUID = "uuid"
    PUBLIC_KEY = "public_key"
    INVALID = "invalid"

    @property
    def label(self) -> str:
        """Human readable label used in diagnostics."""
        return {
            TokenFormat.UUID: "UUID format",
            TokenFormat.PUBLIC_KEY: "Public Key format",
            TokenFormat.INVALID: "Invalid format",
        }[self]


def sanitize_token(raw: Optional[str]) -> Optional[str]:
    """
    Clean a raw credential string.

    Steps, in order: trim; strip leading and trailing "=" (re-trimming after
    each); strip wrapping matching quotes until none remain; drop every
    remaining quote; keep only the first "(pk_)?<36 hex/hyphen>" run if one
    exists; trim again.

    Args:
        raw: Value read from the environment, possibly None.

    Returns:
        The cleaned token, or None when the input is absent or blank.

    Example:
        >>> sanitize_token('="pk_24d2848f-2887-4b7d-a555-99235377ac4e"')
        'pk_24d2848f-2887-4b7d-a555-99235377ac4e'
        >>> sanitize_token("not-a-token")
        'not-a-token'
    """
    if raw is None:
        return None

    token = raw.strip()
    if not token:
        return None

    while token.startswith("="):
        token = token[1:].strip()
    while token.endswith("="):
        token = token[:-1].strip()

    while len(token) >= 2 and token[0] == token[-1] and token[0] in _QUOTE_CHARS:
        token = token[1:-1].strip()

    for quote in _QUOTE_CHARS:
        token = token.replace(quote, "")
    token = token.strip()

    match = _TOKEN_PATTERN.search(token)
    if match:
        token = match.group(0)

    token = token.strip()
    return token or None


def classify_token(token: Optional[str]) -> TokenFormat:
    """Classify a cleaned token as UUID, public key or invalid."""
    if not token:
        return TokenFormat.INVALID
    if _UUID_PATTERN.match(token):
        return TokenFormat.UUID
    if _PUBLIC_KEY_PATTERN.match(token):
        return TokenFormat.PUBLIC_KEY
    return TokenFormat.INVALID


def mask_token(value: str, head: int = 10) -> str:
    """
    Mask a credential for logging, keeping the first `head` and last 5 characters.

    Values too short to mask safely are fully starred.
    """
    if len(value) <= head + 5:
        return "*" * len(value)
    return f"{value[:head]}...{value[-5:]}"


@dataclass(frozen=True)
class SanitizedCredential:
    """
    Result of cleaning one configured credential.

    Attributes:
        original: Raw value as configured.
        cleaned: Value after sanitizing.
        token_format: Detected shape of the cleaned value.
    """

    original: str
    cleaned: str
    token_format: TokenFormat

    @property
    def is_valid(self) -> bool:
        return self.token_format is not TokenFormat.INVALID

    @property
    def was_cleaned(self) -> bool:
        return self.original != self.cleaned

    @property
    def original_preview(self) -> str:
        return mask_token(self.original, head=15)

    @property
    def cleaned_preview(self) -> str:
        return mask_token(self.cleaned, head=15)

    def describe(self) -> dict[str, object]:
        """Diagnostic summary safe to return over HTTP (no full token)."""
        return {
            "originalLength": len(self.original),
            "cleanedLength": len(self.cleaned),
            "format": self.token_format.value,
            "isValidFormat": self.is_valid,
            "wasCleaned": self.was_cleaned,
            "originalPreview": self.original_preview,
            "cleanedPreview": self.cleaned_preview,
        }


def inspect_credential(raw: Optional[str]) -> Optional[SanitizedCredential]:
    """
    Sanitize and classify a configured credential in one step.

    Logs a warning when cleaning changed the value, so a misformatted .env
    entry is visible in the server log without leaking the token.

    Returns:
        SanitizedCredential, or None if nothing is configured.
    """
    cleaned = sanitize_token(raw)
    if raw is None or cleaned is None:
        return None

    credential = SanitizedCredential(
        original=raw,
        cleaned=cleaned,
        token_format=classify_token(cleaned),
    )

    if credential.was_cleaned:
        logger.warning(
            "Credential was cleaned: original_length=%d cleaned_length=%d preview=%s",
            len(credential.original),
            len(credential.cleaned),
            credential.cleaned_preview,
        )
    if not credential.is_valid:
        logger.error(
            "Credential format invalid after cleaning (length=%d, preview=%s)",
            len(credential.cleaned),
            credential.cleaned_preview,
        )
    return credential
