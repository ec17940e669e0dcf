"""
Unit tests for web token sanitizing and classification.

Last Grunted: 10/16/2026
"""

from __future__ import annotations

import pytest

from prepwise_agent.credentials import (
    TokenFormat,
    classify_token,
    inspect_credential,
    mask_token,
    sanitize_token,
)
from tests.mock_data import VALID_PUBLIC_KEY, VALID_UUID_TOKEN


# =============================================================================
# sanitize_token Tests
# =============================================================================


class TestSanitizeToken:
    """Tests for sanitize_token."""

    @pytest.mark.parametrize(
        "raw",
        [
            VALID_UUID_TOKEN,
            f"  {VALID_UUID_TOKEN}\n",
            f'"{VALID_UUID_TOKEN}"',
            f"'{VALID_UUID_TOKEN}'",
            f'=="{VALID_UUID_TOKEN}"',
            f"= {VALID_UUID_TOKEN} =",
            f"\"'{VALID_UUID_TOKEN}'\"",
            f"token: {VALID_UUID_TOKEN} trailing",
        ],
    )
    def test_recovers_uuid_from_common_mistakes(self, raw: str) -> None:
        """Whitespace, equals signs, quotes and surrounding noise are removed."""
        assert sanitize_token(raw) == VALID_UUID_TOKEN

    def test_recovers_public_key(self) -> None:
        """A pk_ prefixed token keeps its prefix."""
        assert sanitize_token(f'  "{VALID_PUBLIC_KEY}"\n') == VALID_PUBLIC_KEY

    def test_unrecognised_value_returned_unchanged(self) -> None:
        """Values without a token-shaped run are returned after trimming."""
        assert sanitize_token("  not-a-token ") == "not-a-token"

    def test_none_and_blank_return_none(self) -> None:
        """Absent or blank input yields None."""
        assert sanitize_token(None) is None
        assert sanitize_token("") is None
        assert sanitize_token("   \t") is None

    def test_only_quotes_return_none(self) -> None:
        """A value that is nothing but quotes cleans down to nothing."""
        assert sanitize_token('""') is None
        assert sanitize_token("==") is None

    def test_stray_inner_quote_removed(self) -> None:
        """Unbalanced quotes are dropped anywhere in the value."""
        assert sanitize_token(f'"{VALID_UUID_TOKEN}') == VALID_UUID_TOKEN

    @pytest.mark.parametrize(
        "raw",
        [
            f'=="{VALID_UUID_TOKEN}"',
            f"'{VALID_PUBLIC_KEY}' ",
            "  not-a-token ",
        ],
    )
    def test_idempotent(self, raw: str) -> None:
        """Sanitizing an already sanitized value changes nothing."""
        once = sanitize_token(raw)
        assert sanitize_token(once) == once


# =============================================================================
# classify_token / mask_token Tests
# =============================================================================


class TestClassifyToken:
    """Tests for classify_token."""

    def test_uuid(self) -> None:
        assert classify_token(VALID_UUID_TOKEN) is TokenFormat.UUID

    def test_uppercase_uuid(self) -> None:
        assert classify_token(VALID_UUID_TOKEN.upper()) is TokenFormat.UUID

    def test_public_key(self) -> None:
        assert classify_token(VALID_PUBLIC_KEY) is TokenFormat.PUBLIC_KEY

    def test_invalid(self) -> None:
        assert classify_token("not-a-token") is TokenFormat.INVALID
        assert classify_token(VALID_UUID_TOKEN[:-1]) is TokenFormat.INVALID
        assert classify_token(None) is TokenFormat.INVALID

    def test_labels(self) -> None:
        assert TokenFormat.UUID.label == "UUID format"
        assert TokenFormat.PUBLIC_KEY.label == "Public Key format"
        assert TokenFormat.INVALID.label == "Invalid format"


class TestMaskToken:
    """Tests for mask_token."""

    def test_masks_middle(self) -> None:
        assert mask_token(VALID_UUID_TOKEN) == "24d2848f-2...7ac4e"

    def test_custom_head(self) -> None:
        assert mask_token(VALID_UUID_TOKEN, head=15) == "24d2848f-2887-4...7ac4e"

    def test_short_value_fully_starred(self) -> None:
        assert mask_token("abcdef") == "******"
        assert mask_token("a" * 15) == "*" * 15


# =============================================================================
# inspect_credential Tests
# =============================================================================


class TestInspectCredential:
    """Tests for inspect_credential and SanitizedCredential."""

    def test_none_when_not_configured(self) -> None:
        assert inspect_credential(None) is None
        assert inspect_credential("  ") is None

    def test_clean_token(self) -> None:
        credential = inspect_credential(VALID_UUID_TOKEN)

        assert credential is not None
        assert credential.is_valid
        assert not credential.was_cleaned
        assert credential.token_format is TokenFormat.UUID

    def test_describe_does_not_leak_token(self) -> None:
        """describe() reports lengths and masked previews only."""
        raw = f'=="{VALID_UUID_TOKEN}"'
        credential = inspect_credential(raw)

        assert credential is not None
        summary = credential.describe()
        assert summary == {
            "originalLength": len(raw),
            "cleanedLength": 36,
            "format": "uuid",
            "isValidFormat": True,
            "wasCleaned": True,
            "originalPreview": mask_token(raw, head=15),
            "cleanedPreview": "24d2848f-2887-4...7ac4e",
        }
        assert VALID_UUID_TOKEN not in str(summary)

    def test_invalid_token_kept(self) -> None:
        """An invalid value is still returned so the caller can report it."""
        credential = inspect_credential("sk_live_abc123")

        assert credential is not None
        assert credential.cleaned == "sk_live_abc123"
        assert not credential.is_valid
        assert credential.token_format is TokenFormat.INVALID
