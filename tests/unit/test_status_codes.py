"""
Unit tests for the Gemini status registry.
"""

import pytest

from geminiserver.errors import GeminiError, UnknownStatusError
from geminiserver.protocol.status_codes import (
    GeminiStatus,
    StatusCategory,
    UnknownStatus,
    lookup_status,
    status_from_name,
    status_name,
)


class TestGeminiStatus:
    """Tests for GeminiStatus enum."""

    def test_registry_has_eighteen_codes(self):
        """Test that every defined code is registered."""
        assert sorted(int(s) for s in GeminiStatus) == [
            10, 11, 20, 30, 31, 40, 41, 42, 43, 44,
            50, 51, 52, 53, 59, 60, 61, 62,
        ]

    def test_int_comparison(self):
        """Test that statuses compare equal to their numeric codes."""
        assert GeminiStatus.NOT_FOUND == 51
        assert GeminiStatus(20) is GeminiStatus.SUCCESS

    def test_canonical_names(self):
        """Test canonical names of a few codes."""
        assert GeminiStatus.NOT_FOUND.canonical_name == "NOT_FOUND"
        assert GeminiStatus.CGI_ERROR.canonical_name == "CGI_ERROR"
        assert GeminiStatus.BAD_REQUEST.canonical_name == "BAD_REQUEST"

    def test_categories(self):
        """Test category helpers."""
        assert GeminiStatus.SENSITIVE_INPUT.is_input
        assert GeminiStatus.SUCCESS.is_success
        assert GeminiStatus.REDIRECT_TEMPORARY.is_redirect
        assert GeminiStatus.SLOW_DOWN.is_temporary_failure
        assert GeminiStatus.GONE.is_permanent_failure
        assert GeminiStatus.CERTIFICATE_NOT_VALID.is_certificate_required
        assert GeminiStatus.PROXY_ERROR.category == StatusCategory.TEMPORARY_FAILURE

    def test_is_error(self):
        """Test that only 4x, 5x and 6x are errors."""
        assert not GeminiStatus.INPUT.is_error
        assert not GeminiStatus.SUCCESS.is_error
        assert not GeminiStatus.REDIRECT_PERMANENT.is_error
        assert GeminiStatus.TEMPORARY_FAILURE.is_error
        assert GeminiStatus.CLIENT_CERTIFICATE_REQUIRED.is_error


class TestStatusLookups:
    """Tests for the registry lookup functions."""

    def test_status_name(self):
        """Test code to name lookup."""
        assert status_name(51) == "NOT_FOUND"
        assert status_name(GeminiStatus.SLOW_DOWN) == "SLOW_DOWN"

    @pytest.mark.parametrize("code", [0, 21, 45, 99, 100])
    def test_status_name_unknown_raises(self, code):
        """Test that unregistered codes fail closed."""
        with pytest.raises(UnknownStatusError) as exc_info:
            status_name(code)
        assert exc_info.value.code == code

    def test_unknown_status_error_hierarchy(self):
        """Test that UnknownStatusError is both a GeminiError and ValueError."""
        with pytest.raises(ValueError):
            status_name(21)
        with pytest.raises(GeminiError):
            status_name(21)

    def test_status_from_name(self):
        """Test reverse lookup with relaxed spelling."""
        assert status_from_name("NOT_FOUND") is GeminiStatus.NOT_FOUND
        assert status_from_name("not found") is GeminiStatus.NOT_FOUND
        assert status_from_name("Slow_Down") is GeminiStatus.SLOW_DOWN

    def test_status_from_name_unknown(self):
        """Test reverse lookup of an unregistered name."""
        with pytest.raises(UnknownStatusError):
            status_from_name("TEAPOT")

    def test_lookup_known(self):
        """Test lookup_status for a registered code."""
        assert lookup_status(31) is GeminiStatus.REDIRECT_PERMANENT

    def test_lookup_unknown(self):
        """Test lookup_status falls back to UnknownStatus."""
        status = lookup_status(21)

        assert status == UnknownStatus(21)
        assert status.category == StatusCategory.SUCCESS
        assert status.is_success
        assert not status.is_error
        assert status.canonical_name is None
        assert int(status) == 21

    def test_lookup_unknown_category(self):
        """Test an unknown code outside every category."""
        status = lookup_status(99)

        assert status.category is None
        assert status.is_error
        assert not status.is_success
