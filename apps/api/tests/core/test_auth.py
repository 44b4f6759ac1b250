"""
Unit tests for job endpoint authentication.
"""

import pytest

from app.core.auth import AuthenticationError, verify_function_key


class TestVerifyFunctionKey:
    """Tests for verify_function_key."""

    def test_matching_key(self):
        verify_function_key("s3cret", expected_key="s3cret")

    def test_wrong_key(self):
        with pytest.raises(AuthenticationError) as exc_info:
            verify_function_key("guess", expected_key="s3cret")
        assert exc_info.value.reason == "invalid_credential"
        assert str(exc_info.value) == "Unauthorized"

    @pytest.mark.parametrize("provided", [None, ""])
    def test_missing_key(self, provided):
        with pytest.raises(AuthenticationError) as exc_info:
            verify_function_key(provided, expected_key="s3cret")
        assert exc_info.value.reason == "missing_credential"

    def test_unconfigured_secret_rejects(self):
        """With no configured secret even an empty key is rejected."""
        with pytest.raises(AuthenticationError) as exc_info:
            verify_function_key("", expected_key="")
        assert exc_info.value.reason == "not_configured"

    def test_prefix_of_key_rejected(self):
        with pytest.raises(AuthenticationError):
            verify_function_key("s3c", expected_key="s3cret")
