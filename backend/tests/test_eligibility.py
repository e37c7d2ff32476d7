"""
Unit tests for service-area eligibility.
"""

from jobhook.services.eligibility import ALLOWED_ZIP_CODES, is_eligible


class TestIsEligible:
    """Test zip code allow-list checks."""

    def test_allowed_zip_is_eligible(self):
        assert is_eligible("60532") is True

    def test_outside_zip_is_not_eligible(self):
        assert is_eligible("90210") is False

    def test_missing_zip_is_not_eligible(self):
        assert is_eligible(None) is False
        assert is_eligible("") is False

    def test_custom_allow_list(self):
        assert is_eligible("90210", frozenset({"90210"})) is True
        assert is_eligible("60532", frozenset({"90210"})) is False

    def test_allow_list_contents(self):
        assert len(ALLOWED_ZIP_CODES) == 111
        assert all(len(z) == 5 and z.isdigit() for z in ALLOWED_ZIP_CODES)
