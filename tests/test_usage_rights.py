# tests/test_usage_rights.py
"""
Tests for usage_rights.py - file copyright and license info
"""
import pytest

from marvin.errors import RecordInvalid
from marvin.usage_rights import LICENSES, UsageRights


class TestInferLicense:
    @pytest.mark.parametrize("justification,expected", [
        ("public_domain", "public_domain"),
        ("creative_commons", "cc_by_nc_nd"),
        ("own_copyright", "private"),
        ("used_by_permission", "private"),
        ("fair_use", "private"),
    ])
    def test_default_license(self, justification, expected):
        rights = UsageRights("course", 1, justification)

        rights.infer_license()

        assert rights.license == expected

    def test_explicit_license_is_kept(self):
        rights = UsageRights("course", 1, "creative_commons", license="cc_by")

        rights.infer_license()

        assert rights.license == "cc_by"


class TestValidation:
    def test_valid_record(self):
        rights = UsageRights("Course", 1, "fair_use", legal_copyright="(C) 2026 Example")

        rights.validate()

        assert rights.license == "private"

    def test_unknown_values(self):
        rights = UsageRights("account", 1, "because", license="wtfpl")

        with pytest.raises(RecordInvalid) as excinfo:
            rights.validate()

        assert excinfo.value.errors == {
            "use_justification": ["is not included in the list"],
            "license": ["is not included in the list"],
            "context_type": ["is not included in the list"],
        }

    def test_missing_justification(self):
        with pytest.raises(RecordInvalid):
            UsageRights("user", 1, None).validate()


class TestPresentation:
    def test_license_name_and_url(self):
        rights = UsageRights("course", 1, "creative_commons")
        rights.infer_license()

        assert rights.license_name == "CC Attribution Non-Commercial No Derivatives"
        assert rights.license_url == "http://creativecommons.org/licenses/by-nc-nd/4.0"

    def test_to_dict(self):
        rights = UsageRights("group", 3, "own_copyright", legal_copyright="Me")
        rights.validate()

        assert rights.to_dict() == {
            "use_justification": "own_copyright",
            "license": "private",
            "license_name": "Private (Copyrighted)",
            "legal_copyright": "Me",
        }

    def test_every_license_has_name_and_url(self):
        for info in LICENSES.values():
            assert info["readable_license"]
            assert info["license_url"].startswith("http://")
