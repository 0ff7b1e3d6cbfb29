"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

usage_rights.py

Copyright and license information attached to course files.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from marvin.errors import RecordInvalid


USE_JUSTIFICATIONS = (
    "own_copyright",
    "public_domain",
    "used_by_permission",
    "fair_use",
    "creative_commons",
)

CONTEXT_TYPES = ("course", "group", "user")

LICENSES: Dict[str, Dict[str, str]] = {
    "private": {
        "readable_license": "Private (Copyrighted)",
        "license_url": "http://en.wikipedia.org/wiki/Copyright",
    },
    "public_domain": {
        "readable_license": "Public Domain",
        "license_url": "http://en.wikipedia.org/wiki/Public_domain",
    },
    "cc_by": {
        "readable_license": "CC Attribution",
        "license_url": "http://creativecommons.org/licenses/by/4.0",
    },
    "cc_by_sa": {
        "readable_license": "CC Attribution Share Alike",
        "license_url": "http://creativecommons.org/licenses/by-sa/4.0",
    },
    "cc_by_nc": {
        "readable_license": "CC Attribution Non-Commercial",
        "license_url": "http://creativecommons.org/licenses/by-nc/4.0",
    },
    "cc_by_nc_sa": {
        "readable_license": "CC Attribution Non-Commercial Share Alike",
        "license_url": "http://creativecommons.org/licenses/by-nc-sa/4.0",
    },
    "cc_by_nd": {
        "readable_license": "CC Attribution No Derivatives",
        "license_url": "http://creativecommons.org/licenses/by-nd/4.0",
    },
    "cc_by_nc_nd": {
        "readable_license": "CC Attribution Non-Commercial No Derivatives",
        "license_url": "http://creativecommons.org/licenses/by-nc-nd/4.0",
    },
}


@dataclass
class UsageRights:
    context_type: Optional[str]
    context_id: Any
    use_justification: Optional[str]
    license: Optional[str] = None
    legal_copyright: Optional[str] = None

    def infer_license(self) -> None:
        if self.license:
            return
        if self.use_justification == "public_domain":
            self.license = "public_domain"
        elif self.use_justification == "creative_commons":
            # most restrictive CC license unless told otherwise
            self.license = "cc_by_nc_nd"
        else:
            self.license = "private"

    def validate(self) -> None:
        self.infer_license()
        errors: Dict[str, List[str]] = {}
        if self.use_justification not in USE_JUSTIFICATIONS:
            errors["use_justification"] = ["is not included in the list"]
        if self.license is not None and self.license not in LICENSES:
            errors["license"] = ["is not included in the list"]
        if (self.context_type or "").lower() not in CONTEXT_TYPES:
            errors["context_type"] = ["is not included in the list"]
        if errors:
            raise RecordInvalid(errors, record=self)

    @property
    def license_name(self) -> str:
        return LICENSES[self.license or "private"]["readable_license"]

    @property
    def license_url(self) -> str:
        return LICENSES[self.license or "private"]["license_url"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "use_justification": self.use_justification,
            "license": self.license,
            "license_name": self.license_name,
            "legal_copyright": self.legal_copyright,
        }
