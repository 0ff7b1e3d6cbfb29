"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

features.py

Feature flags and the New Quizzes checks built on them.

Each flag is in one of three states:

    off      feature unavailable
    allowed  sub-contexts may turn it on
    on       feature enabled here
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from marvin.errors import ConfigurationError


logger = logging.getLogger(__name__)

FEATURE_STATES = ("off", "allowed", "on")


class FeatureContext:
    """An account or course with its own feature flag states."""

    def __init__(self, flags: Optional[Dict[str, str]] = None, root_account: Optional["FeatureContext"] = None):
        self.flags: Dict[str, str] = {}
        for name, state in (flags or {}).items():
            self._set(name, state)
        self._root_account = root_account

    @property
    def root_account(self) -> "FeatureContext":
        return self._root_account if self._root_account is not None else self

    def feature_enabled(self, name: str) -> bool:
        return self.flags.get(name) == "on"

    def feature_allowed(self, name: str) -> bool:
        return self.flags.get(name) in ("allowed", "on")

    def enable_feature(self, name: str) -> None:
        self._set(name, "on")

    def disable_feature(self, name: str) -> None:
        self._set(name, "off")

    def allow_feature(self, name: str) -> None:
        self._set(name, "allowed")

    def _set(self, name: str, state: str) -> None:
        if state not in FEATURE_STATES:
            raise ConfigurationError(
                f"Unknown state '{state}' for feature '{name}'",
                suggestion=f"Use one of: {', '.join(FEATURE_STATES)}",
            )
        logger.debug("[features] %s -> %s", name, state)
        self.flags[name] = state


class NewQuizzesFeatures:
    """New Quizzes availability for one context."""

    def __init__(self, context: FeatureContext, site_admin: Optional[FeatureContext] = None):
        self.context = context
        self.site_admin = site_admin if site_admin is not None else FeatureContext()

    @property
    def root_account(self) -> FeatureContext:
        return self.context.root_account

    def import_enabled(self) -> bool:
        return self.context.feature_enabled("quizzes_next")

    def migration_enabled(self) -> bool:
        return (
            self.root_account.feature_allowed("quizzes_next")
            and self.root_account.feature_enabled("new_quizzes_migration")
        )

    def import_third_party(self) -> bool:
        return (
            self.root_account.feature_allowed("quizzes_next")
            and self.root_account.feature_enabled("new_quizzes_third_party_imports")
        )

    def migration_default(self) -> bool:
        return self.root_account.feature_enabled("migrate_to_new_quizzes_by_default") or self.require_migration()

    def require_migration(self) -> bool:
        return self.root_account.feature_enabled("require_migration_to_new_quizzes")

    def navigation_placements_enabled(self, context: Optional[FeatureContext] = None) -> bool:
        context = context or self.context
        return (
            self.site_admin.feature_enabled("new_quizzes_account_course_level_item_banks")
            and context.feature_enabled("quizzes_next")
        )

    def bank_migrations_enabled(self) -> bool:
        return (
            self.site_admin.feature_enabled("new_quizzes_bank_migrations")
            and self.context.feature_enabled("quizzes_next")
            and self.root_account.feature_enabled("new_quizzes_migration")
        )
