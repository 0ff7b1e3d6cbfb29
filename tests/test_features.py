# tests/test_features.py
"""
Tests for features.py - feature flags and New Quizzes checks
"""
import pytest

from marvin.errors import ConfigurationError
from marvin.features import FeatureContext, NewQuizzesFeatures


@pytest.fixture
def root_account():
    return FeatureContext({"quizzes_next": "allowed"})


@pytest.fixture
def course(root_account):
    return FeatureContext(root_account=root_account)


class TestFeatureContext:
    def test_states(self):
        context = FeatureContext({"a": "on", "b": "allowed", "c": "off"})

        assert context.feature_enabled("a") and context.feature_allowed("a")
        assert not context.feature_enabled("b") and context.feature_allowed("b")
        assert not context.feature_enabled("c") and not context.feature_allowed("c")
        assert not context.feature_allowed("missing")

    def test_transitions(self):
        context = FeatureContext()

        context.allow_feature("x")
        assert context.flags["x"] == "allowed"
        context.enable_feature("x")
        assert context.feature_enabled("x")
        context.disable_feature("x")
        assert context.flags["x"] == "off"

    def test_unknown_state(self):
        with pytest.raises(ConfigurationError, match="Unknown state"):
            FeatureContext({"x": "maybe"})

    def test_root_account_defaults_to_self(self, root_account, course):
        assert root_account.root_account is root_account
        assert course.root_account is root_account


class TestNewQuizzesFeatures:
    def test_import_enabled_follows_context(self, course):
        features = NewQuizzesFeatures(course)

        assert not features.import_enabled()
        course.enable_feature("quizzes_next")
        assert features.import_enabled()

    def test_migration_needs_allowed_quizzes_next(self, root_account, course):
        root_account.enable_feature("new_quizzes_migration")

        assert NewQuizzesFeatures(course).migration_enabled()

        root_account.disable_feature("quizzes_next")
        assert not NewQuizzesFeatures(course).migration_enabled()

    def test_third_party_imports(self, root_account, course):
        features = NewQuizzesFeatures(course)

        assert not features.import_third_party()
        root_account.enable_feature("new_quizzes_third_party_imports")
        assert features.import_third_party()

    def test_migration_default(self, root_account, course):
        features = NewQuizzesFeatures(course)
        assert not features.migration_default()

        root_account.enable_feature("require_migration_to_new_quizzes")

        assert features.require_migration()
        assert features.migration_default()

    def test_migration_default_flag(self, root_account, course):
        root_account.enable_feature("migrate_to_new_quizzes_by_default")

        features = NewQuizzesFeatures(course)

        assert features.migration_default()
        assert not features.require_migration()

    def test_navigation_placements(self, course):
        site_admin = FeatureContext({"new_quizzes_account_course_level_item_banks": "on"})
        features = NewQuizzesFeatures(course, site_admin=site_admin)

        assert not features.navigation_placements_enabled()
        course.enable_feature("quizzes_next")
        assert features.navigation_placements_enabled()
        assert not features.navigation_placements_enabled(FeatureContext())

    def test_bank_migrations(self, root_account, course):
        site_admin = FeatureContext({"new_quizzes_bank_migrations": "on"})
        course.enable_feature("quizzes_next")
        features = NewQuizzesFeatures(course, site_admin=site_admin)

        assert not features.bank_migrations_enabled()
        root_account.enable_feature("new_quizzes_migration")
        assert features.bank_migrations_enabled()
