"""Tests for rule equivalence checks."""

from alb_controller.comparator import needs_modification, rules_equal
from alb_controller.models import ForwardAction, RuleCondition, RuleSnapshot
from alb_controller.observed import ABSENT, Present


def path_rule(path: str, priority: str | None = None, tg: str | None = None) -> Present:
    return Present(
        RuleSnapshot(
            priority=priority,
            conditions=(RuleCondition(field="path-pattern", values=(path,)),),
            actions=(ForwardAction(target_group_arn=tg),),
        )
    )


DEFAULT_RULE = Present(RuleSnapshot(priority="default", is_default=True))


class TestNeedsModification:
    """Tests for needs_modification."""

    def test_absent_current_always_needs_work(self) -> None:
        """Test that an absent current rule always needs work."""
        assert needs_modification(ABSENT, path_rule("/a")) is True
        assert needs_modification(ABSENT, ABSENT) is True

    def test_identical_conditions(self) -> None:
        """Test that identical conditions need no modification."""
        assert needs_modification(path_rule("/a"), path_rule("/a")) is False

    def test_different_conditions(self) -> None:
        """Test that different conditions need modification."""
        assert needs_modification(path_rule("/a"), path_rule("/b")) is True

    def test_priority_is_ignored(self) -> None:
        """Test that a rule at priority 7 matches an unprioritized desired rule."""
        assert needs_modification(path_rule("/a", priority="7"), path_rule("/a")) is False

    def test_actions_are_ignored(self) -> None:
        """Test that a differing forward action does not count as a modification."""
        current = path_rule("/a", tg="arn:aws:elasticloadbalancing:::targetgroup/x/1")
        assert needs_modification(current, path_rule("/a")) is False

    def test_absent_desired_is_not_a_modification(self) -> None:
        """Test that an absent desired rule is not a modification."""
        assert needs_modification(path_rule("/a"), ABSENT) is False

    def test_both_default_rules(self) -> None:
        """Test that two default rules need no modification."""
        assert needs_modification(DEFAULT_RULE, DEFAULT_RULE) is False

    def test_path_pattern_config_parses_to_same_condition(self) -> None:
        """Test that values inside PathPatternConfig compare equal to plain Values."""
        described = RuleSnapshot.model_validate(
            {
                "Priority": "3",
                "Conditions": [
                    {"Field": "path-pattern", "PathPatternConfig": {"Values": ["/a"]}},
                ],
            }
        )
        assert needs_modification(Present(described), path_rule("/a")) is False


class TestRulesEqual:
    """Tests for rules_equal."""

    def test_same_rule(self) -> None:
        """Test that rules with the same conditions are equal regardless of priority."""
        assert rules_equal(path_rule("/a", priority="1"), path_rule("/a")) is True

    def test_different_path(self) -> None:
        """Test that rules with different paths are not equal."""
        assert rules_equal(path_rule("/a"), path_rule("/b")) is False

    def test_absent_is_never_equal(self) -> None:
        """Test that an absent side is never equal to anything."""
        assert rules_equal(ABSENT, path_rule("/a")) is False
        assert rules_equal(path_rule("/a"), ABSENT) is False
        assert rules_equal(ABSENT, ABSENT) is False

    def test_default_flag_must_match(self) -> None:
        """Test that the default flag must match for rules to be equal."""
        non_default = Present(RuleSnapshot(priority="1", is_default=False))
        assert rules_equal(DEFAULT_RULE, non_default) is False
        assert rules_equal(DEFAULT_RULE, Present(RuleSnapshot(is_default=True))) is True

