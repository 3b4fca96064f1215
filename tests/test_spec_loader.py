"""Tests for desired rules file loading."""

from pathlib import Path

import pytest

from alb_controller.config import MAX_RULES_FILE_SIZE_BYTES
from alb_controller.errors import ReconcileError
from alb_controller.observed import Present
from alb_controller.spec_loader import (
    SpecLoadError,
    build_desired_rules,
    build_target_groups,
    load_rules_spec,
)

TG_ARN = "arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/tg1/73e2d6bc24d8a067"

VALID_RULES = f"""
listenerArn: arn:aws:elasticloadbalancing:us-east-1:123456789012:listener/app/my-alb/50dc6c495c0c9188/f2f7dc8efc522ab2
targetGroups:
  - serviceName: svc-a
    arn: {TG_ARN}
rules:
  - path: /
    serviceName: svc-a
  - path: /api
    serviceName: svc-a
"""


class TestLoadRulesSpec:
    """Tests for load_rules_spec."""

    def test_flat_file(self, tmp_path: Path) -> None:
        """Test loading a flat rules file."""
        path = tmp_path / "rules.yaml"
        path.write_text(VALID_RULES)

        spec = load_rules_spec(path)

        assert spec.listener_arn.endswith("f2f7dc8efc522ab2")
        assert [r.path for r in spec.rules] == ["/", "/api"]

    def test_kubernetes_style_wrapper(self, tmp_path: Path) -> None:
        """Test loading a rules file wrapped in apiVersion/kind/spec."""
        path = tmp_path / "rules.yaml"
        body = "\n".join(f"  {line}" for line in VALID_RULES.strip().splitlines())
        path.write_text(f"apiVersion: alb/v1\nkind: ListenerRules\nspec:\n{body}\n")

        spec = load_rules_spec(path)

        assert len(spec.target_groups) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing rules file raises error."""
        with pytest.raises(SpecLoadError) as exc_info:
            load_rules_spec(tmp_path / "absent.yaml")
        assert "not found" in str(exc_info.value)

    def test_too_large(self, tmp_path: Path) -> None:
        """Test that an oversized rules file is rejected before parsing."""
        path = tmp_path / "rules.yaml"
        path.write_text("#" * (MAX_RULES_FILE_SIZE_BYTES + 1))

        with pytest.raises(SpecLoadError) as exc_info:
            load_rules_spec(path)
        assert "maximum size" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML raises error."""
        path = tmp_path / "rules.yaml"
        path.write_text("rules: [unclosed")

        with pytest.raises(SpecLoadError) as exc_info:
            load_rules_spec(path)
        assert "Invalid YAML" in str(exc_info.value)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """Test that a YAML document that is not a mapping raises error."""
        path = tmp_path / "rules.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(SpecLoadError):
            load_rules_spec(path)

    def test_validation_errors_are_listed(self, tmp_path: Path) -> None:
        """Test that every validation error is listed with its location."""
        path = tmp_path / "rules.yaml"
        path.write_text("targetGroups: []\nrules:\n  - path: api\n    serviceName: svc-a\n")

        with pytest.raises(SpecLoadError) as exc_info:
            load_rules_spec(path)

        message = str(exc_info.value)
        assert "Validation failed" in message
        assert "targetGroups" in message
        assert "rules.0.path" in message

    def test_error_is_a_reconcile_error(self, tmp_path: Path) -> None:
        """Test that rules file errors can be handled as reconcile errors."""
        with pytest.raises(ReconcileError):
            load_rules_spec(tmp_path / "absent.yaml")


class TestBuilders:
    """Tests for turning a spec into domain objects."""

    def test_build_desired_rules(self, tmp_path: Path) -> None:
        """Test building desired rules with / as the default rule."""
        path = tmp_path / "rules.yaml"
        path.write_text(VALID_RULES)
        spec = load_rules_spec(path)

        rules = build_desired_rules(spec)

        assert [r.is_default for r in rules] == [True, False]
        assert all(isinstance(r.desired, Present) for r in rules)
        assert rules[1].condition_summary() == "path-pattern=/api"

    def test_build_target_groups(self, tmp_path: Path) -> None:
        """Test building a target group resolver from the spec."""
        path = tmp_path / "rules.yaml"
        path.write_text(VALID_RULES)

        resolver = build_target_groups(load_rules_spec(path))

        assert resolver.resolve("svc-a").arn == TG_ARN
