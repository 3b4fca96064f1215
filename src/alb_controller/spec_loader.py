"""Desired rules file loading with validation.

All file operations enforce a size limit and every file is validated with
pydantic before any rule is built from it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_RULES_FILE_SIZE_BYTES
from .errors import ReconcileError
from .models import ListenerRulesSpec
from .rule import Rule
from .target_groups import TargetGroupResolver

logger = logging.getLogger(__name__)


class SpecLoadError(ReconcileError):
    """Raised when the rules file cannot be loaded or fails validation."""

    pass


def load_rules_spec(path: Path) -> ListenerRulesSpec:
    """Load and validate a listener's desired rules from YAML.

    Both a flat mapping and a Kubernetes-style wrapper (``apiVersion``,
    ``kind``, ``spec``) are accepted.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated rules spec.

    Raises:
        SpecLoadError: If the file is missing, too large, or invalid.
    """
    if not path.exists():
        raise SpecLoadError(f"Rules file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat rules file {path}: {e}") from e

    if file_size > MAX_RULES_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Rules file exceeds maximum size of {MAX_RULES_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read rules file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Rules file must contain a YAML mapping: {path}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec", {})
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {path}")
    else:
        spec_data = raw_data

    try:
        spec = ListenerRulesSpec.model_validate(spec_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {path}:\n{error_list}") from e

    logger.info(
        "Loaded rules spec from %s",
        path,
        extra={"rule_count": len(spec.rules), "target_group_count": len(spec.target_groups)},
    )
    return spec


def build_desired_rules(spec: ListenerRulesSpec) -> list[Rule]:
    """Turn a validated spec into fresh rules with only a desired state."""
    return [Rule.new(rule.path, rule.service_name) for rule in spec.rules]


def build_target_groups(spec: ListenerRulesSpec) -> TargetGroupResolver:
    return TargetGroupResolver.from_specs(spec.target_groups)
