"""Pydantic models for ELBv2 rule snapshots and the desired rules file.

These models provide:
1. Type-safe parsing of ELBv2 API responses (AWS field names as aliases)
2. Structural equality for rule conditions
3. Validation of the desired rules file at the boundary
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .config import MAX_RULES_PER_LISTENER

# Condition field matched by path-based routing
PATH_PATTERN_FIELD = "path-pattern"

# Priority ELBv2 reports for a listener's default rule
DEFAULT_PRIORITY = "default"

FORWARD_ACTION_TYPE = "forward"


# =============================================================================
# Rule snapshots
# =============================================================================


class RuleCondition(BaseModel):
    """A single match predicate of a listener rule.

    ELBv2 returns path conditions both as ``Values`` and inside
    ``PathPatternConfig``; either form parses to the same condition so that
    comparisons stay structural.
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    field: str = Field(alias="Field")
    values: tuple[str, ...] = Field(default=(), alias="Values")

    @model_validator(mode="before")
    @classmethod
    def merge_path_pattern_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("Values") or data.get("values"):
            return data
        config = data.get("PathPatternConfig") or {}
        if config.get("Values"):
            return {**data, "Values": config["Values"]}
        return data

    def summary(self) -> str:
        """Render as ``field=value[,value]`` for logs and events."""
        return f"{self.field}={','.join(self.values)}"

    def to_api(self) -> dict[str, Any]:
        """Convert to the ELBv2 request shape."""
        return {"Field": self.field, "Values": list(self.values)}


class ForwardAction(BaseModel):
    """The forward action of a rule."""

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    type: str = Field(default=FORWARD_ACTION_TYPE, alias="Type")
    target_group_arn: str | None = Field(None, alias="TargetGroupArn")

    def to_api(self) -> dict[str, Any]:
        """Convert to the ELBv2 request shape."""
        action: dict[str, Any] = {"Type": self.type}
        if self.target_group_arn:
            action["TargetGroupArn"] = self.target_group_arn
        return action


class RuleSnapshot(BaseModel):
    """A point-in-time view of a listener rule.

    Used for both the observed remote rule and the rule as it should exist.
    Priority is carried for reporting but never takes part in equivalence.
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    rule_arn: str | None = Field(None, alias="RuleArn")
    priority: str | None = Field(None, alias="Priority")
    is_default: bool = Field(False, alias="IsDefault")
    conditions: tuple[RuleCondition, ...] = Field(default=(), alias="Conditions")
    actions: tuple[ForwardAction, ...] = Field(default=(), alias="Actions")

    @property
    def numeric_priority(self) -> int | None:
        """Priority as an integer, or None for the default rule or unknown."""
        if self.priority is None or self.priority == DEFAULT_PRIORITY:
            return None
        try:
            return int(self.priority)
        except ValueError:
            return None

    @property
    def target_group_arn(self) -> str | None:
        """Target group of the first forward action, if any."""
        for action in self.actions:
            if action.type == FORWARD_ACTION_TYPE:
                return action.target_group_arn
        return None

    def condition_summary(self) -> str:
        if not self.conditions:
            return "<none>"
        return " & ".join(condition.summary() for condition in self.conditions)


# =============================================================================
# Desired rules file
# =============================================================================


class TargetGroupSpec(BaseModel):
    """A target group a rule may forward to, keyed by service name."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    service_name: Annotated[str, Field(min_length=1, alias="serviceName")]
    arn: Annotated[str, Field(min_length=1)]

    @field_validator("arn")
    @classmethod
    def validate_arn(cls, v: str) -> str:
        if not v.startswith("arn:") or ":targetgroup/" not in v:
            raise ValueError("arn must be an ELBv2 target group ARN")
        return v


class DesiredRuleSpec(BaseModel):
    """One declared path rule."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    path: str = ""
    service_name: Annotated[str, Field(min_length=1, alias="serviceName")]

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if v and not v.startswith("/"):
            raise ValueError("path must be empty or start with '/'")
        return v


class ListenerRulesSpec(BaseModel):
    """Desired rules for one listener, as loaded from YAML."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    listener_arn: str | None = Field(None, alias="listenerArn")
    target_groups: list[TargetGroupSpec] = Field(alias="targetGroups", min_length=1)
    rules: list[DesiredRuleSpec] = Field(default_factory=list)

    @field_validator("rules")
    @classmethod
    def validate_rules(cls, v: list[DesiredRuleSpec]) -> list[DesiredRuleSpec]:
        non_default = [rule for rule in v if rule.path not in ("", "/")]
        if len(non_default) > MAX_RULES_PER_LISTENER:
            raise ValueError(
                f"listener supports at most {MAX_RULES_PER_LISTENER} rules, got {len(non_default)}"
            )

        seen: set[str] = set()
        for rule in v:
            key = rule.path or "/"
            if key in seen:
                raise ValueError(f"duplicate rule path: {key}")
            seen.add(key)
        return v
