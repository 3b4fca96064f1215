"""Listener rule reconciliation.

This module implements the per-rule control loop:
1. Compare the rule's current (observed) and desired snapshots
2. Pick exactly one transition from an ordered decision table
3. Issue the single ELBv2 call that transition needs
4. Record the remote result as the rule's new current snapshot

DECISION TABLE (first match wins):
- DELETE: desired absent, current present and not the listener default
- ADOPT_DEFAULT: desired is the listener default; it exists with the listener
- CREATE: current absent
- MODIFY: conditions differ on a non-default rule; replaced in place with ModifyRule
- NO_OP: anything else

A failed remote call leaves ``current`` untouched, emits a warning event and
is re-raised. Retrying is the next pass's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .comparator import needs_modification, rules_equal
from .elbv2 import RuleClient
from .errors import InputError
from .events import EventReason, EventSink, EventType
from .models import (
    DEFAULT_PRIORITY,
    PATH_PATTERN_FIELD,
    ForwardAction,
    RuleCondition,
    RuleSnapshot,
)
from .observed import ABSENT, Absent, Observed, Present

if TYPE_CHECKING:
    from .listener import Listener

logger = logging.getLogger(__name__)


class RuleTransition(str, Enum):
    """Outcome of a reconciliation decision."""

    NO_OP = "no-op"
    ADOPT_DEFAULT = "adopt-default"
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"

    @property
    def is_mutating(self) -> bool:
        """True if the transition calls a mutating ELBv2 API."""
        return self in (RuleTransition.CREATE, RuleTransition.MODIFY, RuleTransition.DELETE)


def is_default_path(path: str) -> bool:
    """An empty or root path routes through the listener's default rule."""
    return path in ("", "/")


def desired_snapshot(path: str) -> RuleSnapshot:
    """Build the desired snapshot for a path rule.

    The target group is left unset; it is resolved from the service name when
    the rule is created.
    """
    if is_default_path(path):
        return RuleSnapshot(
            priority=DEFAULT_PRIORITY,
            is_default=True,
            actions=(ForwardAction(),),
        )
    return RuleSnapshot(
        is_default=False,
        conditions=(RuleCondition(field=PATH_PATTERN_FIELD, values=(path,)),),
        actions=(ForwardAction(),),
    )


@dataclass
class Rule:
    """A rule's current and desired state for one reconciliation pass.

    Attributes:
        service_name: Backend service the rule forwards to
        current: Rule as last observed on the listener
        desired: Rule as it should exist
        deleted: Set once the remote rule was deleted
    """

    service_name: str
    current: Observed = ABSENT
    desired: Observed = ABSENT
    deleted: bool = False

    @classmethod
    def new(cls, path: str, service_name: str) -> Rule:
        """Create a rule that should route ``path`` to ``service_name``."""
        return cls(service_name=service_name, desired=Present(desired_snapshot(path)))

    @classmethod
    def observed(cls, snapshot: RuleSnapshot, service_name: str = "") -> Rule:
        """Create a rule for a remote rule with no desired counterpart yet."""
        return cls(service_name=service_name, current=Present(snapshot))

    @property
    def is_default(self) -> bool:
        match self.desired, self.current:
            case Present(snapshot=snapshot), _:
                return snapshot.is_default
            case _, Present(snapshot=snapshot):
                return snapshot.is_default
            case _:
                return False

    @property
    def priority(self) -> str:
        match self.current:
            case Present(snapshot=snapshot) if snapshot.priority is not None:
                return snapshot.priority
            case _:
                return "unassigned"

    def condition_summary(self) -> str:
        match self.desired, self.current:
            case Present(snapshot=snapshot), _:
                return snapshot.condition_summary()
            case _, Present(snapshot=snapshot):
                return snapshot.condition_summary()
            case _:
                return "<none>"

    def needs_modification(self) -> bool:
        return needs_modification(self.current, self.desired)

    def equals(self, target: Observed) -> bool:
        """Check whether the current rule is the same rule as ``target``.

        Priority is not compared; it is never part of declared intent.
        """
        return rules_equal(self.current, target)


def decide(rule: Rule) -> RuleTransition:
    """Pick the transition for a rule without calling any remote API."""
    match rule.desired, rule.current:
        case Absent(), Present(snapshot=current) if not current.is_default:
            return RuleTransition.DELETE
        case Absent(), _:
            return RuleTransition.NO_OP
        case Present(snapshot=desired), _ if desired.is_default:
            return RuleTransition.ADOPT_DEFAULT
        case Present(), Absent():
            return RuleTransition.CREATE
        case Present(), Present(snapshot=current) if current.is_default:
            # The listener default carries no conditions and cannot be rewritten
            return RuleTransition.NO_OP
        case Present(), Present() if rule.needs_modification():
            return RuleTransition.MODIFY
        case _:
            return RuleTransition.NO_OP


class RuleReconciler:
    """Drives a single rule from its current to its desired state."""

    def __init__(self, client: RuleClient, events: EventSink) -> None:
        """Initialize the reconciler.

        Args:
            client: ELBv2 rule operations.
            events: Sink for transition notifications.
        """
        self._client = client
        self._events = events

    def reconcile(self, rule: Rule, listener: Listener) -> RuleTransition:
        """Reconcile one rule against its listener.

        Args:
            rule: Rule to converge. Its ``current`` is updated on success.
            listener: Listener owning the rule; supplies the ARN, target
                groups and priority allocator.

        Returns:
            The transition that was applied.

        Raises:
            RemoteCallError: If the ELBv2 call failed.
            TargetGroupResolutionError: If the load balancer has no target groups.
            PriorityExhaustedError: If no rule priority is left.
        """
        transition = decide(rule)

        match transition, rule.desired, rule.current:
            case RuleTransition.DELETE, _, Present(snapshot=current):
                self._delete(rule, current)

            case RuleTransition.ADOPT_DEFAULT, Present() as desired, _:
                logger.debug(
                    "Desired rule is the listener default, already created with its listener",
                    extra={"listener_arn": listener.listener_arn, "service_name": rule.service_name},
                )
                rule.current = desired

            case RuleTransition.CREATE, Present(snapshot=desired), _:
                self._create(rule, desired, listener)

            case RuleTransition.MODIFY, Present(snapshot=desired), Present(snapshot=current):
                self._modify(rule, desired, current)

            case _:
                logger.debug(
                    "No rule modification required",
                    extra={"listener_arn": listener.listener_arn, "priority": rule.priority},
                )

        return transition

    def _create(self, rule: Rule, desired: RuleSnapshot, listener: Listener) -> None:
        load_balancer = listener.load_balancer
        target_group = load_balancer.target_groups.resolve_or_default(rule.service_name)

        logger.info(
            "Start rule creation",
            extra={
                "listener_arn": listener.listener_arn,
                "service_name": rule.service_name,
                "conditions": desired.condition_summary(),
            },
        )

        with load_balancer.priorities.reserve() as priority:
            try:
                created = self._client.create_rule(
                    listener.listener_arn,
                    priority,
                    desired.conditions,
                    target_group.arn,
                )
            except Exception as e:
                self._events.emit(
                    EventType.WARNING,
                    EventReason.ERROR,
                    "Error creating %s rule: %s",
                    priority,
                    str(e),
                )
                logger.error(
                    "Failed rule creation",
                    extra={
                        "priority": priority,
                        "conditions": desired.condition_summary(),
                        "error": str(e),
                    },
                )
                raise

        rule.current = Present(created)
        self._events.emit(
            EventType.NORMAL,
            EventReason.CREATE,
            "%s rule created: %s",
            rule.priority,
            created.condition_summary(),
        )
        logger.info(
            "Completed rule creation",
            extra={
                "priority": rule.priority,
                "conditions": created.condition_summary(),
                "target_group_arn": target_group.arn,
            },
        )

    def _modify(self, rule: Rule, desired: RuleSnapshot, current: RuleSnapshot) -> None:
        if current.rule_arn is None:
            raise InputError(f"Cannot modify rule without an ARN: {current.condition_summary()}")

        logger.info(
            "Start rule modification",
            extra={
                "priority": current.priority,
                "from_conditions": current.condition_summary(),
                "to_conditions": desired.condition_summary(),
            },
        )

        try:
            modified = self._client.modify_rule(current.rule_arn, desired.conditions)
        except Exception as e:
            self._events.emit(
                EventType.WARNING,
                EventReason.ERROR,
                "Error modifying %s rule: %s",
                current.priority,
                str(e),
            )
            logger.error(
                "Failed rule modification",
                extra={"priority": current.priority, "error": str(e)},
            )
            raise

        rule.current = Present(modified)
        self._events.emit(
            EventType.NORMAL,
            EventReason.MODIFY,
            "%s rule modified: %s",
            rule.priority,
            modified.condition_summary(),
        )
        logger.info(
            "Completed rule modification",
            extra={"priority": rule.priority, "conditions": modified.condition_summary()},
        )

    def _delete(self, rule: Rule, current: RuleSnapshot) -> None:
        if current.rule_arn is None:
            raise InputError(f"Cannot delete rule without an ARN: {current.condition_summary()}")

        logger.info(
            "Start rule deletion",
            extra={"priority": current.priority, "conditions": current.condition_summary()},
        )

        try:
            self._client.delete_rule(current.rule_arn)
        except Exception as e:
            self._events.emit(
                EventType.WARNING,
                EventReason.ERROR,
                "Error deleting %s rule: %s",
                current.priority,
                str(e),
            )
            logger.error(
                "Failed rule deletion",
                extra={"priority": current.priority, "error": str(e)},
            )
            raise

        rule.deleted = True
        self._events.emit(
            EventType.NORMAL,
            EventReason.DELETE,
            "%s rule deleted: %s",
            current.priority,
            current.condition_summary(),
        )
        logger.info(
            "Completed rule deletion",
            extra={"priority": current.priority, "conditions": current.condition_summary()},
        )
