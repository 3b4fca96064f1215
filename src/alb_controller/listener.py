"""Listener and load balancer aggregates, and whole-listener passes.

A load balancer owns its target groups and the priority allocator shared
by all of its listeners. A listener holds its rules as last described.
Each pass pairs those remote rules with the desired rules, then reconciles
every pair independently: one rule failing does not stop its siblings.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .comparator import rules_equal
from .elbv2 import RuleClient
from .models import RuleSnapshot
from .observed import ABSENT, Present
from .priority import PriorityAllocator
from .rule import Rule, RuleReconciler, RuleTransition, decide
from .target_groups import TargetGroupResolver

logger = logging.getLogger(__name__)


@dataclass
class LoadBalancer:
    """A load balancer's target groups and rule priority counter."""

    name: str
    target_groups: TargetGroupResolver
    priorities: PriorityAllocator = field(default_factory=PriorityAllocator)


@dataclass
class Listener:
    """A listener and its rules as last described.

    ``observed`` is None once a pass has changed the listener; the next pass
    then describes it again.
    """

    listener_arn: str
    load_balancer: LoadBalancer
    observed: list[RuleSnapshot] | None = None


@dataclass
class RuleFailure:
    """A rule whose reconciliation raised."""

    rule: Rule
    transition: RuleTransition
    error: Exception


@dataclass
class ListenerPassResult:
    """Result of reconciling every rule on one listener."""

    listener_arn: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    transitions: Counter[RuleTransition] = field(default_factory=Counter)
    failures: list[RuleFailure] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def changes_applied(self) -> int:
        return sum(count for t, count in self.transitions.items() if t.is_mutating)


def pair_rules(
    current: Iterable[RuleSnapshot],
    desired: Sequence[Rule],
    target_groups: TargetGroupResolver | None = None,
) -> list[Rule]:
    """Pair observed remote rules with desired rules.

    Pairing happens in two rounds:
    1. A desired rule takes the remote rule it ``equals`` (same default flag
       and conditions).
    2. If ``target_groups`` is given, a still unpaired desired rule takes an
       unpaired, non-default remote rule forwarding to its service's target
       group; such a pair differs in conditions and is modified in place.

    Remote rules left over are returned with an absent desired state and are
    deleted by the reconciler (unless they are the listener default).

    Args:
        current: Rules described from the listener.
        desired: Rules that should exist. Their ``current`` is overwritten.
        target_groups: Resolver used for the second round.

    Returns:
        Desired rules followed by unpaired remote rules.
    """
    unpaired = list(current)
    paired: list[Rule] = []

    for rule in desired:
        rule.current = ABSENT
        for snapshot in unpaired:
            if rules_equal(Present(snapshot), rule.desired):
                rule.current = Present(snapshot)
                unpaired.remove(snapshot)
                break
        paired.append(rule)

    if target_groups is not None:
        for rule in paired:
            if isinstance(rule.current, Present) or rule.is_default:
                continue
            target_group = target_groups.resolve(rule.service_name)
            if target_group is None:
                continue
            for snapshot in unpaired:
                if not snapshot.is_default and snapshot.target_group_arn == target_group.arn:
                    rule.current = Present(snapshot)
                    unpaired.remove(snapshot)
                    break

    leftovers = [
        Rule.observed(snapshot, service_name=_service_for(snapshot, target_groups))
        for snapshot in unpaired
    ]
    return paired + leftovers


def _service_for(snapshot: RuleSnapshot, target_groups: TargetGroupResolver | None) -> str:
    if target_groups is None:
        return ""
    for target_group in target_groups.target_groups:
        if target_group.arn == snapshot.target_group_arn:
            return target_group.service_name
    return ""


class ListenerReconciler:
    """Runs reconciliation passes over all rules of a listener."""

    def __init__(self, client: RuleClient, reconciler: RuleReconciler) -> None:
        self._client = client
        self._reconciler = reconciler

    def load_listener(
        self,
        name: str,
        listener_arn: str,
        target_groups: TargetGroupResolver,
    ) -> Listener:
        """Describe a listener and seed its load balancer's priority counter.

        Raises:
            RemoteCallError: If DescribeRules fails.
        """
        current = self._client.describe_rules(listener_arn)
        load_balancer = LoadBalancer(
            name=name,
            target_groups=target_groups,
            priorities=PriorityAllocator.from_rules(current),
        )
        logger.info(
            "Loaded listener",
            extra={
                "listener_arn": listener_arn,
                "rule_count": len(current),
                "last_priority": load_balancer.priorities.last,
            },
        )
        return Listener(
            listener_arn=listener_arn,
            load_balancer=load_balancer,
            observed=current,
        )

    def _current_rules(self, listener: Listener) -> list[RuleSnapshot]:
        if listener.observed is None:
            listener.observed = self._client.describe_rules(listener.listener_arn)
        return listener.observed

    def plan(self, listener: Listener, desired: Sequence[Rule]) -> list[tuple[Rule, RuleTransition]]:
        """Pair rules and decide each transition without mutating anything.

        Raises:
            RemoteCallError: If the listener has to be described and that fails.
        """
        current = self._current_rules(listener)
        rules = pair_rules(current, desired, listener.load_balancer.target_groups)
        return [(rule, decide(rule)) for rule in rules]

    def run_pass(self, listener: Listener, desired: Sequence[Rule]) -> ListenerPassResult:
        """Reconcile every rule of a listener once.

        Failures are collected per rule; the pass itself only raises if the
        listener cannot be described.
        """
        result = ListenerPassResult(listener_arn=listener.listener_arn)

        current = self._current_rules(listener)
        rules = pair_rules(current, desired, listener.load_balancer.target_groups)

        for rule in rules:
            transition = decide(rule)
            try:
                self._reconciler.reconcile(rule, listener)
            except Exception as e:
                logger.warning(
                    "Rule reconciliation failed, will retry next pass",
                    extra={
                        "listener_arn": listener.listener_arn,
                        "transition": transition.value,
                        "conditions": rule.condition_summary(),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                result.failures.append(RuleFailure(rule=rule, transition=transition, error=e))
                continue
            result.transitions[transition] += 1

        listener.observed = None
        result.end_time = datetime.now(UTC)

        log = logger.warning if result.failures else logger.info
        log(
            "Listener pass complete",
            extra={
                "listener_arn": listener.listener_arn,
                "changes_applied": result.changes_applied,
                "failures": len(result.failures),
                "duration_seconds": result.duration_seconds,
                **{f"{t.value}_count": n for t, n in result.transitions.items()},
            },
        )
        return result
