"""Explicit absent/present states for rule snapshots.

A rule's current and desired states are either ``ABSENT`` or
``Present(snapshot)``. Matching on these two variants keeps the reconciler's
decision table exhaustive.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import RuleSnapshot


@dataclass(frozen=True)
class Absent:
    """No snapshot: the rule does not exist, or should not."""

    def __repr__(self) -> str:
        return "ABSENT"


@dataclass(frozen=True)
class Present:
    """A snapshot of a rule that exists, or should."""

    snapshot: RuleSnapshot


Observed = Absent | Present

ABSENT = Absent()
