"""Equivalence checks between current and desired rule snapshots.

Priority is never compared: it is assigned by the controller on creation and
is not part of declared intent. Actions are not compared either; a rule's
forward target is tied to its listener's target group pairing and changes
only by recreating the rule.
"""

from __future__ import annotations

from .observed import Absent, Observed, Present


def needs_modification(current: Observed, desired: Observed) -> bool:
    """Check whether the current rule differs from the desired one.

    An absent current rule always needs work; the reconciler handles that
    case as a create before consulting this function.

    Args:
        current: Observed remote rule.
        desired: Rule as it should exist.

    Returns:
        True if the rule's conditions must change.
    """
    match current, desired:
        case Absent(), _:
            return True
        case Present(snapshot=cur), Present(snapshot=want):
            return cur.conditions != want.conditions
        case _:
            return False


def rules_equal(current: Observed, target: Observed) -> bool:
    """Check whether two rules are the same rule for pairing purposes.

    Both must be present, agree on being the listener default, and have
    structurally equal conditions.
    """
    match current, target:
        case Present(snapshot=cur), Present(snapshot=other):
            return cur.is_default == other.is_default and cur.conditions == other.conditions
        case _:
            return False
