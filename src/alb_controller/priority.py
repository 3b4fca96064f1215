"""Rule priority allocation for a load balancer.

ELBv2 rejects two rules with the same priority on a listener, so every
create goes through one allocator owned by the load balancer aggregate.
The counter only advances after the create call succeeds; a failed create
leaves the priority free for the next attempt.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .config import MAX_RULE_PRIORITY, MIN_RULE_PRIORITY
from .errors import PriorityExhaustedError
from .models import RuleSnapshot

logger = logging.getLogger(__name__)


class PriorityAllocator:
    """Hands out strictly increasing rule priorities.

    ``last`` is the highest priority known to be in use. The lock is held for
    the whole ``reserve()`` block, so concurrent creates against the same
    load balancer serialize and can never be handed the same value.

    Example:
        allocator = PriorityAllocator.from_rules(current_rules)

        with allocator.reserve() as priority:
            client.create_rule(listener_arn, priority, conditions, tg_arn)
        # allocator.last == priority only if create_rule returned
    """

    def __init__(self, last: int = MIN_RULE_PRIORITY - 1) -> None:
        if last < MIN_RULE_PRIORITY - 1:
            raise ValueError(f"last priority cannot be below {MIN_RULE_PRIORITY - 1}: {last}")
        self._last = last
        self._lock = threading.Lock()

    @classmethod
    def from_rules(cls, rules: Iterable[RuleSnapshot]) -> PriorityAllocator:
        """Start above the highest numeric priority already in use.

        The default rule reports priority "default" and is skipped.
        """
        in_use = [rule.numeric_priority for rule in rules if rule.numeric_priority is not None]
        return cls(max(in_use, default=MIN_RULE_PRIORITY - 1))

    @property
    def last(self) -> int:
        with self._lock:
            return self._last

    @contextmanager
    def reserve(self) -> Iterator[int]:
        """Reserve the next priority for the duration of a create call.

        Yields:
            The priority to send with the create request.

        Raises:
            PriorityExhaustedError: If the listener's priority range is used up.
        """
        with self._lock:
            candidate = self._last + 1
            if candidate > MAX_RULE_PRIORITY:
                raise PriorityExhaustedError(
                    f"No rule priority left: {self._last} is the maximum of {MAX_RULE_PRIORITY}"
                )
            yield candidate
            # Only reached when the block exited without an exception
            self._last = candidate
            logger.debug("Rule priority committed", extra={"priority": candidate})

    def next(self) -> int:
        """Allocate and commit the next priority immediately."""
        with self.reserve() as priority:
            return priority
