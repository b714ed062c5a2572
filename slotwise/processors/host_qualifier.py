# File: slotwise/processors/host_qualifier.py
"""
Host qualification for team events.

Collective events need every host free. Round-robin events take every free
fixed host plus one "lucky" non-fixed host picked by a weighted fairness
pass. Any single free host is enough to offer a round-robin slot. A
rescheduled booking keeps its previous host when that host is still free.
"""

import random
from collections import Counter
from typing import Dict, FrozenSet, Iterable, List, Optional

from slotwise.core.config_manager import Config
from slotwise.utils.logger import LoggerMixin
from slotwise.models import Host, SchedulingType


class HostQualificationService(LoggerMixin):
    """Decides which hosts qualify for a candidate slot."""

    def __init__(self, seed: Optional[int] = None, prior_assignments: Optional[Dict[str, int]] = None):
        """
        Initialize qualification service.

        Args:
            seed: Seed for the tie-break random source (Config.FAIRNESS_SEED if None)
            prior_assignments: Assignment counts carried into the computation
                window, e.g. existing bookings per host
        """
        if seed is None:
            seed = Config.FAIRNESS_SEED if Config.FAIRNESS_SEED is not None else 0
        self.seed = seed
        self._rng = random.Random(self.seed)
        self._prior = Counter(prior_assignments or {})
        self._window = Counter()

    def seed_assignments(self, counts: Dict[str, int]) -> None:
        """Add prior assignment counts for the current window."""
        self._prior.update(counts)

    def reset_window(self) -> None:
        """Start a new computation window: forget picks and re-seed the tie-break."""
        self._window.clear()
        self._prior.clear()
        self._rng = random.Random(self.seed)

    def assignments(self, host_id: str) -> int:
        return self._prior[host_id] + self._window[host_id]

    def window_assignments(self) -> Dict[str, int]:
        return dict(self._window)

    def qualify(
        self,
        start,
        hosts: List[Host],
        free_host_ids: Iterable[str],
        scheduling_type: SchedulingType,
        previous_host_id: Optional[str] = None,
    ) -> FrozenSet[str]:
        """
        Qualifying host ids for one candidate instant.

        Args:
            start: Candidate slot start (used for logging only)
            hosts: All hosts of the event type
            free_host_ids: Hosts free for the whole slot
            scheduling_type: collective or round_robin
            previous_host_id: Host of the booking being rescheduled

        Returns:
            Frozen set of host ids; empty when the slot cannot be offered
        """
        free = set(free_host_ids)
        if not hosts:
            return frozenset()

        if scheduling_type == SchedulingType.COLLECTIVE:
            if all(host.user_id in free for host in hosts):
                return frozenset(host.user_id for host in hosts)
            return frozenset()

        # Fixed hosts join whenever they are free
        qualified = {host.user_id for host in hosts if host.is_fixed and host.user_id in free}

        member_ids = {host.user_id for host in hosts}
        if previous_host_id is not None and previous_host_id in member_ids and previous_host_id in free:
            qualified.add(previous_host_id)
            return frozenset(qualified)

        candidates = [host for host in hosts if not host.is_fixed and host.user_id in free]
        if candidates:
            qualified.add(self.select_lucky_host(candidates).user_id)
        elif not qualified:
            self.logger.debug(f"No host free at {start}")
        return frozenset(qualified)

    def select_lucky_host(self, candidates: List[Host]) -> Host:
        """
        Weighted fair pick among free non-fixed hosts.

        Lowest assignments/weight wins. Ties go to higher priority, then to
        fewer assignments in this window, then to the seeded random source.
        The winner's window count is incremented.
        """
        if not candidates:
            raise ValueError("select_lucky_host needs at least one candidate")

        def fairness_key(host: Host):
            return (
                self.assignments(host.user_id) / host.weight,
                -host.priority,
                self._window[host.user_id],
            )

        ordered = sorted(candidates, key=lambda h: (fairness_key(h), h.user_id))
        best_key = fairness_key(ordered[0])
        tied = [host for host in ordered if fairness_key(host) == best_key]
        winner = tied[0] if len(tied) == 1 else self._rng.choice(tied)

        self._window[winner.user_id] += 1
        return winner
