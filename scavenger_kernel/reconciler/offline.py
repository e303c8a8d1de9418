"""
Offline Reconciler — closes the gap left while the app was suspended.

Applies the same rules as the tick handler, but evaluates each of them once
over the whole gap instead of once per second:

  1. Completion: an active mission finished during the gap if the time it
     still needed at offline start fits inside the gap.
  2. Expiration: the same test against an available mission's expiration.
  3. Generation: one mission per generation interval that elapsed, each
     backdated to the moment a ticking clock would have rolled it, until
     the catalog is full. Missions that would have expired before a roll,
     or before ``now``, are dropped along the way.

A mission cannot complete twice: completion removes it.
"""

import math
from typing import List, Optional, Tuple

from loguru import logger

from scavenger_kernel.catalog.generator import MissionGenerator
from scavenger_kernel.models.mission import Mission
from scavenger_kernel.models.simulation import ReconcileReport, SimulationConfig
from scavenger_kernel.models.snapshot import Snapshot
from scavenger_kernel.simulation.rules import (
    complete_mission,
    expire_mission,
    generate_into,
    has_capacity,
    is_expired,
)


def _remaining_at(deadline: float, offline_start: float) -> float:
    return max(0.0, deadline - offline_start)


class OfflineReconciler:
    """Brings a loaded snapshot up to date in a single pass."""

    def __init__(
        self,
        generator: MissionGenerator,
        config: Optional[SimulationConfig] = None,
    ):
        self.generator = generator
        self.config = config or SimulationConfig()

    def should_reconcile(self, snapshot: Snapshot, now: float) -> bool:
        """False on first run, and for gaps at or below the offline threshold."""
        if snapshot.last_active_timestamp is None:
            return False
        elapsed = now - snapshot.last_active_timestamp
        return elapsed > self.config.offline_threshold_seconds

    def reconcile(self, snapshot: Snapshot, now: float) -> ReconcileReport:
        """
        Mutate ``snapshot`` to reflect ``now``. Does not save; the owning
        SimulationClock saves once afterwards.
        """
        if not self.should_reconcile(snapshot, now):
            return ReconcileReport(now=now, skipped=True)

        elapsed = now - snapshot.last_active_timestamp
        offline_start = now - elapsed

        completed = self._complete(snapshot, offline_start, elapsed)
        expired = self._expire(snapshot, offline_start, elapsed)
        generated, expired_late, missed = self._generate(snapshot, offline_start, elapsed, now)
        expired.extend(expired_late)

        logger.info(
            f"Reconciled {elapsed:.0f}s offline: {len(completed)} completed, "
            f"{len(expired)} expired, {len(generated)}/{missed} generated"
        )
        return ReconcileReport(
            now=now,
            elapsed_seconds=elapsed,
            completed=completed,
            expired=expired,
            generated=generated,
            missed_intervals=missed,
        )

    def _complete(
        self, snapshot: Snapshot, offline_start: float, elapsed: float
    ) -> List[str]:
        due: List[Mission] = [
            m for m in snapshot.active
            if _remaining_at(m.completion_time, offline_start) <= elapsed
        ]
        # Pay out in the order a ticking clock would have
        due.sort(key=lambda m: m.completion_time)
        for mission in due:
            complete_mission(snapshot, mission)
        return [m.id for m in due]

    def _expire(
        self, snapshot: Snapshot, offline_start: float, elapsed: float
    ) -> List[str]:
        due = [
            m for m in snapshot.available
            if _remaining_at(m.expiration_time, offline_start) <= elapsed
        ]
        for mission in due:
            expire_mission(snapshot, mission)
        return [m.id for m in due]

    def _generate(
        self, snapshot: Snapshot, offline_start: float, elapsed: float, now: float
    ) -> Tuple[List[str], List[str], int]:
        """
        Roll the missions a ticking clock would have rolled during the gap.

        Before each backdated roll, missions that would have expired by then
        are dropped, as the tick handler's expiration sweep would have done.
        A final sweep at ``now`` removes backdated missions whose whole
        lifespan fell inside the gap.

        Each generation moves ``last_generation_time`` forward by exactly one
        interval, so after a capped catch-up the timer sits at the last
        generation that actually happened.
        """
        base = snapshot.last_generation_time
        if base is None:
            return [], [], 0

        interval = self.config.generation_interval_seconds
        missed = int(math.floor((offline_start - base + elapsed) / interval))
        generated: List[str] = []
        expired: List[str] = []
        for i in range(1, missed + 1):
            at = base + i * interval
            expired.extend(self._expire_at(snapshot, at))
            if not has_capacity(snapshot, self.config):
                break
            mission = generate_into(snapshot, self.generator, at=at)
            generated.append(mission.id)
        expired.extend(self._expire_at(snapshot, now))
        return generated, expired, max(0, missed)

    def _expire_at(self, snapshot: Snapshot, at: float) -> List[str]:
        due = [m for m in snapshot.available if is_expired(m, at)]
        for mission in due:
            expire_mission(snapshot, mission)
        return [m.id for m in due]
