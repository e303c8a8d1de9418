"""
Simulation Clock — owner of the Snapshot and its tick-driven state machine.

Per tick, in this order:
  1. Completion sweep  — active missions past start + duration pay out
  2. Expiration sweep  — available missions past their expiration vanish
  3. Generation check  — at most one new mission when the catalog has room
                         and the generation interval has passed
Completion runs before generation so a slot freed this tick is visible to
this tick's generation check. Every sweep that changes something saves
right after itself (SimulationConfig.save_per_sweep).

All mutating operations hold one lock; UI calls and the ticker serialize
through it.
"""

import asyncio
import threading
import time
from typing import Callable, List, Optional

from loguru import logger

from scavenger_kernel.catalog.generator import MissionGenerator
from scavenger_kernel.models.mission import Mission
from scavenger_kernel.models.simulation import (
    ReconcileReport,
    SimulationConfig,
    TickReport,
)
from scavenger_kernel.models.snapshot import Snapshot
from scavenger_kernel.persistence.codec import SnapshotCodec, SnapshotWriteError
from scavenger_kernel.reconciler.offline import OfflineReconciler
from scavenger_kernel.simulation.rules import (
    assign_mission,
    complete_mission,
    expire_mission,
    generate_into,
    generation_due,
    is_complete,
    is_expired,
)

SnapshotListener = Callable[[Snapshot], None]


class SimulationClock:
    """
    The single owner of simulation state.

    Driven from outside: a scheduler (``run_async``) or a test calling
    ``tick(now)`` directly.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        generator: MissionGenerator,
        codec: Optional[SnapshotCodec] = None,
        config: Optional[SimulationConfig] = None,
        time_source: Callable[[], float] = time.time,
    ):
        self._snapshot = snapshot
        self.generator = generator
        self.codec = codec
        self.config = config or generator.config
        self.time_source = time_source
        self.reconciler = OfflineReconciler(generator, self.config)

        self._lock = threading.RLock()
        self._listeners: List[SnapshotListener] = []
        self._running = False
        self._save_pending = False
        self._save_count = 0

    @property
    def snapshot(self) -> Snapshot:
        """Read-only view for collaborators. Mutate only through operations."""
        return self._snapshot

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def save_pending(self) -> bool:
        """True when the last save failed and disk lags memory."""
        return self._save_pending

    @property
    def save_count(self) -> int:
        return self._save_count

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` after every mutation. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Operations ---

    def assign(
        self, mission_id: str, worker_id: str, now: Optional[float] = None
    ) -> Mission:
        """
        Send a worker on an available mission.

        Raises MissionNotFoundError / WorkerNotFoundError / WorkerBusyError
        without mutating anything.
        """
        with self._lock:
            now = self._resolve_now(now)
            mission = assign_mission(self._snapshot, mission_id, worker_id, now)
            logger.debug(f"Assigned {mission.name} ({mission.id}) to worker {worker_id}")
            self._save(now)
            self._notify()
            return mission

    def tick(self, now: Optional[float] = None) -> TickReport:
        """Advance the simulation to ``now``. Re-running at the same instant is a no-op."""
        with self._lock:
            now = self._resolve_now(now)
            report = TickReport(now=now)

            report.completed = self._completion_sweep(now)
            if report.completed:
                self._sweep_saved(now, report)

            report.expired = self._expiration_sweep(now)
            if report.expired:
                self._sweep_saved(now, report)

            generated = self._generation_check(now)
            if generated is not None:
                report.generated = generated.id
                self._sweep_saved(now, report)

            if report.mutated:
                if not self.config.save_per_sweep and self._save(now):
                    report.saves = 1
                self._notify()
            return report

    def reconcile(self, now: Optional[float] = None) -> ReconcileReport:
        """Catch up on time spent suspended, then save once with ``now``."""
        with self._lock:
            now = self._resolve_now(now)
            report = self.reconciler.reconcile(self._snapshot, now)
            if report.skipped:
                return report
            report.saved = self._save(now)
            self._notify()
            return report

    def request_save(self, now: Optional[float] = None) -> bool:
        """Best-effort synchronous save, e.g. when the host app is backgrounded."""
        with self._lock:
            return self._save(self._resolve_now(now))

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Tick every ``tick_interval_seconds`` until ``stop_event`` is set.

        Ticks run in a worker thread; the clock lock serializes them with
        other callers.
        """
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                await asyncio.to_thread(self.tick)
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.tick_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
            self.request_save()

    # --- Sweeps ---

    def _completion_sweep(self, now: float) -> List[str]:
        due = [m for m in self._snapshot.active if is_complete(m, now)]
        for mission in due:
            complete_mission(self._snapshot, mission)
            logger.debug(f"Mission {mission.name} ({mission.id}) completed")
        return [m.id for m in due]

    def _expiration_sweep(self, now: float) -> List[str]:
        due = [m for m in self._snapshot.available if is_expired(m, now)]
        for mission in due:
            expire_mission(self._snapshot, mission)
            logger.debug(f"Mission {mission.name} ({mission.id}) expired")
        return [m.id for m in due]

    def _generation_check(self, now: float) -> Optional[Mission]:
        if not generation_due(self._snapshot, now, self.config):
            return None
        mission = generate_into(self._snapshot, self.generator, at=now)
        logger.debug(f"Generated mission {mission.name} ({mission.id})")
        return mission

    # --- Persistence and observation ---

    def _resolve_now(self, now: Optional[float]) -> float:
        return self.time_source() if now is None else now

    def _sweep_saved(self, now: float, report: TickReport) -> None:
        if self.config.save_per_sweep and self._save(now):
            report.saves += 1

    def _save(self, now: float) -> bool:
        """
        Stamp and persist the snapshot. A failed write is logged and left for
        the next save trigger; memory stays authoritative.
        """
        self._snapshot.last_active_timestamp = now
        if self.codec is None:
            return True
        try:
            self.codec.save(self._snapshot, now)
        except SnapshotWriteError as e:
            self._save_pending = True
            logger.warning(f"Snapshot save failed, will retry on next save: {e}")
            return False
        self._save_pending = False
        self._save_count += 1
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Snapshot listener raised")
