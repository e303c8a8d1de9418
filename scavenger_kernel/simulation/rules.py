"""
Simulation rules — every snapshot mutation lives here.

The tick handler and the offline reconciler both call these functions; they
differ only in how often, and with which ``now``.
"""

from typing import Iterable, List

from scavenger_kernel.catalog.generator import MissionGenerator
from scavenger_kernel.models.entities import Item, ResourcePool, WorkerStatus
from scavenger_kernel.models.mission import ActiveState, Mission
from scavenger_kernel.models.simulation import SimulationConfig
from scavenger_kernel.models.snapshot import Snapshot


class SimulationError(Exception):
    """Base class for errors reported by simulation operations."""
    pass


class NotFoundError(SimulationError):
    pass


class MissionNotFoundError(NotFoundError):
    def __init__(self, mission_id: str):
        super().__init__(f"Mission {mission_id} is not available")
        self.mission_id = mission_id


class WorkerNotFoundError(NotFoundError):
    def __init__(self, worker_id: str):
        super().__init__(f"Worker {worker_id} is not on the roster")
        self.worker_id = worker_id


class WorkerBusyError(SimulationError):
    """Expected in normal use: the worker is already out."""

    def __init__(self, worker_id: str, status: WorkerStatus):
        super().__init__(f"Worker {worker_id} is {status.value}, not idle")
        self.worker_id = worker_id
        self.status = status


def deposit_items(inventory: List[Item], items: Iterable[Item]) -> None:
    """Add items to an inventory, summing quantities into same-name stacks."""
    for item in items:
        stack = next((i for i in inventory if i.stacks_with(item)), None)
        if stack is not None:
            stack.quantity += item.quantity
        else:
            inventory.append(item.model_copy(deep=True))


def deposit_resources(pool: ResourcePool, reward: ResourcePool) -> None:
    pool.scrap += reward.scrap
    pool.food += reward.food
    pool.water += reward.water


def is_complete(mission: Mission, now: float) -> bool:
    completion = mission.completion_time
    return completion is not None and now >= completion


def is_expired(mission: Mission, now: float) -> bool:
    expiration = mission.expiration_time
    return expiration is not None and now >= expiration


def complete_mission(snapshot: Snapshot, mission: Mission) -> None:
    """Pay out an active mission, free its worker and drop it from ``active``."""
    deposit_items(snapshot.inventory, mission.rewards)
    deposit_resources(snapshot.resources, mission.resource_reward)

    worker = snapshot.find_worker(mission.assigned_worker_id)
    if worker is not None:
        worker.status = WorkerStatus.IDLE

    snapshot.active = [m for m in snapshot.active if m.id != mission.id]


def expire_mission(snapshot: Snapshot, mission: Mission) -> None:
    snapshot.available = [m for m in snapshot.available if m.id != mission.id]


def assign_mission(
    snapshot: Snapshot, mission_id: str, worker_id: str, now: float
) -> Mission:
    """
    Send an idle worker on an available mission.

    Validates everything before touching the snapshot, so a failure leaves
    it unchanged. A mission past its expiration counts as gone even if no
    sweep has removed it yet.
    """
    mission = snapshot.find_available(mission_id)
    if mission is None or is_expired(mission, now):
        raise MissionNotFoundError(mission_id)
    worker = snapshot.find_worker(worker_id)
    if worker is None:
        raise WorkerNotFoundError(worker_id)
    if worker.status != WorkerStatus.IDLE:
        raise WorkerBusyError(worker_id, worker.status)

    mission.state = ActiveState(worker_id=worker_id, start_time=now)
    worker.status = WorkerStatus.ON_MISSION
    snapshot.available = [m for m in snapshot.available if m.id != mission_id]
    snapshot.active.append(mission)
    return mission


def has_capacity(snapshot: Snapshot, config: SimulationConfig) -> bool:
    return len(snapshot.available) < config.max_available_missions


def generation_due(snapshot: Snapshot, now: float, config: SimulationConfig) -> bool:
    """True when the catalog has room and the generation interval has passed."""
    if not has_capacity(snapshot, config):
        return False
    if snapshot.last_generation_time is None:
        return True
    return now - snapshot.last_generation_time >= config.generation_interval_seconds


def generate_into(snapshot: Snapshot, generator: MissionGenerator, at: float) -> Mission:
    """Roll one mission whose expiration is based on ``at``, append it, restart the timer."""
    mission = generator.roll(at)
    snapshot.available.append(mission)
    snapshot.last_generation_time = at
    return mission


def invariant_violations(snapshot: Snapshot) -> List[str]:
    """
    Describe every broken structural invariant; empty when the snapshot is sound.

    Checks phase/collection agreement, disjoint collections and the
    one-worker-one-mission pairing.
    """
    problems = []
    for mission in snapshot.available:
        if not mission.is_available:
            problems.append(f"mission {mission.id} in available but phase is {mission.state.phase}")
    for mission in snapshot.active:
        if not mission.is_active:
            problems.append(f"mission {mission.id} in active but phase is {mission.state.phase}")

    overlap = {m.id for m in snapshot.available} & {m.id for m in snapshot.active}
    for mission_id in sorted(overlap):
        problems.append(f"mission {mission_id} is both available and active")

    for worker in snapshot.workers:
        assigned = snapshot.missions_for_worker(worker.id)
        if worker.status == WorkerStatus.ON_MISSION and len(assigned) != 1:
            problems.append(f"worker {worker.id} on mission with {len(assigned)} active missions")
        if worker.status != WorkerStatus.ON_MISSION and assigned:
            problems.append(f"worker {worker.id} is {worker.status.value} but has an active mission")

    for mission in snapshot.active:
        if snapshot.find_worker(mission.assigned_worker_id) is None:
            problems.append(f"mission {mission.id} assigned to unknown worker")
    return problems
