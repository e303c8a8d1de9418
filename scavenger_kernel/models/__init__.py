"""Scavenger Kernel data models."""

from scavenger_kernel.models.entities import (
    Equipment,
    Item,
    ResourcePool,
    Worker,
    WorkerStatus,
    new_entity_id,
    same_entity,
)
from scavenger_kernel.models.mission import (
    ActiveState,
    AvailableState,
    Mission,
    MissionState,
)
from scavenger_kernel.models.simulation import (
    ReconcileReport,
    SimulationConfig,
    TickReport,
)
from scavenger_kernel.models.snapshot import SCHEMA_VERSION, Snapshot

__all__ = [
    "ActiveState",
    "AvailableState",
    "Equipment",
    "Item",
    "Mission",
    "MissionState",
    "ReconcileReport",
    "ResourcePool",
    "SCHEMA_VERSION",
    "SimulationConfig",
    "Snapshot",
    "TickReport",
    "Worker",
    "WorkerStatus",
    "new_entity_id",
    "same_entity",
]
