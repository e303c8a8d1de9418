"""Snapshot — the complete simulation state, persisted as one document."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scavenger_kernel.models.entities import Equipment, Item, ResourcePool, Worker
from scavenger_kernel.models.mission import Mission

SCHEMA_VERSION = 1


class Snapshot(BaseModel):
    """
    Aggregate root owned by the SimulationClock.

    Times are seconds since the Unix epoch. ``last_active_timestamp`` is
    wall-clock and only used to size the offline gap.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    resources: ResourcePool = Field(default_factory=ResourcePool)
    workers: List[Worker] = []
    available: List[Mission] = []
    active: List[Mission] = []
    inventory: List[Item] = []
    equipment: List[Equipment] = []
    last_generation_time: Optional[float] = None
    last_active_timestamp: Optional[float] = None

    def find_worker(self, worker_id: str) -> Optional[Worker]:
        return next((w for w in self.workers if w.id == worker_id), None)

    def find_available(self, mission_id: str) -> Optional[Mission]:
        return next((m for m in self.available if m.id == mission_id), None)

    def find_active(self, mission_id: str) -> Optional[Mission]:
        return next((m for m in self.active if m.id == mission_id), None)

    def missions_for_worker(self, worker_id: str) -> List[Mission]:
        """Active missions currently occupying a worker."""
        return [m for m in self.active if m.assigned_worker_id == worker_id]

    def idle_workers(self) -> List[Worker]:
        return [w for w in self.workers if w.is_idle]

    def inventory_count(self, name: str) -> int:
        return sum(i.quantity for i in self.inventory if i.name == name)
