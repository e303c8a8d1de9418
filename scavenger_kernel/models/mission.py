"""
Mission — a timed scavenging run, either waiting in the catalog or underway.

The lifecycle position is a tagged union on ``state.phase``:
  available: perishable, carries an expiration time, no worker
  active:    durable, carries the assigned worker and a start time
A mission leaves both collections when it completes or expires.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from scavenger_kernel.models.entities import Item, ResourcePool, new_entity_id


class AvailableState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    phase: Literal["available"] = "available"
    expiration_time: float


class ActiveState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    phase: Literal["active"] = "active"
    worker_id: str
    start_time: float


MissionState = Annotated[
    Union[AvailableState, ActiveState], Field(discriminator="phase")
]


class Mission(BaseModel):
    """A mission record. Rewards are fixed at generation time."""

    id: str = Field(default_factory=new_entity_id)
    template_key: str = ""
    name: str
    description: str = ""
    duration: float = Field(gt=0)           # Simulated seconds a worker is away
    difficulty: int = Field(ge=1)
    rewards: List[Item] = []
    resource_reward: ResourcePool = Field(default_factory=ResourcePool)
    state: MissionState

    @property
    def is_available(self) -> bool:
        return isinstance(self.state, AvailableState)

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, ActiveState)

    @property
    def expiration_time(self) -> Optional[float]:
        if isinstance(self.state, AvailableState):
            return self.state.expiration_time
        return None

    @property
    def assigned_worker_id(self) -> Optional[str]:
        if isinstance(self.state, ActiveState):
            return self.state.worker_id
        return None

    @property
    def start_time(self) -> Optional[float]:
        if isinstance(self.state, ActiveState):
            return self.state.start_time
        return None

    @property
    def completion_time(self) -> Optional[float]:
        if isinstance(self.state, ActiveState):
            return self.state.start_time + self.duration
        return None
