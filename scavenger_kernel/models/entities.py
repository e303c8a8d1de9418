"""Entity Model — workers, items, equipment and the resource pool."""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


def new_entity_id() -> str:
    return str(uuid4())


class WorkerStatus(str, Enum):
    IDLE = "idle"
    ON_MISSION = "on_mission"
    RETURNING = "returning"  # Reserved; no current transition enters it


class Worker(BaseModel):
    """A member of the scavenging roster. Created only at bootstrap."""

    id: str = Field(default_factory=new_entity_id)
    name: str
    level: int = Field(ge=1, default=1)
    experience: int = Field(ge=0, default=0)
    status: WorkerStatus = WorkerStatus.IDLE

    @property
    def is_idle(self) -> bool:
        return self.status == WorkerStatus.IDLE


class Item(BaseModel):
    """A stack of one named item. Stacks merge by exact name on deposit."""

    id: str = Field(default_factory=new_entity_id)
    name: str
    description: str = ""
    quantity: int = Field(ge=1, default=1)

    def stacks_with(self, other: "Item") -> bool:
        return self.name == other.name


class Equipment(BaseModel):
    """Gear a worker could carry. Persisted, not consulted by mission rules."""

    id: str = Field(default_factory=new_entity_id)
    name: str
    description: str = ""
    slot: str = "tool"                      # "tool" | "armor" | "pack"
    bonus: int = Field(ge=0, default=0)


class ResourcePool(BaseModel):
    """Base stockpile counters. Only mission rewards add to them."""

    scrap: int = Field(ge=0, default=0)
    food: int = Field(ge=0, default=0)
    water: int = Field(ge=0, default=0)

    @property
    def is_empty(self) -> bool:
        return self.scrap == 0 and self.food == 0 and self.water == 0


def same_entity(a: BaseModel, b: BaseModel) -> bool:
    """Identity comparison: two records are the same entity if their ids match."""
    return type(a) is type(b) and getattr(a, "id", None) == getattr(b, "id", None)
