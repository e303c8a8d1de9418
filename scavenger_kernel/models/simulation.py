"""Simulation configuration and per-operation reports."""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class SimulationConfig(BaseModel):
    """Startup constants for the mission simulator."""

    max_available_missions: int = Field(ge=1, default=5)
    generation_interval_seconds: float = Field(gt=0, default=120.0)
    mission_lifespan_seconds: float = Field(gt=0, default=600.0)
    tick_interval_seconds: float = Field(gt=0, default=1.0)
    min_mission_duration_seconds: float = Field(gt=0, default=10.0)
    offline_threshold_seconds: float = Field(ge=0, default=1.0)
    difficulty_jitter: int = Field(ge=0, default=1)
    duration_jitter_min: float = Field(ge=0, default=0.8)
    duration_jitter_max: float = Field(ge=0, default=1.2)
    reward_jitter_min: float = Field(gt=0, default=0.9)
    reward_jitter_max: float = Field(gt=0, default=1.1)
    save_per_sweep: bool = True             # False: one save per tick

    @model_validator(mode="after")
    def _check_ranges(self) -> "SimulationConfig":
        if self.duration_jitter_min > self.duration_jitter_max:
            raise ValueError("duration_jitter_min must not exceed duration_jitter_max")
        if self.reward_jitter_min > self.reward_jitter_max:
            raise ValueError("reward_jitter_min must not exceed reward_jitter_max")
        return self


class TickReport(BaseModel):
    """What one tick changed."""

    now: float
    completed: List[str] = []
    expired: List[str] = []
    generated: Optional[str] = None
    saves: int = 0                          # Successful writes only

    @property
    def mutated(self) -> bool:
        return bool(self.completed or self.expired or self.generated)


class ReconcileReport(BaseModel):
    """Outcome of one offline catch-up pass."""

    now: float
    elapsed_seconds: float = 0.0
    skipped: bool = False
    completed: List[str] = []
    expired: List[str] = []
    generated: List[str] = []
    missed_intervals: int = 0
    saved: bool = False
