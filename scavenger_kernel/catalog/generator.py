"""
Mission Generator — turns a template plus a handful of dice rolls into a Mission.

``generate_mission`` is a pure function of its arguments. ``MissionGenerator``
draws the rolls from an injected RandomSource, so a seeded ``random.Random``
makes generation fully reproducible.
"""

import math
from typing import List, Optional, Protocol, Sequence
from uuid import NAMESPACE_URL, UUID, uuid5

from scavenger_kernel.catalog.templates import MISSION_TEMPLATES, MissionTemplate
from scavenger_kernel.models.entities import Item, ResourcePool, new_entity_id
from scavenger_kernel.models.mission import AvailableState, Mission
from scavenger_kernel.models.simulation import SimulationConfig


class RandomSource(Protocol):
    """The subset of ``random.Random`` the generator consumes."""

    def randint(self, a: int, b: int) -> int: ...

    def uniform(self, a: float, b: float) -> float: ...

    def choices(self, population, weights=None, *, cum_weights=None, k=1) -> list: ...

    def getrandbits(self, k: int) -> int: ...


def _scale(base: int, ratio: float, roll: float = 1.0) -> int:
    return int(math.floor(base * ratio * roll))


def _reward_id(mission_id: str, index: int) -> str:
    """Derived from the mission id and the reward position."""
    return str(uuid5(NAMESPACE_URL, f"scavenger-kernel:{mission_id}:reward:{index}"))


def generate_mission(
    template: MissionTemplate,
    difficulty_jitter: int,
    duration_jitter_ratio: float,
    now: float,
    lifespan: float,
    reward_rolls: Optional[Sequence[float]] = None,
    min_duration: float = 10.0,
    mission_id: Optional[str] = None,
) -> Mission:
    """
    Build an available Mission from a template and explicit rolls.

    difficulty = max(1, base + jitter); duration is floored at ``min_duration``;
    each reward scales by difficulty / base difficulty times its roll, never
    below 1. The resource yield scales by the same ratio without a roll.
    """
    mission_id = mission_id or new_entity_id()
    difficulty = max(1, template.base_difficulty + difficulty_jitter)
    duration = max(min_duration, template.base_duration * duration_jitter_ratio)
    ratio = difficulty / template.base_difficulty

    rolls = list(reward_rolls) if reward_rolls is not None else []
    rewards = []
    for index, spec in enumerate(template.rewards):
        roll = rolls[index] if index < len(rolls) else 1.0
        rewards.append(Item(
            id=_reward_id(mission_id, index),
            name=spec.name,
            description=spec.description,
            quantity=max(1, _scale(spec.base_quantity, ratio, roll)),
        ))

    base_yield = template.resource_yield
    resource_reward = ResourcePool(
        scrap=max(0, _scale(base_yield.scrap, ratio)),
        food=max(0, _scale(base_yield.food, ratio)),
        water=max(0, _scale(base_yield.water, ratio)),
    )

    return Mission(
        id=mission_id,
        template_key=template.key,
        name=template.name,
        description=template.description,
        duration=duration,
        difficulty=difficulty,
        rewards=rewards,
        resource_reward=resource_reward,
        state=AvailableState(expiration_time=now + lifespan),
    )


class MissionGenerator:
    """Rolls new missions from the weighted template table."""

    def __init__(
        self,
        rng: RandomSource,
        config: Optional[SimulationConfig] = None,
        templates: Optional[List[MissionTemplate]] = None,
    ):
        self.rng = rng
        self.config = config or SimulationConfig()
        self.templates = list(templates) if templates is not None else list(MISSION_TEMPLATES)
        if not self.templates:
            raise ValueError("MissionGenerator needs at least one template")

    def pick_template(self) -> MissionTemplate:
        weights = [t.weight for t in self.templates]
        return self.rng.choices(self.templates, weights=weights, k=1)[0]

    def roll(self, now: float) -> Mission:
        """Draw every roll for one mission, in a fixed order, and build it."""
        cfg = self.config
        template = self.pick_template()
        jitter = self.rng.randint(-cfg.difficulty_jitter, cfg.difficulty_jitter)
        ratio = self.rng.uniform(cfg.duration_jitter_min, cfg.duration_jitter_max)
        reward_rolls = [
            self.rng.uniform(cfg.reward_jitter_min, cfg.reward_jitter_max)
            for _ in template.rewards
        ]
        mission_id = str(UUID(int=self.rng.getrandbits(128), version=4))

        return generate_mission(
            template,
            difficulty_jitter=jitter,
            duration_jitter_ratio=ratio,
            now=now,
            lifespan=cfg.mission_lifespan_seconds,
            reward_rolls=reward_rolls,
            min_duration=cfg.min_mission_duration_seconds,
            mission_id=mission_id,
        )
