"""Mission Catalog — the fixed, weighted table of mission templates."""

from typing import List

from pydantic import BaseModel, Field

from scavenger_kernel.models.entities import ResourcePool


class RewardSpec(BaseModel):
    """One reward line of a template, before difficulty scaling."""

    name: str
    description: str = ""
    base_quantity: int = Field(ge=1)


class MissionTemplate(BaseModel):
    key: str
    name: str
    description: str
    base_duration: float = Field(gt=0)      # Simulated seconds
    base_difficulty: int = Field(ge=1)
    weight: int = Field(ge=1, default=1)    # Relative pick frequency
    rewards: List[RewardSpec]
    resource_yield: ResourcePool = Field(default_factory=ResourcePool)


MISSION_TEMPLATES: List[MissionTemplate] = [
    MissionTemplate(
        key="gas_station",
        name="Abandoned Gas Station",
        description="Strip the pumps and the back room before the raiders do.",
        base_duration=60,
        base_difficulty=1,
        weight=5,
        rewards=[
            RewardSpec(name="Scrap", description="Twisted metal, still useful.", base_quantity=5),
            RewardSpec(name="Canned Food", description="Dented but sealed.", base_quantity=2),
        ],
        resource_yield=ResourcePool(scrap=10, food=2),
    ),
    MissionTemplate(
        key="pharmacy",
        name="Looted Pharmacy",
        description="Someone got here first. Check behind the counter anyway.",
        base_duration=120,
        base_difficulty=2,
        weight=3,
        rewards=[
            RewardSpec(name="Medkit", description="Bandages and antiseptic.", base_quantity=1),
            RewardSpec(name="Scrap", description="Twisted metal, still useful.", base_quantity=3),
        ],
        resource_yield=ResourcePool(water=4),
    ),
    MissionTemplate(
        key="water_plant",
        name="Water Treatment Plant",
        description="The filters might still work if you can reach them.",
        base_duration=180,
        base_difficulty=3,
        weight=2,
        rewards=[
            RewardSpec(name="Water Filter", description="Cleans a barrel a day.", base_quantity=1),
            RewardSpec(name="Pipe Fittings", description="Brass, heavy.", base_quantity=4),
        ],
        resource_yield=ResourcePool(water=20),
    ),
    MissionTemplate(
        key="military_depot",
        name="Collapsed Military Depot",
        description="High risk, high yield. Bring everyone back.",
        base_duration=300,
        base_difficulty=4,
        weight=1,
        rewards=[
            RewardSpec(name="Ammunition", description="Mixed calibers.", base_quantity=10),
            RewardSpec(name="Electronics", description="Circuit boards and wire.", base_quantity=2),
            RewardSpec(name="Scrap", description="Twisted metal, still useful.", base_quantity=8),
        ],
        resource_yield=ResourcePool(scrap=25, food=5),
    ),
]


def get_template(key: str) -> MissionTemplate:
    for template in MISSION_TEMPLATES:
        if template.key == key:
            return template
    raise KeyError(f"Unknown mission template: {key}")
