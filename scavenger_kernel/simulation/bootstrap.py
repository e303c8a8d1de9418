"""
Startup — load the saved snapshot or seed a fresh one, then catch up.

  load ── found ───────► reconcile offline gap ─► SimulationClock
       ├─ absent ──────► bootstrap + save ───────► SimulationClock
       └─ decode error ► discard + bootstrap + save ► SimulationClock
"""

import random
import time
from typing import Optional

from loguru import logger

from scavenger_kernel.catalog.generator import MissionGenerator
from scavenger_kernel.models.entities import Equipment, Item, ResourcePool, Worker
from scavenger_kernel.models.simulation import SimulationConfig
from scavenger_kernel.models.snapshot import Snapshot
from scavenger_kernel.persistence.codec import SnapshotCodec, SnapshotDecodeError
from scavenger_kernel.simulation.clock import SimulationClock

STARTING_CREW = ["Mara", "Jonah", "Reyes"]


def bootstrap_snapshot(now: float) -> Snapshot:
    """Initial data for a first run: a small idle crew and a bare stockpile."""
    return Snapshot(
        resources=ResourcePool(scrap=20, food=10, water=10),
        workers=[Worker(name=name) for name in STARTING_CREW],
        inventory=[
            Item(name="Scrap", description="Twisted metal, still useful.", quantity=5),
            Item(name="Canned Food", description="Dented but sealed.", quantity=2),
        ],
        equipment=[
            Equipment(name="Crowbar", description="Opens most doors.", slot="tool", bonus=1),
            Equipment(name="Duffel Bag", description="Carries a little more.", slot="pack", bonus=1),
            Equipment(name="Leather Jacket", description="Better than nothing.", slot="armor", bonus=1),
        ],
        last_generation_time=now,
    )


def start_simulation(
    codec: SnapshotCodec,
    generator: Optional[MissionGenerator] = None,
    config: Optional[SimulationConfig] = None,
    now: Optional[float] = None,
) -> SimulationClock:
    """Build a ready-to-tick SimulationClock from whatever is on disk."""
    if now is None:
        now = time.time()
    if generator is None:
        generator = MissionGenerator(random.Random(), config)
    config = config or generator.config

    snapshot = None
    try:
        loaded = codec.load()
    except SnapshotDecodeError as e:
        logger.warning(f"Stored snapshot is unreadable, starting fresh: {e}")
        codec.discard()
        loaded = None

    if loaded is not None:
        snapshot, last_active = loaded
        logger.info(f"Loaded snapshot from {codec.path} (last active {last_active})")

    if snapshot is None:
        logger.info("No usable snapshot, bootstrapping initial data")
        clock = SimulationClock(bootstrap_snapshot(now), generator, codec=codec, config=config)
        clock.request_save(now)
        return clock

    clock = SimulationClock(snapshot, generator, codec=codec, config=config)
    clock.reconcile(now)
    return clock
