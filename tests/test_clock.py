"""Tests for the Simulation Clock and its shared rules."""

import asyncio
import itertools
import random

import pytest

from scavenger_kernel.catalog.generator import MissionGenerator
from scavenger_kernel.models.entities import Item, ResourcePool, Worker, WorkerStatus
from scavenger_kernel.models.mission import ActiveState, AvailableState, Mission
from scavenger_kernel.models.simulation import SimulationConfig
from scavenger_kernel.models.snapshot import Snapshot
from scavenger_kernel.persistence.codec import SnapshotCodec
from scavenger_kernel.simulation.clock import SimulationClock
from scavenger_kernel.simulation.rules import (
    MissionNotFoundError,
    NotFoundError,
    WorkerBusyError,
    WorkerNotFoundError,
    deposit_items,
    invariant_violations,
)

T0 = 1_700_000_000.0


def _make_available(expiration_time: float, name: str = "Looted Pharmacy") -> Mission:
    return Mission(
        name=name,
        duration=60,
        difficulty=1,
        rewards=[Item(name="Scrap", quantity=3), Item(name="Medkit", quantity=1)],
        resource_reward=ResourcePool(water=4),
        state=AvailableState(expiration_time=expiration_time),
    )


def _make_snapshot() -> Snapshot:
    return Snapshot(
        workers=[Worker(name="Mara"), Worker(name="Jonah")],
        available=[_make_available(T0 + 600)],
        inventory=[Item(name="Scrap", quantity=5)],
        last_generation_time=T0,
    )


def _make_clock(snapshot=None, config=None, codec=None, seed=42) -> SimulationClock:
    config = config or SimulationConfig()
    return SimulationClock(
        snapshot or _make_snapshot(),
        MissionGenerator(random.Random(seed), config),
        codec=codec,
        config=config,
    )


class TestDepositItems:
    def test_same_name_stacks(self):
        inventory = []
        deposit_items(inventory, [Item(name="Scrap", quantity=5)])
        deposit_items(inventory, [Item(name="Scrap", quantity=3)])
        assert len(inventory) == 1
        assert inventory[0].name == "Scrap"
        assert inventory[0].quantity == 8

    def test_new_name_added_verbatim(self):
        inventory = [Item(name="Scrap", quantity=5)]
        medkit = Item(name="Medkit", description="Bandages.", quantity=2)
        deposit_items(inventory, [medkit])
        assert inventory[1] == medkit
        # The deposited stack is a copy, not the reward record itself
        inventory[1].quantity += 1
        assert medkit.quantity == 2

    def test_names_are_case_sensitive(self):
        inventory = [Item(name="Scrap", quantity=5)]
        deposit_items(inventory, [Item(name="scrap", quantity=1)])
        assert [i.name for i in inventory] == ["Scrap", "scrap"]


class TestAssign:
    def setup_method(self):
        self.clock = _make_clock()
        self.snapshot = self.clock.snapshot
        self.mission = self.snapshot.available[0]
        self.worker = self.snapshot.workers[0]

    def test_assign_moves_mission_to_active(self):
        mission = self.clock.assign(self.mission.id, self.worker.id, now=T0 + 10)

        assert self.snapshot.available == []
        assert self.snapshot.active == [mission]
        assert mission.state == ActiveState(worker_id=self.worker.id, start_time=T0 + 10)
        assert mission.expiration_time is None
        assert self.worker.status == WorkerStatus.ON_MISSION
        assert invariant_violations(self.snapshot) == []

    def test_unknown_mission(self):
        before = self.snapshot.model_dump()
        with pytest.raises(MissionNotFoundError):
            self.clock.assign("no-such-mission", self.worker.id, now=T0)
        assert self.snapshot.model_dump() == before

    def test_unknown_worker(self):
        before = self.snapshot.model_dump()
        with pytest.raises(WorkerNotFoundError) as exc_info:
            self.clock.assign(self.mission.id, "no-such-worker", now=T0)
        assert isinstance(exc_info.value, NotFoundError)
        assert self.snapshot.model_dump() == before

    def test_busy_worker(self):
        second = _make_available(T0 + 900, name="Water Treatment Plant")
        self.snapshot.available.append(second)
        self.clock.assign(self.mission.id, self.worker.id, now=T0)

        before = self.snapshot.model_dump()
        with pytest.raises(WorkerBusyError):
            self.clock.assign(second.id, self.worker.id, now=T0 + 1)
        assert self.snapshot.model_dump() == before
        assert second.is_available

    def test_expired_mission_cannot_be_assigned(self):
        before = self.snapshot.model_dump()
        with pytest.raises(MissionNotFoundError):
            self.clock.assign(self.mission.id, self.worker.id, now=T0 + 600)
        assert self.snapshot.model_dump() == before

    def test_active_mission_cannot_be_reassigned(self):
        self.clock.assign(self.mission.id, self.worker.id, now=T0)
        other = self.snapshot.workers[1]
        with pytest.raises(MissionNotFoundError):
            self.clock.assign(self.mission.id, other.id, now=T0 + 1)
        assert other.status == WorkerStatus.IDLE

    def test_assign_saves(self, tmp_path):
        codec = SnapshotCodec(tmp_path / "snapshot.json")
        clock = _make_clock(codec=codec)
        snapshot = clock.snapshot
        clock.assign(snapshot.available[0].id, snapshot.workers[0].id, now=T0 + 3)
        assert codec.sequence == 1
        stored, last_active = codec.load()
        assert last_active == T0 + 3
        assert stored.active[0].assigned_worker_id == snapshot.workers[0].id


class TestTick:
    def test_completion_pays_out_and_frees_worker(self):
        clock = _make_clock()
        snapshot = clock.snapshot
        mission = snapshot.available[0]
        worker = snapshot.workers[0]
        clock.assign(mission.id, worker.id, now=T0)

        report = clock.tick(T0 + 59)
        assert report.completed == []
        assert worker.status == WorkerStatus.ON_MISSION

        report = clock.tick(T0 + 60)
        assert report.completed == [mission.id]
        assert snapshot.active == []
        assert worker.status == WorkerStatus.IDLE
        assert snapshot.inventory_count("Scrap") == 8
        assert snapshot.inventory_count("Medkit") == 1
        assert snapshot.resources.water == 4
        assert invariant_violations(snapshot) == []

    def test_expiration_removes_without_reward(self):
        clock = _make_clock()
        snapshot = clock.snapshot
        mission_id = snapshot.available[0].id

        report = clock.tick(T0 + 600)
        assert report.expired == [mission_id]
        assert snapshot.find_available(mission_id) is None
        assert snapshot.inventory_count("Scrap") == 5

    def test_generation_waits_for_interval(self):
        clock = _make_clock()
        assert clock.tick(T0 + 119).generated is None
        report = clock.tick(T0 + 120)
        assert report.generated is not None
        assert clock.snapshot.last_generation_time == T0 + 120
        assert clock.snapshot.available[-1].expiration_time == T0 + 120 + 600

    def test_one_generation_per_tick(self):
        clock = _make_clock()
        clock.tick(T0 + 10_000)
        assert len(clock.snapshot.available) == 1  # First mission expired, one rolled

    def test_generation_without_prior_timer(self):
        snapshot = _make_snapshot()
        snapshot.last_generation_time = None
        clock = _make_clock(snapshot=snapshot)
        assert clock.tick(T0).generated is not None
        assert snapshot.last_generation_time == T0

    def test_same_instant_is_idempotent(self):
        clock = _make_clock()
        clock.tick(T0 + 120)
        before = clock.snapshot.model_dump()
        report = clock.tick(T0 + 120)
        assert not report.mutated
        assert clock.snapshot.model_dump() == before

    def test_generation_cap_holds(self):
        config = SimulationConfig(
            max_available_missions=3,
            generation_interval_seconds=1,
            mission_lifespan_seconds=10_000,
        )
        clock = _make_clock(config=config)
        for second in range(1, 200):
            clock.tick(T0 + second)
            assert len(clock.snapshot.available) <= 3
        assert len(clock.snapshot.available) == 3

    def test_freed_slot_is_refilled_in_same_tick(self):
        config = SimulationConfig(max_available_missions=1)
        snapshot = _make_snapshot()
        snapshot.available = [_make_available(T0 + 120)]
        clock = _make_clock(snapshot=snapshot, config=config)

        report = clock.tick(T0 + 120)
        assert len(report.expired) == 1
        assert report.generated is not None
        assert len(snapshot.available) == 1

    def test_worker_mission_pairing_over_time(self):
        config = SimulationConfig(generation_interval_seconds=30, mission_lifespan_seconds=200)
        clock = _make_clock(config=config)
        snapshot = clock.snapshot
        for second in range(1, 1000):
            now = T0 + second
            clock.tick(now)
            idle = snapshot.idle_workers()
            if idle and snapshot.available and second % 7 == 0:
                clock.assign(snapshot.available[0].id, idle[0].id, now=now)
            assert invariant_violations(snapshot) == []


class TestTickSaves:
    def _busy_snapshot(self) -> Snapshot:
        """One mission due to complete, one due to expire, generation due: all at T0+120."""
        snapshot = _make_snapshot()
        worker = snapshot.workers[0]
        worker.status = WorkerStatus.ON_MISSION
        snapshot.active = [Mission(
            name="Abandoned Gas Station",
            duration=60,
            difficulty=1,
            rewards=[Item(name="Scrap", quantity=2)],
            state=ActiveState(worker_id=worker.id, start_time=T0),
        )]
        snapshot.available = [_make_available(T0 + 100)]
        return snapshot

    def test_one_save_per_mutating_sweep(self, tmp_path):
        codec = SnapshotCodec(tmp_path / "snapshot.json")
        clock = _make_clock(snapshot=self._busy_snapshot(), codec=codec)

        report = clock.tick(T0 + 120)
        assert len(report.completed) == 1
        assert len(report.expired) == 1
        assert report.generated is not None
        assert report.saves == 3
        assert codec.sequence == 3

    def test_only_mutating_sweeps_save(self, tmp_path):
        codec = SnapshotCodec(tmp_path / "snapshot.json")
        clock = _make_clock(codec=codec)
        report = clock.tick(T0 + 120)  # Generation only
        assert report.saves == 1
        assert clock.tick(T0 + 121).saves == 0
        assert codec.sequence == 1

    def test_batched_saves(self, tmp_path):
        codec = SnapshotCodec(tmp_path / "snapshot.json")
        config = SimulationConfig(save_per_sweep=False)
        clock = _make_clock(snapshot=self._busy_snapshot(), codec=codec, config=config)
        report = clock.tick(T0 + 120)
        assert report.saves == 1
        assert codec.sequence == 1

    def test_write_failure_is_retried_on_next_save(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        codec = SnapshotCodec(blocker / "snapshot.json")
        clock = _make_clock(codec=codec)

        report = clock.tick(T0 + 120)
        assert report.generated is not None  # Memory is still updated
        assert report.saves == 0
        assert clock.save_pending
        assert clock.save_count == 0

        blocker.unlink()
        snapshot = clock.snapshot
        clock.assign(snapshot.available[0].id, snapshot.workers[0].id, now=T0 + 121)
        assert not clock.save_pending
        stored, _ = codec.load()
        assert len(stored.available) == 1
        assert len(stored.active) == 1


class TestObservation:
    def test_listeners_see_mutations(self):
        clock = _make_clock()
        seen = []
        unsubscribe = clock.subscribe(lambda snap: seen.append(len(snap.available)))

        clock.tick(T0 + 1)  # Nothing happens
        clock.tick(T0 + 120)
        assert seen == [2]

        unsubscribe()
        clock.tick(T0 + 240)
        assert seen == [2]

    def test_failing_listener_does_not_abort(self):
        clock = _make_clock()

        def broken(snapshot):
            raise RuntimeError("render failed")

        clock.subscribe(broken)
        report = clock.tick(T0 + 120)
        assert report.generated is not None
        assert len(clock.snapshot.available) == 2


class TestRunAsync:
    def test_ticks_until_stopped(self, tmp_path):
        codec = SnapshotCodec(tmp_path / "snapshot.json")
        config = SimulationConfig(tick_interval_seconds=0.01, generation_interval_seconds=1)
        fake_time = itertools.count(T0, 1.0)
        clock = SimulationClock(
            _make_snapshot(),
            MissionGenerator(random.Random(5), config),
            codec=codec,
            config=config,
            time_source=lambda: next(fake_time),
        )

        async def scenario():
            stop = asyncio.Event()
            task = asyncio.create_task(clock.run_async(stop))
            await asyncio.sleep(0.2)
            assert clock.status == "running"
            stop.set()
            await task

        asyncio.run(scenario())
        assert clock.status == "stopped"
        assert len(clock.snapshot.available) > 1
        assert codec.load() is not None

    def test_request_save(self, tmp_path):
        codec = SnapshotCodec(tmp_path / "snapshot.json")
        clock = _make_clock(codec=codec)
        assert clock.request_save(now=T0 + 7) is True
        _, last_active = codec.load()
        assert last_active == T0 + 7
