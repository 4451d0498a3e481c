"""
TrackingService: persistence, remote sync, outbox fallback, deletion,
inactivity handling and command handlers.
"""

import pytest

from turf_engine.session import SessionRecord, SessionState
from turf_engine.territory.decay import MS_PER_DAY
from turf_engine.tracking import ActivityMode
from turf_service import TrackerConfig, TrackingService
from turf_sync import (
    OWNER_ID_KEY,
    SESSIONS_KEY,
    TERRITORIES_KEY,
    JsonFileBlobStore,
    MemoryBlobStore,
    load_json_list,
    save_json_list,
)

from helpers import T0, FakeControlPlane, make_territory, square_polygon, square_samples


@pytest.fixture
def config():
    return TrackerConfig(device_id="phone_test", flush_interval_s=3600, inactivity_check_interval_s=3600)


def build_service(config, store, blob_store, clock, control_plane=None):
    ids = iter(f"local-{i}" for i in range(1, 100))
    return TrackingService(
        config,
        store,
        blob_store,
        control_plane=control_plane,
        clock=clock,
        id_factory=lambda: next(ids),
    )


@pytest.fixture
def service(config, store, blob_store, clock):
    svc = build_service(config, store, blob_store, clock)
    svc.setup()
    yield svc
    svc.shutdown()


def walk_loop(service, clock, start_ms=T0):
    outcomes = []
    for sample in square_samples(start_ms=start_ms):
        clock.now = sample.timestamp
        outcomes.append(service.ingest_sample(sample))
    return outcomes


class TestSetup:

    def test_generates_and_persists_owner_id(self, service, blob_store):
        assert len(service.owner_id) == 32
        assert blob_store.get(OWNER_ID_KEY) == service.owner_id
        assert service.session.owner_id == service.owner_id

    def test_keeps_existing_owner_id(self, config, store, clock):
        svc = build_service(config, store, MemoryBlobStore({OWNER_ID_KEY: "alice"}), clock)
        svc.setup()
        try:
            assert svc.owner_id == "alice"
        finally:
            svc.shutdown()

    def test_loads_persisted_state_and_skips_bad_entries(self, config, store, clock):
        blob_store = MemoryBlobStore({OWNER_ID_KEY: "alice"})
        good = make_territory("t1", [("alice", 1.0)])
        record = SessionRecord("1", ActivityMode.WALK, (), 10, T0, T0 + 1)
        save_json_list(blob_store, TERRITORIES_KEY, [good.to_dict(), {'id': 'broken'}])
        save_json_list(blob_store, SESSIONS_KEY, [record.to_dict(), 42])

        svc = build_service(config, store, blob_store, clock)
        svc.setup()
        try:
            assert svc.cache.snapshot() == (good,)
            assert svc.sessions == (record,)
        finally:
            svc.shutdown()

    def test_corrupt_blob_is_discarded(self, config, store, clock):
        blob_store = MemoryBlobStore({TERRITORIES_KEY: "not json at all"})
        svc = build_service(config, store, blob_store, clock)
        svc.setup()
        try:
            assert len(svc.cache) == 0
            assert blob_store.get(TERRITORIES_KEY) is None
        finally:
            svc.shutdown()

    def test_corrupt_vertices_drop_only_that_entry(self, config, store, clock):
        good = make_territory("t1", [("alice", 1.0)])
        record = SessionRecord("1", ActivityMode.WALK, (), 10, T0, T0 + 1)
        blob_store = MemoryBlobStore({OWNER_ID_KEY: "alice"})
        save_json_list(blob_store, TERRITORIES_KEY, [
            {"id": "t0", "mode": "walk", "createdAt": 1, "polygon": ["a", "b", "c"]},
            good.to_dict(),
        ])
        save_json_list(blob_store, SESSIONS_KEY, [
            {"id": "0", "mode": "walk", "path": [1, 2], "startedAt": T0, "endedAt": T0 + 1},
            record.to_dict(),
        ])

        svc = build_service(config, store, blob_store, clock)
        svc.setup()
        try:
            assert svc.cache.snapshot() == (good,)
            assert svc.sessions == (record,)
        finally:
            svc.shutdown()

    def test_undecodable_file_is_discarded(self, config, store, clock, tmp_path):
        (tmp_path / "territories.json").write_bytes(b"\xff\xfe[]")
        blob_store = JsonFileBlobStore(tmp_path)

        svc = build_service(config, store, blob_store, clock)
        svc.setup()
        try:
            assert len(svc.cache) == 0
            assert not (tmp_path / "territories.json").exists()
        finally:
            svc.shutdown()


class TestCapture:

    def test_capture_is_persisted_and_uploaded(self, service, store, blob_store, clock):
        service.start(ActivityMode.WALK)
        outcomes = walk_loop(service, clock)

        assert sum(o.captured for o in outcomes) == 1
        local = service.cache.snapshot()
        assert [t.id for t in local] == ["local-1"]
        assert store.documents["local-1"] == local[0]
        assert [t['id'] for t in load_json_list(blob_store, TERRITORIES_KEY)] == ["local-1"]

    def test_background_batch_is_persisted_and_uploaded(self, service, store, blob_store, clock):
        service.start(ActivityMode.WALK)
        samples = square_samples()
        clock.now = samples[-1].timestamp

        outcome = service.ingest_background(samples)

        assert outcome.captured
        assert [t.id for t in service.cache.snapshot()] == ["local-1"]
        assert store.documents["local-1"] == service.cache.snapshot()[0]
        assert [t["id"] for t in load_json_list(blob_store, TERRITORIES_KEY)] == ["local-1"]

    def test_background_batch_while_paused(self, service):
        service.start(ActivityMode.WALK)
        service.pause()
        assert not service.ingest_background(square_samples()).accepted
        assert len(service.cache) == 0

    def test_offline_capture_is_queued(self, service, store, clock):
        store.fail = True
        service.start(ActivityMode.WALK)
        walk_loop(service, clock)

        assert service.outbox.pending_counts()['territories'] == 1
        assert store.documents == {}

        store.fail = False
        service.on_foreground()
        assert "local-1" in store.documents
        assert service.outbox.pending_counts()['territories'] == 0

    def test_contest_writes_owner_update(self, service, store, clock):
        theirs = make_territory("bob-1", [("bob", 1.0)], polygon=square_polygon(0, 0, 200))
        store.documents["bob-1"] = theirs
        store.push([theirs])

        service.start(ActivityMode.WALK)
        walk_loop(service, clock)

        territory_id, owners = store.owner_updates[-1]
        assert territory_id == "bob-1"
        assert {o.owner_id: o.strength for o in owners} == {"bob": 1.0, service.owner_id: 0.5}
        assert len(service.cache) == 1

    def test_remote_snapshot_replaces_local_state(self, service, store, blob_store, clock):
        service.start(ActivityMode.WALK)
        walk_loop(service, clock)

        remote = [make_territory("r1", [("bob", 1.0)], created_at=T0), make_territory("r2", [("bob", 1.0)], created_at=T0 + 5)]
        store.push(remote)

        assert [t.id for t in service.cache.snapshot()] == ["r2", "r1"]
        assert [t['id'] for t in load_json_list(blob_store, TERRITORIES_KEY)] == ["r2", "r1"]


class TestStop:

    def test_session_saved_and_uploaded(self, service, store, blob_store, clock):
        service.start(ActivityMode.WALK)
        walk_loop(service, clock)
        record = service.stop()

        assert record.id == str(clock.now)
        assert service.sessions == (record,)
        assert load_json_list(blob_store, SESSIONS_KEY) == [record.to_dict()]
        assert store.sessions == [(service.owner_id, record)]

    def test_offline_session_is_queued(self, service, store, clock):
        store.fail = True
        service.start(ActivityMode.RUN)
        clock.advance(10_000)
        service.stop()
        assert service.outbox.pending_counts()['sessions'] == 1

    def test_stop_when_idle(self, service):
        assert service.stop() is None


class TestReads:

    def test_territories_are_decayed(self, service, clock):
        service.start(ActivityMode.WALK)
        walk_loop(service, clock)

        later = clock.now + 35 * MS_PER_DAY
        decayed = service.territories(now_ms=later)

        assert decayed[0].owners[0].strength == pytest.approx(0.98 ** 35, rel=1e-3)
        assert service.cache.snapshot()[0].owners[0].strength == 1.0

    def test_leaderboard(self, service, store, clock):
        store.push([
            make_territory("a", [(service.owner_id, 1.0)], polygon=square_polygon(0, 0, 100)),
            make_territory("b", [("bob", 1.0)], polygon=square_polygon(500, 0, 50)),
        ])
        rows = service.leaderboard(now_ms=T0)
        assert [r.owner_id for r in rows] == [service.owner_id, "bob"]

    def test_status(self, service):
        status = service.status()
        assert status['owner_id'] == service.owner_id
        assert status['device_id'] == "phone_test"
        assert status['state'] == "idle"
        assert status['pending_uploads'] == {'sessions': 0, 'territories': 0}


class TestDeletion:

    def test_delete_session_removes_its_territories(self, service, store, clock):
        service.start(ActivityMode.WALK)
        walk_loop(service, clock)
        record = service.stop()

        assert service.delete_session(record.id)

        assert service.sessions == ()
        assert len(service.cache) == 0
        assert store.deleted == ["local-1"]
        assert store.documents == {}

    def test_delete_unknown_session(self, service):
        assert not service.delete_session("nope")

    def test_territories_outside_window_survive(self, service, store, clock):
        older = make_territory(
            "old", [(service.owner_id, 1.0)], polygon=square_polygon(5000, 0, 50), created_at=T0 - MS_PER_DAY
        )
        store.push([older])

        service.start(ActivityMode.WALK)
        walk_loop(service, clock, start_ms=T0 + 1000)
        record = service.stop()
        service.delete_session(record.id)

        assert [t.id for t in service.cache.snapshot()] == ["old"]

    def test_clear_my_territories(self, service, store):
        mine = make_territory("mine", [(service.owner_id, 1.0)])
        shared = make_territory("shared", [("bob", 1.0), (service.owner_id, 0.5)], polygon=square_polygon(300, 0, 50))
        theirs = make_territory("theirs", [("bob", 1.0)], polygon=square_polygon(600, 0, 50))
        for t in (mine, shared, theirs):
            store.documents[t.id] = t
        store.push([mine, shared, theirs])

        assert service.clear_my_territories() == 2
        assert [t.id for t in service.cache.snapshot()] == ["theirs"]
        assert sorted(store.deleted) == ["mine", "shared"]


class TestInactivity:

    def test_auto_pause_then_auto_stop(self, service, clock):
        service.start(ActivityMode.WALK)

        clock.advance(299_000)
        assert service.check_inactivity() is None

        clock.advance(2_000)
        assert service.check_inactivity() == "auto_paused"
        assert service.session.state is SessionState.PAUSED
        assert service.status()['auto_paused']

        clock.advance(179_000)
        assert service.check_inactivity() is None

        clock.advance(2_000)
        assert service.check_inactivity() == "auto_stopped"
        assert service.session.state is SessionState.IDLE
        assert len(service.sessions) == 1

    def test_resume_cancels_auto_stop(self, service, clock):
        service.start(ActivityMode.WALK)
        clock.advance(301_000)
        service.check_inactivity()
        service.resume()

        clock.advance(200_000)
        assert service.check_inactivity() is None
        assert service.session.state is SessionState.ACTIVE

    def test_manual_pause_is_never_auto_stopped(self, service, clock):
        service.start(ActivityMode.WALK)
        service.pause()
        clock.advance(3_600_000)
        assert service.check_inactivity() is None
        assert service.session.state is SessionState.PAUSED

    def test_idle_service(self, service):
        assert service.check_inactivity() is None


class TestCommands:

    @pytest.fixture
    def control_plane(self):
        return FakeControlPlane()

    @pytest.fixture
    def controlled(self, config, store, blob_store, clock, control_plane):
        svc = build_service(config, store, blob_store, clock, control_plane=control_plane)
        svc.setup()
        yield svc
        svc.shutdown()

    def test_commands_registered(self, controlled, control_plane):
        assert control_plane.command_registry.available_commands == {
            "start", "pause", "resume", "stop", "location", "locations", "steps", "foreground", "status",
        }

    def test_session_commands(self, controlled, control_plane, clock):
        registry = control_plane.command_registry

        registry.execute("start", {"command": "start", "mode": "run", "step_counter": True})
        registry.execute("steps", {"command": "steps", "delta": 100})
        registry.execute("pause", {"command": "pause"})
        registry.execute("pause", {"command": "pause"})
        registry.execute("resume", {"command": "resume"})
        clock.advance(1000)
        registry.execute("stop", {"command": "stop"})

        assert [s for s, _ in control_plane.statuses] == ["started", "paused", "ignored", "resumed", "stopped"]
        assert control_plane.statuses[-1][1]["distance_m"] == 91

    def test_location_commands_capture_loop(self, controlled, control_plane, clock):
        registry = control_plane.command_registry
        registry.execute("start", {"command": "start", "mode": "walk"})
        for sample in square_samples():
            clock.now = sample.timestamp
            registry.execute("location", {
                "command": "location",
                "latitude": sample.latitude,
                "longitude": sample.longitude,
                "accuracy": sample.accuracy,
                "timestamp": sample.timestamp,
            })

        captured = [d for s, d in control_plane.statuses if s == "loop_captured"]
        assert len(captured) == 1
        assert captured[0]["transitions"] == [["local-1", "created"]]

    def test_locations_batch_command(self, controlled, control_plane, store, clock):
        registry = control_plane.command_registry
        registry.execute("start", {"command": "start", "mode": "walk"})
        samples = square_samples()
        clock.now = samples[-1].timestamp
        registry.execute("locations", {
            "command": "locations",
            "samples": [
                {"latitude": s.latitude, "longitude": s.longitude, "accuracy": s.accuracy, "timestamp": s.timestamp}
                for s in samples
            ],
        })

        captured = [d for s, d in control_plane.statuses if s == "loop_captured"]
        assert captured[0]["transitions"] == [["local-1", "created"]]
        assert "local-1" in store.documents

    def test_status_command(self, controlled, control_plane):
        control_plane.command_registry.execute("status", {"command": "status"})
        status, details = control_plane.statuses[-1]
        assert status == "status"
        assert details["owner_id"] == controlled.owner_id

    def test_bad_arguments_raise(self, controlled, control_plane):
        with pytest.raises(ValueError):
            control_plane.command_registry.execute("start", {"command": "start", "mode": "swim"})
        with pytest.raises(KeyError):
            control_plane.command_registry.execute("location", {"command": "location"})
