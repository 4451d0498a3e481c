"""Synthetic tracks and test doubles shared by the test modules."""

import math
from typing import Dict, List, Optional, Sequence, Tuple

from turf_engine.geometry import EARTH_RADIUS_M, Point
from turf_engine.session import SessionRecord
from turf_engine.territory import Owner, Territory
from turf_engine.tracking import ActivityMode, RawSample
from turf_sync import RemoteStoreError

ORIGIN_LAT = 45.0
ORIGIN_LON = 7.0
T0 = 1_700_000_000_000


def offset(east_m: float, north_m: float, lat: float = ORIGIN_LAT, lon: float = ORIGIN_LON) -> Tuple[float, float]:
    """(lat, lon) of a point east_m / north_m away from (lat, lon)."""
    dlat = math.degrees(north_m / EARTH_RADIUS_M)
    dlon = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(lat))))
    return lat + dlat, lon + dlon


def square_offsets(side_m: float, step_m: float) -> List[Tuple[float, float]]:
    """East, north, west, south legs from (0, 0) back to (0, 0)."""
    steps = int(round(side_m / step_m))
    corners = [(0.0, 0.0), (side_m, 0.0), (side_m, side_m), (0.0, side_m), (0.0, 0.0)]
    offsets = [corners[0]]
    for (x0, y0), (x1, y1) in zip(corners, corners[1:]):
        for k in range(1, steps + 1):
            f = k / steps
            offsets.append((x0 + (x1 - x0) * f, y0 + (y1 - y0) * f))
    return offsets


def points_from_offsets(offsets: Sequence[Tuple[float, float]], start_ms: int = T0, interval_ms: int = 3000) -> List[Point]:
    points = []
    for i, (east, north) in enumerate(offsets):
        lat, lon = offset(east, north)
        points.append(Point(latitude=lat, longitude=lon, timestamp=start_ms + i * interval_ms))
    return points


def square_points(side_m: float, step_m: float, start_ms: int = T0, interval_ms: int = 3000) -> List[Point]:
    return points_from_offsets(square_offsets(side_m, step_m), start_ms, interval_ms)


def square_samples(
    side_m: float = 200.0,
    step_m: float = 10.0,
    start_ms: int = T0,
    interval_ms: int = 3000,
    accuracy: Optional[float] = 5.0,
) -> List[RawSample]:
    return [
        RawSample(latitude=p.latitude, longitude=p.longitude, timestamp=p.timestamp, accuracy=accuracy)
        for p in square_points(side_m, step_m, start_ms, interval_ms)
    ]


def square_polygon(east_m: float, north_m: float, side_m: float) -> Tuple[Point, ...]:
    """Four-corner square with its south-west corner at (east_m, north_m)."""
    corners = [(0, 0), (side_m, 0), (side_m, side_m), (0, side_m)]
    return tuple(points_from_offsets([(east_m + x, north_m + y) for x, y in corners]))


def make_territory(
    territory_id: str,
    owners: Sequence[Tuple[str, float]],
    polygon: Optional[Sequence[Point]] = None,
    created_at: int = T0,
    mode: ActivityMode = ActivityMode.WALK,
) -> Territory:
    return Territory(
        id=territory_id,
        mode=mode,
        polygon=tuple(polygon) if polygon is not None else square_polygon(0, 0, 50),
        created_at=created_at,
        owners=tuple(Owner(owner_id, strength) for owner_id, strength in owners),
    )


class FakeClock:
    """Settable epoch-ms clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FakeTerritoryStore:
    """In-memory TerritoryStore; set fail=True to make every write raise."""

    def __init__(self):
        self.fail = False
        self.documents: Dict[str, Territory] = {}
        self.sessions: List[Tuple[str, SessionRecord]] = []
        self.owner_updates: List[Tuple[str, Tuple[Owner, ...]]] = []
        self.deleted: List[str] = []
        self.callbacks = []

    def _check(self) -> None:
        if self.fail:
            raise RemoteStoreError("store offline")

    def subscribe(self, callback):
        self.callbacks.append(callback)

        def unsubscribe():
            self.callbacks.remove(callback)

        return unsubscribe

    def push(self, territories: Sequence[Territory]) -> None:
        for callback in list(self.callbacks):
            callback(list(territories))

    def create_territory(self, owners, mode, polygon, territory_id=None, created_at=None):
        self._check()
        territory_id = territory_id or f"remote-{len(self.documents) + 1}"
        self.documents[territory_id] = Territory(
            id=territory_id,
            mode=ActivityMode(mode),
            polygon=tuple(polygon),
            created_at=created_at if created_at is not None else T0,
            owners=tuple(owners),
        )
        return territory_id

    def update_territory_owners(self, territory_id, owners):
        self._check()
        if territory_id not in self.documents:
            raise RemoteStoreError(f"unknown territory {territory_id}")
        self.documents[territory_id] = self.documents[territory_id].replace_owners(owners)
        self.owner_updates.append((territory_id, tuple(owners)))

    def delete_territory(self, territory_id):
        self._check()
        self.documents.pop(territory_id, None)
        self.deleted.append(territory_id)

    def query_by_owner(self, owner_id):
        return [t for t in self.documents.values() if t.is_owned_by(owner_id)]

    def create_session(self, owner_id, record):
        self._check()
        self.sessions.append((owner_id, record))
        return record.id


class FakeMessageInfo:
    def __init__(self, rc: int = 0, published: bool = True):
        self.rc = rc
        self._published = published
        self.waited = False

    def wait_for_publish(self, timeout=None):
        self.waited = True

    def is_published(self) -> bool:
        return self._published


class FakeMQTTClient:
    """Stands in for paho's Client: records publishes and subscriptions."""

    def __init__(self, rc: int = 0, published: bool = True):
        self.rc = rc
        self.published_flag = published
        self.published = []
        self.subscriptions = []

    def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append({'topic': topic, 'payload': payload, 'qos': qos, 'retain': retain})
        return FakeMessageInfo(self.rc, self.published_flag)

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))

    def loop_start(self):
        pass

    def loop_stop(self):
        pass

    def disconnect(self):
        pass


class FakeControlPlane:
    """Exposes a real CommandRegistry and records published statuses."""

    def __init__(self):
        from turf_service.registry import CommandRegistry

        self.command_registry = CommandRegistry()
        self.statuses = []

    def publish_status(self, status, details=None):
        self.statuses.append((status, details))
