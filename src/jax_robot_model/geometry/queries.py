"""Query variants, typed results and grouped outputs of shape collection queries.

Collection-level queries carry pose tables (one pose per shape); the
robot-level requests in :mod:`.robot_shapes` carry joint states instead and
are resolved to these.
"""

import enum
import math
from typing import Any, List, Optional, Tuple

import numpy as np
from flax import struct


@struct.dataclass
class Ray:
    origin: np.ndarray
    direction: np.ndarray


# Collection-level queries

@struct.dataclass
class ProjectPoint:
    poses: Any = struct.field(pytree_node=False)
    point: np.ndarray
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class ContainsPoint:
    poses: Any = struct.field(pytree_node=False)
    point: np.ndarray


@struct.dataclass
class DistanceToPoint:
    poses: Any = struct.field(pytree_node=False)
    point: np.ndarray
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class IntersectsRay:
    poses: Any = struct.field(pytree_node=False)
    ray: Ray
    max_toi: float = struct.field(pytree_node=False, default=math.inf)


@struct.dataclass
class CastRay:
    poses: Any = struct.field(pytree_node=False)
    ray: Ray
    max_toi: float = struct.field(pytree_node=False, default=math.inf)
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class CastRayAndGetNormal:
    poses: Any = struct.field(pytree_node=False)
    ray: Ray
    max_toi: float = struct.field(pytree_node=False, default=math.inf)
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class IntersectionTest:
    poses: Any = struct.field(pytree_node=False)


@struct.dataclass
class Distance:
    poses: Any = struct.field(pytree_node=False)


@struct.dataclass
class ClosestPoints:
    poses: Any = struct.field(pytree_node=False)
    max_dis: float = struct.field(pytree_node=False)


@struct.dataclass
class Contact:
    poses: Any = struct.field(pytree_node=False)
    prediction: float = struct.field(pytree_node=False)


@struct.dataclass
class CCD:
    """Swept query between the shapes' poses at ``poses_t1`` and at ``poses_t2``."""
    poses_t1: Any = struct.field(pytree_node=False)
    poses_t2: Any = struct.field(pytree_node=False)


# Result payloads

@struct.dataclass
class PointProjection:
    point: np.ndarray
    is_inside: bool = struct.field(pytree_node=False)


@struct.dataclass
class RayIntersection:
    toi: float = struct.field(pytree_node=False)
    normal: np.ndarray


class ClosestPointsStatus(enum.Enum):
    INTERSECTING = "intersecting"
    WITHIN_MARGIN = "within_margin"
    DISJOINT = "disjoint"


@struct.dataclass
class ClosestPointsResult:
    status: ClosestPointsStatus = struct.field(pytree_node=False)
    distance: float = struct.field(pytree_node=False)
    point1: Optional[np.ndarray] = None
    point2: Optional[np.ndarray] = None


@struct.dataclass
class ContactRecord:
    """Contact between two shapes; ``dist`` is negative when they penetrate."""
    dist: float = struct.field(pytree_node=False)
    point1: np.ndarray
    point2: np.ndarray
    normal1: np.ndarray
    normal2: np.ndarray


@struct.dataclass
class TimeOfImpact:
    """First contact time in [0, 1] along the swept motion; 0 when already penetrating."""
    toi: float = struct.field(pytree_node=False)
    witness1: np.ndarray
    witness2: np.ndarray
    penetrating: bool = struct.field(pytree_node=False, default=False)


class QueryResultKind(enum.Enum):
    PROJECT_POINT = "project_point"
    CONTAINS_POINT = "contains_point"
    DISTANCE_TO_POINT = "distance_to_point"
    INTERSECTS_RAY = "intersects_ray"
    CAST_RAY = "cast_ray"
    CAST_RAY_AND_GET_NORMAL = "cast_ray_and_get_normal"
    INTERSECTION_TEST = "intersection_test"
    DISTANCE = "distance"
    CLOSEST_POINTS = "closest_points"
    CONTACT = "contact"
    CCD = "ccd"


@struct.dataclass
class QueryResult:
    """Tagged result of one primitive query.

    ``value`` per kind: PointProjection, bool, float, bool, Optional[float],
    Optional[RayIntersection], bool, float, ClosestPointsResult,
    Optional[ContactRecord], Optional[TimeOfImpact].
    """
    kind: QueryResultKind = struct.field(pytree_node=False)
    value: Any = struct.field(pytree_node=False)

    def _unwrap(self, *kinds: QueryResultKind):
        if self.kind not in kinds:
            raise TypeError(f"cannot unwrap {self.kind.value} result as {'/'.join(k.value for k in kinds)}")
        return self.value

    def unwrap_project_point(self) -> PointProjection:
        return self._unwrap(QueryResultKind.PROJECT_POINT)

    def unwrap_contains_point(self) -> bool:
        return self._unwrap(QueryResultKind.CONTAINS_POINT)

    def unwrap_distance(self) -> float:
        return self._unwrap(QueryResultKind.DISTANCE, QueryResultKind.DISTANCE_TO_POINT)

    def unwrap_intersects_ray(self) -> bool:
        return self._unwrap(QueryResultKind.INTERSECTS_RAY)

    def unwrap_cast_ray(self) -> Optional[float]:
        return self._unwrap(QueryResultKind.CAST_RAY)

    def unwrap_cast_ray_and_get_normal(self) -> Optional[RayIntersection]:
        return self._unwrap(QueryResultKind.CAST_RAY_AND_GET_NORMAL)

    def unwrap_intersection_test(self) -> bool:
        return self._unwrap(QueryResultKind.INTERSECTION_TEST)

    def unwrap_closest_points(self) -> ClosestPointsResult:
        return self._unwrap(QueryResultKind.CLOSEST_POINTS)

    def unwrap_contact(self) -> Optional[ContactRecord]:
        return self._unwrap(QueryResultKind.CONTACT)

    def unwrap_ccd(self) -> Optional[TimeOfImpact]:
        return self._unwrap(QueryResultKind.CCD)

    def signed_distance(self) -> Optional[float]:
        """Separation reported by distance-like results, else None."""
        if self.kind in (QueryResultKind.DISTANCE, QueryResultKind.DISTANCE_TO_POINT):
            return float(self.value)
        elif self.kind == QueryResultKind.CLOSEST_POINTS:
            return float(self.value.distance)
        elif self.kind == QueryResultKind.CONTACT:
            return None if self.value is None else float(self.value.dist)
        return None

    def is_intersection(self) -> bool:
        if self.kind in (QueryResultKind.CONTAINS_POINT, QueryResultKind.INTERSECTS_RAY,
                         QueryResultKind.INTERSECTION_TEST):
            return bool(self.value)
        elif self.kind == QueryResultKind.PROJECT_POINT:
            return self.value.is_inside
        elif self.kind in (QueryResultKind.CAST_RAY, QueryResultKind.CAST_RAY_AND_GET_NORMAL, QueryResultKind.CCD):
            return self.value is not None
        elif self.kind == QueryResultKind.CLOSEST_POINTS:
            return self.value.status == ClosestPointsStatus.INTERSECTING
        distance = self.signed_distance()
        return distance is not None and distance <= 0.0


class _ConditionKind(enum.Enum):
    NONE = "none"
    LOG_ALL = "log_all"
    INTERSECTION = "intersection"
    BELOW_MIN_DISTANCE = "below_min_distance"


def _below(result: QueryResult, min_distance: float) -> bool:
    distance = result.signed_distance()
    return distance is not None and distance < min_distance


@struct.dataclass
class StopCondition:
    """When to stop evaluating further primitive queries."""
    kind: _ConditionKind = struct.field(pytree_node=False)
    min_distance: float = struct.field(pytree_node=False, default=0.0)

    @classmethod
    def none(cls) -> "StopCondition":
        return cls(kind=_ConditionKind.NONE)

    @classmethod
    def intersection(cls) -> "StopCondition":
        return cls(kind=_ConditionKind.INTERSECTION)

    @classmethod
    def below_min_distance(cls, min_distance: float) -> "StopCondition":
        return cls(kind=_ConditionKind.BELOW_MIN_DISTANCE, min_distance=float(min_distance))

    def should_stop(self, result: QueryResult) -> bool:
        if self.kind == _ConditionKind.INTERSECTION:
            return result.is_intersection()
        elif self.kind == _ConditionKind.BELOW_MIN_DISTANCE:
            return _below(result, self.min_distance)
        return False


@struct.dataclass
class LogCondition:
    """Which primitive outputs are kept in the group output."""
    kind: _ConditionKind = struct.field(pytree_node=False)
    min_distance: float = struct.field(pytree_node=False, default=0.0)

    @classmethod
    def log_all(cls) -> "LogCondition":
        return cls(kind=_ConditionKind.LOG_ALL)

    @classmethod
    def log_intersections(cls) -> "LogCondition":
        return cls(kind=_ConditionKind.INTERSECTION)

    @classmethod
    def below_min_distance(cls, min_distance: float) -> "LogCondition":
        return cls(kind=_ConditionKind.BELOW_MIN_DISTANCE, min_distance=float(min_distance))

    def should_log(self, result: QueryResult) -> bool:
        if self.kind == _ConditionKind.INTERSECTION:
            return result.is_intersection()
        elif self.kind == _ConditionKind.BELOW_MIN_DISTANCE:
            return _below(result, self.min_distance)
        return True


@struct.dataclass
class QueryOutput:
    signatures: Tuple[Any, ...] = struct.field(pytree_node=False)
    result: QueryResult = struct.field(pytree_node=False)


class QueryGroupOutput:
    """Outputs of one collection query plus aggregate statistics.

    ``num_queries``, ``intersection_found`` and ``minimum_distance`` cover
    every primitive query evaluated, including outputs the log condition
    filtered out. ``minimum_distance`` is ``inf`` when no distance-like
    result was produced.
    """

    def __init__(self):
        self.outputs: List[QueryOutput] = []
        self.num_queries = 0
        self.intersection_found = False
        self.minimum_distance = math.inf
        self.duration = 0.0

    def record(self, output: QueryOutput, log_condition: LogCondition) -> None:
        self.num_queries += 1
        if output.result.is_intersection():
            self.intersection_found = True
        distance = output.result.signed_distance()
        if distance is not None and distance < self.minimum_distance:
            self.minimum_distance = distance
        if log_condition.should_log(output.result):
            self.outputs.append(output)

    def sort_by_distance(self) -> None:
        """Order outputs by increasing signed distance; results without one go last."""
        def key(output: QueryOutput):
            distance = output.result.signed_distance()
            return (distance is None, distance if distance is not None else 0.0)
        self.outputs.sort(key=key)

    def __len__(self) -> int:
        return len(self.outputs)
