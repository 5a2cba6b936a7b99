"""Collision shapes, shape collections and per-shape pose tables.

A :class:`ShapeCollection` owns an ordered list of shapes plus two symmetric
pairwise matrices: ``skips`` (never query this pair) and
``average_distances`` (mean signed distance seen during preprocessing). The
diagonal of ``skips`` is always True.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from flax import struct

from .queries import (
    CCD,
    CastRay,
    CastRayAndGetNormal,
    ClosestPoints,
    ContainsPoint,
    Contact,
    Distance,
    DistanceToPoint,
    IntersectionTest,
    IntersectsRay,
    LogCondition,
    ProjectPoint,
    QueryGroupOutput,
    QueryOutput,
    StopCondition,
)
from ..errors import UnknownShapeSignature, check_index
from ..transforms import SE3Pose

logger = logging.getLogger(__name__)

_SUPPORTED_QUERIES = (CCD, ProjectPoint, ContainsPoint, DistanceToPoint, IntersectsRay, CastRay, CastRayAndGetNormal,
                      IntersectionTest, Distance, ClosestPoints, Contact)


@struct.dataclass
class ShapeSignature:
    """Identifies what a shape represents: a sub-shape of a robot link."""
    link_idx: int = struct.field(pytree_node=False)
    shape_idx_in_link: int = struct.field(pytree_node=False)

    def to_dict(self) -> Dict[str, int]:
        return {"link_idx": self.link_idx, "shape_idx_in_link": self.shape_idx_in_link}

    @classmethod
    def from_dict(cls, d: Dict[str, int]) -> "ShapeSignature":
        return cls(link_idx=int(d["link_idx"]), shape_idx_in_link=int(d["shape_idx_in_link"]))


@struct.dataclass
class Sphere:
    """Sphere of ``radius`` centred at ``offset`` in the owning link's frame."""
    radius: float = struct.field(pytree_node=False)
    offset: Tuple[float, float, float] = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "sphere", "radius": self.radius, "offset": list(self.offset)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Sphere":
        return cls(radius=float(d["radius"]), offset=tuple(float(v) for v in d["offset"]))


_GEOMETRY_TYPES = {"sphere": Sphere}


def geometry_from_dict(d: Dict[str, Any]):
    if d.get("type") not in _GEOMETRY_TYPES:
        raise ValueError(f"unknown geometry type {d.get('type')!r}")
    return _GEOMETRY_TYPES[d["type"]].from_dict(d)


@struct.dataclass
class GeometricShape:
    """A shape signature paired with its local geometry handle."""
    signature: ShapeSignature = struct.field(pytree_node=False)
    geometry: Any = struct.field(pytree_node=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"signature": self.signature.to_dict(), "geometry": self.geometry.to_dict()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GeometricShape":
        return cls(signature=ShapeSignature.from_dict(d["signature"]), geometry=geometry_from_dict(d["geometry"]))


class ShapeCollectionInputPoses:
    """World pose per shape of a collection; shapes without a pose are left out of queries."""

    def __init__(self, num_shapes: int):
        self.poses: List[Optional[SE3Pose]] = [None] * num_shapes

    def __len__(self) -> int:
        return len(self.poses)

    def set_pose(self, shape_idx: int, pose: SE3Pose) -> None:
        check_index(shape_idx, len(self.poses), "shape index")
        self.poses[shape_idx] = pose

    def get_pose(self, shape_idx: int) -> Optional[SE3Pose]:
        check_index(shape_idx, len(self.poses), "shape index")
        return self.poses[shape_idx]


class ShapeCollection:
    def __init__(self):
        self.shapes: List[GeometricShape] = []
        self.skips = np.zeros((0, 0), dtype=bool)
        self.average_distances = np.zeros((0, 0), dtype=np.float64)
        self._signature_to_idx: Dict[ShapeSignature, int] = {}

    def __len__(self) -> int:
        return len(self.shapes)

    def add_geometric_shape(self, shape: GeometricShape) -> int:
        """Append a shape; it starts out unskipped against every other shape."""
        if shape.signature in self._signature_to_idx:
            raise ValueError(f"duplicate shape signature {shape.signature}")
        n = len(self.shapes)
        self.shapes.append(shape)
        self._signature_to_idx[shape.signature] = n

        skips = np.zeros((n + 1, n + 1), dtype=bool)
        skips[:n, :n] = self.skips
        skips[n, n] = True
        distances = np.zeros((n + 1, n + 1), dtype=np.float64)
        distances[:n, :n] = self.average_distances
        self.skips, self.average_distances = skips, distances
        return n

    def get_shape_idx_from_signature(self, signature: ShapeSignature) -> int:
        if signature not in self._signature_to_idx:
            raise UnknownShapeSignature(f"signature {signature} is not part of the shape collection")
        return self._signature_to_idx[signature]

    def _check_pair(self, i: int, j: int) -> None:
        check_index(i, len(self.shapes), "shape index")
        check_index(j, len(self.shapes), "shape index")

    def replace_skip_from_idxs(self, skip: bool, i: int, j: int) -> None:
        self._check_pair(i, j)
        if i == j:
            return
        self.skips[i, j] = self.skips[j, i] = bool(skip)

    def replace_average_distance_from_idxs(self, distance: float, i: int, j: int) -> None:
        self._check_pair(i, j)
        self.average_distances[i, j] = self.average_distances[j, i] = float(distance)

    def replace_skip_from_signatures(self, skip: bool, a: ShapeSignature, b: ShapeSignature) -> None:
        self.replace_skip_from_idxs(skip, self.get_shape_idx_from_signature(a), self.get_shape_idx_from_signature(b))

    def skip(self, i: int, j: int) -> bool:
        self._check_pair(i, j)
        return bool(self.skips[i, j])

    def average_distance(self, i: int, j: int) -> float:
        self._check_pair(i, j)
        return float(self.average_distances[i, j])

    def _check_poses(self, poses: ShapeCollectionInputPoses) -> None:
        if len(poses) != len(self.shapes):
            raise ValueError(f"pose table has {len(poses)} entries for {len(self.shapes)} shapes")

    def _single_shape_idxs(self, poses: ShapeCollectionInputPoses) -> List[int]:
        return [i for i in range(len(self.shapes)) if poses.poses[i] is not None]

    def _pair_idxs(self, *pose_tables: ShapeCollectionInputPoses) -> List[Tuple[int, int]]:
        n = len(self.shapes)
        return [
            (i, j)
            for i in range(n) for j in range(i + 1, n)
            if not self.skips[i, j] and all(p.poses[i] is not None and p.poses[j] is not None for p in pose_tables)
        ]

    def shape_collection_query(self, query, engine,
                               stop_condition: Optional[StopCondition] = None,
                               log_condition: Optional[LogCondition] = None,
                               sort_outputs: bool = False) -> QueryGroupOutput:
        """Run ``query`` over the collection through a primitive ``engine``.

        Single-shape queries visit every shape that has a pose. Pairwise
        queries visit unordered pairs i < j that are not skipped and whose
        shapes both have poses.
        """
        stop_condition = stop_condition or StopCondition.none()
        log_condition = log_condition or LogCondition.log_all()
        start = time.perf_counter()
        group = QueryGroupOutput()

        for shape_idxs, evaluate in self._query_plan(query, engine):
            result = evaluate()
            signatures = tuple(self.shapes[i].signature for i in shape_idxs)
            group.record(QueryOutput(signatures=signatures, result=result), log_condition)
            if stop_condition.should_stop(result):
                break

        group.duration = time.perf_counter() - start
        logger.debug("%s over %d shapes: %d queries, %d outputs in %.2f ms", type(query).__name__,
                     len(self.shapes), group.num_queries, len(group.outputs), 1e3 * group.duration)
        if sort_outputs:
            group.sort_by_distance()
        return group

    def _query_plan(self, query, engine):
        """Yield (shape idxs, thunk) per primitive query ``query`` expands to."""
        shapes = self.shapes
        if not isinstance(query, _SUPPORTED_QUERIES):
            raise TypeError(f"unsupported shape collection query {type(query).__name__}")

        if isinstance(query, CCD):
            self._check_poses(query.poses_t1)
            self._check_poses(query.poses_t2)
            t1, t2 = query.poses_t1.poses, query.poses_t2.poses
            for i, j in self._pair_idxs(query.poses_t1, query.poses_t2):
                yield (i, j), (lambda i=i, j=j: engine.ccd(shapes[i].geometry, t1[i], t2[i],
                                                             shapes[j].geometry, t1[j], t2[j]))
            return

        self._check_poses(query.poses)
        poses = query.poses.poses

        if isinstance(query, ProjectPoint):
            for i in self._single_shape_idxs(query.poses):
                yield (i,), (lambda i=i: engine.project_point(shapes[i].geometry, poses[i], query.point, query.solid))
        elif isinstance(query, ContainsPoint):
            for i in self._single_shape_idxs(query.poses):
                yield (i,), (lambda i=i: engine.contains_point(shapes[i].geometry, poses[i], query.point))
        elif isinstance(query, DistanceToPoint):
            for i in self._single_shape_idxs(query.poses):
                yield (i,), (lambda i=i: engine.distance_to_point(shapes[i].geometry, poses[i], query.point,
                                                                   query.solid))
        elif isinstance(query, IntersectsRay):
            for i in self._single_shape_idxs(query.poses):
                yield (i,), (lambda i=i: engine.intersects_ray(shapes[i].geometry, poses[i], query.ray,
                                                                query.max_toi))
        elif isinstance(query, CastRay):
            for i in self._single_shape_idxs(query.poses):
                yield (i,), (lambda i=i: engine.cast_ray(shapes[i].geometry, poses[i], query.ray, query.max_toi,
                                                          query.solid))
        elif isinstance(query, CastRayAndGetNormal):
            for i in self._single_shape_idxs(query.poses):
                yield (i,), (lambda i=i: engine.cast_ray_and_get_normal(shapes[i].geometry, poses[i], query.ray,
                                                                         query.max_toi, query.solid))
        elif isinstance(query, IntersectionTest):
            for i, j in self._pair_idxs(query.poses):
                yield (i, j), (lambda i=i, j=j: engine.intersection_test(shapes[i].geometry, poses[i],
                                                                           shapes[j].geometry, poses[j]))
        elif isinstance(query, Distance):
            for i, j in self._pair_idxs(query.poses):
                yield (i, j), (lambda i=i, j=j: engine.distance(shapes[i].geometry, poses[i],
                                                                  shapes[j].geometry, poses[j]))
        elif isinstance(query, ClosestPoints):
            for i, j in self._pair_idxs(query.poses):
                yield (i, j), (lambda i=i, j=j: engine.closest_points(shapes[i].geometry, poses[i],
                                                                        shapes[j].geometry, poses[j], query.max_dis))
        elif isinstance(query, Contact):
            for i, j in self._pair_idxs(query.poses):
                yield (i, j), (lambda i=i, j=j: engine.contact(shapes[i].geometry, poses[i],
                                                                 shapes[j].geometry, poses[j], query.prediction))

    # Persistence
    def to_dict(self) -> Dict[str, Any]:
        return {
            "shapes": [s.to_dict() for s in self.shapes],
            "skips": self.skips.tolist(),
            "average_distances": self.average_distances.tolist(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ShapeCollection":
        collection = cls()
        for s in d["shapes"]:
            collection.add_geometric_shape(GeometricShape.from_dict(s))
        n = len(collection.shapes)
        skips = np.asarray(d["skips"], dtype=bool).reshape(n, n)
        distances = np.asarray(d["average_distances"], dtype=np.float64).reshape(n, n)
        if not (np.array_equal(skips, skips.T) and np.array_equal(distances, distances.T)):
            raise ValueError("skip and average distance matrices must be symmetric")
        np.fill_diagonal(skips, True)
        collection.skips, collection.average_distances = skips, distances
        return collection
