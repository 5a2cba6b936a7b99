"""Primitive geometric query engines.

:class:`GeometricQueryEngine` is the interface the shape collection delegates
to: one method per primitive query, each taking local geometry handles and
their world poses and returning a :class:`QueryResult`.
:class:`SphereQueryEngine` implements it exactly for :class:`Sphere` handles.
"""

import math
from typing import Optional, Protocol

import numpy as np

from .queries import (
    ClosestPointsResult,
    ClosestPointsStatus,
    ContactRecord,
    PointProjection,
    QueryResult,
    QueryResultKind,
    Ray,
    RayIntersection,
    TimeOfImpact,
)
from .shapes import Sphere
from ..transforms import SE3Pose

_FALLBACK_NORMAL = np.array([0.0, 0.0, 1.0])


class GeometricQueryEngine(Protocol):
    def project_point(self, shape, pose: SE3Pose, point, solid: bool) -> QueryResult: ...

    def contains_point(self, shape, pose: SE3Pose, point) -> QueryResult: ...

    def distance_to_point(self, shape, pose: SE3Pose, point, solid: bool) -> QueryResult: ...

    def intersects_ray(self, shape, pose: SE3Pose, ray: Ray, max_toi: float) -> QueryResult: ...

    def cast_ray(self, shape, pose: SE3Pose, ray: Ray, max_toi: float, solid: bool) -> QueryResult: ...

    def cast_ray_and_get_normal(self, shape, pose: SE3Pose, ray: Ray, max_toi: float,
                                solid: bool) -> QueryResult: ...

    def intersection_test(self, shape1, pose1: SE3Pose, shape2, pose2: SE3Pose) -> QueryResult: ...

    def distance(self, shape1, pose1: SE3Pose, shape2, pose2: SE3Pose) -> QueryResult: ...

    def closest_points(self, shape1, pose1: SE3Pose, shape2, pose2: SE3Pose, max_dis: float) -> QueryResult: ...

    def contact(self, shape1, pose1: SE3Pose, shape2, pose2: SE3Pose, prediction: float) -> QueryResult: ...

    def ccd(self, shape1, pose1_t1: SE3Pose, pose1_t2: SE3Pose,
            shape2, pose2_t1: SE3Pose, pose2_t2: SE3Pose) -> QueryResult: ...


def _center(shape: Sphere, pose: SE3Pose) -> np.ndarray:
    if not isinstance(shape, Sphere):
        raise TypeError(f"SphereQueryEngine cannot handle {type(shape).__name__}")
    return np.asarray(pose.multiply_by_point(np.asarray(shape.offset, dtype=np.float64)), dtype=np.float64)


def _direction(v: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(v)
    return v / n if n > 0.0 else _FALLBACK_NORMAL


class SphereQueryEngine:
    """Exact queries between spheres. CCD assumes the centres move linearly between the two poses."""

    # Single shape
    def project_point(self, shape, pose, point, solid=True) -> QueryResult:
        c = _center(shape, pose)
        p = np.asarray(point, dtype=np.float64)
        d = p - c
        is_inside = bool(np.linalg.norm(d) <= shape.radius)
        projected = p if (solid and is_inside) else c + shape.radius * _direction(d)
        return QueryResult(QueryResultKind.PROJECT_POINT, PointProjection(point=projected, is_inside=is_inside))

    def contains_point(self, shape, pose, point) -> QueryResult:
        c = _center(shape, pose)
        inside = np.linalg.norm(np.asarray(point, dtype=np.float64) - c) <= shape.radius
        return QueryResult(QueryResultKind.CONTAINS_POINT, bool(inside))

    def distance_to_point(self, shape, pose, point, solid=True) -> QueryResult:
        c = _center(shape, pose)
        d = float(np.linalg.norm(np.asarray(point, dtype=np.float64) - c) - shape.radius)
        if solid:
            d = max(d, 0.0)
        return QueryResult(QueryResultKind.DISTANCE_TO_POINT, d)

    def _ray_toi(self, shape, pose, ray: Ray, max_toi: float, solid: bool) -> Optional[float]:
        c = _center(shape, pose)
        o = np.asarray(ray.origin, dtype=np.float64)
        v = np.asarray(ray.direction, dtype=np.float64)
        oc = o - c
        a = float(v @ v)
        b = 2.0 * float(v @ oc)
        k = float(oc @ oc) - shape.radius ** 2
        if a == 0.0:
            return 0.0 if (k <= 0.0 and solid) else None

        disc = b * b - 4.0 * a * k
        if k <= 0.0:
            # Origin inside the sphere.
            toi = 0.0 if solid else (-b + math.sqrt(max(disc, 0.0))) / (2.0 * a)
        else:
            if disc < 0.0:
                return None
            toi = (-b - math.sqrt(disc)) / (2.0 * a)
            if toi < 0.0:
                return None
        return toi if toi <= max_toi else None

    def intersects_ray(self, shape, pose, ray, max_toi=math.inf) -> QueryResult:
        toi = self._ray_toi(shape, pose, ray, max_toi, solid=True)
        return QueryResult(QueryResultKind.INTERSECTS_RAY, toi is not None)

    def cast_ray(self, shape, pose, ray, max_toi=math.inf, solid=True) -> QueryResult:
        return QueryResult(QueryResultKind.CAST_RAY, self._ray_toi(shape, pose, ray, max_toi, solid))

    def cast_ray_and_get_normal(self, shape, pose, ray, max_toi=math.inf, solid=True) -> QueryResult:
        toi = self._ray_toi(shape, pose, ray, max_toi, solid)
        if toi is None:
            return QueryResult(QueryResultKind.CAST_RAY_AND_GET_NORMAL, None)
        if toi == 0.0 and solid:
            normal = np.zeros(3)
        else:
            hit = np.asarray(ray.origin, dtype=np.float64) + toi * np.asarray(ray.direction, dtype=np.float64)
            normal = _direction(hit - _center(shape, pose))
        return QueryResult(QueryResultKind.CAST_RAY_AND_GET_NORMAL, RayIntersection(toi=toi, normal=normal))

    # Pairs
    def _separation(self, shape1, pose1, shape2, pose2):
        c1, c2 = _center(shape1, pose1), _center(shape2, pose2)
        n = _direction(c2 - c1)
        return c1, c2, n, float(np.linalg.norm(c2 - c1) - shape1.radius - shape2.radius)

    def intersection_test(self, shape1, pose1, shape2, pose2) -> QueryResult:
        _, _, _, d = self._separation(shape1, pose1, shape2, pose2)
        return QueryResult(QueryResultKind.INTERSECTION_TEST, d <= 0.0)

    def distance(self, shape1, pose1, shape2, pose2) -> QueryResult:
        _, _, _, d = self._separation(shape1, pose1, shape2, pose2)
        return QueryResult(QueryResultKind.DISTANCE, d)

    def closest_points(self, shape1, pose1, shape2, pose2, max_dis: float) -> QueryResult:
        c1, c2, n, d = self._separation(shape1, pose1, shape2, pose2)
        if d <= 0.0:
            result = ClosestPointsResult(status=ClosestPointsStatus.INTERSECTING, distance=d)
        elif d <= max_dis:
            result = ClosestPointsResult(status=ClosestPointsStatus.WITHIN_MARGIN, distance=d,
                                         point1=c1 + shape1.radius * n, point2=c2 - shape2.radius * n)
        else:
            result = ClosestPointsResult(status=ClosestPointsStatus.DISJOINT, distance=d)
        return QueryResult(QueryResultKind.CLOSEST_POINTS, result)

    def contact(self, shape1, pose1, shape2, pose2, prediction: float) -> QueryResult:
        c1, c2, n, d = self._separation(shape1, pose1, shape2, pose2)
        if d > prediction:
            return QueryResult(QueryResultKind.CONTACT, None)
        record = ContactRecord(dist=d, point1=c1 + shape1.radius * n, point2=c2 - shape2.radius * n,
                               normal1=n, normal2=-n)
        return QueryResult(QueryResultKind.CONTACT, record)

    def ccd(self, shape1, pose1_t1, pose1_t2, shape2, pose2_t1, pose2_t2) -> QueryResult:
        a1, a2 = _center(shape1, pose1_t1), _center(shape1, pose1_t2)
        b1, b2 = _center(shape2, pose2_t1), _center(shape2, pose2_t2)
        reach = shape1.radius + shape2.radius

        # Relative centre position p(t) = p0 + t * dp for t in [0, 1].
        p0 = b1 - a1
        dp = (b2 - b1) - (a2 - a1)
        k = float(p0 @ p0) - reach ** 2
        if k <= 0.0:
            n = _direction(p0)
            toi = TimeOfImpact(toi=0.0, witness1=a1 + shape1.radius * n, witness2=b1 - shape2.radius * n,
                               penetrating=True)
            return QueryResult(QueryResultKind.CCD, toi)

        a = float(dp @ dp)
        b = 2.0 * float(p0 @ dp)
        disc = b * b - 4.0 * a * k
        if a == 0.0 or disc < 0.0:
            return QueryResult(QueryResultKind.CCD, None)
        t = (-b - math.sqrt(disc)) / (2.0 * a)
        if t < 0.0 or t > 1.0:
            return QueryResult(QueryResultKind.CCD, None)

        ca, cb = a1 + t * (a2 - a1), b1 + t * (b2 - b1)
        n = _direction(cb - ca)
        toi = TimeOfImpact(toi=t, witness1=ca + shape1.radius * n, witness2=cb - shape2.radius * n)
        return QueryResult(QueryResultKind.CCD, toi)
