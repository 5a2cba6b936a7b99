"""Collision geometry: shape collections, preprocessing and query dispatch."""

from .engine import GeometricQueryEngine, SphereQueryEngine
from .module import RobotGeometricShapeModule, load_or_build
from .queries import (
    CCD,
    CastRay,
    CastRayAndGetNormal,
    ClosestPoints,
    ClosestPointsResult,
    ClosestPointsStatus,
    ContactRecord,
    ContainsPoint,
    Contact,
    Distance,
    DistanceToPoint,
    IntersectionTest,
    IntersectsRay,
    LogCondition,
    PointProjection,
    ProjectPoint,
    QueryGroupOutput,
    QueryOutput,
    QueryResult,
    QueryResultKind,
    Ray,
    RayIntersection,
    StopCondition,
    TimeOfImpact,
)
from .robot_shapes import (
    RobotCCD,
    RobotCastRay,
    RobotCastRayAndGetNormal,
    RobotClosestPoints,
    RobotContact,
    RobotContainsPoint,
    RobotDistance,
    RobotDistanceToPoint,
    RobotIntersectionTest,
    RobotIntersectsRay,
    RobotLinkShapeRepresentation,
    RobotProjectPoint,
    RobotShapeCollection,
    preprocess,
)
from .shapes import GeometricShape, ShapeCollection, ShapeCollectionInputPoses, ShapeSignature, Sphere
from .sources import JointStateSampler, ShapeSource, StateSampler, UrdfCollisionShapeSource

__all__ = [
    "CCD",
    "CastRay",
    "CastRayAndGetNormal",
    "ClosestPoints",
    "ClosestPointsResult",
    "ClosestPointsStatus",
    "ContactRecord",
    "ContainsPoint",
    "Contact",
    "Distance",
    "DistanceToPoint",
    "GeometricQueryEngine",
    "GeometricShape",
    "IntersectionTest",
    "IntersectsRay",
    "JointStateSampler",
    "LogCondition",
    "PointProjection",
    "ProjectPoint",
    "QueryGroupOutput",
    "QueryOutput",
    "QueryResult",
    "QueryResultKind",
    "Ray",
    "RayIntersection",
    "RobotCCD",
    "RobotCastRay",
    "RobotCastRayAndGetNormal",
    "RobotClosestPoints",
    "RobotContact",
    "RobotContainsPoint",
    "RobotDistance",
    "RobotDistanceToPoint",
    "RobotGeometricShapeModule",
    "RobotIntersectionTest",
    "RobotIntersectsRay",
    "RobotLinkShapeRepresentation",
    "RobotProjectPoint",
    "RobotShapeCollection",
    "ShapeCollection",
    "ShapeCollectionInputPoses",
    "ShapeSignature",
    "ShapeSource",
    "Sphere",
    "SphereQueryEngine",
    "StateSampler",
    "StopCondition",
    "TimeOfImpact",
    "UrdfCollisionShapeSource",
    "load_or_build",
    "preprocess",
]
