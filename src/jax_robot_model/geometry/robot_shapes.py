"""Robot shape collections and their statistical preprocessing.

Preprocessing draws random joint states, runs forward kinematics, queries
every pairwise distance and keeps per-pair running averages and collision
counts. Afterwards a pair is skipped when it is structurally uninteresting
(same link) or statistically uninformative (almost always colliding, or
never colliding over enough samples).
"""

import enum
import logging
import time
from typing import Any, Dict, List, Optional

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
    Ray,
    StopCondition,
)
from .shapes import ShapeCollection, ShapeCollectionInputPoses
from ..config import PreprocessingConfig
from ..errors import check_index
from ..transforms import SE3PoseType

logger = logging.getLogger(__name__)

_PROGRESS_LOG_INTERVAL = 1000


class RobotLinkShapeRepresentation(enum.Enum):
    CUBES = "cubes"
    CONVEX_SHAPES = "convex_shapes"
    SPHERE_SUBCOMPONENTS = "sphere_subcomponents"
    CUBE_SUBCOMPONENTS = "cube_subcomponents"
    CONVEX_SHAPE_SUBCOMPONENTS = "convex_shape_subcomponents"
    TRIANGLE_MESHES = "triangle_meshes"


class RobotShapeCollection:
    """One representation scheme's shape collection plus its link -> shape index map."""

    def __init__(self, num_links: int, representation: RobotLinkShapeRepresentation,
                 shape_collection: ShapeCollection):
        self.num_links = num_links
        self.representation = representation
        self.shape_collection = shape_collection
        self.link_idx_to_shape_idxs_mapping: List[List[int]] = [[] for _ in range(num_links)]
        for i, shape in enumerate(shape_collection.shapes):
            link_idx = shape.signature.link_idx
            check_index(link_idx, num_links, "shape link index")
            self.link_idx_to_shape_idxs_mapping[link_idx].append(i)

    def get_shape_idxs_from_link_idx(self, link_idx: int) -> List[int]:
        check_index(link_idx, self.num_links, "link index")
        return self.link_idx_to_shape_idxs_mapping[link_idx]

    def recover_poses(self, fk_result) -> ShapeCollectionInputPoses:
        """Give every shape the world pose of its link.

        Links without a pose (not present) leave their shapes unposed. Links
        beyond ``num_links`` (a synthetic mobility base) carry no shapes.
        """
        poses = ShapeCollectionInputPoses(len(self.shape_collection))
        for entry in fk_result.link_entries:
            if entry.pose is None or entry.link_idx >= self.num_links:
                continue
            for shape_idx in self.link_idx_to_shape_idxs_mapping[entry.link_idx]:
                poses.set_pose(shape_idx, entry.pose)
        return poses

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_links": self.num_links,
            "representation": self.representation.value,
            "shape_collection": self.shape_collection.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RobotShapeCollection":
        return cls(num_links=int(d["num_links"]),
                   representation=RobotLinkShapeRepresentation(d["representation"]),
                   shape_collection=ShapeCollection.from_dict(d["shape_collection"]))


# Robot-level requests: joint states instead of pose tables.

@struct.dataclass
class RobotProjectPoint:
    state: Any = struct.field(pytree_node=False)
    point: np.ndarray
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class RobotContainsPoint:
    state: Any = struct.field(pytree_node=False)
    point: np.ndarray


@struct.dataclass
class RobotDistanceToPoint:
    state: Any = struct.field(pytree_node=False)
    point: np.ndarray
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class RobotIntersectsRay:
    state: Any = struct.field(pytree_node=False)
    ray: Ray
    max_toi: float = struct.field(pytree_node=False, default=float("inf"))


@struct.dataclass
class RobotCastRay:
    state: Any = struct.field(pytree_node=False)
    ray: Ray
    max_toi: float = struct.field(pytree_node=False, default=float("inf"))
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class RobotCastRayAndGetNormal:
    state: Any = struct.field(pytree_node=False)
    ray: Ray
    max_toi: float = struct.field(pytree_node=False, default=float("inf"))
    solid: bool = struct.field(pytree_node=False, default=True)


@struct.dataclass
class RobotIntersectionTest:
    state: Any = struct.field(pytree_node=False)


@struct.dataclass
class RobotDistance:
    state: Any = struct.field(pytree_node=False)


@struct.dataclass
class RobotClosestPoints:
    state: Any = struct.field(pytree_node=False)
    max_dis: float = struct.field(pytree_node=False)


@struct.dataclass
class RobotContact:
    state: Any = struct.field(pytree_node=False)
    prediction: float = struct.field(pytree_node=False)


@struct.dataclass
class RobotCCD:
    state_t1: Any = struct.field(pytree_node=False)
    state_t2: Any = struct.field(pytree_node=False)


def resolve_robot_query(request, collection: RobotShapeCollection, kinematics):
    """Run forward kinematics for ``request`` and build the matching collection-level query."""
    def poses(state) -> ShapeCollectionInputPoses:
        return collection.recover_poses(kinematics.compute_fk(state, SE3PoseType.IMPLICIT_DUAL_QUATERNION))

    if isinstance(request, RobotCCD):
        return CCD(poses_t1=poses(request.state_t1), poses_t2=poses(request.state_t2))
    elif isinstance(request, RobotProjectPoint):
        return ProjectPoint(poses=poses(request.state), point=request.point, solid=request.solid)
    elif isinstance(request, RobotContainsPoint):
        return ContainsPoint(poses=poses(request.state), point=request.point)
    elif isinstance(request, RobotDistanceToPoint):
        return DistanceToPoint(poses=poses(request.state), point=request.point, solid=request.solid)
    elif isinstance(request, RobotIntersectsRay):
        return IntersectsRay(poses=poses(request.state), ray=request.ray, max_toi=request.max_toi)
    elif isinstance(request, RobotCastRay):
        return CastRay(poses=poses(request.state), ray=request.ray, max_toi=request.max_toi, solid=request.solid)
    elif isinstance(request, RobotCastRayAndGetNormal):
        return CastRayAndGetNormal(poses=poses(request.state), ray=request.ray, max_toi=request.max_toi,
                                   solid=request.solid)
    elif isinstance(request, RobotIntersectionTest):
        return IntersectionTest(poses=poses(request.state))
    elif isinstance(request, RobotDistance):
        return Distance(poses=poses(request.state))
    elif isinstance(request, RobotClosestPoints):
        return ClosestPoints(poses=poses(request.state), max_dis=request.max_dis)
    elif isinstance(request, RobotContact):
        return Contact(poses=poses(request.state), prediction=request.prediction)
    raise TypeError(f"unsupported robot query {type(request).__name__}")


def preprocess(representation: RobotLinkShapeRepresentation, shape_source, kinematics, sampler, engine,
               config: Optional[PreprocessingConfig] = None) -> RobotShapeCollection:
    """Build a shape collection and classify its pairs by random sampling.

    Args:
        representation: Shape representation scheme to preprocess.
        shape_source: Provides the shapes of each link for ``representation``.
        kinematics: RobotKinematics of the unconfigured robot model.
        sampler: Produces random joint states.
        engine: Primitive query engine used for pairwise distances.
        config: Sampling policy and thresholds.

    Returns:
        RobotShapeCollection with symmetric skip and average distance matrices.
    """
    config = config or PreprocessingConfig()
    start = time.perf_counter()
    num_links = len(kinematics.model.links)
    budget = config.time_budget(representation.value)

    collection = ShapeCollection()
    for shape in shape_source.get_geometric_shapes(representation, num_links):
        if shape is not None:
            collection.add_geometric_shape(shape)
    robot_collection = RobotShapeCollection(num_links, representation, collection)

    n = len(collection)
    average_distances = np.zeros((n, n))
    pair_counts = np.zeros((n, n), dtype=np.int64)
    collision_counts = np.zeros((n, n), dtype=np.int64)
    logger.info("Preprocessing %s for %s: %d shapes, budget %.1fs",
                representation.value, kinematics.model.robot_name, n, budget)

    num_samples = 0
    while num_samples < config.max_samples:
        fk_result = kinematics.compute_fk(sampler.sample(), SE3PoseType.IMPLICIT_DUAL_QUATERNION)
        poses = robot_collection.recover_poses(fk_result)
        group = collection.shape_collection_query(Distance(poses=poses), engine,
                                                  StopCondition.none(), LogCondition.log_all())
        for output in group.outputs:
            i = collection.get_shape_idx_from_signature(output.signatures[0])
            j = collection.get_shape_idx_from_signature(output.signatures[1])
            d = output.result.unwrap_distance()
            pair_counts[i, j] += 1
            average_distances[i, j] += (d - average_distances[i, j]) / pair_counts[i, j]
            if d <= 0.0:
                collision_counts[i, j] += 1
        num_samples += 1

        if num_samples % _PROGRESS_LOG_INTERVAL == 0:
            logger.debug("%s: %d samples after %.1fs", representation.value, num_samples,
                         time.perf_counter() - start)
        if time.perf_counter() - start > budget and num_samples >= config.min_samples:
            break

    for i in range(n):
        for j in range(i + 1, n):
            collection.replace_average_distance_from_idxs(average_distances[i, j], i, j)
            ratio = collision_counts[i, j] / pair_counts[i, j] if pair_counts[i, j] > 0 else 0.0
            same_link = collection.shapes[i].signature.link_idx == collection.shapes[j].signature.link_idx
            always_colliding = num_samples >= config.min_samples and ratio > config.always_colliding_ratio
            never_colliding = num_samples >= config.never_colliding_min_samples and ratio == 0.0
            collection.replace_skip_from_idxs(same_link or always_colliding or never_colliding, i, j)

    logger.info("Preprocessed %s for %s: %d samples in %.1fs, %d of %d pairs skipped",
                representation.value, kinematics.model.robot_name, num_samples, time.perf_counter() - start,
                int(np.triu(collection.skips, k=1).sum()), n * (n - 1) // 2)
    return robot_collection
