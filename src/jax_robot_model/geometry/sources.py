"""Shape sources and joint state samplers consumed by collision preprocessing."""

import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Union

import jax
import jax.numpy as jnp
import numpy as np

from .robot_shapes import RobotLinkShapeRepresentation
from .shapes import GeometricShape, ShapeSignature, Sphere
from ..core import RobotModel, RobotState, RobotStateModel, RobotStateType
from ..io.urdf_parser import CollisionElement, parse_collision_geometry

logger = logging.getLogger(__name__)


class ShapeSource(Protocol):
    def representations(self) -> List[RobotLinkShapeRepresentation]: ...

    def get_geometric_shapes(self, representation: RobotLinkShapeRepresentation,
                             num_links: int) -> List[Optional[GeometricShape]]: ...


class StateSampler(Protocol):
    def sample(self) -> RobotState: ...


def bounding_sphere(element: CollisionElement) -> Optional[Sphere]:
    """Sphere enclosing a collision primitive, or None for geometry that cannot be bounded here."""
    if element.kind == "sphere":
        radius = element.dimensions[0]
    elif element.kind == "box":
        radius = 0.5 * math.sqrt(sum(d * d for d in element.dimensions))
    elif element.kind == "cylinder":
        r, length = element.dimensions
        radius = math.sqrt(r * r + 0.25 * length * length)
    else:
        return None
    return Sphere(radius=float(radius), offset=tuple(float(v) for v in element.origin_xyz))


def enclosing_sphere(spheres: Sequence[Sphere]) -> Sphere:
    centers = np.array([s.offset for s in spheres], dtype=np.float64)
    radii = np.array([s.radius for s in spheres], dtype=np.float64)
    lo = (centers - radii[:, None]).min(axis=0)
    hi = (centers + radii[:, None]).max(axis=0)
    center = 0.5 * (lo + hi)
    radius = float(np.max(np.linalg.norm(centers - center, axis=1) + radii))
    return Sphere(radius=radius, offset=tuple(float(v) for v in center))


class UrdfCollisionShapeSource:
    """Bounding spheres built from the ``<collision>`` primitives of a URDF.

    SPHERE_SUBCOMPONENTS gives one sphere per collision element; CUBES gives a
    single bounding volume per link enclosing all of its elements.
    """

    def __init__(self, spheres_by_link_idx: Dict[int, List[Sphere]]):
        self.spheres_by_link_idx = spheres_by_link_idx

    @classmethod
    def from_urdf(cls, urdf_path: Union[str, Path], model: RobotModel) -> "UrdfCollisionShapeSource":
        spheres_by_link_idx: Dict[int, List[Sphere]] = {}
        for link_name, elements in parse_collision_geometry(urdf_path).items():
            link_idx = model.get_link_idx_from_name(link_name)
            if link_idx is None:
                continue
            spheres = []
            for element in elements:
                sphere = bounding_sphere(element)
                if sphere is None:
                    logger.warning("No bounding sphere for %s collision on link %s", element.kind, link_name)
                    continue
                spheres.append(sphere)
            spheres_by_link_idx[link_idx] = spheres
        return cls(spheres_by_link_idx)

    def representations(self) -> List[RobotLinkShapeRepresentation]:
        return [RobotLinkShapeRepresentation.CUBES, RobotLinkShapeRepresentation.SPHERE_SUBCOMPONENTS]

    def get_geometric_shapes(self, representation: RobotLinkShapeRepresentation,
                             num_links: int) -> List[Optional[GeometricShape]]:
        out: List[Optional[GeometricShape]] = []
        if representation == RobotLinkShapeRepresentation.CUBES:
            for link_idx in range(num_links):
                spheres = self.spheres_by_link_idx.get(link_idx, [])
                if not spheres:
                    out.append(None)
                    continue
                out.append(GeometricShape(signature=ShapeSignature(link_idx, 0), geometry=enclosing_sphere(spheres)))
        elif representation == RobotLinkShapeRepresentation.SPHERE_SUBCOMPONENTS:
            for link_idx in range(num_links):
                for k, sphere in enumerate(self.spheres_by_link_idx.get(link_idx, [])):
                    out.append(GeometricShape(signature=ShapeSignature(link_idx, k), geometry=sphere))
        else:
            raise ValueError(f"URDF collision source does not provide {representation.value}")
        return out


class JointStateSampler:
    """Uniform Full states within axis bounds; fixed axes hold their fixed values."""

    def __init__(self, state_model: RobotStateModel, seed: int = 0):
        self.state_model = state_model
        self.key = jax.random.PRNGKey(seed)
        self._lower, self._upper = state_model.bounds(RobotStateType.FULL)
        self._fixed_mask, self._fixed_values = state_model.fixed_mask_and_values()

    def sample(self) -> RobotState:
        self.key, subkey = jax.random.split(self.key)
        values = jax.random.uniform(subkey, self._lower.shape, dtype=jnp.float64,
                                    minval=self._lower, maxval=self._upper)
        values = jnp.where(self._fixed_mask, self._fixed_values, values)
        return RobotState(state=values, state_type=RobotStateType.FULL)
