"""Link, joint and joint-axis records of the kinematic graph.

Records are immutable; the graph in :mod:`.robot_model` replaces them with
``.replace(...)`` when presence flags or fixed values change. Links and joints
refer to each other by dense integer index only.
"""

import enum
import math
from typing import Optional, Tuple

from flax import struct

from ..errors import check_index

Vector3 = Tuple[float, float, float]

CONTINUOUS_JOINT_BOUNDS = (-2.0 * math.pi, 2.0 * math.pi)
MOBILITY_TRANSLATION_BOUNDS = (-10.0, 10.0)
MOBILITY_ROTATION_BOUNDS = (-2.0 * math.pi, 2.0 * math.pi)


class JointAxisPrimitive(enum.Enum):
    ROTATION = "rotation"
    TRANSLATION = "translation"


class MobilityMode(enum.Enum):
    """Degrees of freedom given to a synthetic base inserted ahead of the root link."""
    STATIC = "static"
    PLANAR_TRANSLATION = "planar_translation"
    PLANAR = "planar"
    FULL = "full"


@struct.dataclass
class RawLink:
    """A link as read from a kinematic description."""
    name: str = struct.field(pytree_node=False)


@struct.dataclass
class RawJoint:
    """A joint as read from a kinematic description.

    Attributes:
        joint_type: One of ``fixed``, ``revolute``, ``continuous``, ``prismatic``,
                    ``floating`` or ``planar``.
        origin_xyz: Translation from the parent link frame to the joint frame.
        origin_rpy: Roll, pitch, yaw of the joint frame (R = Rz @ Ry @ Rx).
        axis: Axis of motion in the joint frame.
        lower: Lower limit. Ignored for fixed, continuous and floating joints.
        upper: Upper limit.
    """
    name: str = struct.field(pytree_node=False)
    joint_type: str = struct.field(pytree_node=False)
    parent_link: str = struct.field(pytree_node=False)
    child_link: str = struct.field(pytree_node=False)
    origin_xyz: Vector3 = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))
    origin_rpy: Vector3 = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))
    axis: Vector3 = struct.field(pytree_node=False, default=(1.0, 0.0, 0.0))
    lower: float = struct.field(pytree_node=False, default=0.0)
    upper: float = struct.field(pytree_node=False, default=0.0)


@struct.dataclass
class JointAxis:
    """A single scalar degree of freedom of a joint.

    A fixed axis always contributes its ``fixed_value`` to the Full state and
    is absent from the DOF state.
    """
    joint_idx: int = struct.field(pytree_node=False)
    joint_sub_dof_idx: int = struct.field(pytree_node=False)
    primitive: JointAxisPrimitive = struct.field(pytree_node=False)
    axis: Vector3 = struct.field(pytree_node=False)
    bounds: Tuple[float, float] = struct.field(pytree_node=False)
    fixed_value: Optional[float] = struct.field(pytree_node=False, default=None)

    @property
    def is_fixed(self) -> bool:
        return self.fixed_value is not None


@struct.dataclass
class Link:
    name: str = struct.field(pytree_node=False)
    idx: int = struct.field(pytree_node=False)
    present: bool = struct.field(pytree_node=False, default=True)
    preceding_link_idx: Optional[int] = struct.field(pytree_node=False, default=None)
    preceding_joint_idx: Optional[int] = struct.field(pytree_node=False, default=None)
    children_link_idxs: Tuple[int, ...] = struct.field(pytree_node=False, default=())

    def summary(self) -> str:
        return (f"link {self.idx} {self.name!r}: present={self.present}, "
                f"preceding link={self.preceding_link_idx}, preceding joint={self.preceding_joint_idx}, "
                f"children={list(self.children_link_idxs)}")


@struct.dataclass
class Joint:
    """A joint connecting a parent link to a child link.

    The transform from parent to child frame is the origin pose followed by
    the motion of each axis, in axis order.
    """
    name: str = struct.field(pytree_node=False)
    idx: int = struct.field(pytree_node=False)
    joint_type: str = struct.field(pytree_node=False)
    preceding_link_idx: Optional[int] = struct.field(pytree_node=False)
    child_link_idx: Optional[int] = struct.field(pytree_node=False)
    origin_xyz: Vector3 = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))
    origin_rpy: Vector3 = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))
    axes: Tuple[JointAxis, ...] = struct.field(pytree_node=False, default=())
    present: bool = struct.field(pytree_node=False, default=True)

    @property
    def num_axes(self) -> int:
        return len(self.axes)

    @property
    def num_dofs(self) -> int:
        """Number of free (non-fixed) axes."""
        return sum(1 for a in self.axes if not a.is_fixed)

    def with_fixed_sub_dof(self, sub_idx: int, fixed_value: Optional[float]) -> "Joint":
        check_index(sub_idx, len(self.axes), "joint sub-dof index")
        axes = list(self.axes)
        axes[sub_idx] = axes[sub_idx].replace(fixed_value=None if fixed_value is None else float(fixed_value))
        return self.replace(axes=tuple(axes))

    def summary(self) -> str:
        return (f"joint {self.idx} {self.name!r} ({self.joint_type}): present={self.present}, "
                f"parent link={self.preceding_link_idx}, child link={self.child_link_idx}, "
                f"axes={self.num_axes}, dofs={self.num_dofs}")


def _unit(v) -> Vector3:
    n = math.sqrt(sum(float(x) * float(x) for x in v))
    if n == 0.0:
        raise ValueError("joint axis must be non-zero")
    return tuple(float(x) / n for x in v)


def _perpendicular_pair(normal: Vector3) -> Tuple[Vector3, Vector3]:
    """Two unit vectors spanning the plane orthogonal to ``normal``."""
    nx, ny, nz = normal
    helper = (1.0, 0.0, 0.0) if abs(nx) < 0.9 else (0.0, 1.0, 0.0)
    # u = helper x n, v = n x u
    u = _unit((helper[1] * nz - helper[2] * ny, helper[2] * nx - helper[0] * nz, helper[0] * ny - helper[1] * nx))
    v = (ny * u[2] - nz * u[1], nz * u[0] - nx * u[2], nx * u[1] - ny * u[0])
    return u, v


def make_joint_axes(joint_idx: int, joint_type: str, axis: Vector3, lower: float, upper: float) -> Tuple[JointAxis, ...]:
    """Axes for a description joint type.

    Raises:
        ValueError: if the joint type is not recognised.
    """
    def _axis(sub, primitive, direction, bounds):
        return JointAxis(joint_idx=joint_idx, joint_sub_dof_idx=sub, primitive=primitive,
                         axis=direction, bounds=(float(bounds[0]), float(bounds[1])))

    rotation, translation = JointAxisPrimitive.ROTATION, JointAxisPrimitive.TRANSLATION
    x, y, z = (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)

    if joint_type == "fixed":
        return ()
    elif joint_type == "revolute":
        return (_axis(0, rotation, _unit(axis), (lower, upper)),)
    elif joint_type == "continuous":
        return (_axis(0, rotation, _unit(axis), CONTINUOUS_JOINT_BOUNDS),)
    elif joint_type == "prismatic":
        return (_axis(0, translation, _unit(axis), (lower, upper)),)
    elif joint_type == "planar":
        normal = _unit(axis)
        u, v = _perpendicular_pair(normal)
        return (_axis(0, translation, u, MOBILITY_TRANSLATION_BOUNDS),
                _axis(1, translation, v, MOBILITY_TRANSLATION_BOUNDS),
                _axis(2, rotation, normal, MOBILITY_ROTATION_BOUNDS))
    elif joint_type == "floating":
        return tuple(
            [_axis(i, translation, d, MOBILITY_TRANSLATION_BOUNDS) for i, d in enumerate((x, y, z))]
            + [_axis(3 + i, rotation, d, MOBILITY_ROTATION_BOUNDS) for i, d in enumerate((x, y, z))]
        )
    raise ValueError(f"unsupported joint type {joint_type!r}")


def make_mobility_axes(joint_idx: int, mode: MobilityMode) -> Tuple[JointAxis, ...]:
    x, y, z = (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)
    translation, rotation = JointAxisPrimitive.TRANSLATION, JointAxisPrimitive.ROTATION

    if mode == MobilityMode.STATIC:
        layout = []
    elif mode == MobilityMode.PLANAR_TRANSLATION:
        layout = [(translation, x), (translation, y)]
    elif mode == MobilityMode.PLANAR:
        layout = [(translation, x), (translation, y), (rotation, z)]
    elif mode == MobilityMode.FULL:
        layout = [(translation, x), (translation, y), (translation, z),
                  (rotation, x), (rotation, y), (rotation, z)]
    else:
        raise ValueError(f"unsupported mobility mode {mode!r}")

    return tuple(
        JointAxis(joint_idx=joint_idx, joint_sub_dof_idx=i, primitive=p, axis=d,
                  bounds=MOBILITY_TRANSLATION_BOUNDS if p == translation else MOBILITY_ROTATION_BOUNDS)
        for i, (p, d) in enumerate(layout)
    )
