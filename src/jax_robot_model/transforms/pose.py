"""SE(3) poses as an explicit tagged union over interchangeable representations.

:class:`SE3Pose` pairs a :class:`SE3PoseType` tag with the data of one of
three representations:

* :class:`ImplicitDualQuaternion` - unit quaternion + translation, composed
  with dual-quaternion rules. Its distance is exact and smooth.
* :class:`HomogeneousMatrix` - a 4x4 matrix.
* :class:`RotationAndTranslation` - a tagged :class:`Rotation` (matrix or
  quaternion) + translation.

Every operation branches on the tag. Mixing tags raises
:class:`IncompatibleRepresentation` unless ``conversion_if_necessary`` is
set, in which case the right-hand operand is converted to the left-hand tag.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Tuple, Union

import jax
import jax.numpy as jnp
from flax import struct

from . import se3, so3
from .rotation import Rotation, RotationType, unit_axis
from ..errors import IncompatibleRepresentation

Array = jax.Array


class SE3PoseType(enum.Enum):
    IMPLICIT_DUAL_QUATERNION = "implicit_dual_quaternion"
    HOMOGENEOUS_MATRIX = "homogeneous_matrix"
    UNIT_QUATERNION_AND_TRANSLATION = "unit_quaternion_and_translation"
    ROTATION_MATRIX_AND_TRANSLATION = "rotation_matrix_and_translation"


def _as_float_array(x) -> Array:
    return jnp.asarray(x, dtype=jnp.float64)


# Jitted kernels used on the forward kinematics hot path.

@jax.jit
def _quaternion_pose_multiply(q1, t1, q2, t2):
    q = so3.canonicalize_quaternion(so3.normalize_quaternion(so3.quaternion_multiply(q1, q2)))
    return q, t1 + so3.quaternion_apply(q1, t2)


@jax.jit
def _quaternion_pose_inverse(q, t):
    q_inv = so3.quaternion_conjugate(q)
    return q_inv, -so3.quaternion_apply(q_inv, t)


@jax.jit
def _quaternion_pose_apply(q, t, point):
    return so3.quaternion_apply(q, point) + t


_quaternion_pose_log = jax.jit(se3.log_from_quaternion)
_matrix_multiply = jax.jit(se3.multiply)
_matrix_inverse = jax.jit(se3.inverse)


@struct.dataclass
class ImplicitDualQuaternion:
    """Dual quaternion stored implicitly as its real part and the translation it encodes."""
    quaternion: Array
    translation: Array

    def multiply(self, other: "ImplicitDualQuaternion") -> "ImplicitDualQuaternion":
        q, t = _quaternion_pose_multiply(self.quaternion, self.translation, other.quaternion, other.translation)
        return ImplicitDualQuaternion(q, t)

    def inverse(self) -> "ImplicitDualQuaternion":
        q, t = _quaternion_pose_inverse(self.quaternion, self.translation)
        return ImplicitDualQuaternion(q, t)

    def displacement(self, other: "ImplicitDualQuaternion") -> "ImplicitDualQuaternion":
        return self.inverse().multiply(other)

    def ln(self) -> Array:
        return _quaternion_pose_log(self.quaternion, self.translation)

    def multiply_by_point(self, point: Array) -> Array:
        return _quaternion_pose_apply(self.quaternion, self.translation, point)


@struct.dataclass
class HomogeneousMatrix:
    matrix: Array

    def multiply(self, other: "HomogeneousMatrix") -> "HomogeneousMatrix":
        return HomogeneousMatrix(_matrix_multiply(self.matrix, other.matrix))

    def inverse(self) -> "HomogeneousMatrix":
        return HomogeneousMatrix(_matrix_inverse(self.matrix))

    def displacement(self, other: "HomogeneousMatrix") -> "HomogeneousMatrix":
        return self.inverse().multiply(other)

    def approximate_distance(self, other: "HomogeneousMatrix") -> float:
        return float(se3.approximate_distance(self.matrix, other.matrix))

    def multiply_by_point(self, point: Array) -> Array:
        return se3.apply(self.matrix, point)


@struct.dataclass
class RotationAndTranslation:
    rotation: Rotation
    translation: Array

    def multiply(self, other: "RotationAndTranslation") -> "RotationAndTranslation":
        rotation = self.rotation.multiply(other.rotation)
        translation = self.translation + self.rotation.multiply_by_point(other.translation)
        return RotationAndTranslation(rotation, translation)

    def inverse(self) -> "RotationAndTranslation":
        rotation = self.rotation.inverse()
        return RotationAndTranslation(rotation, -rotation.multiply_by_point(self.translation))

    def displacement(self, other: "RotationAndTranslation") -> "RotationAndTranslation":
        return self.inverse().multiply(other)

    def approximate_distance(self, other: "RotationAndTranslation") -> float:
        translation = float(jnp.linalg.norm(self.translation - other.translation))
        return translation + self.rotation.angle_between(other.rotation)

    def multiply_by_point(self, point: Array) -> Array:
        return self.rotation.multiply_by_point(point) + self.translation


PoseData = Union[ImplicitDualQuaternion, HomogeneousMatrix, RotationAndTranslation]


@struct.dataclass
class SE3Pose:
    """A rigid transform tagged with its representation.

    Attributes:
        data: Representation-specific payload.
        pose_type: Representation tag. Static for JIT purposes.
    """
    data: PoseData
    pose_type: SE3PoseType = struct.field(pytree_node=False)

    # Constructors
    @classmethod
    def new_implicit_dual_quaternion(cls, quaternion, translation) -> "SE3Pose":
        quaternion = so3.canonicalize_quaternion(so3.normalize_quaternion(_as_float_array(quaternion)))
        data = ImplicitDualQuaternion(quaternion, _as_float_array(translation))
        return cls(data=data, pose_type=SE3PoseType.IMPLICIT_DUAL_QUATERNION)

    @classmethod
    def new_homogeneous_matrix(cls, matrix) -> "SE3Pose":
        matrix = _as_float_array(matrix)
        if matrix.shape != (4, 4):
            raise ValueError(f"matrix must have shape (4, 4), got {matrix.shape}")
        return cls(data=HomogeneousMatrix(matrix), pose_type=SE3PoseType.HOMOGENEOUS_MATRIX)

    @classmethod
    def new_rotation_and_translation(cls, rotation: Rotation, translation) -> "SE3Pose":
        if rotation.rotation_type == RotationType.ROTATION_MATRIX:
            pose_type = SE3PoseType.ROTATION_MATRIX_AND_TRANSLATION
        else:
            pose_type = SE3PoseType.UNIT_QUATERNION_AND_TRANSLATION
        return cls(data=RotationAndTranslation(rotation, _as_float_array(translation)), pose_type=pose_type)

    @classmethod
    def from_quaternion_and_translation(cls, quaternion, translation,
                                        pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> "SE3Pose":
        return cls.new_implicit_dual_quaternion(quaternion, translation).convert(pose_type)

    @classmethod
    def identity(cls, pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> "SE3Pose":
        return cls.from_quaternion_and_translation(jnp.array([1.0, 0.0, 0.0, 0.0]), jnp.zeros(3), pose_type)

    @classmethod
    def from_euler_angles(cls, rx: float, ry: float, rz: float, x: float, y: float, z: float,
                          pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> "SE3Pose":
        """Rotation Rz(rz) @ Ry(ry) @ Rx(rx) followed by translation (x, y, z)."""
        matrix = se3.from_position_and_rotation(_as_float_array([x, y, z]), so3.from_euler_angles(rx, ry, rz))
        return cls.new_homogeneous_matrix(matrix).convert(pose_type)

    @classmethod
    def from_axis_angle(cls, axis, angle: float, translation,
                        pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> "SE3Pose":
        quaternion = so3.quaternion_exp(unit_axis(axis) * angle)
        return cls.from_quaternion_and_translation(quaternion, translation, pose_type)

    @classmethod
    def from_exp(cls, twist, pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> "SE3Pose":
        """Pose from exponential coordinates ``[vx, vy, vz, wx, wy, wz]``; inverse of :meth:`ln`."""
        return cls.new_homogeneous_matrix(se3.exp(_as_float_array(twist))).convert(pose_type)

    @classmethod
    def from_matrix(cls, matrix, pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> "SE3Pose":
        return cls.new_homogeneous_matrix(matrix).convert(pose_type)

    # Extraction
    def translation(self) -> Array:
        if self.pose_type == SE3PoseType.IMPLICIT_DUAL_QUATERNION:
            return self.data.translation
        elif self.pose_type == SE3PoseType.HOMOGENEOUS_MATRIX:
            return se3.get_position(self.data.matrix)
        elif self.pose_type in (SE3PoseType.UNIT_QUATERNION_AND_TRANSLATION,
                                SE3PoseType.ROTATION_MATRIX_AND_TRANSLATION):
            return self.data.translation
        raise IncompatibleRepresentation(f"unknown pose type {self.pose_type!r}")

    def rotation(self) -> Rotation:
        """Rotational part, tagged with whatever form the pose already stores."""
        if self.pose_type == SE3PoseType.IMPLICIT_DUAL_QUATERNION:
            return Rotation(data=self.data.quaternion, rotation_type=RotationType.UNIT_QUATERNION)
        elif self.pose_type == SE3PoseType.HOMOGENEOUS_MATRIX:
            return Rotation(data=se3.get_rotation(self.data.matrix), rotation_type=RotationType.ROTATION_MATRIX)
        elif self.pose_type in (SE3PoseType.UNIT_QUATERNION_AND_TRANSLATION,
                                SE3PoseType.ROTATION_MATRIX_AND_TRANSLATION):
            return self.data.rotation
        raise IncompatibleRepresentation(f"unknown pose type {self.pose_type!r}")

    def to_matrix(self) -> Array:
        if self.pose_type == SE3PoseType.HOMOGENEOUS_MATRIX:
            return self.data.matrix
        return se3.from_position_and_rotation(self.translation(), self.rotation().to_rotation_matrix())

    def to_euler_angles(self) -> Array:
        return self.rotation().to_euler_angles()

    def to_axis_angle(self) -> Tuple[Array, float]:
        return self.rotation().to_axis_angle()

    def unwrap_implicit_dual_quaternion(self) -> ImplicitDualQuaternion:
        if self.pose_type != SE3PoseType.IMPLICIT_DUAL_QUATERNION:
            raise IncompatibleRepresentation("tried to unwrap implicit dual quaternion on incompatible type")
        return self.data

    def unwrap_homogeneous_matrix(self) -> HomogeneousMatrix:
        if self.pose_type != SE3PoseType.HOMOGENEOUS_MATRIX:
            raise IncompatibleRepresentation("tried to unwrap homogeneous matrix on incompatible type")
        return self.data

    def unwrap_rotation_and_translation(self) -> RotationAndTranslation:
        if self.pose_type not in (SE3PoseType.UNIT_QUATERNION_AND_TRANSLATION,
                                  SE3PoseType.ROTATION_MATRIX_AND_TRANSLATION):
            raise IncompatibleRepresentation("tried to unwrap rotation and translation on incompatible type")
        return self.data

    # Conversion
    def convert(self, target_type: SE3PoseType) -> "SE3Pose":
        """Same transform under another representation, exact up to float rounding."""
        if target_type == self.pose_type:
            return self
        if target_type == SE3PoseType.HOMOGENEOUS_MATRIX:
            return SE3Pose(data=HomogeneousMatrix(self.to_matrix()), pose_type=target_type)
        elif target_type == SE3PoseType.IMPLICIT_DUAL_QUATERNION:
            data = ImplicitDualQuaternion(so3.canonicalize_quaternion(self.rotation().to_unit_quaternion()),
                                          self.translation())
            return SE3Pose(data=data, pose_type=target_type)
        elif target_type == SE3PoseType.UNIT_QUATERNION_AND_TRANSLATION:
            rotation = self.rotation().convert(RotationType.UNIT_QUATERNION)
            return SE3Pose(data=RotationAndTranslation(rotation, self.translation()), pose_type=target_type)
        elif target_type == SE3PoseType.ROTATION_MATRIX_AND_TRANSLATION:
            rotation = self.rotation().convert(RotationType.ROTATION_MATRIX)
            return SE3Pose(data=RotationAndTranslation(rotation, self.translation()), pose_type=target_type)
        raise IncompatibleRepresentation(f"unknown pose type {target_type!r}")

    def _compatible_operand(self, other: "SE3Pose", conversion_if_necessary: bool, op: str) -> "SE3Pose":
        if self.pose_type == other.pose_type:
            return other
        if conversion_if_necessary:
            return other.convert(self.pose_type)
        raise IncompatibleRepresentation(
            f"incompatible pose types in {op}: {self.pose_type.value} and {other.pose_type.value}")

    # Group operations
    def inverse(self) -> "SE3Pose":
        """The inverse transform such that T * T^-1 = I."""
        return SE3Pose(data=self.data.inverse(), pose_type=self.pose_type)

    def multiply(self, other: "SE3Pose", conversion_if_necessary: bool = False) -> "SE3Pose":
        """Composition self ∘ other (other is applied first)."""
        other = self._compatible_operand(other, conversion_if_necessary, "multiply")
        return SE3Pose(data=self.data.multiply(other.data), pose_type=self.pose_type)

    def displacement(self, other: "SE3Pose", conversion_if_necessary: bool = False) -> "SE3Pose":
        """The transform D such that self * D = other."""
        other = self._compatible_operand(other, conversion_if_necessary, "displacement")
        return SE3Pose(data=self.data.displacement(other.data), pose_type=self.pose_type)

    def distance(self, other: "SE3Pose", conversion_if_necessary: bool = False) -> float:
        """
        Distance between two transforms.

        Implicit dual quaternions give the L2 norm of the se(3) logarithm of the
        displacement, which is exact and smooth. The matrix and rotation +
        translation forms give ``|t_a - t_b| + angle_between(R_a, R_b)``, an
        approximation that is cheaper but not differentiable at zero.
        """
        other = self._compatible_operand(other, conversion_if_necessary, "distance")
        if self.pose_type == SE3PoseType.IMPLICIT_DUAL_QUATERNION:
            return float(jnp.linalg.norm(self.data.displacement(other.data).ln()))
        elif self.pose_type in (SE3PoseType.HOMOGENEOUS_MATRIX,
                                SE3PoseType.UNIT_QUATERNION_AND_TRANSLATION,
                                SE3PoseType.ROTATION_MATRIX_AND_TRANSLATION):
            return self.data.approximate_distance(other.data)
        raise IncompatibleRepresentation(f"unknown pose type {self.pose_type!r}")

    def ln(self) -> Array:
        """Exponential coordinates ``[vx, vy, vz, wx, wy, wz]`` of this transform."""
        if self.pose_type == SE3PoseType.IMPLICIT_DUAL_QUATERNION:
            return self.data.ln()
        return se3.log_from_quaternion(self.rotation().to_unit_quaternion(), self.translation())

    def multiply_by_point(self, point) -> Array:
        return self.data.multiply_by_point(_as_float_array(point))

    def inverse_multiply_by_point(self, point) -> Array:
        """Expresses a world point in this transform's local frame."""
        return self.inverse().multiply_by_point(point)

    # Persistence
    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.pose_type.value,
            "quaternion": jax.device_get(self.rotation().to_unit_quaternion()).tolist(),
            "translation": jax.device_get(self.translation()).tolist(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SE3Pose":
        return cls.from_quaternion_and_translation(d["quaternion"], d["translation"], SE3PoseType(d["type"]))
