"""Tagged rotation values: rotation matrices and unit quaternions behind one type.

A :class:`Rotation` carries its representation tag next to its data. Binary
operations require matching tags; passing ``conversion_if_necessary=True``
converts the right-hand operand to the left-hand operand's tag first.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Tuple

import jax
import jax.numpy as jnp
from flax import struct

from . import so3
from ..errors import IncompatibleRepresentation

Array = jax.Array


class RotationType(enum.Enum):
    ROTATION_MATRIX = "rotation_matrix"
    UNIT_QUATERNION = "unit_quaternion"


_IDENTITY_TOLERANCE = 1e-12


def _as_float_array(x) -> Array:
    return jnp.asarray(x, dtype=jnp.float64)


def unit_axis(axis) -> Array:
    """Normalize a rotation axis given as concrete values.

    Raises:
        ValueError: if the axis has zero length.
    """
    axis = _as_float_array(axis)
    norm = jnp.linalg.norm(axis)
    if float(norm) == 0.0:
        raise ValueError("rotation axis must have nonzero length")
    return axis / norm


@struct.dataclass
class Rotation:
    """A 3D rotation stored either as a (3, 3) matrix or a (w, x, y, z) quaternion.

    Attributes:
        data: (3, 3) rotation matrix or (4,) unit quaternion, depending on the tag.
        rotation_type: Representation tag. Static for JIT purposes.
    """
    data: Array
    rotation_type: RotationType = struct.field(pytree_node=False)

    # Constructors
    @classmethod
    def new_rotation_matrix(cls, matrix) -> "Rotation":
        matrix = _as_float_array(matrix)
        if matrix.shape != (3, 3):
            raise ValueError(f"rotation matrix must have shape (3, 3), got {matrix.shape}")
        return cls(data=matrix, rotation_type=RotationType.ROTATION_MATRIX)

    @classmethod
    def new_unit_quaternion(cls, quaternion) -> "Rotation":
        quaternion = _as_float_array(quaternion)
        if quaternion.shape != (4,):
            raise ValueError(f"quaternion must have shape (4,), got {quaternion.shape}")
        return cls(data=so3.canonicalize_quaternion(so3.normalize_quaternion(quaternion)),
                   rotation_type=RotationType.UNIT_QUATERNION)

    @classmethod
    def identity(cls, rotation_type: RotationType = RotationType.UNIT_QUATERNION) -> "Rotation":
        return cls.from_exp(jnp.zeros(3), rotation_type)

    @classmethod
    def from_euler_angles(cls, rx: float, ry: float, rz: float,
                          rotation_type: RotationType = RotationType.UNIT_QUATERNION) -> "Rotation":
        """Roll/pitch/yaw, composed as Rz(rz) @ Ry(ry) @ Rx(rx)."""
        matrix = so3.from_euler_angles(rx, ry, rz)
        return cls.new_rotation_matrix(matrix).convert(rotation_type)

    @classmethod
    def from_axis_angle(cls, axis, angle: float,
                        rotation_type: RotationType = RotationType.UNIT_QUATERNION) -> "Rotation":
        return cls.from_exp(unit_axis(axis) * angle, rotation_type)

    @classmethod
    def from_exp(cls, ln_vec, rotation_type: RotationType = RotationType.UNIT_QUATERNION) -> "Rotation":
        """Rotation whose logarithm (scaled axis) is ``ln_vec``."""
        ln_vec = _as_float_array(ln_vec)
        if rotation_type == RotationType.ROTATION_MATRIX:
            return cls.new_rotation_matrix(so3.exp(ln_vec))
        elif rotation_type == RotationType.UNIT_QUATERNION:
            return cls.new_unit_quaternion(so3.quaternion_exp(ln_vec))
        raise IncompatibleRepresentation(f"unknown rotation type {rotation_type!r}")

    # Conversion and extraction
    def convert(self, target_type: RotationType) -> "Rotation":
        if self.rotation_type == target_type:
            return self
        if self.rotation_type == RotationType.ROTATION_MATRIX and target_type == RotationType.UNIT_QUATERNION:
            return Rotation(data=so3.to_quaternion(self.data), rotation_type=target_type)
        elif self.rotation_type == RotationType.UNIT_QUATERNION and target_type == RotationType.ROTATION_MATRIX:
            return Rotation(data=so3.from_quaternion(self.data), rotation_type=target_type)
        raise IncompatibleRepresentation(f"cannot convert {self.rotation_type!r} to {target_type!r}")

    def to_rotation_matrix(self) -> Array:
        return self.convert(RotationType.ROTATION_MATRIX).data

    def to_unit_quaternion(self) -> Array:
        return self.convert(RotationType.UNIT_QUATERNION).data

    def unwrap_rotation_matrix(self) -> Array:
        if self.rotation_type != RotationType.ROTATION_MATRIX:
            raise IncompatibleRepresentation("tried to unwrap a unit quaternion as a rotation matrix")
        return self.data

    def unwrap_unit_quaternion(self) -> Array:
        if self.rotation_type != RotationType.UNIT_QUATERNION:
            raise IncompatibleRepresentation("tried to unwrap a rotation matrix as a unit quaternion")
        return self.data

    def ln(self) -> Array:
        """Rotation axis scaled by the rotation angle."""
        if self.rotation_type == RotationType.ROTATION_MATRIX:
            return so3.log(self.data)
        return so3.quaternion_log(self.data)

    def angle(self) -> float:
        return float(jnp.linalg.norm(self.ln()))

    def is_identity(self) -> bool:
        return self.angle() <= _IDENTITY_TOLERANCE

    def to_euler_angles(self) -> Array:
        """[roll, pitch, yaw] such that :meth:`from_euler_angles` reproduces the rotation."""
        return so3.to_euler_angles(self.to_rotation_matrix())

    def to_axis_angle(self) -> Tuple[Array, float]:
        """Unit axis and angle. The identity maps to a zero axis and zero angle."""
        axis, angle = so3.quaternion_to_axis_angle(self.to_unit_quaternion())
        return axis, float(angle)

    # Unary and binary operations
    def inverse(self) -> "Rotation":
        """Rotation R^-1 such that R * R^-1 = I."""
        if self.rotation_type == RotationType.ROTATION_MATRIX:
            return Rotation(data=so3.inverse(self.data), rotation_type=self.rotation_type)
        return Rotation(data=so3.quaternion_conjugate(self.data), rotation_type=self.rotation_type)

    def _compatible_operand(self, other: "Rotation", conversion_if_necessary: bool, op: str) -> "Rotation":
        if self.rotation_type == other.rotation_type:
            return other
        if conversion_if_necessary:
            return other.convert(self.rotation_type)
        raise IncompatibleRepresentation(
            f"incompatible rotation types in {op}: {self.rotation_type.value} and {other.rotation_type.value}")

    def multiply(self, other: "Rotation", conversion_if_necessary: bool = False) -> "Rotation":
        other = self._compatible_operand(other, conversion_if_necessary, "multiply")
        if self.rotation_type == RotationType.ROTATION_MATRIX:
            return Rotation(data=so3.multiply(self.data, other.data), rotation_type=self.rotation_type)
        return Rotation(data=so3.normalize_quaternion(so3.quaternion_multiply(self.data, other.data)),
                        rotation_type=self.rotation_type)

    def displacement(self, other: "Rotation", conversion_if_necessary: bool = False) -> "Rotation":
        """Rotation D such that self * D = other."""
        other = self._compatible_operand(other, conversion_if_necessary, "displacement")
        return self.inverse().multiply(other)

    def angle_between(self, other: "Rotation", conversion_if_necessary: bool = False) -> float:
        """Geodesic angle between two rotations; this is the rotation distance."""
        other = self._compatible_operand(other, conversion_if_necessary, "angle_between")
        if self.rotation_type == RotationType.UNIT_QUATERNION:
            return float(so3.quaternion_angle_between(self.data, other.data))
        return float(so3.angle(so3.multiply(so3.inverse(self.data), other.data)))

    def slerp(self, other: "Rotation", t: float, conversion_if_necessary: bool = False) -> "Rotation":
        """
        Spherical linear interpolation from self (t = 0) to other (t = 1).

        Values of t outside [0, 1] extrapolate along the same geodesic; the
        result is well defined but loses accuracy far from the interval.
        """
        other = self._compatible_operand(other, conversion_if_necessary, "slerp")
        q = so3.quaternion_slerp(self.to_unit_quaternion(), other.to_unit_quaternion(), t)
        return Rotation(data=q, rotation_type=RotationType.UNIT_QUATERNION).convert(self.rotation_type)

    def multiply_by_point(self, point) -> Array:
        point = _as_float_array(point)
        if self.rotation_type == RotationType.ROTATION_MATRIX:
            return so3.apply(self.data, point)
        return so3.quaternion_apply(self.data, point)

    # Persistence
    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.rotation_type.value, "data": jax.device_get(self.data).tolist()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Rotation":
        return cls(data=_as_float_array(d["data"]), rotation_type=RotationType(d["type"]))
