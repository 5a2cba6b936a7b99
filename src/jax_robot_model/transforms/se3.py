"""SE(3) and se(3) Lie group operations in JAX.

Functional kernels over homogeneous 4x4 matrices and 6D twist vectors
``[vx, vy, vz, wx, wy, wz]``. The tagged pose values in :mod:`.pose` are built
on top of these; everything here is pure and JIT-able.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def _v_coefficients(angle: Array):
    """Coefficients A = (1 - cos θ)/θ², B = (θ - sin θ)/θ³ of the left Jacobian."""
    angle_sq = angle * angle
    is_small_angle = angle < 1e-6
    safe = jnp.where(is_small_angle, 1.0, angle)

    A = jnp.where(is_small_angle, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / (safe * safe))
    B = jnp.where(is_small_angle, 1.0 / 6.0 - angle_sq / 120.0, (angle - jnp.sin(angle)) / (safe * safe * safe))
    return A, B


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: convert twist to transformation matrix.

    Uses Taylor expansions of the left-Jacobian coefficients near zero angle.

    Args:
        twist: (..., 6) array of twists [vx, vy, vz, wx, wy, wz].

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    v, w = twist[..., :3], twist[..., 3:]
    angle = jnp.linalg.norm(w, axis=-1, keepdims=True)

    R = so3.exp(w)
    A, B = _v_coefficients(angle)

    K = so3.skew_symmetric(w)
    I = jnp.broadcast_to(jnp.eye(3, dtype=twist.dtype), K.shape)

    # V = I + A*K + B*K^2
    V = I + A[..., None] * K + B[..., None] * jnp.matmul(K, K)
    t = jnp.einsum("...ij,...j->...i", V, v)

    return from_position_and_rotation(t, R)


def log(T: Array) -> Array:
    """
    SE(3) logarithm map: convert transformation matrix to twist.

    Args:
        T: (..., 4, 4) array of transformation matrices.

    Returns:
        (..., 6) array of twists [vx, vy, vz, wx, wy, wz].
    """
    return log_from_quaternion(so3.to_quaternion(T[..., :3, :3]), T[..., :3, 3])


def log_from_quaternion(q: Array, t: Array) -> Array:
    """
    se(3) twist of the rigid transform given by a unit quaternion and a translation.

    Args:
        q: (..., 4) unit quaternion (w, x, y, z)
        t: (..., 3) translation

    Returns:
        (..., 6) twist [vx, vy, vz, wx, wy, wz]
    """
    w = so3.quaternion_log(q)
    angle = jnp.linalg.norm(w, axis=-1, keepdims=True)
    K = so3.skew_symmetric(w)

    is_small_angle = angle < 1e-6
    half_angle = angle / 2.0
    safe_angle = jnp.where(is_small_angle, 1.0, angle)
    safe_half = jnp.where(is_small_angle, 1.0, half_angle)

    # C = (1 - (θ/2) cot(θ/2)) / θ², which tends to 1/12
    cot_half_angle = jnp.cos(safe_half) / jnp.sin(safe_half)
    C = jnp.where(is_small_angle, 1.0 / 12.0,
                  (1.0 - half_angle * cot_half_angle) / (safe_angle * safe_angle))

    I = jnp.broadcast_to(jnp.eye(3, dtype=t.dtype), K.shape)

    # V_inv = I - 0.5*K + C*K^2
    V_inv = I - 0.5 * K + C[..., None] * jnp.matmul(K, K)
    v = jnp.einsum("...ij,...j->...i", V_inv, t)

    return jnp.concatenate([v, w], axis=-1)


def multiply(T1: Array, T2: Array) -> Array:
    """
    Compose two SE(3) transformation matrices.

    Args:
        T1: (..., 4, 4) first transformation matrix
        T2: (..., 4, 4) second transformation matrix

    Returns:
        (..., 4, 4) result of T1 @ T2
    """
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    Uses the block structure: T^-1 = [[R^T, -R^T @ t], [0, 1]]

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    R_inv = jnp.swapaxes(R, -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, t)

    return from_position_and_rotation(t_inv, R_inv)


def displacement(T1: Array, T2: Array) -> Array:
    """Transform D such that T1 @ D = T2."""
    return multiply(inverse(T1), T2)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]
    if points.ndim == T.ndim - 1:
        return jnp.einsum("...ij,...j->...i", R, points) + t
    return jnp.einsum("...ij,...nj->...ni", R, points) + t[..., None, :]


def inverse_apply(T: Array, points: Array) -> Array:
    """Express world points in the local frame of T (applies T^-1)."""
    return apply(inverse(T), points)


def approximate_distance(T1: Array, T2: Array) -> Array:
    """
    Cheap distance between two transforms.

    Translation distance plus the geodesic angle between the rotations. Not a
    metric on SE(3) in the strict sense, but stable and monotone in both
    components, which is what regression tests rely on.
    """
    translation = jnp.linalg.norm(T1[..., :3, 3] - T2[..., :3, 3], axis=-1)
    R_rel = jnp.matmul(jnp.swapaxes(T1[..., :3, :3], -1, -2), T2[..., :3, :3])
    return translation + so3.angle(R_rel)


def get_position(T: Array) -> Array:
    """
    Extract position from SE(3) transformation matrix.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 3) position vector
    """
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """
    Extract rotation matrix from SE(3) transformation matrix.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 3, 3) rotation matrix
    """
    return T[..., :3, :3]
