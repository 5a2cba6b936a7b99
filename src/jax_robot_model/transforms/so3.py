"""SO(3) and so(3) Lie group operations in JAX.

This module implements the mathematical foundation for 3D rotations using
rotation matrices, unit quaternions (w, x, y, z) and axis-angle vectors. All
functions are pure, JIT-able, and operate on JAX arrays with arbitrary leading
batch dimensions.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula to convert a 3D axis-angle vector (so(3))
    to a rotation matrix (SO(3)).

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)

    small_angle = angle < 1e-8

    # Taylor expansion below the threshold, full Rodrigues formula above it
    cos_angle = jnp.where(small_angle, 1.0 - 0.5 * angle**2, jnp.cos(angle))
    sin_angle = jnp.where(small_angle, angle - angle**3 / 6.0, jnp.sin(angle))

    axis = jnp.where(angle > 1e-8, log_r / jnp.where(angle > 1e-8, angle, 1.0), log_r)

    K = skew_symmetric(axis)

    # R = I + sin(θ) * K + (1 - cos(θ)) * K²
    I = jnp.eye(3, dtype=log_r.dtype)
    I = jnp.broadcast_to(I, log_r.shape[:-1] + (3, 3))

    R = (I +
         sin_angle[..., None] * K +
         (1.0 - cos_angle)[..., None] * jnp.matmul(K, K))

    return R


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to axis-angle vector.

    Goes through the unit quaternion, which stays well conditioned for
    rotations close to π where the skew-symmetric extraction breaks down.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors with angle in [0, π]
    """
    return quaternion_log(to_quaternion(R))


def multiply(R1: Array, R2: Array) -> Array:
    """
    Multiply two rotation matrices.

    Args:
        R1: (..., 3, 3) first rotation matrix
        R2: (..., 3, 3) second rotation matrix

    Returns:
        (..., 3, 3) result of R1 @ R2
    """
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """
    Compute inverse of rotation matrix.

    For rotation matrices, the inverse is simply the transpose.

    Args:
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 3, 3) inverse rotation matrix
    """
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    if v.ndim == R.ndim - 1:  # Single vector case
        return jnp.einsum('...ij,...j->...i', R, v)
    else:  # Multiple vectors case
        return jnp.einsum('...ij,...nj->...ni', R, v)


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def angle(R: Array) -> Array:
    """Rotation angle in [0, π] encoded by rotation matrices of shape (..., 3, 3)."""
    return jnp.linalg.norm(log(R), axis=-1)


def from_euler_angles(rx: Array, ry: Array, rz: Array) -> Array:
    """
    Build rotation matrices from roll, pitch and yaw.

    The convention is R = Rz(rz) @ Ry(ry) @ Rx(rx), the one used by URDF origins.

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    rx, ry, rz = jnp.broadcast_arrays(jnp.asarray(rx, dtype=jnp.float64),
                                      jnp.asarray(ry, dtype=jnp.float64),
                                      jnp.asarray(rz, dtype=jnp.float64))
    cr, sr = jnp.cos(rx), jnp.sin(rx)
    cp, sp = jnp.cos(ry), jnp.sin(ry)
    cy, sy = jnp.cos(rz), jnp.sin(rz)

    return jnp.stack([
        jnp.stack([cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr], axis=-1),
        jnp.stack([sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr], axis=-1),
        jnp.stack([-sp, cp * sr, cp * cr], axis=-1)
    ], axis=-2)


def to_euler_angles(R: Array) -> Array:
    """
    Extract roll, pitch and yaw from rotation matrices.

    Inverse of :func:`from_euler_angles`. At gimbal lock (|pitch| = π/2) the
    roll is set to zero and the whole rotation about z is reported as yaw.

    Returns:
        (..., 3) array of [roll, pitch, yaw]
    """
    sin_pitch = jnp.clip(-R[..., 2, 0], -1.0, 1.0)
    pitch = jnp.arcsin(sin_pitch)
    gimbal_lock = jnp.abs(sin_pitch) > 1.0 - 1e-12

    roll = jnp.where(gimbal_lock, 0.0, jnp.arctan2(R[..., 2, 1], R[..., 2, 2]))
    yaw = jnp.where(gimbal_lock,
                    jnp.arctan2(-R[..., 0, 1], R[..., 1, 1]),
                    jnp.arctan2(R[..., 1, 0], R[..., 0, 0]))

    return jnp.stack([roll, pitch, yaw], axis=-1)


def from_axis_angle(axis: Array, theta: Array) -> Array:
    """Rotation matrices from a (..., 3) axis (normalized here) and an angle."""
    axis = axis / jnp.linalg.norm(axis, axis=-1, keepdims=True)
    return exp(axis * jnp.asarray(theta)[..., None])


def to_axis_angle(R: Array):
    """
    Split rotation matrices into unit axis and angle.

    The identity rotation has no defined axis and returns a zero axis with a
    zero angle.

    Returns:
        Tuple of (..., 3) axes and (...) angles
    """
    return quaternion_to_axis_angle(to_quaternion(R))


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = normalize_quaternion(quaternions)

    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    matrix = jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)

    return matrix


def to_quaternion(matrix: Array) -> Array:
    """
    Convert rotation matrices to quaternions (w, x, y, z).

    Batch-safe and JIT-friendly: all four Shepperd candidates are computed and
    the best conditioned one is selected per element. The scalar part of the
    result is non-negative.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of quaternions in (w, x, y, z) format
    """
    m00 = matrix[..., 0, 0]
    m01 = matrix[..., 0, 1]
    m02 = matrix[..., 0, 2]
    m10 = matrix[..., 1, 0]
    m11 = matrix[..., 1, 1]
    m12 = matrix[..., 1, 2]
    m20 = matrix[..., 2, 0]
    m21 = matrix[..., 2, 1]
    m22 = matrix[..., 2, 2]

    trace = m00 + m11 + m22

    eps = jnp.finfo(matrix.dtype).eps

    q0 = jnp.stack([trace + 1.0, m21 - m12, m02 - m20, m10 - m01], axis=-1) * 0.5
    q1 = jnp.stack([m21 - m12, m00 - m11 - m22 + 1.0, m01 + m10, m02 + m20], axis=-1) * 0.5
    q2 = jnp.stack([m02 - m20, m01 + m10, m11 - m00 - m22 + 1.0, m12 + m21], axis=-1) * 0.5
    q3 = jnp.stack([m10 - m01, m02 + m20, m12 + m21, m22 - m00 - m11 + 1.0], axis=-1) * 0.5

    s0 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + trace, eps))
    s1 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + m00 - m11 - m22, eps))
    s2 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + m11 - m00 - m22, eps))
    s3 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + m22 - m00 - m11, eps))

    q0 = q0 * s0[..., None]
    q1 = q1 * s1[..., None]
    q2 = q2 * s2[..., None]
    q3 = q3 * s3[..., None]

    mask0 = (trace > 0)
    mask1 = (~mask0) & (m00 > m11) & (m00 > m22)
    mask2 = (~mask0) & (~mask1) & (m11 > m22)
    mask3 = (~mask0) & (~mask1) & (~mask2)

    quaternion = (
        jnp.where(mask0[..., None], q0, 0) +
        jnp.where(mask1[..., None], q1, 0) +
        jnp.where(mask2[..., None], q2, 0) +
        jnp.where(mask3[..., None], q3, 0)
    )

    return canonicalize_quaternion(normalize_quaternion(quaternion))


# Quaternion algebra (w, x, y, z)

def normalize_quaternion(q: Array) -> Array:
    """Normalize quaternions to unit length."""
    return q / jnp.linalg.norm(q, axis=-1, keepdims=True)


def canonicalize_quaternion(q: Array) -> Array:
    """Flip quaternions with a negative scalar part; q and -q are the same rotation."""
    return jnp.where(q[..., 0:1] < 0, -q, q)


def quaternion_multiply(q1: Array, q2: Array) -> Array:
    """Hamilton product q1 ⊗ q2 of (..., 4) quaternions."""
    w1, x1, y1, z1 = jnp.moveaxis(q1, -1, 0)
    w2, x2, y2, z2 = jnp.moveaxis(q2, -1, 0)
    return jnp.stack([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ], axis=-1)


def quaternion_conjugate(q: Array) -> Array:
    """Conjugate, which is the inverse for unit quaternions."""
    return q * jnp.array([1.0, -1.0, -1.0, -1.0], dtype=q.dtype)


def quaternion_apply(q: Array, v: Array) -> Array:
    """Rotate (..., 3) vectors by unit quaternions without building a matrix."""
    w = q[..., :1]
    u = q[..., 1:]
    uv = jnp.cross(u, v)
    return v + 2.0 * (w * uv + jnp.cross(u, uv))


def quaternion_exp(log_r: Array) -> Array:
    """Unit quaternion for an axis-angle vector (the rotation, not the half-angle vector)."""
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)
    half = 0.5 * angle
    small_angle = angle < 1e-8
    # sin(θ/2)/θ -> 1/2 - θ²/48
    scale = jnp.where(small_angle, 0.5 - angle**2 / 48.0,
                      jnp.sin(half) / jnp.where(small_angle, 1.0, angle))
    return jnp.concatenate([jnp.cos(half), log_r * scale], axis=-1)


def quaternion_log(q: Array) -> Array:
    """
    Axis-angle vector of unit quaternions.

    q and -q encode the same rotation, so the result always has angle in [0, π].
    """
    q = jnp.where(q[..., 0:1] < 0, -q, q)
    w = q[..., 0]
    v = q[..., 1:]
    v_norm = jnp.linalg.norm(v, axis=-1)
    theta = 2.0 * jnp.arctan2(v_norm, w)
    small = v_norm < 1e-12
    # θ/|v| -> 2/w as |v| -> 0
    scale = jnp.where(small, 2.0 / jnp.where(small, w, 1.0), theta / jnp.where(small, 1.0, v_norm))
    return v * scale[..., None]


def quaternion_to_axis_angle(q: Array):
    """Split unit quaternions into (unit axis, angle in [0, π])."""
    log_r = quaternion_log(q)
    theta = jnp.linalg.norm(log_r, axis=-1)
    safe = jnp.where(theta > 1e-12, theta, 1.0)
    axis = jnp.where((theta > 1e-12)[..., None], log_r / safe[..., None], 0.0)
    return axis, theta


def quaternion_angle_between(q1: Array, q2: Array) -> Array:
    """Geodesic angle between two rotations given as unit quaternions."""
    dot = jnp.abs(jnp.sum(q1 * q2, axis=-1))
    return 2.0 * jnp.arccos(jnp.clip(dot, -1.0, 1.0))


def quaternion_slerp(q1: Array, q2: Array, t) -> Array:
    """
    Spherical linear interpolation between unit quaternions.

    Takes the shorter arc. Falls back to normalized linear interpolation when
    the two rotations are nearly identical.
    """
    dot = jnp.sum(q1 * q2, axis=-1, keepdims=True)
    q2 = jnp.where(dot < 0, -q2, q2)
    dot = jnp.abs(dot)

    theta = jnp.arccos(jnp.clip(dot, -1.0, 1.0))
    sin_theta = jnp.sin(theta)
    close = sin_theta < 1e-9
    safe_sin = jnp.where(close, 1.0, sin_theta)

    w1 = jnp.where(close, 1.0 - t, jnp.sin((1.0 - t) * theta) / safe_sin)
    w2 = jnp.where(close, t, jnp.sin(t * theta) / safe_sin)
    return normalize_quaternion(w1 * q1 + w2 * q2)
