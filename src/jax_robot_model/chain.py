"""Forward kinematics over the kinematic graph.

Two entry points share one kinematic description:

* :meth:`RobotKinematics.compute_fk` walks the traversal layers and composes
  tagged :class:`SE3Pose` values in any representation. Links that are not
  present get a ``None`` entry.
* :func:`forward_kinematics_world` is a JIT-compiled ``jax.lax.scan`` over
  the same traversal, returning stacked 4x4 matrices. It is the
  array-friendly path used by :func:`forward_kinematics`.
"""

import logging
from typing import Dict, List, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .core import JointAxis, JointAxisPrimitive, RobotModel, RobotState, RobotStateModel
from .errors import InvalidJointValue, check_index
from .transforms import SE3Pose, SE3PoseType, se3, so3

logger = logging.getLogger(__name__)

_IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0])


@jax.jit
def _rotation_quaternion(axis: Array, value: Array) -> Array:
    return so3.quaternion_exp(axis * value)


class FKLinkEntry:
    __slots__ = ("link_idx", "pose")

    def __init__(self, link_idx: int, pose: Optional[SE3Pose]):
        self.link_idx = link_idx
        self.pose = pose

    def __repr__(self):
        return f"FKLinkEntry(link_idx={self.link_idx}, pose={self.pose!r})"


class FKResult:
    """World pose per link, indexed like the model's links."""

    def __init__(self, link_entries: List[FKLinkEntry], link_names: Tuple[str, ...]):
        self.link_entries = link_entries
        self._link_name_to_idx = {name: i for i, name in enumerate(link_names)}

    def get_pose(self, link_idx: int) -> Optional[SE3Pose]:
        check_index(link_idx, len(self.link_entries), "link index")
        return self.link_entries[link_idx].pose

    def get_pose_by_name(self, link_name: str) -> Optional[SE3Pose]:
        if link_name not in self._link_name_to_idx:
            raise KeyError(f"unknown link {link_name!r}")
        return self.link_entries[self._link_name_to_idx[link_name]].pose


class RobotKinematics:
    """Forward kinematics for one configured :class:`RobotModel`.

    The model is snapshotted at construction: build the kinematics after
    presence flags, fixed joints and mobility base are set.
    """

    def __init__(self, model: RobotModel):
        self.model = model
        self.state_model = RobotStateModel(model)
        self.link_names = tuple(l.name for l in model.links)
        self.root_link_idx = model.robot_base_link_idx
        # Present non-root links, parents always before children.
        self.traversal_order = [idx for layer in model.link_tree_traversal_layers[1:] for idx in layer]

        self._joint_origins = [
            SE3Pose.from_euler_angles(*j.origin_rpy, *j.origin_xyz, pose_type=SE3PoseType.HOMOGENEOUS_MATRIX)
            for j in model.joints
        ]
        self._origins_by_type: Dict[SE3PoseType, List[SE3Pose]] = {}
        self._joint_axes: List[List[Tuple[JointAxis, int]]] = [
            list(zip(j.axes, self.state_model.map_joint_idx_to_full_state_idxs[j.idx])) for j in model.joints
        ]
        self._build_scan_arrays()

    def _origins(self, pose_type: SE3PoseType) -> List[SE3Pose]:
        if pose_type not in self._origins_by_type:
            self._origins_by_type[pose_type] = [o.convert(pose_type) for o in self._joint_origins]
        return self._origins_by_type[pose_type]

    def _axis_motion(self, axis: JointAxis, value: float, pose_type: SE3PoseType) -> SE3Pose:
        direction = np.asarray(axis.axis, dtype=np.float64)
        if axis.primitive == JointAxisPrimitive.ROTATION:
            return SE3Pose.from_quaternion_and_translation(
                _rotation_quaternion(direction, value), np.zeros(3), pose_type)
        return SE3Pose.from_quaternion_and_translation(_IDENTITY_QUATERNION, direction * value, pose_type)

    def _joint_transform(self, joint_idx: int, values: np.ndarray, pose_type: SE3PoseType) -> SE3Pose:
        transform = self._origins(pose_type)[joint_idx]
        for axis, full_idx in self._joint_axes[joint_idx]:
            transform = transform.multiply(self._axis_motion(axis, float(values[full_idx]), pose_type))
        return transform

    def _full_values(self, state) -> np.ndarray:
        if not isinstance(state, RobotState):
            state = self.state_model.spawn_state_auto(state)
        full = self.state_model.convert_state_to_full_state(state)
        values = np.asarray(jax.device_get(full.state), dtype=np.float64)

        bad = np.flatnonzero(~np.isfinite(values))
        if bad.size:
            axis = self.state_model.ordered_joint_axes[int(bad[0])]
            joint = self.model.joints[axis.joint_idx]
            raise InvalidJointValue(
                f"joint {joint.name!r} axis {axis.joint_sub_dof_idx} has non-finite value {values[bad[0]]}")
        return values

    def compute_fk(self, state, pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> FKResult:
        """World pose of every link for a joint state.

        Args:
            state: A DOF or Full :class:`RobotState`, or a raw vector whose length
                   matches one of the two views.
            pose_type: Representation of the returned poses.

        Returns:
            FKResult with a ``None`` pose for links that are not present.

        Raises:
            StateSizeMismatch: if the state does not match the model.
            InvalidJointValue: if any axis value is NaN or infinite.
        """
        values = self._full_values(state)
        poses: List[Optional[SE3Pose]] = [None] * len(self.model.links)
        poses[self.root_link_idx] = SE3Pose.identity(pose_type)

        for idx in self.traversal_order:
            link = self.model.links[idx]
            parent_pose = poses[link.preceding_link_idx]
            if parent_pose is None or not link.present:
                continue
            poses[idx] = parent_pose.multiply(self._joint_transform(link.preceding_joint_idx, values, pose_type))

        return FKResult([FKLinkEntry(i, p) for i, p in enumerate(poses)], self.link_names)

    def _build_scan_arrays(self) -> None:
        max_axes = max([1] + [len(self._joint_axes[j.idx]) for j in self.model.joints])
        steps = len(self.traversal_order)

        parents = np.zeros(steps, dtype=np.int32)
        children = np.zeros(steps, dtype=np.int32)
        origins = np.tile(np.eye(4), (steps, 1, 1))
        twists = np.zeros((steps, max_axes, 6))
        slots = np.zeros((steps, max_axes), dtype=np.int32)

        for s, idx in enumerate(self.traversal_order):
            link = self.model.links[idx]
            joint_idx = link.preceding_joint_idx
            parents[s] = link.preceding_link_idx
            children[s] = idx
            origins[s] = np.asarray(self._joint_origins[joint_idx].to_matrix())
            for k, (axis, full_idx) in enumerate(self._joint_axes[joint_idx]):
                direction = np.asarray(axis.axis, dtype=np.float64)
                if axis.primitive == JointAxisPrimitive.ROTATION:
                    twists[s, k, 3:] = direction
                else:
                    twists[s, k, :3] = direction
                slots[s, k] = full_idx

        self._scan_parents = jnp.asarray(parents)
        self._scan_children = jnp.asarray(children)
        self._scan_origins = jnp.asarray(origins)
        self._scan_twists = jnp.asarray(twists)
        self._scan_slots = jnp.asarray(slots)
        self._world_fn = jax.jit(self._world_transforms)

    def _world_transforms(self, q_full: Array) -> Array:
        num_links = len(self.model.links)
        world_transforms = jnp.identity(4, dtype=jnp.float64)[None].repeat(num_links, axis=0)
        if len(self.traversal_order) == 0:
            return world_transforms

        # Padding axes have zero twists, so their motion is the identity.
        q_padded = jnp.concatenate([q_full, jnp.zeros(1, dtype=jnp.float64)])

        def scan_body(carry, xs):
            parent, child, origin, twists, slots = xs
            T_world_to_parent = carry[parent]

            motions = se3.exp(twists * q_padded[slots][:, None])
            T_parent_to_child = origin
            for k in range(motions.shape[0]):
                T_parent_to_child = T_parent_to_child @ motions[k]

            carry = carry.at[child].set(T_world_to_parent @ T_parent_to_child)
            return carry, None

        xs = (self._scan_parents, self._scan_children, self._scan_origins, self._scan_twists, self._scan_slots)
        final_transforms, _ = jax.lax.scan(scan_body, world_transforms, xs)
        return final_transforms


def forward_kinematics_world(kinematics: RobotKinematics, q: Array) -> Array:
    """World transforms of all links as a (num_links, 4, 4) array.

    Args:
        kinematics: RobotKinematics of the configured model
        q: Full-state joint values of shape (num_axes,)

    Returns:
        Array of world poses. Links that are not present hold the identity.
    """
    return kinematics._world_fn(jnp.asarray(q, dtype=jnp.float64))


def forward_kinematics(kinematics: RobotKinematics, q) -> Dict[str, Array]:
    """Compute forward kinematics for all present links.

    Args:
        kinematics: RobotKinematics of the configured model
        q: Joint values, either a DOF or a Full state vector (or RobotState)

    Returns:
        Dictionary mapping link names to their 4x4 SE(3) world poses
    """
    values = kinematics._full_values(q)
    world_transforms = forward_kinematics_world(kinematics, values)
    present = [kinematics.root_link_idx] + kinematics.traversal_order
    return {kinematics.link_names[i]: world_transforms[i] for i in present}
