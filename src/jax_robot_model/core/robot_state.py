"""Joint state vectors and the mapping between DOF and Full views.

A DOF state holds one value per free axis. A Full state holds one value per
axis of every present joint, fixed axes included. Converting between the two
is a pure gather/scatter, so ``DOF -> Full -> DOF`` is exact.
"""

import enum
from typing import List, Union

import jax
import jax.numpy as jnp
import numpy as np
from flax import struct

from .components import JointAxis
from .robot_model import RobotModel
from ..errors import StateSizeMismatch, check_index

Array = jax.Array


class RobotStateType(enum.Enum):
    DOF = "dof"
    FULL = "full"


@struct.dataclass
class RobotState:
    """A joint value vector tagged with its view.

    Arithmetic is defined only between states of the same type and length.
    """
    state: Array
    state_type: RobotStateType = struct.field(pytree_node=False)

    def _check_compatible(self, other: "RobotState", op: str) -> None:
        if self.state_type != other.state_type or len(self) != len(other):
            raise StateSizeMismatch(
                f"cannot {op} {self.state_type.value} state and {other.state_type.value} state",
                len(other), len(self))

    def __len__(self) -> int:
        return int(self.state.shape[0])

    def __getitem__(self, idx):
        return self.state[idx]

    def __add__(self, other: "RobotState") -> "RobotState":
        self._check_compatible(other, "add")
        return self.replace(state=self.state + other.state)

    def __sub__(self, other: "RobotState") -> "RobotState":
        self._check_compatible(other, "subtract")
        return self.replace(state=self.state - other.state)

    def __mul__(self, scalar: float) -> "RobotState":
        if isinstance(scalar, RobotState):
            return NotImplemented
        return self.replace(state=self.state * scalar)

    __rmul__ = __mul__


class RobotStateModel:
    """Joint-axis ordering and state conversions for one configured robot model.

    Attributes:
        ordered_joint_axes: Axes of present joints; defines the Full state.
        ordered_dof_joint_axes: The free subset; defines the DOF state.
        map_joint_idx_to_full_state_idxs: Per joint, its Full state slots.
        map_joint_idx_to_dof_state_idxs: Per joint, its DOF state slots.
    """

    def __init__(self, model: RobotModel):
        self.robot_name = model.robot_name
        self.ordered_joint_axes: List[JointAxis] = model.get_joint_axes()
        self.ordered_dof_joint_axes: List[JointAxis] = [a for a in self.ordered_joint_axes if not a.is_fixed]

        self.map_joint_idx_to_full_state_idxs: List[List[int]] = [[] for _ in model.joints]
        self.map_joint_idx_to_dof_state_idxs: List[List[int]] = [[] for _ in model.joints]
        dof_to_full = []
        for full_idx, axis in enumerate(self.ordered_joint_axes):
            self.map_joint_idx_to_full_state_idxs[axis.joint_idx].append(full_idx)
            if not axis.is_fixed:
                self.map_joint_idx_to_dof_state_idxs[axis.joint_idx].append(len(dof_to_full))
                dof_to_full.append(full_idx)

        self._dof_to_full_idxs = jnp.array(dof_to_full, dtype=jnp.int32)
        self._fixed_values = jnp.array(
            [a.fixed_value if a.is_fixed else 0.0 for a in self.ordered_joint_axes], dtype=jnp.float64)

    @property
    def num_dofs(self) -> int:
        return len(self.ordered_dof_joint_axes)

    @property
    def num_axes(self) -> int:
        return len(self.ordered_joint_axes)

    def _expected_length(self, state_type: RobotStateType) -> int:
        return self.num_dofs if state_type == RobotStateType.DOF else self.num_axes

    def spawn_state(self, values, state_type: RobotStateType) -> RobotState:
        """Wrap ``values`` as a state of the given type after checking its length."""
        values = jnp.asarray(values, dtype=jnp.float64).reshape(-1)
        expected = self._expected_length(state_type)
        if values.shape[0] != expected:
            raise StateSizeMismatch(f"spawn {state_type.value} state", int(values.shape[0]), expected)
        return RobotState(state=values, state_type=state_type)

    def spawn_state_auto(self, values) -> RobotState:
        """Wrap ``values`` as a Full state if its length matches, else as a DOF state."""
        values = jnp.asarray(values, dtype=jnp.float64).reshape(-1)
        n = int(values.shape[0])
        if n == self.num_axes:
            return RobotState(state=values, state_type=RobotStateType.FULL)
        if n == self.num_dofs:
            return RobotState(state=values, state_type=RobotStateType.DOF)
        raise StateSizeMismatch("spawn state", n, (self.num_axes, self.num_dofs))

    def zeros_state(self, state_type: RobotStateType = RobotStateType.DOF) -> RobotState:
        """Zero on every free axis; fixed axes of a Full state take their fixed values."""
        dof = RobotState(state=jnp.zeros(self.num_dofs, dtype=jnp.float64), state_type=RobotStateType.DOF)
        if state_type == RobotStateType.DOF:
            return dof
        return self.convert_state_to_full_state(dof)

    def _check(self, state: RobotState) -> None:
        expected = self._expected_length(state.state_type)
        if len(state) != expected:
            raise StateSizeMismatch(f"{state.state_type.value} state", len(state), expected)

    def convert_state_to_full_state(self, state: RobotState) -> RobotState:
        self._check(state)
        if state.state_type == RobotStateType.FULL:
            return state
        full = self._fixed_values.at[self._dof_to_full_idxs].set(state.state)
        return RobotState(state=full, state_type=RobotStateType.FULL)

    def convert_state_to_dof_state(self, state: RobotState) -> RobotState:
        self._check(state)
        if state.state_type == RobotStateType.DOF:
            return state
        return RobotState(state=state.state[self._dof_to_full_idxs], state_type=RobotStateType.DOF)

    def joint_values(self, state: RobotState, joint_idx: int) -> np.ndarray:
        """Full-state values of one joint's axes, in sub-dof order."""
        check_index(joint_idx, len(self.map_joint_idx_to_full_state_idxs), "joint index")
        full = np.asarray(jax.device_get(self.convert_state_to_full_state(state).state))
        return full[self.map_joint_idx_to_full_state_idxs[joint_idx]]

    def bounds(self, state_type: RobotStateType = RobotStateType.FULL):
        """(lower, upper) arrays over the axes of the given view."""
        axes = self.ordered_joint_axes if state_type == RobotStateType.FULL else self.ordered_dof_joint_axes
        lower = jnp.array([a.bounds[0] for a in axes], dtype=jnp.float64)
        upper = jnp.array([a.bounds[1] for a in axes], dtype=jnp.float64)
        return lower, upper

    def fixed_mask_and_values(self):
        """Boolean mask of fixed Full slots and the Full template holding their values."""
        mask = jnp.array([a.is_fixed for a in self.ordered_joint_axes], dtype=bool)
        return mask, self._fixed_values


StateLike = Union[RobotState, Array, np.ndarray, list]
