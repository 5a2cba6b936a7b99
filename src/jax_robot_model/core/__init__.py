"""Core robot model data structures.

This module provides the kinematic graph (links, joints, traversal indices),
the joint state model and declarative robot configurations.
"""

from .components import (
    Joint,
    JointAxis,
    JointAxisPrimitive,
    Link,
    MobilityMode,
    RawJoint,
    RawLink,
)
from .configuration import RobotConfiguration
from .robot_model import RobotModel
from .robot_state import RobotState, RobotStateModel, RobotStateType

__all__ = [
    "Joint",
    "JointAxis",
    "JointAxisPrimitive",
    "Link",
    "MobilityMode",
    "RawJoint",
    "RawLink",
    "RobotConfiguration",
    "RobotModel",
    "RobotState",
    "RobotStateModel",
    "RobotStateType",
]
