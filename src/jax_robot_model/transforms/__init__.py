"""
Spatial transforms for robot kinematics.

This module provides:
- SO(3) rotations (so3 module)
- SE(3) rigid body transforms (se3 module)
- Tagged rotation values (Rotation) and tagged poses (SE3Pose)

The so3/se3 functions are pure and JIT-compilable; Rotation and SE3Pose wrap
them behind an explicit representation tag.
"""

# Core Lie group modules
from . import so3
from . import se3
from .rotation import Rotation, RotationType
from .pose import SE3Pose, SE3PoseType

__all__ = [
    "so3",
    "se3",
    "Rotation",
    "RotationType",
    "SE3Pose",
    "SE3PoseType",
]
