"""
JAX Robot Model: kinematic graphs, forward kinematics and collision geometry.

This library provides JIT-compilable spatial transforms, a queryable
link/joint tree built from URDF descriptions, forward kinematics in
interchangeable pose representations, and statistically pruned collision
queries against the robot's body geometry.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from . import geometry
from .chain import FKResult, RobotKinematics, forward_kinematics
from .config import ToolboxConfig, load_config
from .robot import Robot

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "geometry",
    "FKResult",
    "RobotKinematics",
    "forward_kinematics",
    "ToolboxConfig",
    "load_config",
    "Robot",
]
