"""Declarative robot configurations applied on top of a freshly built model."""

import dataclasses
import logging
from typing import Any, Dict, List, Optional, Tuple

from .components import MobilityMode
from .robot_model import RobotModel

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class RobotConfiguration:
    """A named subset of a robot: disabled links, fixed joints and a base mobility mode.

    Attributes:
        name: Configuration name, for logging only.
        disabled_links: Names of links to mark not-present.
        fixed_joints: Joint name -> value every axis of that joint is fixed at.
        fixed_joint_sub_dofs: (joint name, sub-dof index) -> fixed value.
        mobility_mode: Mobility of a synthetic base inserted ahead of the root.
    """
    name: str = "default"
    disabled_links: List[str] = dataclasses.field(default_factory=list)
    fixed_joints: Dict[str, float] = dataclasses.field(default_factory=dict)
    fixed_joint_sub_dofs: Dict[Tuple[str, int], float] = dataclasses.field(default_factory=dict)
    mobility_mode: MobilityMode = MobilityMode.STATIC

    def apply(self, model: RobotModel) -> RobotModel:
        """Return a configured copy of ``model``; the input is left untouched.

        Raises:
            KeyError: if a link or joint name is not part of the model.
        """
        out = model.copy()

        for link_name in self.disabled_links:
            out.set_link_present(_lookup(out.get_link_idx_from_name(link_name), "link", link_name), False)
        for joint_name, value in self.fixed_joints.items():
            out.set_fixed_joint(_lookup(out.get_joint_idx_from_name(joint_name), "joint", joint_name), value)
        for (joint_name, sub_idx), value in self.fixed_joint_sub_dofs.items():
            out.set_fixed_joint_sub_dof(_lookup(out.get_joint_idx_from_name(joint_name), "joint", joint_name),
                                        sub_idx, value)

        out.recompute_traversal_info()
        out.add_mobility_base(self.mobility_mode)
        logger.info("Applied configuration %r to %s", self.name, model.robot_name)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "disabled_links": list(self.disabled_links),
            "fixed_joints": dict(self.fixed_joints),
            "fixed_joint_sub_dofs": [[j, i, v] for (j, i), v in self.fixed_joint_sub_dofs.items()],
            "mobility_mode": self.mobility_mode.value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RobotConfiguration":
        return cls(
            name=d.get("name", "default"),
            disabled_links=list(d.get("disabled_links", [])),
            fixed_joints={k: float(v) for k, v in d.get("fixed_joints", {}).items()},
            fixed_joint_sub_dofs={(j, int(i)): float(v) for j, i, v in d.get("fixed_joint_sub_dofs", [])},
            mobility_mode=MobilityMode(d.get("mobility_mode", MobilityMode.STATIC.value)),
        )


def _lookup(idx: Optional[int], what: str, name: str) -> int:
    if idx is None:
        raise KeyError(f"unknown {what} {name!r}")
    return idx
