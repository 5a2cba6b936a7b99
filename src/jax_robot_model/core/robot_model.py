"""Kinematic graph of a robot: links, joints and derived traversal indices.

Links and joints live in flat lists addressed by dense integer index, in the
order the description source lists them. Parent/child relations are stored
as indices on the records, never as object references.

Derived data (recomputed whenever the graph shape changes):

* ``link_tree_traversal_layers`` - present links partitioned by breadth-first
  depth from the traversal root. Layer 0 is the root.
* ``link_chains`` - for every ordered pair (a, b), the path of link indices
  from a down to b, or an empty tuple when b is not below a.
* ``preceding_actuated_joint_idxs`` - per link, the nearest ancestor joint
  with at least one free axis.
"""

import copy
import logging
from collections import deque
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .components import (
    Joint,
    JointAxis,
    JointAxisPrimitive,
    Link,
    MobilityMode,
    RawJoint,
    RawLink,
    make_joint_axes,
    make_mobility_axes,
)
from ..errors import MalformedGraph, check_index

logger = logging.getLogger(__name__)

MOBILITY_BASE_LINK_NAME = "mobility_base_link"
MOBILITY_BASE_JOINT_NAME = "mobility_base_joint"


class RobotModel:
    """Link/joint tree of a single robot.

    Build instances with :meth:`build`. Mutations (presence flags, fixed
    values) touch only the records; call :meth:`recompute_traversal_info` to
    refresh the traversal layers and actuated-joint indices afterwards.
    """

    def __init__(self, robot_name: str, links: List[Link], joints: List[Joint]):
        self.robot_name = robot_name
        self.links = links
        self.joints = joints
        self.link_name_to_idx: Dict[str, int] = {l.name: l.idx for l in links}
        self.joint_name_to_idx: Dict[str, int] = {j.name: j.idx for j in joints}
        self.world_link_idx = self._find_root()
        self.robot_base_link_idx = self.world_link_idx
        self.link_tree_traversal_layers: List[List[int]] = []
        self.link_tree_max_depth = 0
        self.preceding_actuated_joint_idxs: List[Optional[int]] = []
        self.link_chains: List[List[Tuple[int, ...]]] = []

        self._check_connected()
        self.recompute_traversal_info()
        self._assign_all_link_chains()

    @classmethod
    def build(cls, robot_name: str, raw_links: Sequence[RawLink], raw_joints: Sequence[RawJoint]) -> "RobotModel":
        """Build the graph from description records.

        Raises:
            MalformedGraph: on duplicate names, a joint naming an unknown link,
                a link with two parent joints, or anything but one connected root.
        """
        link_name_to_idx: Dict[str, int] = {}
        for i, raw in enumerate(raw_links):
            if raw.name in link_name_to_idx:
                raise MalformedGraph(f"duplicate link name {raw.name!r}")
            link_name_to_idx[raw.name] = i

        joint_names = set()
        for raw in raw_joints:
            if raw.name in joint_names:
                raise MalformedGraph(f"duplicate joint name {raw.name!r}")
            joint_names.add(raw.name)

        links = [Link(name=raw.name, idx=i) for i, raw in enumerate(raw_links)]
        children: List[List[int]] = [[] for _ in raw_links]
        joints = []

        for j, raw in enumerate(raw_joints):
            for role, name in (("parent", raw.parent_link), ("child", raw.child_link)):
                if name not in link_name_to_idx:
                    raise MalformedGraph(f"joint {raw.name!r} references unknown {role} link {name!r}")
            parent_idx = link_name_to_idx[raw.parent_link]
            child_idx = link_name_to_idx[raw.child_link]
            if links[child_idx].preceding_link_idx is not None:
                raise MalformedGraph(f"link {raw.child_link!r} is the child of more than one joint")

            links[child_idx] = links[child_idx].replace(preceding_link_idx=parent_idx, preceding_joint_idx=j)
            children[parent_idx].append(child_idx)
            joints.append(Joint(
                name=raw.name,
                idx=j,
                joint_type=raw.joint_type,
                preceding_link_idx=parent_idx,
                child_link_idx=child_idx,
                origin_xyz=tuple(float(v) for v in raw.origin_xyz),
                origin_rpy=tuple(float(v) for v in raw.origin_rpy),
                axes=make_joint_axes(j, raw.joint_type, raw.axis, raw.lower, raw.upper),
            ))

        links = [l.replace(children_link_idxs=tuple(children[l.idx])) for l in links]
        model = cls(robot_name, links, joints)
        logger.debug("Built kinematic graph for %s: %d links, %d joints, %d layers",
                     robot_name, len(links), len(joints), len(model.link_tree_traversal_layers))
        return model

    # Construction helpers
    def _find_root(self) -> int:
        roots = [l.idx for l in self.links if l.preceding_link_idx is None]
        if len(roots) != 1:
            names = [self.links[i].name for i in roots]
            raise MalformedGraph(f"expected exactly one root link, found {len(roots)}: {names}")
        return roots[0]

    def _check_connected(self) -> None:
        reached = set(self._bfs_order(self.world_link_idx, present_only=False))
        if len(reached) != len(self.links):
            missing = sorted(self.links[i].name for i in range(len(self.links)) if i not in reached)
            raise MalformedGraph(f"links not connected to root {self.links[self.world_link_idx].name!r}: {missing}")

    def _bfs_order(self, root_idx: int, present_only: bool) -> List[int]:
        order = []
        queue = deque([root_idx])
        seen = {root_idx}
        while queue:
            idx = queue.popleft()
            order.append(idx)
            for c in self.links[idx].children_link_idxs:
                if c in seen or (present_only and not self.links[c].present):
                    continue
                seen.add(c)
                queue.append(c)
        return order

    def _compute_link_tree_traversal_layers(self) -> None:
        layers = [[self.robot_base_link_idx]]
        while True:
            next_layer = []
            for idx in layers[-1]:
                next_layer.extend(c for c in self.links[idx].children_link_idxs if self.links[c].present)
            if not next_layer:
                break
            layers.append(sorted(next_layer))
        self.link_tree_traversal_layers = layers
        self.link_tree_max_depth = len(layers) - 1

    def _compute_preceding_actuated_joint_idxs(self) -> None:
        self.preceding_actuated_joint_idxs = [self._preceding_actuated_joint_idx(i) for i in range(len(self.links))]

    def _preceding_actuated_joint_idx(self, link_idx: int) -> Optional[int]:
        curr = link_idx
        while True:
            joint_idx = self.links[curr].preceding_joint_idx
            if joint_idx is None:
                return None
            joint = self.joints[joint_idx]
            if joint.num_dofs > 0:
                return joint_idx
            if joint.preceding_link_idx is None:
                return None
            curr = joint.preceding_link_idx

    def _assign_all_link_chains(self) -> None:
        n = len(self.links)
        self.link_chains = [[self._link_chain(a, b) for b in range(n)] for a in range(n)]

    def _link_chain(self, from_idx: int, to_idx: int) -> Tuple[int, ...]:
        chain = [to_idx]
        curr = to_idx
        while curr != from_idx:
            curr = self.links[curr].preceding_link_idx
            if curr is None:
                return ()
            chain.append(curr)
        return tuple(reversed(chain))

    def recompute_traversal_info(self) -> None:
        """Recompute traversal layers, max depth and preceding actuated joints."""
        self._compute_link_tree_traversal_layers()
        self._compute_preceding_actuated_joint_idxs()

    # Queries
    @property
    def num_links(self) -> int:
        return len(self.links)

    @property
    def num_joints(self) -> int:
        return len(self.joints)

    def get_link_by_idx(self, idx: int) -> Link:
        check_index(idx, len(self.links), "link index")
        return self.links[idx]

    def get_joint_by_idx(self, idx: int) -> Joint:
        check_index(idx, len(self.joints), "joint index")
        return self.joints[idx]

    def get_link_idx_from_name(self, name: str) -> Optional[int]:
        return self.link_name_to_idx.get(name)

    def get_joint_idx_from_name(self, name: str) -> Optional[int]:
        return self.joint_name_to_idx.get(name)

    def get_link_chain(self, from_link_idx: int, to_link_idx: int) -> Optional[Tuple[int, ...]]:
        """Path of link indices from ``from_link_idx`` down to ``to_link_idx``, or None if unreachable."""
        check_index(from_link_idx, len(self.links), "link index")
        check_index(to_link_idx, len(self.links), "link index")
        chain = self.link_chains[from_link_idx][to_link_idx]
        return chain if chain else None

    def get_link_tree_traversal_layer(self, link_idx: int) -> int:
        check_index(link_idx, len(self.links), "link index")
        for i, layer in enumerate(self.link_tree_traversal_layers):
            if link_idx in layer:
                return i
        raise ValueError(f"link {link_idx} is not in any traversal layer")

    def get_link_with_highest_tree_traversal_layer(self, link_idxs: Sequence[int]) -> int:
        """The link among ``link_idxs`` that sits deepest in the tree; ties go to the later one."""
        if len(link_idxs) == 0:
            raise ValueError("link_idxs must not be empty")
        if len(link_idxs) == 1:
            return link_idxs[0]

        highest_layer, highest_idx = 0, link_idxs[0]
        for idx in link_idxs:
            layer = self.get_link_tree_traversal_layer(idx)
            if layer >= highest_layer:
                highest_layer, highest_idx = layer, idx
        return highest_idx

    def get_all_downstream_links(self, link_idx: int) -> List[int]:
        """All successors of ``link_idx`` in the tree, including itself, breadth first."""
        check_index(link_idx, len(self.links), "link index")
        return self._bfs_order(link_idx, present_only=False)

    def get_all_link_idxs_with_given_preceding_actuated_joint_idx(self, joint_idx: int) -> List[int]:
        return [i for i, a in enumerate(self.preceding_actuated_joint_idxs) if a == joint_idx]

    def get_joint_axes(self) -> List[JointAxis]:
        """Axes of every present joint, in joint then sub-dof order."""
        return [a for j in self.joints if j.present for a in j.axes]

    # Mutations
    def set_link_present(self, link_idx: int, present: bool) -> None:
        """Enable or disable a link and, through the joints it parents, the subtree below it.

        The world link is never disabled. Traversal layers are not refreshed.
        """
        check_index(link_idx, len(self.links), "link index")
        if not present and link_idx == self.world_link_idx:
            return

        self.links[link_idx] = self.links[link_idx].replace(present=present)
        for joint in self.joints:
            if joint.preceding_link_idx == link_idx:
                self.set_joint_present(joint.idx, present)

    def set_joint_present(self, joint_idx: int, present: bool) -> None:
        """Enable or disable a joint and the link it leads into, with that link's subtree.

        Traversal layers are not refreshed.
        """
        check_index(joint_idx, len(self.joints), "joint index")
        self.joints[joint_idx] = self.joints[joint_idx].replace(present=present)
        child_link_idx = self.joints[joint_idx].child_link_idx
        if child_link_idx is not None and self.links[child_link_idx].present != present:
            self.set_link_present(child_link_idx, present)

    def set_fixed_joint_sub_dof(self, joint_idx: int, joint_sub_idx: int, fixed_value: Optional[float]) -> None:
        """Fix one axis of a joint at ``fixed_value``; None frees it again."""
        check_index(joint_idx, len(self.joints), "joint index")
        self.joints[joint_idx] = self.joints[joint_idx].with_fixed_sub_dof(joint_sub_idx, fixed_value)

    def set_fixed_joint(self, joint_idx: int, fixed_value: Optional[float]) -> None:
        """Fix every axis of a joint at the same value."""
        check_index(joint_idx, len(self.joints), "joint index")
        for sub_idx in range(self.joints[joint_idx].num_axes):
            self.set_fixed_joint_sub_dof(joint_idx, sub_idx, fixed_value)

    def add_mobility_base(self, mode: MobilityMode) -> None:
        """Insert a synthetic link and joint ahead of the root to model a movable base.

        The new link becomes the traversal root (``robot_base_link_idx``); the
        description root stays ``world_link_idx``. STATIC does nothing.
        """
        if mode == MobilityMode.STATIC:
            return
        if self.robot_base_link_idx != self.world_link_idx:
            raise MalformedGraph("robot already has a mobility base")

        new_link_idx = len(self.links)
        new_joint_idx = len(self.joints)
        child_idx = self.world_link_idx

        self.links.append(Link(name=MOBILITY_BASE_LINK_NAME, idx=new_link_idx,
                               preceding_link_idx=None, preceding_joint_idx=None,
                               children_link_idxs=(child_idx,)))
        self.joints.append(Joint(name=MOBILITY_BASE_JOINT_NAME, idx=new_joint_idx, joint_type=mode.value,
                                 preceding_link_idx=new_link_idx, child_link_idx=child_idx,
                                 axes=make_mobility_axes(new_joint_idx, mode)))
        self.links[child_idx] = self.links[child_idx].replace(preceding_link_idx=new_link_idx,
                                                              preceding_joint_idx=new_joint_idx)
        self.link_name_to_idx[MOBILITY_BASE_LINK_NAME] = new_link_idx
        self.joint_name_to_idx[MOBILITY_BASE_JOINT_NAME] = new_joint_idx
        self.robot_base_link_idx = new_link_idx

        self.recompute_traversal_info()
        self._assign_all_link_chains()
        logger.info("Added %s mobility base to %s", mode.value, self.robot_name)

    def copy(self) -> "RobotModel":
        return copy.deepcopy(self)

    def summary_lines(self) -> List[str]:
        lines = [l.summary() for l in self.links]
        lines += [j.summary() for j in self.joints]
        for i, layer in enumerate(self.link_tree_traversal_layers):
            lines.append(f"layer {i}: " + ", ".join(self.links[idx].name for idx in layer))
        return lines

    # Persistence
    def to_dict(self) -> Dict[str, Any]:
        return {
            "robot_name": self.robot_name,
            "links": [
                {"name": l.name, "present": l.present, "preceding_link_idx": l.preceding_link_idx,
                 "preceding_joint_idx": l.preceding_joint_idx, "children_link_idxs": list(l.children_link_idxs)}
                for l in self.links
            ],
            "joints": [
                {"name": j.name, "joint_type": j.joint_type, "present": j.present,
                 "preceding_link_idx": j.preceding_link_idx, "child_link_idx": j.child_link_idx,
                 "origin_xyz": list(j.origin_xyz), "origin_rpy": list(j.origin_rpy),
                 "axes": [
                     {"primitive": a.primitive.value, "axis": list(a.axis), "bounds": list(a.bounds),
                      "fixed_value": a.fixed_value}
                     for a in j.axes
                 ]}
                for j in self.joints
            ],
            "world_link_idx": self.world_link_idx,
            "robot_base_link_idx": self.robot_base_link_idx,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RobotModel":
        links = [
            Link(name=l["name"], idx=i, present=l["present"], preceding_link_idx=l["preceding_link_idx"],
                 preceding_joint_idx=l["preceding_joint_idx"], children_link_idxs=tuple(l["children_link_idxs"]))
            for i, l in enumerate(d["links"])
        ]
        joints = []
        for i, j in enumerate(d["joints"]):
            axes = tuple(
                JointAxis(joint_idx=i, joint_sub_dof_idx=k, primitive=JointAxisPrimitive(a["primitive"]),
                          axis=tuple(a["axis"]), bounds=tuple(a["bounds"]), fixed_value=a["fixed_value"])
                for k, a in enumerate(j["axes"])
            )
            joints.append(Joint(name=j["name"], idx=i, joint_type=j["joint_type"], present=j["present"],
                                preceding_link_idx=j["preceding_link_idx"], child_link_idx=j["child_link_idx"],
                                origin_xyz=tuple(j["origin_xyz"]), origin_rpy=tuple(j["origin_rpy"]), axes=axes))

        model = cls.__new__(cls)
        model.robot_name = d["robot_name"]
        model.links = links
        model.joints = joints
        model.link_name_to_idx = {l.name: l.idx for l in links}
        model.joint_name_to_idx = {j.name: j.idx for j in joints}
        model.world_link_idx = d["world_link_idx"]
        model.robot_base_link_idx = d["robot_base_link_idx"]
        model.recompute_traversal_info()
        model._assign_all_link_chains()
        return model
