"""URDF parser producing raw link/joint records for the kinematic graph.

Links and joints are returned in document order; that order fixes the link
and joint indices used everywhere else in the library.
"""

import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

from flax import struct
from lxml import etree

from ..core import RawJoint, RawLink, RobotModel
from ..errors import MalformedGraph, SourceDataMissing

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@struct.dataclass
class CollisionElement:
    """A primitive ``<collision>`` geometry of a link.

    Attributes:
        kind: ``sphere``, ``box``, ``cylinder`` or ``mesh``.
        dimensions: radius for spheres, (x, y, z) size for boxes,
                    (radius, length) for cylinders, scale for meshes.
        origin_xyz: Offset of the geometry in the link frame.
        origin_rpy: Orientation of the geometry in the link frame.
    """
    kind: str = struct.field(pytree_node=False)
    dimensions: Tuple[float, ...] = struct.field(pytree_node=False)
    origin_xyz: Tuple[float, float, float] = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))
    origin_rpy: Tuple[float, float, float] = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))


def _floats(text: str, default: str) -> Tuple[float, ...]:
    return tuple(float(x) for x in (text if text is not None else default).split())


def _origin(elem) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
    origin_elem = elem.find("origin")
    if origin_elem is None:
        return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)
    return _floats(origin_elem.get("xyz"), "0 0 0"), _floats(origin_elem.get("rpy"), "0 0 0")


def _parse_tree(urdf_path: PathLike):
    try:
        return etree.parse(str(urdf_path)).getroot()
    except OSError as e:
        raise SourceDataMissing(f"cannot read URDF {urdf_path}: {e}") from e


def parse_urdf(urdf_path: PathLike) -> Tuple[str, List[RawLink], List[RawJoint]]:
    """Parse a URDF file into raw description records.

    Args:
        urdf_path: Path to the URDF file.

    Returns:
        (robot name, links in document order, joints in document order)

    Raises:
        SourceDataMissing: if the file cannot be read.
        MalformedGraph: if a joint lacks its parent or child element.
    """
    root = _parse_tree(urdf_path)
    robot_name = root.get("name", Path(urdf_path).stem)

    raw_links = [RawLink(name=link.get("name")) for link in root.findall("link")]

    raw_joints = []
    for joint in root.findall("joint"):
        parent_elem = joint.find("parent")
        child_elem = joint.find("child")
        if parent_elem is None or child_elem is None:
            raise MalformedGraph(f"joint {joint.get('name')!r} has no parent or child link")

        xyz, rpy = _origin(joint)
        axis_elem = joint.find("axis")
        axis = _floats(axis_elem.get("xyz") if axis_elem is not None else None, "1 0 0")
        limit_elem = joint.find("limit")
        lower = float(limit_elem.get("lower", 0.0)) if limit_elem is not None else 0.0
        upper = float(limit_elem.get("upper", 0.0)) if limit_elem is not None else 0.0

        raw_joints.append(RawJoint(
            name=joint.get("name"),
            joint_type=joint.get("type"),
            parent_link=parent_elem.get("link"),
            child_link=child_elem.get("link"),
            origin_xyz=xyz,
            origin_rpy=rpy,
            axis=axis,
            lower=lower,
            upper=upper,
        ))

    return robot_name, raw_links, raw_joints


def load_urdf(urdf_path: PathLike) -> RobotModel:
    """Load a URDF file and build its kinematic graph.

    Args:
        urdf_path: Path to the URDF file to load.

    Returns:
        RobotModel: The robot's link/joint tree.
    """
    robot_name, raw_links, raw_joints = parse_urdf(urdf_path)
    return RobotModel.build(robot_name, raw_links, raw_joints)


def find_robot_urdf(assets_dir: PathLike, robot_name: str) -> Path:
    """First URDF (in sorted order) under ``<assets_dir>/robots/<robot_name>``.

    Raises:
        SourceDataMissing: if the directory does not exist or holds no URDF.
    """
    robot_dir = Path(assets_dir) / "robots" / robot_name
    if not robot_dir.is_dir():
        raise SourceDataMissing(f"robot directory for {robot_name!r} does not exist: {robot_dir}")
    candidates = sorted(robot_dir.rglob("*.urdf"))
    if not candidates:
        raise SourceDataMissing(f"robot directory for {robot_name!r} does not contain a urdf: {robot_dir}")
    return candidates[0]


def parse_collision_geometry(urdf_path: PathLike) -> Dict[str, List[CollisionElement]]:
    """Collision primitives per link name, in document order."""
    root = _parse_tree(urdf_path)
    out: Dict[str, List[CollisionElement]] = {}

    for link in root.findall("link"):
        elements = []
        for collision in link.findall("collision"):
            geometry = collision.find("geometry")
            shapes = [] if geometry is None else [c for c in geometry if isinstance(c.tag, str)]
            if not shapes:
                continue
            shape = shapes[0]
            xyz, rpy = _origin(collision)

            if shape.tag == "sphere":
                dimensions = (float(shape.get("radius")),)
            elif shape.tag == "box":
                dimensions = _floats(shape.get("size"), "0 0 0")
            elif shape.tag == "cylinder":
                dimensions = (float(shape.get("radius")), float(shape.get("length")))
            elif shape.tag == "mesh":
                dimensions = _floats(shape.get("scale"), "1 1 1")
            else:
                logger.warning("Ignoring unsupported collision geometry <%s> on link %s", shape.tag, link.get("name"))
                continue
            elements.append(CollisionElement(kind=shape.tag, dimensions=dimensions, origin_xyz=xyz, origin_rpy=rpy))

        out[link.get("name")] = elements
    return out
