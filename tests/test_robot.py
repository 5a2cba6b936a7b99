"""End-to-end tests of the Robot facade on an on-disk asset tree."""

import shutil

import numpy as np
import pytest

from jax_robot_model import Robot
from jax_robot_model.core import MobilityMode, RobotConfiguration, RobotStateType
from jax_robot_model.errors import SourceDataMissing
from jax_robot_model.geometry import RobotDistance, RobotLinkShapeRepresentation
from jax_robot_model.transforms import SE3PoseType

SPHERES = RobotLinkShapeRepresentation.SPHERE_SUBCOMPONENTS


@pytest.fixture
def assets(fast_config, fixtures_dir):
    urdf_dir = fast_config.assets_dir / "robots" / "three_link_arm" / "urdf"
    urdf_dir.mkdir(parents=True)
    shutil.copy(fixtures_dir / "three_link_arm.urdf", urdf_dir / "three_link_arm.urdf")
    return fast_config


def test_build_writes_cached_collections(assets):
    robot = Robot.from_name("three_link_arm", assets)
    geometry_dir = assets.assets_dir / "robots" / "three_link_arm" / "shape_geometry"
    assert sorted(p.name for p in geometry_dir.iterdir()) == [
        "cubes.current.json",
        "cubes.permanent.json",
        "sphere_subcomponents.current.json",
        "sphere_subcomponents.permanent.json",
    ]
    assert robot.state_model.num_dofs == 2


def test_second_build_loads_from_disk(assets):
    first = Robot.from_name("three_link_arm", assets)
    path = assets.assets_dir / "robots" / "three_link_arm" / "shape_geometry" / "cubes.permanent.json"
    stamp = path.stat().st_mtime_ns

    second = Robot.from_name("three_link_arm", assets)
    assert path.stat().st_mtime_ns == stamp
    np.testing.assert_array_equal(
        second.geometry.robot_shape_collection(SPHERES).shape_collection.skips,
        first.geometry.robot_shape_collection(SPHERES).shape_collection.skips)


def test_kinematics_and_queries(assets):
    robot = Robot.from_name("three_link_arm", assets, representations=[SPHERES])
    state = robot.spawn_state([0.0, 1.5])
    assert state.state_type == RobotStateType.FULL

    fk = robot.compute_fk(state, SE3PoseType.HOMOGENEOUS_MATRIX)
    np.testing.assert_allclose(fk.get_pose_by_name("tool").translation(),
                               [0.4 * np.sin(1.5), 0.0, 0.5 + 0.4 * np.cos(1.5)], atol=1e-9)

    group = robot.query(RobotDistance(state=state), SPHERES)
    assert group.intersection_found

    assert robot.mark_state_as_non_collision(state) == 1
    assert not robot.query(RobotDistance(state=state), SPHERES).intersection_found

    robot.reset(SPHERES)
    assert robot.query(RobotDistance(state=state), SPHERES).intersection_found


def test_calibration_survives_reload(assets):
    robot = Robot.from_name("three_link_arm", assets, representations=[SPHERES])
    robot.mark_state_as_non_collision([0.0, 1.5])

    reloaded = Robot.from_name("three_link_arm", assets, representations=[SPHERES])
    assert reloaded.geometry.robot_shape_collection(SPHERES).shape_collection.skip(2, 3)

    reloaded.reset_all()
    again = Robot.from_name("three_link_arm", assets, representations=[SPHERES])
    assert not again.geometry.robot_shape_collection(SPHERES).shape_collection.skip(2, 3)


def test_configured_robot_shares_collections(assets):
    Robot.from_name("three_link_arm", assets, representations=[SPHERES])
    configuration = RobotConfiguration(fixed_joints={"joint1": 0.3},
                                       mobility_mode=MobilityMode.PLANAR_TRANSLATION)
    robot = Robot.from_name("three_link_arm", assets, configuration=configuration, representations=[SPHERES])

    assert robot.state_model.num_dofs == 3
    state = robot.spawn_state([1.5, 2.0, -1.0], RobotStateType.DOF)
    assert robot.query(RobotDistance(state=state), SPHERES).intersection_found


def test_unknown_robot(assets):
    with pytest.raises(SourceDataMissing):
        Robot.from_name("no_such_robot", assets)
