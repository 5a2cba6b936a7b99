"""One-stop construction of a robot's model, kinematics and collision geometry."""

import logging
from typing import Iterable, Optional

from .chain import FKResult, RobotKinematics
from .config import ToolboxConfig
from .core import RobotConfiguration, RobotModel, RobotState, RobotStateType
from .geometry import (
    JointStateSampler,
    LogCondition,
    QueryGroupOutput,
    RobotGeometricShapeModule,
    RobotLinkShapeRepresentation,
    SphereQueryEngine,
    StopCondition,
    UrdfCollisionShapeSource,
    load_or_build,
)
from .io import FileAssetStore, find_robot_urdf, load_urdf
from .transforms import SE3PoseType

logger = logging.getLogger(__name__)


class Robot:
    """A configured robot with forward kinematics and collision queries.

    Collision preprocessing always runs on the unconfigured model, so every
    configuration of a robot shares the same cached collections.
    """

    def __init__(self, model: RobotModel, kinematics: RobotKinematics, geometry: RobotGeometricShapeModule,
                 configuration: Optional[RobotConfiguration] = None):
        self.model = model
        self.kinematics = kinematics
        self.geometry = geometry
        self.configuration = configuration

    @classmethod
    def from_name(cls, robot_name: str, config: Optional[ToolboxConfig] = None,
                  configuration: Optional[RobotConfiguration] = None, store=None, engine=None,
                  representations: Optional[Iterable[RobotLinkShapeRepresentation]] = None) -> "Robot":
        """Build a robot from ``<assets_dir>/robots/<robot_name>``.

        Raises:
            SourceDataMissing: if the robot has no URDF.
            MalformedGraph: if the URDF does not describe a single tree.
        """
        config = config or ToolboxConfig()
        urdf_path = find_robot_urdf(config.assets_dir, robot_name)
        base_model = load_urdf(urdf_path)
        model = configuration.apply(base_model) if configuration is not None else base_model

        base_kinematics = RobotKinematics(base_model)
        kinematics = RobotKinematics(model)
        geometry = load_or_build(
            robot_name,
            kinematics,
            store if store is not None else FileAssetStore(config.assets_dir),
            UrdfCollisionShapeSource.from_urdf(urdf_path, base_model),
            JointStateSampler(base_kinematics.state_model, seed=config.preprocessing.seed),
            engine=engine if engine is not None else SphereQueryEngine(),
            config=config,
            representations=representations,
            preprocessing_kinematics=base_kinematics,
        )
        logger.info("Robot %s ready: %d links, %d dofs", robot_name, len(model.links),
                    kinematics.state_model.num_dofs)
        return cls(model, kinematics, geometry, configuration)

    @property
    def state_model(self):
        return self.kinematics.state_model

    def spawn_state(self, values, state_type: Optional[RobotStateType] = None) -> RobotState:
        if state_type is None:
            return self.state_model.spawn_state_auto(values)
        return self.state_model.spawn_state(values, state_type)

    def compute_fk(self, state, pose_type: SE3PoseType = SE3PoseType.IMPLICIT_DUAL_QUATERNION) -> FKResult:
        return self.kinematics.compute_fk(state, pose_type)

    def query(self, request, representation: RobotLinkShapeRepresentation,
              stop_condition: Optional[StopCondition] = None, log_condition: Optional[LogCondition] = None,
              sort_outputs: bool = False) -> QueryGroupOutput:
        return self.geometry.query(request, representation, stop_condition, log_condition, sort_outputs)

    def mark_state_as_non_collision(self, state, max_penetration: Optional[float] = None) -> int:
        return self.geometry.mark_state_as_non_collision(state, max_penetration)

    def reset(self, representation: RobotLinkShapeRepresentation) -> None:
        self.geometry.reset(representation)

    def reset_all(self) -> None:
        self.geometry.reset_all()
