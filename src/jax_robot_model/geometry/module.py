"""Robot-level collision geometry: preprocessing, query dispatch and calibration.

Every preprocessed representation is persisted twice: a "permanent"
baseline written once right after preprocessing, and a "current" copy that
calibration updates. :meth:`RobotGeometricShapeModule.reset` restores the
current copy from the baseline.
"""

import json
import logging
from typing import Dict, Iterable, Optional

from .engine import SphereQueryEngine
from .queries import Contact, LogCondition, QueryGroupOutput, StopCondition
from .robot_shapes import (
    RobotLinkShapeRepresentation,
    RobotShapeCollection,
    preprocess,
    resolve_robot_query,
)
from ..config import ToolboxConfig
from ..errors import AssetNotFound, SchemeNotPreprocessed
from ..io.asset_store import AssetKey, AssetVariant, InMemoryAssetStore
from ..transforms import SE3PoseType

logger = logging.getLogger(__name__)


class RobotGeometricShapeModule:
    """Shape collections of one robot, keyed by representation scheme.

    Args:
        robot_name: Robot identity used for asset keys.
        kinematics: RobotKinematics used to resolve query states to poses.
        engine: Primitive geometric query engine.
        store: Asset store for persisted collections.
        shape_source: Shape source used by :meth:`preprocess`.
        sampler: Joint state sampler used by :meth:`preprocess`.
        config: Preprocessing and calibration settings.
        preprocessing_kinematics: Kinematics of the unconfigured model;
            defaults to ``kinematics``.
    """

    def __init__(self, robot_name: str, kinematics, engine=None, store=None, shape_source=None, sampler=None,
                 config: Optional[ToolboxConfig] = None, preprocessing_kinematics=None):
        self.robot_name = robot_name
        self.kinematics = kinematics
        self.engine = engine if engine is not None else SphereQueryEngine()
        self.store = store if store is not None else InMemoryAssetStore()
        self.shape_source = shape_source
        self.sampler = sampler
        self.config = config or ToolboxConfig()
        self.preprocessing_kinematics = preprocessing_kinematics or kinematics
        self.collections: Dict[RobotLinkShapeRepresentation, RobotShapeCollection] = {}

    def _key(self, representation: RobotLinkShapeRepresentation, variant: AssetVariant) -> AssetKey:
        return AssetKey(robot_name=self.robot_name, representation=representation.value, variant=variant)

    def _save(self, collection: RobotShapeCollection, variant: AssetVariant) -> None:
        self.store.save(self._key(collection.representation, variant), json.dumps(collection.to_dict()))

    def _load(self, representation: RobotLinkShapeRepresentation, variant: AssetVariant) -> RobotShapeCollection:
        text = self.store.load(self._key(representation, variant))
        return RobotShapeCollection.from_dict(json.loads(text))

    # Preprocessing and persistence
    def preprocess(self, representation: RobotLinkShapeRepresentation) -> RobotShapeCollection:
        """Preprocess one representation and save it as both current and permanent.

        Nothing is stored if preprocessing raises.
        """
        if self.shape_source is None or self.sampler is None:
            raise ValueError("preprocessing needs a shape source and a sampler")
        collection = preprocess(representation, self.shape_source, self.preprocessing_kinematics, self.sampler,
                                self.engine, self.config.preprocessing)
        self._save(collection, AssetVariant.PERMANENT)
        self._save(collection, AssetVariant.CURRENT)
        self.collections[representation] = collection
        return collection

    def preprocess_all(self) -> None:
        if self.shape_source is None:
            raise ValueError("preprocessing needs a shape source")
        for representation in self.shape_source.representations():
            self.preprocess(representation)

    def load(self, representation: RobotLinkShapeRepresentation) -> RobotShapeCollection:
        """Load the current copy of a representation from the store."""
        collection = self._load(representation, AssetVariant.CURRENT)
        self.collections[representation] = collection
        return collection

    def save(self) -> None:
        """Write every collection's current copy to the store."""
        for collection in self.collections.values():
            self._save(collection, AssetVariant.CURRENT)

    def robot_shape_collection(self, representation: RobotLinkShapeRepresentation) -> RobotShapeCollection:
        if representation not in self.collections:
            raise SchemeNotPreprocessed(f"{representation.value} has not been preprocessed for {self.robot_name}")
        return self.collections[representation]

    # Queries
    def query(self, request, representation: RobotLinkShapeRepresentation,
              stop_condition: Optional[StopCondition] = None,
              log_condition: Optional[LogCondition] = None,
              sort_outputs: bool = False) -> QueryGroupOutput:
        """Resolve the request's joint state(s) to shape poses and run it over one representation.

        Raises:
            SchemeNotPreprocessed: if ``representation`` has no collection.
        """
        collection = self.robot_shape_collection(representation)
        query = resolve_robot_query(request, collection, self.kinematics)
        return collection.shape_collection.shape_collection_query(query, self.engine, stop_condition,
                                                                  log_condition, sort_outputs)

    # Calibration
    def suppress_pair_if_shallow_contact(self, state, representation: RobotLinkShapeRepresentation,
                                         max_penetration: Optional[float] = None) -> int:
        """Skip every pair in shallow contact at ``state``; returns how many pairs were newly skipped.

        A pair is shallow when its contact distance d satisfies
        ``-max_penetration < d <= 0``.
        """
        calibration = self.config.calibration
        max_penetration = calibration.max_penetration if max_penetration is None else max_penetration
        robot_collection = self.robot_shape_collection(representation)
        collection = robot_collection.shape_collection

        fk_result = self.kinematics.compute_fk(state, SE3PoseType.IMPLICIT_DUAL_QUATERNION)
        query = Contact(poses=robot_collection.recover_poses(fk_result), prediction=calibration.contact_prediction)
        group = collection.shape_collection_query(query, self.engine)

        suppressed = 0
        for output in group.outputs:
            contact = output.result.unwrap_contact()
            if contact is None or not (-max_penetration < contact.dist <= 0.0):
                continue
            i = collection.get_shape_idx_from_signature(output.signatures[0])
            j = collection.get_shape_idx_from_signature(output.signatures[1])
            collection.replace_skip_from_idxs(True, i, j)
            suppressed += 1

        self._save(robot_collection, AssetVariant.CURRENT)
        logger.info("Calibration of %s for %s suppressed %d pairs",
                    representation.value, self.robot_name, suppressed)
        return suppressed

    def mark_state_as_non_collision(self, state, max_penetration: Optional[float] = None) -> int:
        """Calibrate every loaded representation against a known collision-free state."""
        return sum(self.suppress_pair_if_shallow_contact(state, representation, max_penetration)
                   for representation in list(self.collections))

    def reset(self, representation: RobotLinkShapeRepresentation) -> RobotShapeCollection:
        """Restore a representation's current copy from its permanent baseline.

        Raises:
            SchemeNotPreprocessed: if the store holds no baseline for ``representation``.
        """
        try:
            collection = self._load(representation, AssetVariant.PERMANENT)
        except AssetNotFound as e:
            raise SchemeNotPreprocessed(
                f"{representation.value} has not been preprocessed for {self.robot_name}") from e
        self._save(collection, AssetVariant.CURRENT)
        self.collections[representation] = collection
        logger.info("Reset %s for %s to its preprocessed baseline", representation.value, self.robot_name)
        return collection

    def reset_all(self) -> None:
        for representation in list(self.collections):
            self.reset(representation)


def load_or_build(robot_name: str, kinematics, store, shape_source, sampler, engine=None,
                  config: Optional[ToolboxConfig] = None,
                  representations: Optional[Iterable[RobotLinkShapeRepresentation]] = None,
                  preprocessing_kinematics=None) -> RobotGeometricShapeModule:
    """Load each representation's current collection from ``store``, preprocessing the ones that are missing."""
    module = RobotGeometricShapeModule(robot_name, kinematics, engine=engine, store=store,
                                       shape_source=shape_source, sampler=sampler, config=config,
                                       preprocessing_kinematics=preprocessing_kinematics)
    if representations is None:
        representations = shape_source.representations()

    for representation in representations:
        if store.exists(module._key(representation, AssetVariant.CURRENT)):
            logger.info("Loaded cached %s collection for %s", representation.value, robot_name)
            module.load(representation)
        else:
            logger.info("No cached %s collection for %s, preprocessing", representation.value, robot_name)
            module.preprocess(representation)
    return module
