"""Configuration passed explicitly into model, preprocessing and calibration calls.

There is no process-wide configuration: every entry point takes a
:class:`ToolboxConfig` (or one of its sections) as an argument. Values are
validated by pydantic; invalid files raise :class:`pydantic.ValidationError`.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, PositiveInt, field_validator, model_validator


def _default_time_budgets() -> Dict[str, float]:
    # Seconds of sampling per representation scheme; more detailed schemes get more time.
    return {
        "cubes": 20.0,
        "convex_shapes": 30.0,
        "sphere_subcomponents": 30.0,
        "cube_subcomponents": 30.0,
        "convex_shape_subcomponents": 60.0,
        "triangle_meshes": 120.0,
    }


class PreprocessingConfig(BaseModel):
    """Sampling policy of collision preprocessing.

    Sampling stops once the wall-clock budget of the representation has
    elapsed and at least ``min_samples`` samples were drawn, or after
    ``max_samples`` samples, whichever comes first.

    A pair is skipped as always colliding when its collision ratio exceeds
    ``always_colliding_ratio`` after at least ``min_samples`` samples, and as
    never colliding when it never collided in at least
    ``never_colliding_min_samples`` samples.
    """
    model_config = ConfigDict(extra="forbid")

    min_samples: PositiveInt = 70
    max_samples: PositiveInt = 100_000
    never_colliding_min_samples: PositiveInt = 1000
    always_colliding_ratio: float = Field(default=0.99, gt=0.0, le=1.0)
    time_budgets: Dict[str, NonNegativeFloat] = Field(default_factory=_default_time_budgets)
    seed: int = 0

    @field_validator("time_budgets", mode="before")
    @classmethod
    def _merge_time_budgets(cls, value: Any) -> Any:
        """Partial budget tables override the defaults of the schemes they name."""
        if not isinstance(value, dict):
            return value
        budgets = _default_time_budgets()
        unknown = sorted(set(value) - set(budgets))
        if unknown:
            raise ValueError(f"unknown representation schemes: {unknown}")
        budgets.update(value)
        return budgets

    @model_validator(mode="after")
    def _check_sample_counts(self) -> "PreprocessingConfig":
        if self.max_samples < self.min_samples:
            raise ValueError("max_samples must be at least min_samples")
        if self.never_colliding_min_samples < self.min_samples:
            raise ValueError("never_colliding_min_samples must be at least min_samples")
        return self

    def time_budget(self, representation: str) -> float:
        return self.time_budgets[representation]


class CalibrationConfig(BaseModel):
    """Shallow-contact calibration at a known-safe state.

    A pair whose contact distance d satisfies ``-max_penetration < d <= 0`` is
    marked as skipped.
    """
    model_config = ConfigDict(extra="forbid")

    contact_prediction: NonNegativeFloat = 0.01
    max_penetration: float = Field(default=0.12, gt=0.0)


class ToolboxConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assets_dir: Path = Path("assets")
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)


def config_from_dict(data: Optional[Dict[str, Any]]) -> ToolboxConfig:
    """Validate a nested dictionary; missing keys keep their defaults.

    Raises:
        pydantic.ValidationError: on unknown keys, wrong types or out-of-range values.
    """
    return ToolboxConfig.model_validate(data or {})


def load_config(path: Union[str, Path]) -> ToolboxConfig:
    """Read a YAML configuration file.

    Relative ``assets_dir`` values are resolved against the file's directory.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        pydantic.ValidationError: if the file's values are invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = config_from_dict(data)
    if not config.assets_dir.is_absolute():
        config = config.model_copy(update={"assets_dir": path.parent / config.assets_dir})
    return config
