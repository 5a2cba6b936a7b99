"""Exception hierarchy for jax_robot_model.

Every error raised by the library derives from :class:`RobotModelError`. Where
a builtin exception already names the category, the class derives from it too,
so ``except IndexError`` keeps working for callers that don't know about this
package.
"""


class RobotModelError(Exception):
    """Base class for all errors raised by jax_robot_model."""


class IndexOutOfBounds(RobotModelError, IndexError):
    """An index exceeds the bound of the container it addresses."""

    def __init__(self, idx: int, length: int, what: str = "index"):
        self.idx = idx
        self.length = length
        super().__init__(f"{what} {idx} is out of bounds for length {length}")


class MalformedGraph(RobotModelError, ValueError):
    """The link/joint records do not form a single rooted tree."""


class StateSizeMismatch(RobotModelError, ValueError):
    """A state vector does not match the DOF or Full size of its model."""

    def __init__(self, context: str, got: int, expected):
        self.got = got
        self.expected = expected
        super().__init__(f"{context}: state has length {got}, expected {expected}")


class InvalidJointValue(RobotModelError, ValueError):
    """A joint value cannot be resolved to a transform (NaN or infinite)."""


class IncompatibleRepresentation(RobotModelError, TypeError):
    """Pose or rotation operands carry different representation tags."""


class SchemeNotPreprocessed(RobotModelError, LookupError):
    """No shape collection exists for the requested representation."""


class UnknownShapeSignature(RobotModelError, LookupError):
    """A shape signature is not part of the shape collection."""


class AssetUnavailable(RobotModelError, OSError):
    """The asset store failed to load or save an entry."""


class AssetNotFound(AssetUnavailable):
    """The asset store has no entry under the requested key."""


class SourceDataMissing(RobotModelError, FileNotFoundError):
    """No kinematic description could be found for a named robot."""


def check_index(idx: int, length: int, what: str = "index") -> None:
    """Raise :class:`IndexOutOfBounds` unless ``0 <= idx < length``."""
    if idx < 0 or idx >= length:
        raise IndexOutOfBounds(idx, length, what)
