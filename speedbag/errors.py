"""Exceptions raised while assembling a bag."""


class SpeedBagError(Exception):
    """Base class for every error raised by speedbag."""


class PathConflict(SpeedBagError):
    """A file with the same path and classification was already registered."""

    def __init__(self, path: str, is_tag: bool):
        kind = "tag" if is_tag else "data"
        super().__init__(f"The {kind} file with path '{path}' conflicts with another file.")
        self.path = path
        self.is_tag = is_tag


class UnsupportedAlgorithm(SpeedBagError, ValueError):
    """The checksum algorithm is not known to hashlib."""

    def __init__(self, algorithm: str):
        super().__init__(f"Unsupported checksum algorithm '{algorithm}'.")
        self.algorithm = algorithm


class StreamFault(SpeedBagError, IOError):
    """Producing the archive failed; the output is incomplete."""


class BagStateError(SpeedBagError):
    """The assembler was used outside of the state that allows the operation."""
