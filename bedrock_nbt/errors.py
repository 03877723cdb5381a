class NbtError(Exception):
    """Base class for every error raised while reading or writing NBT and LevelDB entries."""


def _at(message: str, offset) -> str:
    if offset is None:
        return message
    return f"{message} (at byte {offset})"


class NbtIoError(NbtError):
    """Truncated input, an invalid tag id, a negative length or unexpected trailing bytes."""

    def __init__(self, message: str, offset: int = None):
        super().__init__(_at(message, offset))
        self.offset = offset


class NbtTypeError(NbtError):
    """A tag of the wrong kind: list element mismatch, duplicate key, bad ownership."""


class DepthExceeded(NbtError):
    def __init__(self, limit: int, offset: int = None):
        super().__init__(_at(f"Nesting depth exceeds limit of {limit}", offset))
        self.limit = limit
        self.offset = offset


class EncodingError(NbtError):
    """A string could not be encoded or decoded in the flavor's text encoding."""

    def __init__(self, message: str, offset: int = None):
        super().__init__(_at(message, offset))
        self.offset = offset


class ParseError(NbtError):
    """Malformed stringified NBT."""

    def __init__(self, message: str, index: int = None):
        if index is not None:
            message = f"{message} (at character {index})"
        super().__init__(message)
        self.index = index


class RootPolicyViolation(NbtError):
    def __init__(self, message: str, offset: int = None):
        super().__init__(_at(message, offset))
        self.offset = offset


class EntryDecodeError(NbtError):
    """A recognised LevelDB key whose value does not match its expected layout."""

    def __init__(self, key: bytes, variant, cause):
        name = getattr(variant, "name", variant)
        super().__init__(f"Failed to decode {name} value for key {key!r}: {cause}")
        self.key = key
        self.variant = variant
        self.cause = cause
