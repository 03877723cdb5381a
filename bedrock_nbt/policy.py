import sys

from bedrock_nbt.errors import DepthExceeded, RootPolicyViolation
from bedrock_nbt.options import RootPolicy, DEFAULT_DEPTH_LIMIT
from bedrock_nbt.tag import TagId

# The codecs recurse once per container and spend up to this many frames per level
FRAMES_PER_LEVEL = 4


def reserve_recursion(limit: int):
    """
    Raises the interpreter recursion limit so trees `limit` levels deep fit.

    This is process-wide. It runs once for the default depth when this module is
    imported and again from `Config.options()`; callers picking a larger
    `depth_limit` by hand call it themselves before decoding.
    """
    needed = limit * FRAMES_PER_LEVEL + 200
    if sys.getrecursionlimit() < needed:
        sys.setrecursionlimit(needed)


reserve_recursion(DEFAULT_DEPTH_LIMIT)


class DepthGuard:
    """
    Call-local nesting counter shared by the binary and text codecs.

    Every Compound or List counts as one level; the root container is level 1.
    Entering level `limit + 1` raises `DepthExceeded`.
    """

    def __init__(self, limit: int = DEFAULT_DEPTH_LIMIT):
        self.limit = limit
        self.depth = 0

    def enter(self, offset=None):
        self.depth += 1
        if self.depth > self.limit:
            raise DepthExceeded(self.limit, offset)

    def leave(self):
        self.depth -= 1


def check_root(policy: RootPolicy, tag_id, offset=None):
    """Raises if a root of `tag_id` is not allowed under `policy`."""
    if tag_id == TagId.END:
        raise RootPolicyViolation("Root tag cannot be End", offset)
    if policy is RootPolicy.NAMED_COMPOUND_ONLY and tag_id != TagId.COMPOUND:
        raise RootPolicyViolation(f"Root must be a Compound, got {TagId(tag_id).label}", offset)


def root_is_named(policy: RootPolicy) -> bool:
    return policy is not RootPolicy.ANY_UNNAMED
