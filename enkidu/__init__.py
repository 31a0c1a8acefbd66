from enkidu.block import Block, BlockStatus, Edge, Pending, Resolved
from enkidu.builder import Builder
from enkidu.effects import EdgeKind, Effect, Instruction, Jump, JumpType, classify
from enkidu.errors import (
    BuilderError,
    DuplicateBlockStartError,
    EffectMismatchError,
    EnkiduError,
    MalformedEffectError,
    MissingBlockError,
    SplitAlignmentError,
    StaleViewError,
)
from enkidu.graph import Graph
from enkidu.index import AddressIndex, BlockStart, InBlockAtOffset, NotFound
from enkidu.views import BlockView, EdgeView

__all__ = [
    "AddressIndex",
    "Block",
    "BlockStart",
    "BlockStatus",
    "BlockView",
    "Builder",
    "BuilderError",
    "DuplicateBlockStartError",
    "Edge",
    "EdgeKind",
    "EdgeView",
    "Effect",
    "EffectMismatchError",
    "EnkiduError",
    "Graph",
    "InBlockAtOffset",
    "Instruction",
    "Jump",
    "JumpType",
    "MalformedEffectError",
    "MissingBlockError",
    "NotFound",
    "Pending",
    "Resolved",
    "SplitAlignmentError",
    "StaleViewError",
    "classify",
]
