from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, List, Optional, Set, Union

from sortedcontainers import SortedDict  # type: ignore

from enkidu.effects import EdgeKind, Effect, Jump


class BlockStatus(Enum):
    OPEN = auto()
    CLOSED = auto()


@dataclass(frozen=True)
class Pending:
    address: int


@dataclass(frozen=True)
class Resolved:
    block: "Block"


Destination = Union[Resolved, Pending]


class Edge:
    """A directed control-flow relation leaving a block."""

    def __init__(self, source: "Block", kind: EdgeKind, destination: Destination):
        self.source = source
        self.kind = kind
        self.destination = destination
        # How many times control was seen flowing along this edge.
        self.hits = 0

    def __repr__(self) -> str:
        return "<Edge ${:06X} -{}-> ${:06X}{}>".format(
            self.source.start,
            self.kind.name,
            self.address,
            "" if self.is_resolved else " (pending)",
        )

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.destination, Resolved)

    @property
    def target(self) -> Optional["Block"]:
        if isinstance(self.destination, Resolved):
            return self.destination.block
        return None

    @property
    def address(self) -> int:
        """The destination address, whether resolved or not."""
        if isinstance(self.destination, Resolved):
            return self.destination.block.start
        return self.destination.address


class Block:
    """A basic block of effects that are always executed in order.

    Attributes:
        start: The address of the first effect, unique across the graph.
        effects: Effects indexed (and sorted) by address.
        status: OPEN while the block may still grow at its end.
        edges: Outgoing edges, at most two.
        incoming: Edges pointing at this block. They belong to their sources.
    """

    def __init__(self, start: int, effect: Effect):
        self.start = start
        self.effects: Dict[int, Effect] = SortedDict({start: effect})
        self.status = (
            BlockStatus.CLOSED if isinstance(effect, Jump) else BlockStatus.OPEN
        )
        self.edges: List[Edge] = []
        self.incoming: Set[Edge] = set()

    def __repr__(self) -> str:
        return f"<Block ${self.start:06X} ({len(self.effects)}, {self.status.name})>"

    def __iter__(self):
        return iter(self.effects.items())

    def __len__(self) -> int:
        return len(self.effects)

    @property
    def is_open(self) -> bool:
        return self.status == BlockStatus.OPEN

    @property
    def first(self) -> Effect:
        """The first effect in the block."""
        return self.effects[self.start]

    @property
    def last(self) -> Effect:
        """The last effect in the block."""
        return self.effects.peekitem(-1)[1]

    @property
    def end(self) -> int:
        """The address of the last effect in the block (included)."""
        return self.effects.peekitem(-1)[0]

    @property
    def predecessors(self) -> Set["Block"]:
        return {edge.source for edge in self.incoming}

    def find_edge(self, kind: EdgeKind, address: int) -> Optional[Edge]:
        for edge in self.edges:
            if edge.kind == kind and edge.address == address:
                return edge
        return None

    def add_effect(self, address: int, effect: Effect) -> None:
        """Add an effect at the end of the block.

        Args:
            address: Where the effect was observed, past the current end.
            effect: The effect to be added. A Jump closes the block.
        """
        assert self.is_open and address > self.end
        self.effects[address] = effect
        if isinstance(effect, Jump):
            self.status = BlockStatus.CLOSED

    def close(self) -> None:
        self.status = BlockStatus.CLOSED
