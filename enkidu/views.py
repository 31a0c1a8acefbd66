"""Read-only traversal of a graph, for exporters and other consumers.

Views mirror the graph at the moment they were produced. Any later mutation of
the graph invalidates them: reading an invalid view raises StaleViewError.
"""

from typing import Iterator, Optional, Tuple

from cached_property import cached_property  # type: ignore

from enkidu.block import Block, BlockStatus, Edge
from enkidu.effects import EdgeKind, Effect
from enkidu.errors import StaleViewError
from enkidu.utils.invalidable import Invalidable


class BlockView(Invalidable):
    def __init__(self, graph, block: Block):
        super().__init__()
        self._graph = graph
        self._block = block

    def __repr__(self) -> str:
        return f"<BlockView ${self.start:06X}>"

    def __eq__(self, other) -> bool:
        return isinstance(other, BlockView) and self._block is other._block

    def __hash__(self) -> int:
        return hash(self._block)

    def __iter__(self) -> Iterator[Tuple[int, Effect]]:
        return iter(self.effects)

    def __len__(self) -> int:
        return len(self.effects)

    @property
    def start(self) -> int:
        return self._block.start

    @property
    def end(self) -> int:
        return self._block.end

    @property
    def status(self) -> BlockStatus:
        return self._block.status

    @property
    def is_open(self) -> bool:
        return self._block.is_open

    @property
    def is_entry(self) -> bool:
        return self._graph.entry == self.start

    @cached_property
    def effects(self) -> Tuple[Tuple[int, Effect], ...]:
        return tuple(self._block.effects.items())

    @cached_property
    def predecessors(self) -> Tuple[int, ...]:
        """Start addresses of the blocks with an edge into this one."""
        return tuple(sorted(b.start for b in self._block.predecessors))


class EdgeView(Invalidable):
    def __init__(self, graph, edge: Edge):
        super().__init__()
        self._graph = graph
        self._edge = edge

    def __repr__(self) -> str:
        return "<EdgeView ${:06X} -{}-> ${:06X}{}>".format(
            self._edge.source.start,
            self.kind.name,
            self.address,
            "" if self.is_resolved else " (pending)",
        )

    @property
    def kind(self) -> EdgeKind:
        return self._edge.kind

    @property
    def hits(self) -> int:
        return self._edge.hits

    @property
    def address(self) -> int:
        return self._edge.address

    @property
    def is_resolved(self) -> bool:
        return self._edge.is_resolved

    @property
    def pending_address(self) -> Optional[int]:
        return None if self._edge.is_resolved else self._edge.address

    @cached_property
    def source(self) -> BlockView:
        return self._graph.view(self._edge.source)

    @cached_property
    def target(self) -> Optional[BlockView]:
        target = self._edge.target
        return None if target is None else self._graph.view(target)


class _Sequence:
    def __init__(self, graph):
        self._graph = graph

    def _guarded(self, items) -> Iterator:
        generation = self._graph.generation
        for item in items:
            if self._graph.generation != generation:
                raise StaleViewError("The graph changed during iteration.")
            yield item


class BlockSequence(_Sequence):
    """Blocks in ascending start address order. Can be iterated many times."""

    def __iter__(self) -> Iterator[BlockView]:
        for block in self._guarded(self._graph.index):
            yield self._graph.view(block)

    def __len__(self) -> int:
        return len(self._graph.index)


class EdgeSequence(_Sequence):
    def __init__(self, graph, block: Block):
        super().__init__(graph)
        self._block = block

    def __iter__(self) -> Iterator[EdgeView]:
        for edge in self._guarded(list(self._block.edges)):
            yield self._graph.edge_view(edge)

    def __len__(self) -> int:
        return len(self._block.edges)
