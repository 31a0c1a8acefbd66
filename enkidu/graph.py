import logging
import weakref
from collections import defaultdict
from typing import DefaultDict, List, Optional, Set, Tuple

from enkidu.block import Block, BlockStatus, Edge, Pending, Resolved
from enkidu.effects import EdgeKind, Effect, Instruction, Jump
from enkidu.errors import (
    DuplicateBlockStartError,
    MissingBlockError,
    SplitAlignmentError,
)
from enkidu.index import AddressIndex, BlockStart, InBlockAtOffset
from enkidu.utils.invalidable import bulk_invalidate
from enkidu.views import BlockSequence, BlockView, EdgeSequence, EdgeView

logger = logging.getLogger(__name__)


class Graph:
    """Owner of all the blocks and edges of one analysis.

    Blocks are kept in an address index. Edges are owned by their source
    block; edges whose destination does not start a block yet are also
    tracked by target address, so they can be resolved as soon as it does.
    """

    def __init__(self, entry: Optional[int] = None):
        self.entry = entry
        self.generation = 0
        # Views handed out since the last mutation.
        self._views: List[weakref.ref] = []
        self.reset()

    def reset(self) -> None:
        """Forget every block and edge. The entry address is kept."""
        self.index = AddressIndex()
        self.pending: DefaultDict[int, Set[Edge]] = defaultdict(set)
        self._touch()

    def __contains__(self, start: int) -> bool:
        return start in self.index

    def __len__(self) -> int:
        return len(self.index)

    @property
    def entry_block(self) -> Optional[Block]:
        if self.entry is None:
            return None
        return self.index.get(self.entry)

    def set_entry(self, address: int) -> None:
        self.entry = address
        self._touch()

    def block(self, start: int) -> Block:
        block = self.index.get(start)
        if block is None:
            raise MissingBlockError(start)
        return block

    def block_containing(self, address: int) -> Block:
        location = self.index.locate(address)
        if isinstance(location, (BlockStart, InBlockAtOffset)):
            return location.block
        raise MissingBlockError(address)

    def pending_edges(self) -> List[Edge]:
        """Unresolved edges, by destination, source and kind."""
        return sorted(
            (edge for edges in self.pending.values() for edge in edges),
            key=lambda edge: (edge.address, edge.source.start, edge.kind.value),
        )

    def create_block(self, address: int, effect: Effect) -> Block:
        """Create a new block, and resolve all the edges waiting for it.

        Args:
            address: The start of the block.
            effect: The first effect of the block. A Jump closes it.

        Returns:
            The new block.

        Raises:
            DuplicateBlockStartError if a block already starts at the address.
        """
        if address in self.index:
            raise DuplicateBlockStartError(address)

        block = Block(address, effect)
        self.index.insert(block)
        logger.debug("New block at $%06X: %r", address, effect)

        self._resolve_pending(address, block)
        self._touch()
        return block

    def append(self, block: Block, address: int, effect: Effect) -> None:
        block.add_effect(address, effect)
        self._touch()

    def close(self, block: Block) -> None:
        block.close()
        self._touch()

    def split(self, block: Block, address: int) -> Tuple[Block, Block]:
        """Split a block in two, at the given effect.

        The head keeps the identity of the original block and all the edges
        pointing at it. The tail receives the effects from the address
        onwards, the status of the original block and its outgoing edges.
        The head falls through into the tail.

        Args:
            block: The block to be split.
            address: The address of an effect of the block, except the first.

        Returns:
            A tuple (head, tail).

        Raises:
            SplitAlignmentError if the address is not an effect boundary
            inside the block.
        """
        if address == block.start or address not in block.effects:
            raise SplitAlignmentError(
                f"Can't split {block!r}: no effect boundary here.", address
            )

        addresses = list(block.effects.irange(minimum=address))
        tail = Block(address, block.effects[address])
        for pc in addresses[1:]:
            tail.effects[pc] = block.effects[pc]
        for pc in addresses:
            del block.effects[pc]

        tail.status = block.status
        block.status = BlockStatus.CLOSED
        tail.edges, block.edges = block.edges, []
        for edge in tail.edges:
            edge.source = tail

        # The index must know about the tail before edges are retargeted.
        self.index.replace(block, block, tail)

        fallthrough = Edge(block, EdgeKind.FALLTHROUGH, Pending(address))
        block.edges.append(fallthrough)
        self._resolve(fallthrough, tail)
        self._resolve_pending(address, tail)
        logger.debug("Split $%06X at $%06X.", block.start, address)

        self._touch()
        return block, tail

    def in_gap(self, block: Block, address: int) -> bool:
        """Whether an address inside a block's range is covered by no effect.

        Only the size given by the tracer tells how far an instruction
        reaches; an instruction without a size covers its own address only.
        """
        if address in block.effects or not block.start < address < block.end:
            return False
        i = block.effects.bisect_right(address)
        pc, effect = block.effects.peekitem(i - 1)
        if isinstance(effect, Instruction) and effect.size is not None:
            return address >= pc + effect.size
        return True

    def carve(self, block: Block, address: int) -> Tuple[Block, Block]:
        """Cut a block at the first effect past a gap, freeing the address.

        Raises:
            SplitAlignmentError if the address is not in a gap of the block.
        """
        if not self.in_gap(block, address):
            raise SplitAlignmentError(f"No gap in {block!r} here.", address)
        following = next(block.effects.irange(minimum=address))
        logger.debug("$%06X is in a gap of %r.", address, block)
        return self.split(block, following)

    def attach_edge(self, source: Block, kind: EdgeKind, address: int) -> Edge:
        """Add an outgoing edge to a block, resolving it if possible.

        If the destination address is an effect inside an existing block,
        that block is split first. If it falls between two effects of a
        block, the block is cut so that nothing covers the address. The edge
        then stays pending until a block is created or split there.

        Args:
            source: The block the edge leaves from.
            kind: The kind of edge.
            address: The destination address.

        Returns:
            The new edge, or the existing one if it was attached already.
        """
        edge = source.find_edge(kind, address)
        if edge is not None:
            return edge
        assert len(source.edges) < 2, f"{source!r} has too many edges."

        edge = Edge(source, kind, Pending(address))
        source.edges.append(edge)
        self.pending[address].add(edge)

        location = self.index.locate(address)
        if isinstance(location, BlockStart):
            self._resolve(edge, location.block)
        elif isinstance(location, InBlockAtOffset):
            if address in location.block.effects:
                # The split resolves the edge.
                self.split(location.block, address)
            elif self.in_gap(location.block, address):
                self.carve(location.block, address)
                logger.debug("Edge %r is pending.", edge)
            else:
                logger.debug("Edge %r points inside an effect.", edge)
        else:
            logger.debug("Edge %r is pending.", edge)

        self._touch()
        return edge

    def record_jump(self, address: int, jump: Jump) -> None:
        """Attach the edges of the jump that terminates a block.

        Args:
            address: The address of the jump.
            jump: The jump, last effect of its block.
        """
        for kind, target in jump.branches():
            # An edge into the block itself may have split it.
            block = self.block_containing(address)
            self.attach_edge(block, kind, target)

    def traverse(self, source: Block, target: Block) -> Optional[Edge]:
        """Count a transfer of control from the end of a block to another."""
        for edge in source.edges:
            if edge.target is target:
                edge.hits += 1
                self._touch()
                return edge
        return None

    def blocks(self) -> BlockSequence:
        return BlockSequence(self)

    def edges_of(self, block) -> EdgeSequence:
        if isinstance(block, BlockView):
            block = block._block
        return EdgeSequence(self, block)

    def view(self, block: Block) -> BlockView:
        view = BlockView(self, block)
        self._views.append(weakref.ref(view))
        return view

    def edge_view(self, edge: Edge) -> EdgeView:
        view = EdgeView(self, edge)
        self._views.append(weakref.ref(view))
        return view

    def _resolve(self, edge: Edge, block: Block) -> None:
        address = edge.address
        edge.destination = Resolved(block)
        block.incoming.add(edge)

        waiting = self.pending.get(address)
        if waiting is not None:
            waiting.discard(edge)
            if not waiting:
                del self.pending[address]

    def _resolve_pending(self, address: int, block: Block) -> None:
        for edge in list(self.pending.get(address, ())):
            self._resolve(edge, block)
            logger.debug("Resolved %r.", edge)

    def _touch(self) -> None:
        self.generation += 1
        views = [ref() for ref in self._views]
        bulk_invalidate(view for view in views if view is not None)
        self._views = []
