import logging
from typing import Iterable, Optional, Tuple

from enkidu.block import Block
from enkidu.effects import EdgeKind, Effect, Instruction, Jump, classify, same_site
from enkidu.errors import EffectMismatchError, SplitAlignmentError
from enkidu.graph import Graph
from enkidu.index import BlockStart, InBlockAtOffset, Location, NotFound
from enkidu.views import BlockSequence, EdgeSequence

logger = logging.getLogger(__name__)


class Builder:
    """Incremental construction of a control-flow graph from a trace.

    The builder is fed one executed effect at a time, in the order they were
    observed at runtime, and keeps track of where the previous one was.
    """

    def __init__(self, graph: Optional[Graph] = None, entry: Optional[int] = None):
        self.graph = Graph(entry) if graph is None else graph
        if graph is not None and entry is not None:
            self.graph.set_entry(entry)

        # Address and effect of the last executed operation.
        self.cursor: Optional[int] = None
        self._last: Optional[Tuple[int, Effect]] = None

    @property
    def entry(self) -> Optional[int]:
        return self.graph.entry

    @entry.setter
    def entry(self, address: int) -> None:
        self.graph.set_entry(address)

    @property
    def current_block(self) -> Optional[Block]:
        """The block containing the last executed effect."""
        if self.cursor is None:
            return None
        return self.graph.block_containing(self.cursor)

    def reset(self) -> None:
        self.graph.reset()
        self.cursor = None
        self._last = None

    def run(self, trace: Iterable[Tuple[int, Effect]]) -> None:
        for address, effect in trace:
            self.execute(address, effect)

    def execute(self, address: int, effect: Effect) -> None:
        """Feed an executed effect to the graph.

        Args:
            address: Where the effect was executed.
            effect: The Instruction or Jump that was executed.

        Raises:
            MalformedEffectError if the effect is not valid.
            EffectMismatchError if a different effect was recorded at the
                same address.
            SplitAlignmentError if the address lies inside one of the
                recorded effects of a block.
            The graph is left untouched in all these cases.
        """
        classify(effect)

        # Reporting the same operation twice in a row is a no-op.
        if self._last is not None:
            last_address, last_effect = self._last
            if last_address == address and same_site(last_effect, effect):
                return

        location = self.graph.index.locate(address)
        if isinstance(location, InBlockAtOffset):
            location = self._enter(location.block, address, effect)

        previous = self._block_ending_at_cursor()
        recorded = False

        if isinstance(location, NotFound):
            if self._can_extend(previous, address):
                self.graph.append(previous, address, effect)
            else:
                self.graph.create_block(address, effect)
                self._fall_through(previous, address)
            recorded = True

        elif isinstance(location, BlockStart):
            self._check_effect(address, location.block.first, effect)
            self._fall_through(previous, address)

        if recorded and isinstance(effect, Jump):
            self.graph.record_jump(address, effect)

        self._count_traversal(address)
        if self.graph.entry is None:
            self.graph.set_entry(address)

        self.cursor = address
        self._last = (address, effect)

    def blocks(self) -> BlockSequence:
        return self.graph.blocks()

    def edges_of(self, block) -> EdgeSequence:
        return self.graph.edges_of(block)

    def _block_ending_at_cursor(self) -> Optional[Block]:
        # Only a block that was executed to its end can flow into another.
        if self.cursor is None:
            return None
        block = self.graph.block_containing(self.cursor)
        return block if block.end == self.cursor else None

    def _enter(self, block: Block, address: int, effect: Effect) -> Location:
        """Reach an address inside the range of a known block.

        Running on from the previous effect of the block is a replay. Any
        other arrival at one of its effects starts a new block there, and an
        address no effect covers gets room for a block of its own.
        """
        recorded = block.effects.get(address)
        if recorded is None:
            if not self.graph.in_gap(block, address):
                logger.debug("$%06X is not an effect boundary.", address)
                raise SplitAlignmentError(
                    f"Inside {block!r}, but not at an effect.", address
                )
            self.graph.carve(block, address)
            return NotFound(address)

        self._check_effect(address, recorded, effect)
        i = block.effects.index(address)
        if block.effects.peekitem(i - 1)[0] == self.cursor:
            return InBlockAtOffset(block, address - block.start)

        _, tail = self.graph.split(block, address)
        return BlockStart(tail)

    def _can_extend(self, block: Optional[Block], address: int) -> bool:
        if block is None or not block.is_open or address <= block.end:
            return False

        last = block.last
        if isinstance(last, Instruction) and last.size is not None:
            if block.end + last.size != address:
                return False

        # Don't swallow other blocks, nor known jump targets.
        next_start = self.graph.index.next_start(block.end)
        if next_start is not None and next_start <= address:
            return False
        return address not in self.graph.pending

    def _fall_through(self, block: Optional[Block], address: int) -> None:
        if block is None or not block.is_open:
            return
        self.graph.close(block)
        self.graph.attach_edge(block, EdgeKind.FALLTHROUGH, address)

    def _count_traversal(self, address: int) -> None:
        if self.cursor is None:
            return
        target = self.graph.index.get(address)
        source = self._block_ending_at_cursor()
        if target is not None and source is not None:
            self.graph.traverse(source, target)

    @staticmethod
    def _check_effect(address: int, recorded: Effect, observed: Effect) -> None:
        if not same_site(recorded, observed):
            logger.debug("Mismatch at $%06X: %r != %r", address, recorded, observed)
            raise EffectMismatchError(address, recorded, observed)
