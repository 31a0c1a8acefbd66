"""Address-ordered index of the blocks in a graph."""

from typing import Iterator, NamedTuple, Optional, Union

from sortedcontainers import SortedDict  # type: ignore

from enkidu.block import Block


class NotFound(NamedTuple):
    address: int


class BlockStart(NamedTuple):
    block: Block


class InBlockAtOffset(NamedTuple):
    block: Block
    offset: int


Location = Union[NotFound, BlockStart, InBlockAtOffset]


class AddressIndex:
    def __init__(self):
        self._blocks = SortedDict()

    def __contains__(self, start: int) -> bool:
        return start in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._blocks.values())

    def get(self, start: int) -> Optional[Block]:
        return self._blocks.get(start)

    def locate(self, address: int) -> Location:
        """Find where an address falls with respect to the known blocks.

        Args:
            address: The address to search for.

        Returns:
            BlockStart if a block starts exactly at the address,
            InBlockAtOffset if the address lies within the range covered by
            a block (up to and including its last effect), NotFound otherwise.
        """
        # Greatest start <= address.
        i = self._blocks.bisect_right(address)
        if i == 0:
            return NotFound(address)

        start, block = self._blocks.peekitem(i - 1)
        if start == address:
            return BlockStart(block)
        elif address <= block.end:
            return InBlockAtOffset(block, address - start)
        return NotFound(address)

    def next_start(self, address: int) -> Optional[int]:
        """The lowest block start strictly greater than the address."""
        i = self._blocks.bisect_right(address)
        if i == len(self._blocks):
            return None
        return self._blocks.peekitem(i)[0]

    def insert(self, block: Block) -> None:
        assert block.start not in self._blocks
        self._blocks[block.start] = block

    def remove(self, block: Block) -> None:
        del self._blocks[block.start]

    def replace(self, block: Block, head: Block, tail: Block) -> None:
        # The head keeps the start of the block it replaces.
        assert head.start == block.start
        self._blocks[head.start] = head
        self.insert(tail)
