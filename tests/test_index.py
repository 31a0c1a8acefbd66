from unittest import TestCase

from enkidu.block import Block
from enkidu.effects import Instruction, Jump
from enkidu.index import AddressIndex, BlockStart, InBlockAtOffset, NotFound


def block(*addresses: int, jump=None) -> Block:
    b = Block(addresses[0], Instruction("nop"))
    for address in addresses[1:]:
        b.add_effect(address, Instruction("nop"))
    if jump is not None:
        b.add_effect(jump, Jump("jmp", 0))
    return b


class AddressIndexTest(TestCase):
    def setUp(self):
        self.index = AddressIndex()
        self.low = block(0x10, 0x12, 0x14)
        self.high = block(0x30, jump=0x32)
        self.index.insert(self.high)
        self.index.insert(self.low)

    def test_iteration_is_ordered(self):
        self.assertEqual(list(self.index), [self.low, self.high])
        self.assertEqual(len(self.index), 2)
        self.assertIn(0x10, self.index)
        self.assertNotIn(0x12, self.index)

    def test_locate_block_start(self):
        self.assertEqual(self.index.locate(0x10), BlockStart(self.low))
        self.assertEqual(self.index.locate(0x30), BlockStart(self.high))

    def test_locate_in_block(self):
        self.assertEqual(self.index.locate(0x12), InBlockAtOffset(self.low, 2))
        self.assertEqual(self.index.locate(0x13), InBlockAtOffset(self.low, 3))
        self.assertEqual(self.index.locate(0x32), InBlockAtOffset(self.high, 2))

    def test_locate_not_found(self):
        self.assertEqual(self.index.locate(0x00), NotFound(0x00))
        self.assertEqual(self.index.locate(0x15), NotFound(0x15))
        self.assertEqual(self.index.locate(0x40), NotFound(0x40))

    def test_next_start(self):
        self.assertEqual(self.index.next_start(0x00), 0x10)
        self.assertEqual(self.index.next_start(0x10), 0x30)
        self.assertEqual(self.index.next_start(0x14), 0x30)
        self.assertIsNone(self.index.next_start(0x30))

    def test_remove(self):
        self.index.remove(self.low)
        self.assertEqual(self.index.locate(0x12), NotFound(0x12))
        self.assertIsNone(self.index.get(0x10))

    def test_replace(self):
        tail = Block(0x14, self.low.effects.pop(0x14))
        self.index.replace(self.low, self.low, tail)

        self.assertEqual(self.index.locate(0x14), BlockStart(tail))
        self.assertEqual(self.index.locate(0x12), InBlockAtOffset(self.low, 2))
        self.assertEqual(list(self.index), [self.low, tail, self.high])
