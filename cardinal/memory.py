from typing import Iterable, List, Optional, Tuple

from . import config
from .config import INSTRUCTION_BYTES, REGISTER_WIDTH_BITS


class InstructionMemory:
    """Byte-addressed instruction store with an asynchronous 32-bit read port."""

    def __init__(self, size_bytes: Optional[int] = None):
        self.size: int = size_bytes if size_bytes is not None else config.IMEM_SIZE_BYTES
        self.data: bytearray = bytearray(self.size)

    def load(self, words: Iterable[int], base: int = 0) -> None:
        """Stores instruction words big-endian starting at byte address *base*."""
        addr = base
        for word in words:
            for i, byte in enumerate((int(word) & 0xFFFF_FFFF).to_bytes(INSTRUCTION_BYTES, "big")):
                self.data[(addr + i) % self.size] = byte
            addr += INSTRUCTION_BYTES

    def read(self, pc: int) -> int:
        """
        Reads the instruction word at byte address *pc*.
        Addresses wrap modulo the memory size.
        """
        raw = bytes(self.data[(pc + i) % self.size] for i in range(INSTRUCTION_BYTES))
        return int.from_bytes(raw, "big")

    def __str__(self) -> str:
        return f"InstructionMemory({self.size} bytes)"


class DataMemory:
    """Doubleword-addressed data store: asynchronous read, write lands on commit."""

    def __init__(self, size_words: Optional[int] = None,
                 initial_data: Optional[List[Tuple[int, int]]] = None):
        """
        Args:
            size_words: Number of 64-bit words.
            initial_data: A list of (address, value) tuples to pre-populate memory.
        """
        self.size: int = size_words if size_words is not None else config.DMEM_SIZE_WORDS
        self._word_mask = (1 << REGISTER_WIDTH_BITS) - 1
        self.data: List[int] = [0] * self.size
        self._pending: Optional[Tuple[int, int]] = None

        if initial_data:
            for address, value in initial_data:
                self.data[address % self.size] = int(value) & self._word_mask

    def read(self, address: int) -> int:
        return self.data[address % self.size]

    def write(self, address: int, value: int) -> None:
        """Stages a write; it becomes visible after commit()."""
        self._pending = (address % self.size, int(value) & self._word_mask)

    def commit(self) -> None:
        if self._pending is not None:
            address, value = self._pending
            self.data[address] = value
        self._pending = None

    def __str__(self) -> str:
        non_zero_count = sum(1 for x in self.data if x != 0)
        return f"DataMemory({self.size} words, {non_zero_count} non-zero entries)"

    def dump(self, start_address: int = 0, num_words: int = 16) -> List[Tuple[int, int]]:
        """Returns a list of (address, value) tuples for a specified memory range."""
        end_address = min(start_address + num_words, self.size)
        return [(addr, self.data[addr]) for addr in range(max(start_address, 0), end_address)]
