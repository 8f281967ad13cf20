from enum import IntEnum
from typing import List, Optional, Tuple

from .config import NUM_REGISTERS, REGISTER_WIDTH_BITS

_LANE_MASK = (1 << REGISTER_WIDTH_BITS) - 1


class WriteWidth(IntEnum):
    """Participation field: which part of a 64-bit lane a write may touch."""
    DOUBLEWORD = 0b000
    UPPER_WORD = 0b001  # bits 0-31, the most significant word
    LOWER_WORD = 0b010  # bits 32-63, the least significant word
    EVEN_BYTES = 0b011
    ODD_BYTES = 0b100

    @classmethod
    def from_bits(cls, bits: int) -> "WriteWidth":
        """Reserved encodings behave as a full doubleword write."""
        try:
            return cls(bits & 0b111)
        except ValueError:
            return cls.DOUBLEWORD

    @property
    def mask(self) -> int:
        return _WIDTH_MASKS[self]


# Byte 0 is the most significant byte of the lane
_WIDTH_MASKS = {
    WriteWidth.DOUBLEWORD: 0xFFFF_FFFF_FFFF_FFFF,
    WriteWidth.UPPER_WORD: 0xFFFF_FFFF_0000_0000,
    WriteWidth.LOWER_WORD: 0x0000_0000_FFFF_FFFF,
    WriteWidth.EVEN_BYTES: 0xFF00_FF00_FF00_FF00,
    WriteWidth.ODD_BYTES:  0x00FF_00FF_00FF_00FF,
}


def merge_write(old: int, value: int, width: WriteWidth) -> int:
    """Returns *old* with the sub-range selected by *width* replaced from *value*."""
    mask = width.mask
    return ((old & ~mask) | (value & mask)) & _LANE_MASK


class RegisterFile:
    """Simulates the processor's 32 x 64-bit register file with two async read ports."""

    def __init__(self):
        """Initializes registers to 0 with no write pending."""
        self.registers: List[int] = [0] * NUM_REGISTERS
        self._pending: Optional[Tuple[int, int, WriteWidth]] = None
        self._reset_pending: bool = False

    def read(self, addr: int) -> int:
        """
        Reads a register combinationally. R0 always returns 0.
        Writes staged this tick are not visible until commit().
        """
        addr %= NUM_REGISTERS
        if addr == 0:
            return 0
        return self.registers[addr]

    def write(self, addr: int, value: int, width: WriteWidth = WriteWidth.DOUBLEWORD,
              enable: bool = True) -> None:
        """
        Stages a write that lands on the next commit().
        Disabled writes and writes to R0 are dropped.
        """
        addr %= NUM_REGISTERS
        if not enable or addr == 0:
            return
        self._pending = (addr, int(value) & _LANE_MASK, WriteWidth(width))

    def reset(self) -> None:
        """Stages a synchronous clear of every lane."""
        self._reset_pending = True

    def commit(self) -> None:
        """Applies the staged reset or write at the clock edge."""
        if self._reset_pending:
            self.registers = [0] * NUM_REGISTERS
        elif self._pending is not None:
            addr, value, width = self._pending
            self.registers[addr] = merge_write(self.registers[addr], value, width)
        self._pending = None
        self._reset_pending = False

    def __str__(self) -> str:
        reg_strs = []
        for i in range(0, NUM_REGISTERS, 4):
            row = [f"R{j:<2}: {self.read(j):016x}" for j in range(i, i + 4)]
            reg_strs.append("  ".join(row))
        return "RegisterFile:\n  " + "\n  ".join(reg_strs)
