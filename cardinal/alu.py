import math
from enum import IntEnum
from typing import Callable, Dict, List

from .config import ALU_FUNCTIONS, ALU_LATENCY, REGISTER_WIDTH_BITS
from .register_file import WriteWidth

_WORD_MASK = (1 << REGISTER_WIDTH_BITS) - 1


class LaneWidth(IntEnum):
    """SIMD element size selected by the ww field of an R-type instruction."""
    BYTE = 0b00
    HALFWORD = 0b01
    WORD = 0b10
    DOUBLEWORD = 0b11

    @property
    def bits(self) -> int:
        return 8 << self.value


def _split(value: int, w: int) -> List[int]:
    """Lane 0 is the most significant lane."""
    mask = (1 << w) - 1
    count = REGISTER_WIDTH_BITS // w
    return [(value >> (REGISTER_WIDTH_BITS - (i + 1) * w)) & mask for i in range(count)]


def _join(fields: List[int], w: int) -> int:
    mask = (1 << w) - 1
    value = 0
    for field in fields:
        value = (value << w) | (field & mask)
    return value


def _lanewise(fn: Callable[[int, int, int], int]):
    def op(a: int, b: int, w: int) -> int:
        return _join([fn(x, y, w) for x, y in zip(_split(a, w), _split(b, w))], w)
    return op


def _widening(odd: bool, square: bool = False):
    # Products of the even (odd) lanes fill the double-width field of each lane pair
    def op(a: int, b: int, w: int) -> int:
        if square:
            b = a
        if w == REGISTER_WIDTH_BITS:
            return a * b
        a_lanes, b_lanes = _split(a, w), _split(b, w)
        start = 1 if odd else 0
        products = [a_lanes[i] * b_lanes[i] for i in range(start, len(a_lanes), 2)]
        return _join(products, 2 * w)
    return op


def _sra(x: int, y: int, w: int) -> int:
    if x & (1 << (w - 1)):
        x -= 1 << w
    return x >> (y % w)


def _rtth(x: int, y: int, w: int) -> int:
    half = w // 2
    return (x << half) | (x >> half)


_OPERATIONS: Dict[str, Callable[[int, int, int], int]] = {
    "VAND":   lambda a, b, w: a & b,
    "VOR":    lambda a, b, w: a | b,
    "VXOR":   lambda a, b, w: a ^ b,
    "VNOT":   lambda a, b, w: ~a,
    "VMOV":   lambda a, b, w: a,
    "VADD":   _lanewise(lambda x, y, w: x + y),
    "VSUB":   _lanewise(lambda x, y, w: x - y),
    "VMULEU": _widening(odd=False),
    "VMULOU": _widening(odd=True),
    "VSLL":   _lanewise(lambda x, y, w: x << (y % w)),
    "VSRL":   _lanewise(lambda x, y, w: x >> (y % w)),
    "VSRA":   _lanewise(_sra),
    "VRTTH":  _lanewise(_rtth),
    "VDIV":   _lanewise(lambda x, y, w: x // y if y else 0),
    "VMOD":   _lanewise(lambda x, y, w: x % y if y else 0),
    "VSQEU":  _widening(odd=False, square=True),
    "VSQOU":  _widening(odd=True, square=True),
    "VSQRT":  _lanewise(lambda x, y, w: math.isqrt(x)),
}

_NAMES_BY_CODE = {code: name for name, code in ALU_FUNCTIONS.items()}


class ArithmeticUnit:
    """Combinational ALU. Holds no state; the pipeline owns the timing."""

    @staticmethod
    def name_of(alu_opcode: int) -> str:
        return _NAMES_BY_CODE.get(alu_opcode, f"ALU_{alu_opcode:#04x}")

    @staticmethod
    def latency(alu_opcode: int) -> int:
        """Cycles an operation occupies EXMEM. Unknown functions take one cycle."""
        return ALU_LATENCY.get(_NAMES_BY_CODE.get(alu_opcode), 1)

    def apply(self, op_a: int, op_b: int, alu_opcode: int,
              width: WriteWidth = WriteWidth.DOUBLEWORD,
              lanes: LaneWidth = LaneWidth.DOUBLEWORD) -> int:
        """
        Computes op_a <alu_opcode> op_b lane by lane.

        Args:
            op_a, op_b: 64-bit operands.
            alu_opcode: ALU function code; unknown codes produce 0.
            width: participation mask applied to the result, matching the
                   register file's write masking.
            lanes: SIMD lane width.

        Returns:
            The masked 64-bit result.
        """
        operation = _OPERATIONS.get(_NAMES_BY_CODE.get(alu_opcode))
        if operation is None:
            return 0
        result = operation(op_a & _WORD_MASK, op_b & _WORD_MASK, LaneWidth(lanes).bits)
        return result & _WORD_MASK & WriteWidth(width).mask
