import re
from enum import Enum, auto
from typing import Dict, List, Optional, Sequence, Union

from .alu import ArithmeticUnit, LaneWidth
from .config import (ALU_FUNCTIONS, INSTRUCTION_BYTES, NIC_ADDRESS_PREFIX, OPCODE_ALU,
                     OPCODE_BEZ, OPCODE_BNEZ, OPCODE_LOAD, OPCODE_NOP, OPCODE_STORE)
from .register_file import WriteWidth

class OpType(Enum):
    ALU = auto()      # R-type: VOP rD, rA, rB
    LOAD = auto()     # M-type: VLD rD, immAddr
    STORE = auto()    # M-type: VSD rD, immAddr
    BEZ = auto()      # Branch to immAddr if rD == 0
    BNEZ = auto()     # Branch to immAddr if rD != 0
    NOP = auto()      # No operation
    INVALID = auto()  # Unrecognized opcode, executes as a no-op

_OPCODES = {
    OPCODE_ALU: OpType.ALU,
    OPCODE_LOAD: OpType.LOAD,
    OPCODE_STORE: OpType.STORE,
    OPCODE_BEZ: OpType.BEZ,
    OPCODE_BNEZ: OpType.BNEZ,
    OPCODE_NOP: OpType.NOP,
}
_OPCODE_OF = {op_type: opcode for opcode, op_type in _OPCODES.items()}

_M_TYPE_MNEMONICS = {"VLD": OpType.LOAD, "VSD": OpType.STORE,
                     "VBEZ": OpType.BEZ, "VBNEZ": OpType.BNEZ}

_LANE_SUFFIXES = {"B": LaneWidth.BYTE, "H": LaneWidth.HALFWORD,
                  "W": LaneWidth.WORD, "D": LaneWidth.DOUBLEWORD}
_WIDTH_SUFFIXES = {"ALL": WriteWidth.DOUBLEWORD, "UPPER": WriteWidth.UPPER_WORD,
                   "LOWER": WriteWidth.LOWER_WORD, "EVEN": WriteWidth.EVEN_BYTES,
                   "ODD": WriteWidth.ODD_BYTES}

# Single-operand functions take only rA
_UNARY_FUNCTIONS = {"VNOT", "VMOV", "VSQEU", "VSQOU", "VSQRT", "VRTTH"}


class AssemblyError(ValueError):
    """Raised when assembly source cannot be translated."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class Instruction:
    """
    A decoded 32-bit Cardinal instruction.

    The immediate field aliases rB/ppp/ww/function, so which of them are
    meaningful depends on op_type.
    """

    def __init__(self, op_type: OpType, rd: int = 0, ra: int = 0, rb: int = 0,
                 ppp: WriteWidth = WriteWidth.DOUBLEWORD, ww: LaneWidth = LaneWidth.DOUBLEWORD,
                 alu_op: int = 0, imm: int = 0, opcode: Optional[int] = None):
        self.op_type: OpType = op_type
        self.opcode: int = opcode if opcode is not None else _OPCODE_OF.get(op_type, 0)
        self.rd: int = rd
        self.ra: int = ra
        self.rb: int = rb
        self.ppp: WriteWidth = ppp
        self.ww: LaneWidth = ww
        self.alu_op: int = alu_op
        self.imm: int = imm

    @classmethod
    def decode(cls, word: int) -> "Instruction":
        """Splits a raw instruction word into fields. Never fails."""
        word &= 0xFFFF_FFFF
        opcode = (word >> 26) & 0x3F
        return cls(
            op_type=_OPCODES.get(opcode, OpType.INVALID),
            rd=(word >> 21) & 0x1F,
            ra=(word >> 16) & 0x1F,
            rb=(word >> 11) & 0x1F,
            ppp=WriteWidth.from_bits(word >> 8),
            ww=LaneWidth((word >> 6) & 0b11),
            alu_op=word & 0x3F,
            imm=word & 0xFFFF,
            opcode=opcode,
        )

    @classmethod
    def nop(cls) -> "Instruction":
        return cls(OpType.NOP)

    def encode(self) -> int:
        """Packs the fields back into a 32-bit word."""
        for name, value, limit in (("rd", self.rd, 32), ("ra", self.ra, 32),
                                   ("rb", self.rb, 32), ("alu_op", self.alu_op, 64),
                                   ("imm", self.imm, 1 << 16)):
            if not 0 <= value < limit:
                raise ValueError(f"Field {name}={value} out of range for {self.op_type.name}")
        word = (self.opcode & 0x3F) << 26 | self.rd << 21
        if self.op_type == OpType.ALU:
            word |= (self.ra << 16 | self.rb << 11 | int(self.ppp) << 8
                     | int(self.ww) << 6 | self.alu_op)
        elif self.op_type in (OpType.LOAD, OpType.STORE, OpType.BEZ, OpType.BNEZ):
            word |= self.imm
        return word

    @property
    def is_memory(self) -> bool:
        return self.op_type in (OpType.LOAD, OpType.STORE)

    @property
    def is_branch(self) -> bool:
        return self.op_type in (OpType.BEZ, OpType.BNEZ)

    @property
    def targets_nic(self) -> bool:
        """M-type addresses whose top two bits are 0b11 are NIC registers."""
        return self.is_memory and (self.imm >> 14) == NIC_ADDRESS_PREFIX

    def __str__(self) -> str:
        if self.op_type == OpType.ALU:
            name = ArithmeticUnit.name_of(self.alu_op)
            suffix = f".{self.ww.name[0]}"
            if self.ppp != WriteWidth.DOUBLEWORD:
                suffix += "." + next(k for k, v in _WIDTH_SUFFIXES.items() if v == self.ppp)
            operands = f"R{self.rd}, R{self.ra}"
            if name not in _UNARY_FUNCTIONS:
                operands += f", R{self.rb}"
            return f"{name}{suffix} {operands}"
        if self.op_type in _OPCODE_MNEMONICS:
            return f"{_OPCODE_MNEMONICS[self.op_type]} R{self.rd}, {self.imm:#06x}"
        if self.op_type == OpType.NOP:
            return "VNOP"
        return f"<invalid opcode {self.opcode:#04x}>"

    def __repr__(self) -> str:
        details = [f"'{self}' Op:{self.op_type.name}"]
        if self.op_type == OpType.ALU:
            details.append(f"Rd:R{self.rd}, Ra:R{self.ra}, Rb:R{self.rb}")
            details.append(f"PPP:{self.ppp.name}, WW:{self.ww.name}")
        elif self.op_type != OpType.NOP:
            details.append(f"Rd:R{self.rd}, Imm:{self.imm:#06x}")
        return "<Instruction " + ", ".join(details) + ">"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Instruction):
            return NotImplemented
        return self.encode() == other.encode()

    def __hash__(self) -> int:
        return hash(self.encode())


_OPCODE_MNEMONICS = {op_type: name for name, op_type in _M_TYPE_MNEMONICS.items()}


def _parse_register(reg_str: str) -> int:
    """Converts a register string like 'R17' to an integer index 17."""
    match = re.fullmatch(r"R(\d{1,2})", reg_str.strip(), re.IGNORECASE)
    if not match or int(match.group(1)) > 31:
        raise ValueError(f"Invalid register format: '{reg_str}'")
    return int(match.group(1))


def _parse_immediate(imm_str: str, labels: Dict[str, int]) -> int:
    """Converts a numeric literal or label to a 16-bit immediate."""
    imm_str = imm_str.strip()
    if imm_str in labels:
        return labels[imm_str]
    try:
        value = int(imm_str, 0)
    except ValueError:
        raise ValueError(f"Invalid immediate value or unknown label: '{imm_str}'")
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"Immediate out of 16-bit range: '{imm_str}'")
    return value


def parse_instruction(text: str, labels: Optional[Dict[str, int]] = None) -> Instruction:
    """Parses one line of assembly (without label or comment) into an Instruction."""
    labels = labels or {}
    parts = re.split(r"[\s,]+", text.strip(), maxsplit=1)
    mnemonic = parts[0].upper()
    operands = re.split(r"\s*,\s*", parts[1].strip()) if len(parts) > 1 else []

    if mnemonic == "VNOP":
        if operands:
            raise ValueError("VNOP takes no operands")
        return Instruction.nop()

    if mnemonic in _M_TYPE_MNEMONICS:
        if len(operands) != 2:
            raise ValueError(f"Invalid M-type format for {mnemonic}: expected 'rD, address'")
        return Instruction(_M_TYPE_MNEMONICS[mnemonic], rd=_parse_register(operands[0]),
                           imm=_parse_immediate(operands[1], labels))

    # R-type: VOP[.LANE][.PART] rD, rA[, rB]
    name, *suffixes = mnemonic.split(".")
    if name not in ALU_FUNCTIONS:
        raise ValueError(f"Unknown operation: '{mnemonic}'")
    ww, ppp = LaneWidth.DOUBLEWORD, WriteWidth.DOUBLEWORD
    for suffix in suffixes:
        if suffix in _LANE_SUFFIXES:
            ww = _LANE_SUFFIXES[suffix]
        elif suffix in _WIDTH_SUFFIXES:
            ppp = _WIDTH_SUFFIXES[suffix]
        else:
            raise ValueError(f"Unknown suffix '.{suffix}' on {name}")
    expected = 2 if name in _UNARY_FUNCTIONS else 3
    if len(operands) != expected:
        raise ValueError(f"Invalid R-type format for {name}: expected {expected} registers")
    regs = [_parse_register(op) for op in operands] + [0]
    return Instruction(OpType.ALU, rd=regs[0], ra=regs[1], rb=regs[2], ppp=ppp, ww=ww,
                       alu_op=ALU_FUNCTIONS[name])


def assemble(source: Union[str, Sequence[str]], base: int = 0) -> List[int]:
    """
    Translates assembly source into instruction words.

    One instruction per line; '#' and ';' start comments; 'label:' binds a name
    to the byte address of the next instruction.

    Raises:
        AssemblyError: with the offending line number.
    """
    lines = source.splitlines() if isinstance(source, str) else list(source)

    # First pass: build label->addr map
    label_map: Dict[str, int] = {}
    statements = []
    current_addr = base
    for line_number, line in enumerate(lines, start=1):
        line = re.split(r"[#;]", line, maxsplit=1)[0].strip()
        while ":" in line:
            label, line = (part.strip() for part in line.split(":", 1))
            if not re.fullmatch(r"[A-Za-z_]\w*", label):
                raise AssemblyError(f"Invalid label '{label}'", line_number)
            if label in label_map:
                raise AssemblyError(f"Duplicate label '{label}'", line_number)
            label_map[label] = current_addr
        if not line:
            continue
        statements.append((line_number, line))
        current_addr += INSTRUCTION_BYTES

    # Second pass: parse instructions with label resolution
    words = []
    for line_number, line in statements:
        try:
            words.append(parse_instruction(line, label_map).encode())
        except ValueError as e:
            raise AssemblyError(str(e), line_number) from e
    return words
