import logging
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional, Sequence, Tuple

from .alu import ArithmeticUnit, LaneWidth
from .config import (ALU_FUNCTIONS, INSTRUCTION_BYTES, MEMORY_LATENCY, OPCODE_NOP,
                     PC_WIDTH_BITS)
from .instruction import Instruction, OpType
from .register_file import RegisterFile, WriteWidth, merge_write

logger = logging.getLogger(__name__)

NOP_WORD = OPCODE_NOP << 26
_PC_MASK = (1 << PC_WIDTH_BITS) - 1


class StallClass(Enum):
    """How long an instruction occupies EXMEM, decided in ID."""
    NONE = auto()
    MEMORY = auto()
    ALU3 = auto()
    ALU4 = auto()
    ALU5 = auto()

    @property
    def cycles(self) -> int:
        if self is StallClass.MEMORY:
            return MEMORY_LATENCY
        return _ALU_STALL_CYCLES.get(self, 1)


_ALU_STALL_CYCLES = {StallClass.ALU3: 3, StallClass.ALU4: 4, StallClass.ALU5: 5}


# --- Pipeline latches -------------------------------------------------------

@dataclass(frozen=True)
class FetchLatch:
    """IF_ID: the raw instruction word. Invalid after reset or a flush."""
    word: int = NOP_WORD
    valid: bool = False


@dataclass(frozen=True)
class MemoryRequest:
    """Signals presented to the data memory and NIC ports."""
    address: int = 0
    write_data: int = 0
    dmem_enable: bool = False
    dmem_write_enable: bool = False
    nic_enable: bool = False
    nic_write_enable: bool = False

    @property
    def nic_addr(self) -> int:
        return self.address & 0b11


@dataclass(frozen=True)
class DecodeLatch:
    """ID_EXMEM: operands after forwarding plus the control bits EXMEM needs."""
    word: int = NOP_WORD
    op_a: int = 0
    op_b: int = 0
    rd: int = 0
    reg_write: bool = False
    alu_op: int = 0
    ww: LaneWidth = LaneWidth.DOUBLEWORD
    ppp: WriteWidth = WriteWidth.DOUBLEWORD
    stall_class: StallClass = StallClass.NONE


@dataclass(frozen=True)
class WritebackLatch:
    """EXMEM_WB: the value headed for the register file."""
    value: int = 0
    write_enable: bool = False
    rd: int = 0
    width: WriteWidth = WriteWidth.DOUBLEWORD


@dataclass(frozen=True)
class StallCounters:
    alu3: int = 0
    alu4: int = 0
    alu5: int = 0
    mem: int = 0  # 1-bit toggle


@dataclass(frozen=True)
class PipelineState:
    pc: int = 0
    if_id: FetchLatch = field(default_factory=FetchLatch)
    id_exmem: DecodeLatch = field(default_factory=DecodeLatch)
    exmem_wb: WritebackLatch = field(default_factory=WritebackLatch)
    counters: StallCounters = field(default_factory=StallCounters)
    # Shadow of the last issued memory request, held while stalled
    mem_request: MemoryRequest = field(default_factory=MemoryRequest)


# --- Tick interface ---------------------------------------------------------

@dataclass(frozen=True)
class CycleInputs:
    reset: bool = False
    instruction: int = 0  # word read from instruction memory at pc
    dmem_data: int = 0    # data memory read data for mem_request.address
    nic_data: int = 0     # NIC data out for mem_request.nic_addr


@dataclass(frozen=True)
class CycleReport:
    """What the pipeline did during one tick."""
    cycle: int
    pc: int
    decoded: str = "VNOP"
    stall: bool = False
    branch_taken: bool = False
    branch_target: Optional[int] = None
    forwarded: Tuple[int, ...] = ()
    reg_write: Optional[Tuple[int, int]] = None
    mem_request: MemoryRequest = field(default_factory=MemoryRequest)
    reset: bool = False


# --- Combinational logic ----------------------------------------------------

def read_addresses(instr: Instruction) -> Tuple[int, int]:
    """
    Register addresses for read ports 0 and 1.
    Store and both branches read rD through port 0; only R-type uses port 1.
    """
    if instr.op_type in (OpType.STORE, OpType.BEZ, OpType.BNEZ):
        return instr.rd, 0
    if instr.op_type == OpType.ALU:
        return instr.ra, instr.rb
    return 0, 0


def writes_register(instr: Instruction) -> bool:
    if instr.op_type == OpType.ALU:
        return instr.alu_op in ALU_FUNCTIONS.values()
    return instr.op_type == OpType.LOAD


def classify_hazard(instr: Instruction) -> StallClass:
    """Writes to R0 are discarded, so only stores stall without a destination."""
    if instr.op_type == OpType.STORE:
        return StallClass.MEMORY
    if instr.op_type == OpType.LOAD:
        return StallClass.MEMORY if instr.rd != 0 else StallClass.NONE
    if writes_register(instr) and instr.rd != 0:
        latency = ArithmeticUnit.latency(instr.alu_op)
        for stall_class in (StallClass.ALU3, StallClass.ALU4, StallClass.ALU5):
            if stall_class.cycles == latency:
                return stall_class
    return StallClass.NONE


def forward_operand(addr: int, rf_value: int,
                    producers: Sequence[WritebackLatch]) -> Tuple[int, bool]:
    """
    Applies in-flight results to a register file read.

    Args:
        addr: The source register.
        rf_value: What the register file returned for *addr*.
        producers: Pending writes, oldest first.

    Returns:
        (operand, whether any producer matched)
    """
    value, forwarded = rf_value, False
    if addr == 0:
        return 0, False
    for producer in producers:
        if producer.write_enable and producer.rd == addr:
            value = merge_write(value, producer.value, producer.width)
            forwarded = True
    return value, forwarded


def resolve_branch(instr: Instruction, test_value: int) -> bool:
    if instr.op_type == OpType.BEZ:
        return test_value == 0
    if instr.op_type == OpType.BNEZ:
        return test_value != 0
    return False


def memory_request_for(instr: Instruction, store_data: int) -> MemoryRequest:
    if not instr.is_memory:
        return MemoryRequest()
    store = instr.op_type == OpType.STORE
    nic = instr.targets_nic
    return MemoryRequest(
        address=instr.imm,
        write_data=store_data if store else 0,
        dmem_enable=not nic,
        dmem_write_enable=store and not nic,
        nic_enable=nic,
        nic_write_enable=store and nic,
    )


def _modular(active: bool, count: int, period: int) -> Tuple[bool, int]:
    """Stalls on every cycle of the period but the last, then wraps to 0."""
    if not active:
        return False, 0
    return count != period - 1, (count + 1) % period


def stall_signals(stall_class: StallClass, counters: StallCounters) -> Tuple[bool, StallCounters]:
    """Returns the stall output for this tick and the counters for the next one."""
    stall3, alu3 = _modular(stall_class == StallClass.ALU3, counters.alu3, StallClass.ALU3.cycles)
    stall4, alu4 = _modular(stall_class == StallClass.ALU4, counters.alu4, StallClass.ALU4.cycles)
    stall5, alu5 = _modular(stall_class == StallClass.ALU5, counters.alu5, StallClass.ALU5.cycles)
    stall_mem, mem = _modular(stall_class == StallClass.MEMORY, counters.mem, StallClass.MEMORY.cycles)
    stall = stall3 or stall4 or stall5 or stall_mem
    return stall, StallCounters(alu3=alu3, alu4=alu4, alu5=alu5, mem=mem)


# --- Processor --------------------------------------------------------------

class PipelinedProcessor:
    """
    Four-stage Cardinal pipeline: IF, ID, EXMEM, WB.

    Each tick() computes every combinational signal from the committed
    PipelineState and the sampled inputs, then commits the new state and the
    register file write in one step.
    """

    def __init__(self):
        self.state: PipelineState = PipelineState()
        self.register_file = RegisterFile()
        self.alu = ArithmeticUnit()
        self.current_cycle: int = 0

    @property
    def pc(self) -> int:
        return self.state.pc

    @property
    def mem_request(self) -> MemoryRequest:
        """The request the EXMEM stage presents to data memory and the NIC this tick."""
        return self.state.mem_request

    @property
    def stall(self) -> bool:
        return stall_signals(self.state.id_exmem.stall_class, self.state.counters)[0]

    def _execute(self, latch: DecodeLatch, inputs: CycleInputs) -> WritebackLatch:
        """EXMEM: ALU result unless the memory request selects dmem or NIC data."""
        request = self.state.mem_request
        if request.nic_enable:
            return WritebackLatch(inputs.nic_data, latch.reg_write, latch.rd)
        if request.dmem_enable:
            return WritebackLatch(inputs.dmem_data, latch.reg_write, latch.rd)
        result = self.alu.apply(latch.op_a, latch.op_b, latch.alu_op, latch.ppp, latch.ww)
        return WritebackLatch(result, latch.reg_write, latch.rd, latch.ppp)

    def tick(self, inputs: CycleInputs) -> CycleReport:
        """Advances the pipeline by one clock tick."""
        self.current_cycle += 1
        state = self.state

        if inputs.reset:
            self.state = PipelineState()
            self.register_file.reset()
            self.register_file.commit()
            logger.debug("cycle %d: reset", self.current_cycle)
            return CycleReport(cycle=self.current_cycle, pc=0, reset=True)

        # EXMEM
        stall, next_counters = stall_signals(state.id_exmem.stall_class, state.counters)
        exmem_result = self._execute(state.id_exmem, inputs)

        # ID
        instr = Instruction.decode(state.if_id.word) if state.if_id.valid else Instruction.nop()
        port0, port1 = read_addresses(instr)
        producers = (state.exmem_wb, exmem_result)
        op_a, fwd_a = forward_operand(port0, self.register_file.read(port0), producers)
        op_b, fwd_b = forward_operand(port1, self.register_file.read(port1), producers)
        branch_taken = resolve_branch(instr, op_a) and not stall
        decoded = DecodeLatch(
            word=state.if_id.word,
            op_a=op_a,
            op_b=op_b,
            rd=instr.rd,
            reg_write=writes_register(instr),
            alu_op=instr.alu_op,
            ww=instr.ww,
            ppp=instr.ppp if instr.op_type == OpType.ALU else WriteWidth.DOUBLEWORD,
            stall_class=classify_hazard(instr),
        )
        request = memory_request_for(instr, op_a)

        # WB
        wb = state.exmem_wb
        self.register_file.write(wb.rd, wb.value, wb.width, enable=wb.write_enable)

        # Commit
        if stall:
            self.state = replace(
                state,
                exmem_wb=WritebackLatch(),
                counters=next_counters,
            )
        else:
            if branch_taken:
                next_pc = instr.imm
                if_id = FetchLatch()
            else:
                next_pc = (state.pc + INSTRUCTION_BYTES) & _PC_MASK
                if_id = FetchLatch(inputs.instruction & 0xFFFF_FFFF, True)
            self.state = PipelineState(
                pc=next_pc,
                if_id=if_id,
                id_exmem=decoded,
                exmem_wb=exmem_result,
                counters=next_counters,
                mem_request=request,
            )
        self.register_file.commit()

        reg_write = (wb.rd, wb.value) if wb.write_enable and wb.rd != 0 else None
        forwarded = tuple(addr for addr, hit in ((port0, fwd_a), (port1, fwd_b)) if hit)
        if stall:
            logger.debug("cycle %d: stall (%s in EXMEM)", self.current_cycle,
                         state.id_exmem.stall_class.name)
        if forwarded and not stall:
            logger.debug("cycle %d: forwarded %s into %s", self.current_cycle,
                         ", ".join(f"R{r}" for r in forwarded), instr)
        if branch_taken:
            logger.debug("cycle %d: %s taken, flushing fetch, next pc %#06x",
                         self.current_cycle, instr, instr.imm)
        if reg_write:
            logger.debug("cycle %d: R%d <- %016x", self.current_cycle, wb.rd, wb.value)

        return CycleReport(
            cycle=self.current_cycle,
            pc=state.pc,
            decoded=str(instr),
            stall=stall,
            branch_taken=branch_taken,
            branch_target=instr.imm if branch_taken else None,
            forwarded=forwarded if not stall else (),
            reg_write=reg_write,
            mem_request=state.mem_request,
        )
