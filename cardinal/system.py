import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple, Union

from .config import INSTRUCTION_BYTES
from .instruction import assemble
from .memory import DataMemory, InstructionMemory
from .nic import NetworkInterface, NicOutputs, PolarityGenerator, ProcessorPort, RouterInputs
from .processor import CycleInputs, CycleReport, PipelinedProcessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemCycle:
    """A processor CycleReport plus what the NIC did on the router side."""
    cpu: CycleReport
    nic: NicOutputs
    polarity: int


class CardinalSystem:
    """
    A Cardinal CPU with its instruction memory, data memory, NIC and the
    router-side polarity generator.

    run_cycle() is the clock: the processor's pre-tick memory request drives the
    data memory and NIC, their outputs feed the processor, and every component
    commits at the end of the tick.
    """

    def __init__(self, imem_size: Optional[int] = None, dmem_size: Optional[int] = None):
        self.cpu = PipelinedProcessor()
        self.imem = InstructionMemory(imem_size)
        self.dmem = DataMemory(dmem_size)
        self.nic = NetworkInterface()
        self.polarity = PolarityGenerator()

        self.program_end: int = 0
        self.router_ready: bool = True
        self.rx_queue: Deque[int] = deque()  # packets the router will push into the NIC
        self.sent_packets: List[Tuple[int, int]] = []  # (cycle, packet)
        self.trace: List[SystemCycle] = []

    @property
    def current_cycle(self) -> int:
        return self.cpu.current_cycle

    @property
    def register_file(self):
        return self.cpu.register_file

    def run_cycle(self, router: Optional[RouterInputs] = None, reset: bool = False) -> SystemCycle:
        """
        Simulates a single clock cycle.

        Args:
            router: Router-side inputs. By default the head of rx_queue is offered
                    and router_ready is used for the output direction. Explicit
                    inputs leave rx_queue untouched.
            reset: Synchronous reset for this tick.
        """
        from_queue = router is None
        if from_queue:
            router = RouterInputs(
                send=bool(self.rx_queue),
                data=self.rx_queue[0] if self.rx_queue else 0,
                ready=self.router_ready,
            )

        request = self.cpu.mem_request
        instruction = self.imem.read(self.cpu.pc)
        dmem_data = self.dmem.read(request.address)
        polarity = self.polarity.value
        port = ProcessorPort(
            addr=request.nic_addr,
            data=request.write_data,
            enable=request.nic_enable,
            write_enable=request.nic_write_enable,
        )

        nic_out = self.nic.tick(port, router, polarity, reset=reset)
        report = self.cpu.tick(CycleInputs(
            reset=reset,
            instruction=instruction,
            dmem_data=dmem_data,
            nic_data=nic_out.data_out,
        ))

        if not reset and request.dmem_enable and request.dmem_write_enable:
            self.dmem.write(request.address, request.write_data)
        self.dmem.commit()
        self.polarity.step(reset)

        if from_queue and nic_out.ready and router.send and not reset:
            self.rx_queue.popleft()
        if nic_out.send and router.ready:
            self.sent_packets.append((report.cycle, nic_out.net_do))

        cycle = SystemCycle(cpu=report, nic=nic_out, polarity=polarity)
        self.trace.append(cycle)
        return cycle

    def reset(self, cycles: int = 1) -> None:
        for _ in range(cycles):
            self.run_cycle(reset=True)

    def load_program(
        self,
        program: Union[str, Sequence[int]],
        initial_pc: int = 0,
        initial_memory_data: Optional[List[Tuple[int, int]]] = None,
        initial_register_data: Optional[List[Tuple[int, int]]] = None,
    ) -> None:
        """
        Resets the system, then loads a program and initial state.

        Args:
            program: Assembly source or pre-assembled instruction words.
            initial_pc: Byte address the program is loaded at. Execution restarts
                        at 0, where empty instruction memory decodes as no-ops.
            initial_memory_data: (doubleword address, value) pairs for data memory.
            initial_register_data: (register, value) pairs; R0 is ignored.

        Raises:
            AssemblyError: if the source does not assemble.
        """
        words = assemble(program, base=initial_pc) if isinstance(program, str) else list(program)

        self.rx_queue.clear()
        self.sent_packets = []
        self.trace = []
        self.reset()

        self.imem.load(words, base=initial_pc)
        self.program_end = initial_pc + len(words) * INSTRUCTION_BYTES
        for address, value in initial_memory_data or []:
            self.dmem.write(address, value)
            self.dmem.commit()
        for reg_idx, value in initial_register_data or []:
            self.register_file.write(reg_idx, value)
            self.register_file.commit()

        logger.info("program loaded: %d instructions at %#06x", len(words), initial_pc)

    def inject_packet(self, data: int) -> None:
        """Queues a packet for the router to deliver into the NIC input buffer."""
        self.rx_queue.append(data)

    def is_simulation_complete(self) -> bool:
        """True once the last program instruction has left WB."""
        # IF_ID, ID_EXMEM and EXMEM_WB trail pc by one instruction each
        state = self.cpu.state
        return (state.pc >= self.program_end + 3 * INSTRUCTION_BYTES
                and not state.id_exmem.reg_write
                and not state.exmem_wb.write_enable
                and not state.mem_request.dmem_write_enable
                and not state.mem_request.nic_enable)

    def run_simulation(self, max_cycles: int = 1000) -> int:
        """
        Runs until the pipeline drains past the end of the program or max_cycles.

        Returns:
            The number of cycles executed.
        """
        start = self.current_cycle
        while self.current_cycle - start < max_cycles:
            self.run_cycle()
            if self.is_simulation_complete():
                break
        executed = self.current_cycle - start
        if executed >= max_cycles:
            logger.info("simulation stopped at max cycles: %d", max_cycles)
        else:
            logger.info("simulation completed in %d cycles", executed)
        return executed

    def dump_registers(self) -> List[Tuple[int, int]]:
        return [(i, self.register_file.read(i)) for i in range(len(self.register_file.registers))]
