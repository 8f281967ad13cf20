import logging
from typing import NamedTuple

from .channel_buffer import ChannelBuffer
from .config import REGISTER_WIDTH_BITS

logger = logging.getLogger(__name__)

# Status registers report their flag in the most significant bit
STATUS_BIT = 1 << (REGISTER_WIDTH_BITS - 1)


class NicAddress:
    IN_DATA = 0b00
    IN_STATUS = 0b01
    OUT_DATA = 0b10
    OUT_STATUS = 0b11


class ProcessorPort(NamedTuple):
    """Signals the processor drives into the NIC for one tick."""
    addr: int = 0
    data: int = 0
    enable: bool = False
    write_enable: bool = False


class RouterInputs(NamedTuple):
    """Signals the router drives into the NIC for one tick."""
    send: bool = False   # router has a packet for us on `data`
    data: int = 0
    ready: bool = False  # router can accept a packet from us


class NicOutputs(NamedTuple):
    data_out: int   # to the processor
    ready: bool     # to the router: in-buffer can accept
    send: bool      # to the router: `net_do` carries a packet
    net_do: int


class PolarityGenerator:
    """Router-side polarity: held at 0 while reset is asserted, otherwise toggles every tick."""

    def __init__(self):
        self.value: int = 0

    def step(self, reset: bool = False) -> None:
        self.value = 0 if reset else self.value ^ 1


class NetworkInterface:
    """
    Memory-mapped network interface with one-entry input and output buffers.

    The processor side is a four-register address space (see NicAddress). The
    router side is a send/ready handshake per direction; packets leave only when
    their virtual channel (the packet's least significant bit) matches the one the
    router's polarity currently admits.
    """

    def __init__(self):
        self.in_buffer = ChannelBuffer()
        self.out_buffer = ChannelBuffer()

    @staticmethod
    def admitted_vc(polarity: int) -> int:
        """Polarity 1 admits VC 0, polarity 0 admits VC 1."""
        return 1 - (polarity & 1)

    def read_data(self, port: ProcessorPort) -> int:
        """Combinational processor-side data out."""
        if not port.enable:
            return 0
        addr = port.addr & 0b11
        if addr == NicAddress.IN_DATA:
            # Payload outlives the drain so a request held across a stall sees the same packet
            return self.in_buffer.payload
        if addr == NicAddress.IN_STATUS:
            return STATUS_BIT if self.in_buffer.full else 0
        if addr == NicAddress.OUT_STATUS:
            return STATUS_BIT if self.out_buffer.full else 0
        return 0

    def tick(self, port: ProcessorPort, router: RouterInputs, polarity: int,
             reset: bool = False) -> NicOutputs:
        """
        Evaluates both sides of the NIC from the pre-tick buffer state, then
        commits the qualified buffer updates.

        Returns:
            The outputs presented during this tick.
        """
        addr = port.addr & 0b11
        data_out = self.read_data(port)

        # Router to processor
        ready = self.in_buffer.empty
        consume = (port.enable and not port.write_enable
                   and addr == NicAddress.IN_DATA and self.in_buffer.full)
        accept = ready and router.send

        # Processor to router
        packet = self.out_buffer.payload
        vc_match = (packet & 1) == self.admitted_vc(polarity)
        send = self.out_buffer.full and router.ready and vc_match
        net_do = packet if send else 0
        produce = port.enable and port.write_enable and addr == NicAddress.OUT_DATA

        if reset:
            self.in_buffer.step(reset=True)
            self.out_buffer.step(reset=True)
            return NicOutputs(0, False, False, 0)

        received = self.in_buffer.step(read=consume, write=accept, data=router.data)
        sent = self.out_buffer.step(read=send and router.ready, write=produce, data=port.data)

        if received.write:
            logger.debug("nic: accepted packet %016x from router", router.data)
        if received.read:
            logger.debug("nic: processor consumed packet %016x", self.in_buffer.payload)
        if sent.read:
            logger.debug("nic: sent packet %016x on vc %d", packet, packet & 1)
        if sent.write:
            logger.debug("nic: processor queued packet %016x", port.data)
        elif produce:
            logger.debug("nic: output buffer busy, dropped write of %016x", port.data)

        return NicOutputs(data_out, ready, send, net_do)

    def __str__(self) -> str:
        return f"NetworkInterface(in={self.in_buffer}, out={self.out_buffer})"
