from typing import NamedTuple

from .config import REGISTER_WIDTH_BITS

_DATA_MASK = (1 << REGISTER_WIDTH_BITS) - 1


class BufferUpdate(NamedTuple):
    """Which of the requests presented to a ChannelBuffer actually fired."""
    read: bool
    write: bool


class ChannelBuffer:
    """One-entry synchronous FIFO between the NIC and the router or processor."""

    def __init__(self):
        self.full: bool = False
        self.payload: int = 0

    @property
    def empty(self) -> bool:
        return not self.full

    def step(self, read: bool = False, write: bool = False, data: int = 0,
             reset: bool = False) -> BufferUpdate:
        """
        Advances the buffer by one tick.

        The qualified read is evaluated first. When both requests qualify only one
        update branch can fire, so a read on a full buffer drains it and the
        write is dropped. Reads leave the payload in place.

        Returns:
            The qualified (read, write) pair.
        """
        if reset:
            self.full = False
            self.payload = 0
            return BufferUpdate(False, False)

        read_qualified = read and self.full
        write_qualified = write and not self.full

        if read_qualified:
            self.full = False
        elif write_qualified:
            self.full = True
            self.payload = int(data) & _DATA_MASK
        return BufferUpdate(read_qualified, write_qualified)

    def __str__(self) -> str:
        state = "FULL" if self.full else "EMPTY"
        return f"ChannelBuffer({state}, payload={self.payload:016x})"
