"""
Packet Encoder Interface
========================

The script core never builds packet bytes itself. It talks to an encoder
through the PacketEncoder protocol defined here: one method per packet kind,
each taking already-resolved operands and returning either a non-negative
byte count or a negative status code. On success the encoded packet is
available in ``encoder.buffer[:count]``.

This keeps the parsing and resolution logic testable with a fake encoder
that returns deterministic byte counts, while PtEncoder (see pt.py) provides
the real Intel PT packet layout.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol


# =============================================================================
# Encoder Configuration
# =============================================================================

@dataclass
class EncoderConfig:
    """
    Packet-encoding parameters.

    Attributes:
        buffer_size: Size of the scratch buffer each packet is encoded into.
                     A packet that does not fit yields EncoderStatus.NO_SPACE.
    """
    buffer_size: int = 64

    def __post_init__(self):
        if self.buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {self.buffer_size}")


# =============================================================================
# Status Codes
# =============================================================================

class EncoderStatus(IntEnum):
    """Negative status codes returned by encoder operations."""
    OK = 0
    INTERNAL = -1
    INVALID = -2
    NO_SPACE = -3
    BAD_OPCODE = -4
    BAD_PACKET = -5
    BAD_IP_COMPRESSION = -6


STATUS_TEXT = {
    EncoderStatus.OK: "success",
    EncoderStatus.INTERNAL: "internal error",
    EncoderStatus.INVALID: "invalid argument",
    EncoderStatus.NO_SPACE: "not enough space",
    EncoderStatus.BAD_OPCODE: "unknown opcode",
    EncoderStatus.BAD_PACKET: "unknown packet",
    EncoderStatus.BAD_IP_COMPRESSION: "bad ip compression",
}


def status_text(status: int) -> str:
    """Translate an encoder status code into a human-readable string."""
    try:
        return STATUS_TEXT[EncoderStatus(status)]
    except ValueError:
        return f"unknown status {status}"


# =============================================================================
# Operand Enumerations
# =============================================================================

class ExecMode(IntEnum):
    """Execution mode carried by a MODE.Exec packet (CS.D, CS.L bits)."""
    BIT16 = 0
    BIT64 = 1
    BIT32 = 2


class TsxState(IntEnum):
    """Transaction state carried by a MODE.TSX packet (Abrt, InTX bits)."""
    COMMIT = 0
    BEGIN = 1
    ABORT = 2


# =============================================================================
# Encoder Protocol
# =============================================================================

class PacketEncoder(Protocol):
    """
    Capability interface for packet encoding.

    Every operation returns the number of bytes written to ``buffer`` or a
    negative status code; ``status_text`` turns such a code into text.
    """

    buffer: bytearray

    def psb(self) -> int: ...

    def psbend(self) -> int: ...

    def pad(self) -> int: ...

    def ovf(self) -> int: ...

    def tnt_8(self, bits: int, size: int) -> int: ...

    def tnt_64(self, bits: int, size: int) -> int: ...

    def tip(self, ip: int, ipc: int) -> int: ...

    def tip_pge(self, ip: int, ipc: int) -> int: ...

    def tip_pgd(self, ip: int, ipc: int) -> int: ...

    def fup(self, ip: int, ipc: int) -> int: ...

    def mode_exec(self, mode: ExecMode) -> int: ...

    def mode_tsx(self, state: TsxState) -> int: ...

    def pip(self, cr3: int) -> int: ...

    def tsc(self, tsc: int) -> int: ...

    def cbr(self, ratio: int) -> int: ...

    def status_text(self, status: int) -> str: ...
