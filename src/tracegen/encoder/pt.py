"""
Intel PT Packet Encoder
=======================

Reference implementation of the PacketEncoder protocol that produces Intel
Processor Trace packets. Each operation encodes one packet into the start of
the scratch buffer and returns its length, or a negative EncoderStatus when
the operands cannot be encoded.

Packet Layouts
--------------
All multi-byte payloads are little-endian.

| Packet    | Bytes                                  | Length |
|-----------|----------------------------------------|--------|
| PSB       | 02 82 repeated 8 times                 | 16     |
| PSBEND    | 02 23                                  | 2      |
| PAD       | 00                                     | 1      |
| OVF       | 02 f3                                  | 2      |
| TNT-8     | ((1 << size) | bits) << 1              | 1      |
| TNT-64    | 02 a3 + 6 byte ((1 << size) | bits)    | 8      |
| TIP       | (ipc << 5) | 0x0d + ip bytes           | 1-7    |
| TIP.PGE   | (ipc << 5) | 0x11 + ip bytes           | 1-7    |
| TIP.PGD   | (ipc << 5) | 0x01 + ip bytes           | 1-7    |
| FUP       | (ipc << 5) | 0x1d + ip bytes           | 1-7    |
| MODE.Exec | 99 + (000 << 5 | CS.D << 1 | CS.L)     | 2      |
| MODE.TSX  | 99 + (001 << 5 | Abrt << 1 | InTX)     | 2      |
| PIP       | 02 43 + 6 byte (cr3 >> 5) << 1         | 8      |
| TSC       | 19 + 7 byte tsc                        | 8      |
| CBR       | 02 03 ratio 00                         | 4      |

IP Compression
--------------
The compression code selects how many low-order IP bytes follow the header:
0 = suppressed (0 bytes), 1 = update 16 (2), 2 = update 32 (4),
3 = sign-extended 48 (6).
"""

from typing import Final, Optional

from tracegen.encoder.interface import (
    EncoderConfig,
    EncoderStatus,
    ExecMode,
    TsxState,
    status_text,
)


# =============================================================================
# Opcodes
# =============================================================================

OPC_PAD: Final[int] = 0x00
OPC_EXT: Final[int] = 0x02
OPC_MODE: Final[int] = 0x99
OPC_TSC: Final[int] = 0x19

EXT_PSB: Final[int] = 0x82
EXT_PSBEND: Final[int] = 0x23
EXT_OVF: Final[int] = 0xF3
EXT_TNT_64: Final[int] = 0xA3
EXT_PIP: Final[int] = 0x43
EXT_CBR: Final[int] = 0x03

OPC_TIP: Final[int] = 0x0D
OPC_TIP_PGE: Final[int] = 0x11
OPC_TIP_PGD: Final[int] = 0x01
OPC_FUP: Final[int] = 0x1D

MODE_LEAF_EXEC: Final[int] = 0x00
MODE_LEAF_TSX: Final[int] = 0x20

# Payload sizes
PSB_REPEAT: Final[int] = 8
TNT_8_MAX_BITS: Final[int] = 6
TNT_64_MAX_BITS: Final[int] = 47
TNT_64_PAYLOAD: Final[int] = 6
PIP_PAYLOAD: Final[int] = 6
PIP_SHIFT_RIGHT: Final[int] = 5
PIP_SHIFT_LEFT: Final[int] = 1
TSC_PAYLOAD: Final[int] = 7

# IP compression code -> number of IP payload bytes
IP_PAYLOAD_SIZE: Final[dict[int, int]] = {
    0: 0,
    1: 2,
    2: 4,
    3: 6,
}

U64_MASK: Final[int] = (1 << 64) - 1


def _le(value: int, size: int) -> bytes:
    """Low ``size`` bytes of ``value``, little-endian."""
    return (value & ((1 << (size * 8)) - 1)).to_bytes(size, "little")


# =============================================================================
# Encoder
# =============================================================================

class PtEncoder:
    """
    Intel PT packet encoder.

    Attributes:
        config: Encoding parameters
        buffer: Scratch buffer; a successful operation leaves its packet in
                ``buffer[:count]``
    """

    def __init__(self, config: Optional[EncoderConfig] = None):
        self.config = config or EncoderConfig()
        self.buffer = bytearray(self.config.buffer_size)

    def _emit(self, packet: bytes) -> int:
        if len(packet) > len(self.buffer):
            return EncoderStatus.NO_SPACE
        self.buffer[:len(packet)] = packet
        return len(packet)

    # =========================================================================
    # Packets without operands
    # =========================================================================

    def psb(self) -> int:
        return self._emit(bytes([OPC_EXT, EXT_PSB] * PSB_REPEAT))

    def psbend(self) -> int:
        return self._emit(bytes([OPC_EXT, EXT_PSBEND]))

    def pad(self) -> int:
        return self._emit(bytes([OPC_PAD]))

    def ovf(self) -> int:
        return self._emit(bytes([OPC_EXT, EXT_OVF]))

    # =========================================================================
    # Taken/not-taken packets
    # =========================================================================

    def tnt_8(self, bits: int, size: int) -> int:
        """Short TNT: up to 6 bits plus stop bit in a single byte."""
        if not 0 < size <= TNT_8_MAX_BITS:
            return EncoderStatus.INVALID
        payload = (1 << size) | (bits & ((1 << size) - 1))
        return self._emit(bytes([payload << 1]))

    def tnt_64(self, bits: int, size: int) -> int:
        """Long TNT: up to 47 bits plus stop bit in a 6 byte payload."""
        if not 0 < size <= TNT_64_MAX_BITS:
            return EncoderStatus.INVALID
        payload = (1 << size) | (bits & ((1 << size) - 1))
        return self._emit(bytes([OPC_EXT, EXT_TNT_64]) + _le(payload, TNT_64_PAYLOAD))

    # =========================================================================
    # IP packets
    # =========================================================================

    def _ip_packet(self, opcode: int, ip: int, ipc: int) -> int:
        size = IP_PAYLOAD_SIZE.get(ipc)
        if size is None:
            return EncoderStatus.BAD_IP_COMPRESSION
        header = (ipc << 5) | opcode
        return self._emit(bytes([header]) + _le(ip, size))

    def tip(self, ip: int, ipc: int) -> int:
        return self._ip_packet(OPC_TIP, ip, ipc)

    def tip_pge(self, ip: int, ipc: int) -> int:
        return self._ip_packet(OPC_TIP_PGE, ip, ipc)

    def tip_pgd(self, ip: int, ipc: int) -> int:
        return self._ip_packet(OPC_TIP_PGD, ip, ipc)

    def fup(self, ip: int, ipc: int) -> int:
        return self._ip_packet(OPC_FUP, ip, ipc)

    # =========================================================================
    # Mode packets
    # =========================================================================

    def mode_exec(self, mode: ExecMode) -> int:
        try:
            mode = ExecMode(mode)
        except ValueError:
            return EncoderStatus.INVALID
        return self._emit(bytes([OPC_MODE, MODE_LEAF_EXEC | int(mode)]))

    def mode_tsx(self, state: TsxState) -> int:
        try:
            state = TsxState(state)
        except ValueError:
            return EncoderStatus.INVALID
        return self._emit(bytes([OPC_MODE, MODE_LEAF_TSX | int(state)]))

    # =========================================================================
    # Value packets
    # =========================================================================

    def pip(self, cr3: int) -> int:
        payload = ((cr3 & U64_MASK) >> PIP_SHIFT_RIGHT) << PIP_SHIFT_LEFT
        return self._emit(bytes([OPC_EXT, EXT_PIP]) + _le(payload, PIP_PAYLOAD))

    def tsc(self, tsc: int) -> int:
        return self._emit(bytes([OPC_TSC]) + _le(tsc, TSC_PAYLOAD))

    def cbr(self, ratio: int) -> int:
        if not 0 <= ratio <= 0xFF:
            return EncoderStatus.INVALID
        return self._emit(bytes([OPC_EXT, EXT_CBR, ratio, 0x00]))

    def status_text(self, status: int) -> str:
        return status_text(status)
