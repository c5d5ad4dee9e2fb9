"""
Packet Encoders
===============

- **PacketEncoder**: protocol the script core encodes through
- **PtEncoder**: Intel PT implementation of that protocol
- **EncoderConfig**: packet-encoding parameters
- **EncoderStatus**: negative status codes and their text
"""

from tracegen.encoder.interface import (
    EncoderConfig,
    EncoderStatus,
    ExecMode,
    PacketEncoder,
    TsxState,
    status_text,
)
from tracegen.encoder.pt import PtEncoder

__all__ = [
    "EncoderConfig",
    "EncoderStatus",
    "ExecMode",
    "PacketEncoder",
    "PtEncoder",
    "TsxState",
    "status_text",
]
