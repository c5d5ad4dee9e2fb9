"""
Directive Dispatcher
====================

Routes each parsed directive to its operand parser and encoder operation,
keeps the running byte offset of the trace stream, and records directive
labels.

Label Addresses
---------------
A directive label names the offset of the first byte of the packet it
prefixes, i.e. the stream length *before* that packet is written:

    ; @pt p1: psb()        p1 = 0
    ; @pt p2: psbend()     p2 = 16
    ; @pt .exp()           eos = 18

A label is recorded only after its packet was encoded successfully, so a
failing directive never leaves a label behind.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Final, Optional

from tracegen.encoder.interface import PacketEncoder
from tracegen.errors import EncoderError, InternalError, ScriptError
from tracegen.script.parser import (
    Directive,
    parse_empty,
    parse_exec_mode,
    parse_ip,
    parse_tnt,
    parse_tsx_mode,
    parse_uint8,
    parse_uint64,
)
from tracegen.script.symbols import LabelNamespace

logger = logging.getLogger(__name__)


END_OF_STREAM_LABEL: Final[str] = "eos"


# =============================================================================
# Directive Table
# =============================================================================

@dataclass(frozen=True)
class DirectiveKind:
    """
    How one directive is handled.

    Attributes:
        operands: Decodes the payload into encoder arguments
        method: Name of the PacketEncoder operation to call
    """
    operands: Callable[[str, LabelNamespace], tuple]
    method: str


def _no_operands(payload: str, namespace: LabelNamespace) -> tuple:
    parse_empty(payload)
    return ()


def _tnt_operands(payload: str, namespace: LabelNamespace) -> tuple:
    return parse_tnt(payload)


def _ip_operands(payload: str, namespace: LabelNamespace) -> tuple:
    return parse_ip(payload, namespace)


def _exec_operands(payload: str, namespace: LabelNamespace) -> tuple:
    return (parse_exec_mode(payload),)


def _tsx_operands(payload: str, namespace: LabelNamespace) -> tuple:
    return (parse_tsx_mode(payload),)


def _u64_operands(payload: str, namespace: LabelNamespace) -> tuple:
    return (parse_uint64(payload),)


def _u8_operands(payload: str, namespace: LabelNamespace) -> tuple:
    return (parse_uint8(payload),)


DIRECTIVE_TABLE: Final[dict[str, DirectiveKind]] = {
    "psb": DirectiveKind(_no_operands, "psb"),
    "psbend": DirectiveKind(_no_operands, "psbend"),
    "pad": DirectiveKind(_no_operands, "pad"),
    "ovf": DirectiveKind(_no_operands, "ovf"),
    "tnt": DirectiveKind(_tnt_operands, "tnt_8"),
    "tnt64": DirectiveKind(_tnt_operands, "tnt_64"),
    "tip": DirectiveKind(_ip_operands, "tip"),
    "tip.pge": DirectiveKind(_ip_operands, "tip_pge"),
    "tip.pgd": DirectiveKind(_ip_operands, "tip_pgd"),
    "fup": DirectiveKind(_ip_operands, "fup"),
    "mode.exec": DirectiveKind(_exec_operands, "mode_exec"),
    "mode.tsx": DirectiveKind(_tsx_operands, "mode_tsx"),
    "pip": DirectiveKind(_u64_operands, "pip"),
    "tsc": DirectiveKind(_u64_operands, "tsc"),
    "cbr": DirectiveKind(_u8_operands, "cbr"),
}


# =============================================================================
# Dispatcher
# =============================================================================

class DirectiveDispatcher:
    """
    Encodes directives and tracks the trace stream offset.

    Attributes:
        offset: Number of bytes emitted into the trace stream so far
    """

    def __init__(self, namespace: LabelNamespace, encoder: PacketEncoder):
        self._namespace = namespace
        self._encoder = encoder
        self.offset = 0

    def dispatch(self, directive: Directive) -> Optional[bytes]:
        """
        Process one directive.

        Returns:
            The encoded packet bytes, or None when the directive is the
            terminator and the encoding pass is complete

        Raises:
            ScriptError: If the payload cannot be parsed (location attached)
            EncoderError: If the encoder rejects the operands
            InternalError: If the encoder reports more bytes than it holds
        """
        if directive.is_terminator:
            try:
                self._namespace.define(END_OF_STREAM_LABEL, self.offset)
            except ScriptError as e:
                raise e.with_context(directive.location, directive.source_line, prefix="append label")
            logger.debug(f"End of stream at offset {self.offset:#x}")
            return None

        kind = DIRECTIVE_TABLE.get(directive.name)
        if kind is None:
            raise InternalError(f"no handler for directive '{directive.name}'")

        try:
            operands = kind.operands(directive.payload, self._namespace)
        except ScriptError as e:
            raise e.with_context(
                directive.location,
                directive.source_line,
                prefix=f"{directive.name}: parsing failed",
            )

        count = self._encode(kind.method, operands)
        if count < 0:
            raise EncoderError(
                directive.name,
                int(count),
                self._encoder.status_text(count),
                location=directive.location,
                source_line=directive.source_line,
            )
        if count > len(self._encoder.buffer):
            raise InternalError(
                f"encoder reported {count} bytes for '{directive.name}', "
                f"buffer holds {len(self._encoder.buffer)}"
            )

        if directive.label is not None:
            try:
                self._namespace.define(directive.label, self.offset)
            except ScriptError as e:
                raise e.with_context(directive.location, directive.source_line)

        packet = bytes(self._encoder.buffer[:count])
        logger.debug(f"{self.offset:#06x}: {directive.name} ({count} bytes) {packet.hex()}")
        self.offset += count
        return packet

    def _encode(self, method: str, operands: tuple[Any, ...]) -> int:
        return getattr(self._encoder, method)(*operands)
