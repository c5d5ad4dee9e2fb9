"""
Trace Directive Parser
======================

This module turns the text following a ``@pt`` marker into a Directive and
provides the operand sub-parsers that decode each directive's payload.

Directive Syntax
----------------
    [label:] name(payload)
    [label:] name payload

The label is everything before a ``:`` that precedes the directive name.
The payload is the text inside the parentheses, or the rest of the line when
no parentheses are given.

Directives
----------
| Directive               | Payload                     | Example               |
|-------------------------|-----------------------------|-----------------------|
| psb, psbend, pad, ovf   | (none)                      | psb()                 |
| tnt, tnt64              | t/n pattern                 | tnt(tt.n)             |
| tip, tip.pge, tip.pgd,  | ipc: address or %label      | fup(3: %l1)           |
| fup                     |                             | tip(1: 0x1000)        |
| mode.exec               | 16bit, 32bit or 64bit       | mode.exec(64bit)      |
| mode.tsx                | begin, abort or commit      | mode.tsx(begin)       |
| pip, tsc                | 64-bit integer              | tsc(0xa00)            |
| cbr                     | 8-bit integer               | cbr(0x24)             |
| .exp                    | optional output name suffix | .exp(ptxed)           |
"""

import re
from dataclasses import dataclass
from typing import Final, Optional

from tracegen.encoder.interface import ExecMode, TsxState
from tracegen.errors import (
    DirectiveSyntaxError,
    ErrorCode,
    ScriptError,
    SourceLocation,
    ValueRangeError,
)
from tracegen.script.literals import parse_int
from tracegen.script.source import SourceLine
from tracegen.script.symbols import LabelNamespace


# =============================================================================
# Directive Names
# =============================================================================

TERMINATOR: Final[str] = ".exp"

EMPTY_DIRECTIVES: Final[frozenset] = frozenset({"psb", "psbend", "pad", "ovf"})
TNT_DIRECTIVES: Final[frozenset] = frozenset({"tnt", "tnt64"})
IP_DIRECTIVES: Final[frozenset] = frozenset({"tip", "tip.pge", "tip.pgd", "fup"})
VALUE_DIRECTIVES: Final[frozenset] = frozenset({"pip", "tsc", "cbr"})
MODE_DIRECTIVES: Final[frozenset] = frozenset({"mode.exec", "mode.tsx"})

DIRECTIVE_NAMES: Final[frozenset] = (
    EMPTY_DIRECTIVES
    | TNT_DIRECTIVES
    | IP_DIRECTIVES
    | VALUE_DIRECTIVES
    | MODE_DIRECTIVES
    | {TERMINATOR}
)

EXEC_MODES: Final[dict[str, ExecMode]] = {
    "16bit": ExecMode.BIT16,
    "32bit": ExecMode.BIT32,
    "64bit": ExecMode.BIT64,
}

TSX_STATES: Final[dict[str, TsxState]] = {
    "begin": TsxState.BEGIN,
    "abort": TsxState.ABORT,
    "commit": TsxState.COMMIT,
}

MAX_TNT_BITS: Final[int] = 64

_LABEL_RE = re.compile(r"\s*(?P<label>\w+)\s*:", re.ASCII)
_NAME_RE = re.compile(r"[A-Za-z0-9_.]*")


# =============================================================================
# Directive Data Class
# =============================================================================

@dataclass(frozen=True)
class Directive:
    """
    A parsed trace directive.

    Attributes:
        name: Directive name (e.g. "tip.pge")
        payload: Operand text, not yet decoded
        label: Label defined by this directive, if any
        location: Where the directive appears
        source_line: Full text of the line, for diagnostics
    """
    name: str
    payload: str = ""
    label: Optional[str] = None
    location: Optional[SourceLocation] = None
    source_line: Optional[str] = None

    @property
    def is_terminator(self) -> bool:
        return self.name == TERMINATOR


def split_directive(
    text: str,
    location: Optional[SourceLocation] = None,
    source_line: Optional[str] = None,
) -> Directive:
    """
    Split directive text into label, name and payload.

    No validation beyond the shape of the text is done here; in particular
    the name is not checked against the known directives.

    Raises:
        DirectiveSyntaxError: If text follows the closing parenthesis
    """
    label = None
    body = text
    match = _LABEL_RE.match(text)
    if match:
        paren = text.find("(")
        if paren < 0 or match.end() <= paren:
            label = match.group("label")
            body = text[match.end():]

    body = body.lstrip()
    name = _NAME_RE.match(body).group(0)
    rest = body[len(name):].strip()

    if rest.startswith("("):
        close = rest.rfind(")")
        if close < 0:
            raise DirectiveSyntaxError(
                f"missing ')' in directive '{name}'",
                location=location,
                source_line=source_line,
                code=ErrorCode.MISSING_OPERAND,
            )
        if rest[close + 1:].strip():
            raise DirectiveSyntaxError(
                f"trailing tokens after '{name}' directive",
                location=location,
                source_line=source_line,
                code=ErrorCode.TRAILING_TOKENS,
            )
        payload = rest[1:close].strip()
    else:
        payload = rest

    return Directive(
        name=name,
        payload=payload,
        label=label,
        location=location,
        source_line=source_line,
    )


# =============================================================================
# Directive Parser
# =============================================================================

class DirectiveParser:
    """
    Parses directive lines against the combined label namespace.

    A label on a directive is checked for uniqueness as soon as it is seen,
    before the directive body is inspected, so a clash is never hidden by an
    unrelated syntax error later on the same line.
    """

    def __init__(self, namespace: LabelNamespace):
        self._namespace = namespace

    def parse(self, line: SourceLine) -> Directive:
        """
        Parse the directive carried by ``line``.

        Raises:
            DuplicateLabelError: If the directive's label already exists
            DirectiveSyntaxError: If the directive is missing or unknown
        """
        if line.directive is None:
            raise DirectiveSyntaxError(
                "line carries no directive",
                location=line.location,
                source_line=line.text,
                code=ErrorCode.NO_DIRECTIVE,
            )

        directive = split_directive(line.directive, line.location, line.text)

        if directive.label is not None:
            try:
                self._namespace.check_unique(directive.label)
            except ScriptError as e:
                raise e.with_context(line.location, line.text, prefix="label lookup")

        if not directive.name:
            raise DirectiveSyntaxError(
                "missing directive",
                location=line.location,
                source_line=line.text,
                code=ErrorCode.MISSING_DIRECTIVE,
            )

        if directive.name not in DIRECTIVE_NAMES:
            raise DirectiveSyntaxError(
                f"unknown directive '{directive.name}'",
                location=line.location,
                source_line=line.text,
                hint=f"known directives: {', '.join(sorted(DIRECTIVE_NAMES))}",
                code=ErrorCode.UNKNOWN_DIRECTIVE,
            )

        return directive


# =============================================================================
# Operand Sub-Parsers
# =============================================================================
# These work on bare payload strings and raise errors without a location;
# the dispatcher attaches the directive's location before reporting.
# =============================================================================

def _tokens(payload: str, separators: str) -> list[str]:
    return [t for t in re.split(f"[{re.escape(separators)}]+", payload.strip()) if t]


def parse_empty(payload: str) -> None:
    """
    Check that a directive without operands has an empty payload.

    Raises:
        DirectiveSyntaxError: If any token is left
    """
    if payload.strip():
        raise DirectiveSyntaxError(
            f"trailing tokens '{payload.strip()}'",
            code=ErrorCode.TRAILING_TOKENS,
        )


def parse_tnt(payload: str) -> tuple[int, int]:
    """
    Decode a taken/not-taken pattern.

    Each ``t`` contributes a 1 bit and each ``n`` a 0 bit, most significant
    first; ``.`` and whitespace separate groups and are ignored.

        >>> parse_tnt("t n t")
        (5, 3)

    Returns:
        Tuple of (bits, size)

    Raises:
        DirectiveSyntaxError: On any other character
        ValueRangeError: If the pattern has more than 64 bits
    """
    bits = 0
    size = 0
    for c in payload:
        if c.isspace() or c == ".":
            continue
        if c == "t":
            bits = (bits << 1) | 1
        elif c == "n":
            bits <<= 1
        else:
            raise DirectiveSyntaxError(
                f"unknown character '{c}'",
                code=ErrorCode.UNKNOWN_CHAR,
            )
        size += 1

    if size > MAX_TNT_BITS:
        raise ValueRangeError(f"value too large: {size} bits, at most {MAX_TNT_BITS}")
    return bits, size


def parse_ip(payload: str, namespace: Optional[LabelNamespace] = None) -> tuple[int, int]:
    """
    Decode ``<ipc> <address>`` for the IP packet directives.

    The address is an integer literal or ``%label``. Labels are looked up in
    the assembly namespace first, then among directive labels defined so far.

    Returns:
        Tuple of (ip, ipc)

    Raises:
        DirectiveSyntaxError: On missing, unparsable or trailing tokens
        ValueRangeError: If the compression code does not fit in 8 bits
        UndefinedLabelError: If a referenced label is unknown
    """
    tokens = _tokens(payload, " \t:")
    if not tokens:
        raise DirectiveSyntaxError("missing operands", code=ErrorCode.MISSING_OPERAND)

    ipc = parse_int(tokens[0])
    if ipc > 0xFF:
        raise ValueRangeError(f"value too large: ip compression {ipc:#x}")

    if len(tokens) < 2:
        raise DirectiveSyntaxError("missing ip operand", code=ErrorCode.MISSING_OPERAND)

    operand = tokens[1]
    if operand.startswith("%"):
        if namespace is None:
            raise DirectiveSyntaxError(
                f"cannot resolve '{operand}' without labels",
                code=ErrorCode.NO_LABEL,
            )
        ip, _ = namespace.lookup_any(operand[1:])
    else:
        ip = parse_int(operand)

    if len(tokens) > 2:
        raise DirectiveSyntaxError(
            f"trailing tokens '{' '.join(tokens[2:])}'",
            code=ErrorCode.TRAILING_TOKENS,
        )

    return ip, ipc


def parse_exec_mode(payload: str) -> ExecMode:
    """Decode the mode.exec argument."""
    try:
        return EXEC_MODES[payload.strip()]
    except KeyError:
        raise DirectiveSyntaxError(
            'argument must be one of "16bit", "64bit" or "32bit"',
            code=ErrorCode.INVALID_ARGUMENT,
        ) from None


def parse_tsx_mode(payload: str) -> TsxState:
    """Decode the mode.tsx argument."""
    try:
        return TSX_STATES[payload.strip()]
    except KeyError:
        raise DirectiveSyntaxError(
            'argument must be one of "begin", "abort" or "commit"',
            code=ErrorCode.INVALID_ARGUMENT,
        ) from None


def _single_value(payload: str) -> int:
    tokens = _tokens(payload, " \t,")
    if not tokens:
        raise DirectiveSyntaxError("missing operand", code=ErrorCode.MISSING_OPERAND)
    if len(tokens) > 1:
        raise DirectiveSyntaxError(
            f"trailing tokens '{' '.join(tokens[1:])}'",
            code=ErrorCode.TRAILING_TOKENS,
        )
    return parse_int(tokens[0])


def parse_uint64(payload: str) -> int:
    """Decode a single 64-bit integer operand."""
    return _single_value(payload)


def parse_uint8(payload: str) -> int:
    """
    Decode a single 8-bit integer operand.

    Raises:
        ValueRangeError: If the value does not fit in 8 bits
    """
    value = _single_value(payload)
    if value > 0xFF:
        raise ValueRangeError(f"value too large: {value:#x} does not fit in 8 bits")
    return value
