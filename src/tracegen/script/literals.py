"""
Integer Literals
================

Integer operands in test scripts follow C ``strtol(s, NULL, 0)`` rules, with
the binary and ``$`` hex forms that psasm symbol files also use:

| Syntax     | Base | Example      |
|------------|------|--------------|
| 0x / 0X    | 16   | 0xFF         |
| $          | 16   | $FF          |
| 0b / 0B    | 2    | 0b1010       |
| leading 0  | 8    | 0377         |
| otherwise  | 10   | 255          |

A leading sign is accepted. Negative values wrap to their unsigned 64-bit
two's complement, the way an address register would hold them.
"""

import re
from typing import Final

from tracegen.errors import DirectiveSyntaxError, ErrorCode


U64_MASK: Final[int] = (1 << 64) - 1

_INT_RE = re.compile(
    r"""
    (?P<sign>[+-]?)
    (?:
        0[xX](?P<hex>[0-9a-fA-F]+)
      | \$(?P<dollar>[0-9a-fA-F]+)
      | 0[bB](?P<bin>[01]+)
      | (?P<oct>0[0-7]*)
      | (?P<dec>[1-9][0-9]*)
    )
    \Z
    """,
    re.VERBOSE,
)


def parse_int(text: str) -> int:
    """
    Parse an integer literal, wrapping negative values to unsigned 64 bits.

    Raises:
        DirectiveSyntaxError: If ``text`` is not a complete integer literal
    """
    match = _INT_RE.match(text.strip()) if text else None
    if match is None:
        raise DirectiveSyntaxError(
            f"cannot parse integer '{text}'",
            code=ErrorCode.PARSE_INT,
        )

    if match.group("hex") is not None:
        value = int(match.group("hex"), 16)
    elif match.group("dollar") is not None:
        value = int(match.group("dollar"), 16)
    elif match.group("bin") is not None:
        value = int(match.group("bin"), 2)
    elif match.group("oct") is not None:
        value = int(match.group("oct"), 8)
    else:
        value = int(match.group("dec"), 10)

    if match.group("sign") == "-":
        value = -value
    return value & U64_MASK
