"""
Expected Output Expansion
=========================

After the trace stream is encoded, the script is scanned a second time to
produce the expected decoder output. Every comment that is not a directive
becomes one line of a ``.exp`` file, with ``%`` placeholders replaced by
label addresses.

Placeholders
------------
| Placeholder   | Label source | Output                                  |
|---------------|--------------|-----------------------------------------|
| %name         | either       | 0x2a                                    |
| %0name        | either       | 0x000000000000002a                      |
| %name.N       | assembly     | address limited to the low N bytes      |
| %?name.N      | assembly     | 0x + (8-N) x "??" + low N bytes         |

Names are looked up among assembly labels first, then directive labels.
A ``.N`` suffix only applies to assembly labels; after a directive label it
is copied through as ordinary text.

Text after ``#`` in a comment is a comment on the expectation itself and is
dropped, as is trailing whitespace.

Output Files
------------
Each ``.exp`` directive is a checkpoint: it closes the current file and
opens ``<root>[-<extra>].exp``. Comments before the first checkpoint are not
written anywhere. A failure removes the file being written; files completed
at earlier checkpoints are kept.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Final, Optional, TextIO

from tracegen.errors import (
    DirectiveSyntaxError,
    ErrorCode,
    LabelNameError,
    OutputError,
    ScriptError,
    ValueRangeError,
)
from tracegen.script.literals import parse_int
from tracegen.script.parser import split_directive
from tracegen.script.source import COMMENT_CHAR, ScriptSource
from tracegen.script.symbols import LabelNamespace, LabelOrigin

logger = logging.getLogger(__name__)


PLACEHOLDER_CHAR: Final[str] = "%"
EXPECTATION_COMMENT_CHAR: Final[str] = "#"
ZERO_PAD_CHAR: Final[str] = "0"
QUESTION_PAD_CHAR: Final[str] = "?"
MAX_LABEL_LENGTH: Final[int] = 255
ADDRESS_BYTES: Final[int] = 8
EXP_SUFFIX: Final[str] = ".exp"

_LABEL_CHARS_RE = re.compile(r"\w*", re.ASCII)
# strtol-style prefix; the width may be followed by space or punctuation
_MASK_RE = re.compile(r"[+-]?(?:0[xX][0-9a-fA-F]+|[0-9]+)")


# =============================================================================
# Placeholder
# =============================================================================

@dataclass(frozen=True)
class Placeholder:
    """
    A parsed ``%`` expression.

    Attributes:
        label: Label name
        zero_pad: Pad the hex address to 16 digits
        mask_question: Render masked-off high bytes as "??"
        mask_bytes: Number of low address bytes kept, None for all
    """
    label: str
    zero_pad: bool = False
    mask_question: bool = False
    mask_bytes: Optional[int] = None


def render_address(address: int, placeholder: Placeholder, origin: LabelOrigin) -> str:
    """
    Format ``address`` the way ``placeholder`` asks for.

        >>> render_address(0x2a, Placeholder("p1", zero_pad=True), LabelOrigin.LOCAL)
        '0x000000000000002a'
    """
    if origin is LabelOrigin.LOCAL:
        if placeholder.zero_pad:
            return f"0x{address:016x}"
        return f"0x{address:x}"

    hidden = 0
    if placeholder.mask_bytes is not None:
        address &= (1 << (placeholder.mask_bytes * 8)) - 1
        hidden = ADDRESS_BYTES - placeholder.mask_bytes

    if placeholder.mask_question:
        shown = "".join(
            f"{(address >> ((ADDRESS_BYTES - 1 - i) * 8)) & 0xFF:02x}"
            for i in range(hidden, ADDRESS_BYTES)
        )
        return "0x" + "??" * hidden + shown
    if placeholder.zero_pad:
        return f"0x{address:016x}"
    return f"0x{address:x}"


def _scan_mask(text: str, pos: int) -> tuple[Optional[int], int]:
    """
    Parse an optional ``.N`` suffix at ``pos``.

    Returns:
        Tuple of (N or None, position after the suffix)
    """
    if pos >= len(text) or text[pos] != ".":
        return None, pos

    match = _MASK_RE.match(text, pos + 1)
    end = match.end() if match else pos + 1
    if match is None or (end < len(text) and text[end].isalnum()):
        raise DirectiveSyntaxError(
            f"cannot parse mask width in '{text[pos:]}'",
            code=ErrorCode.PARSE_INT,
        )

    width = parse_int(match.group(0))
    if not 0 <= width <= ADDRESS_BYTES:
        raise ValueRangeError(
            f"mask width {width} out of range",
            hint=f"keep between 0 and {ADDRESS_BYTES} bytes",
        )
    return width, end


def expand_line(text: str, namespace: LabelNamespace) -> str:
    """
    Replace every placeholder in ``text`` with its rendered address.

    Raises:
        LabelNameError: If a ``%`` is not followed by a label name, or the
                        name is longer than 255 characters
        UndefinedLabelError: If the label is in neither namespace
        DirectiveSyntaxError, ValueRangeError: On a malformed ``.N`` suffix
    """
    out = []
    pos = 0
    while True:
        mark = text.find(PLACEHOLDER_CHAR, pos)
        if mark < 0:
            out.append(text[pos:])
            return "".join(out)

        out.append(text[pos:mark])
        pos = mark + 1

        if pos >= len(text) or text[pos].isspace():
            raise LabelNameError("missing label name after '%'")

        zero_pad = mask_question = False
        if text[pos] == ZERO_PAD_CHAR:
            zero_pad = True
            pos += 1
        elif text[pos] == QUESTION_PAD_CHAR:
            zero_pad = mask_question = True
            pos += 1

        name = _LABEL_CHARS_RE.match(text, pos).group(0)
        if not name:
            raise LabelNameError("missing label name after '%'")
        if len(name) > MAX_LABEL_LENGTH:
            raise LabelNameError(
                f"label name too long ({len(name)} characters, at most {MAX_LABEL_LENGTH})",
            )
        pos += len(name)

        address, origin = namespace.lookup_any(name)

        mask_bytes = None
        if origin is LabelOrigin.EXTERNAL:
            mask_bytes, pos = _scan_mask(text, pos)

        placeholder = Placeholder(
            label=name,
            zero_pad=zero_pad,
            mask_question=mask_question,
            mask_bytes=mask_bytes,
        )
        out.append(render_address(address, placeholder, origin))


def annotation_text(line: str) -> Optional[str]:
    """
    Extract the expected-output text from a script line.

    Returns:
        The text after the first ``;`` with any ``#`` comment and trailing
        whitespace removed, or None if the line has no ``;``
    """
    semicolon = line.find(COMMENT_CHAR)
    if semicolon < 0:
        return None

    text = line[semicolon + 1:]
    comment = text.find(EXPECTATION_COMMENT_CHAR)
    if comment >= 0:
        text = text[:comment]
    return text.rstrip()


# =============================================================================
# Expected Output Writer
# =============================================================================

class ExpectedOutput:
    """
    Writes the expected-output files of one script.

    At most one file is open at a time; ``checkpoint`` closes it before
    opening the next.

    A checkpoint that reuses an earlier file name overwrites that file; it
    is listed once, at its latest position.

    Attributes:
        written: Files completed so far, in order
        on_written: Called with each file's path as soon as it is closed
    """

    def __init__(
        self,
        source: ScriptSource,
        on_written: Optional[Callable[[Path], None]] = None,
    ):
        self._source = source
        self._path: Optional[Path] = None
        self._file: Optional[TextIO] = None
        self.written: list[Path] = []
        self.on_written = on_written

    @property
    def current_path(self) -> Optional[Path]:
        return self._path

    def checkpoint(self, extra: str) -> Path:
        """Close the current file and open ``<root>[-<extra>].exp``."""
        self.close()
        path = self._source.output_path(EXP_SUFFIX, extra)
        if path in self.written:
            logger.warning(f"Overwriting {path} from an earlier .exp directive")
            self.written.remove(path)
        try:
            self._file = open(path, "w")
        except OSError as e:
            raise OutputError(str(path), e.strerror or str(e), code=ErrorCode.FILE_OPEN) from e
        self._path = path
        logger.debug(f"Opened {path}")
        return path

    def write_line(self, text: str) -> None:
        if self._file is None:
            return
        try:
            self._file.write(text + "\n")
        except OSError as e:
            raise OutputError(str(self._path), e.strerror or str(e)) from e

    def close(self) -> None:
        """Close the current file and record it as written."""
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError as e:
            raise OutputError(str(self._path), e.strerror or str(e)) from e
        finally:
            self._file = None
        path, self._path = self._path, None
        logger.info(f"Wrote {path}")
        self.written.append(path)
        if self.on_written is not None:
            self.on_written(path)

    def discard(self) -> None:
        """Close and delete the file being written, if any."""
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug(f"Ignoring close failure on discarded {self._path}")
            self._file = None
        if self._path is not None:
            logger.warning(f"Removing incomplete {self._path}")
            self._path.unlink(missing_ok=True)
            self._path = None


class Expander:
    """
    Second pass: renders the expected-output files.

    Requires the complete label namespace, so it must only run after the
    encoding pass has finished.
    """

    def __init__(
        self,
        source: ScriptSource,
        namespace: LabelNamespace,
        on_written: Optional[Callable[[Path], None]] = None,
    ):
        self._source = source
        self._namespace = namespace
        self._on_written = on_written

    def run(self) -> list[Path]:
        """
        Scan the script and write every expected-output file.

        Returns:
            The files written, in checkpoint order

        Raises:
            ScriptError: On a malformed placeholder or unknown label
            OutputError: If a file cannot be opened or written
        """
        output = ExpectedOutput(self._source, on_written=self._on_written)
        try:
            for line in self._source:
                if line.is_directive:
                    directive = split_directive(line.directive, line.location, line.text)
                    if directive.is_terminator:
                        output.checkpoint(directive.payload)
                    continue

                if output.current_path is None:
                    continue

                text = annotation_text(line.text)
                if text is None:
                    continue

                try:
                    output.write_line(expand_line(text, self._namespace))
                except ScriptError as e:
                    raise e.with_context(line.location, line.text)
            output.close()
        except BaseException:
            output.discard()
            raise
        return output.written
