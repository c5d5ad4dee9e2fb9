"""
Test Script Source
==================

ScriptSource holds the text of one test script and answers the questions the
generator asks of it: the raw lines, which of them carry a trace directive,
where the script lives (for output file names), and which labels the
surrounding assembly source defines.

Script Format
-------------
A script is an assembly source file whose comments carry trace directives
and expected decoder output:

    org 0x100000
    bits 64

    ; @pt p1: psb()
    ; @pt p2: fup(3: %l1)
    ; @pt p3: psbend()
    l1: hlt
    ; @pt .exp(ptdump)
    ;%0p1  psb
    ;%0p2  fup      3: %?l1
    ;%0p3  psbend

A directive is the comment text following the ``@pt`` marker. Every other
comment is a candidate line of expected output.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from tracegen.errors import SourceLocation
from tracegen.script.symbols import ExternalLabels


DIRECTIVE_MARKER = "@pt"
COMMENT_CHAR = ";"


@dataclass(frozen=True)
class SourceLine:
    """
    One line of a test script.

    Attributes:
        location: Position of the line (column of the directive, if any)
        text: The line without its newline
        directive: Text following the directive marker, or None if the
                   line carries no directive
    """
    location: SourceLocation
    text: str
    directive: Optional[str] = None

    @property
    def is_directive(self) -> bool:
        return self.directive is not None


def find_directive(text: str) -> tuple[Optional[str], int]:
    """
    Locate a directive marker in the comment part of a line.

    Returns:
        Tuple of (directive text, 1-based column of the directive text);
        (None, 0) if the line has no directive
    """
    semicolon = text.find(COMMENT_CHAR)
    if semicolon < 0:
        return None, 0

    comment = text[semicolon + 1:]
    stripped = comment.lstrip()
    if not stripped.startswith(DIRECTIVE_MARKER):
        return None, 0

    after = stripped[len(DIRECTIVE_MARKER):]
    if after and not after[0].isspace():
        # "@ptx" is ordinary comment text, not a marker
        return None, 0

    directive = after.strip()
    column = len(text) - len(after.lstrip()) + 1 if directive else 0
    return directive, column


class ScriptSource:
    """
    A loaded test script.

    Attributes:
        filename: Name used in diagnostics
        fileroot: Path without extension, the stem of every output file
        external: Labels defined by the surrounding assembly source
    """

    def __init__(
        self,
        text: str,
        filename: str = "<input>",
        fileroot: Optional[Union[str, Path]] = None,
        external: Optional[ExternalLabels] = None,
    ):
        self.filename = filename
        self.fileroot = str(fileroot) if fileroot is not None else Path(filename).stem
        self.external = external if external is not None else ExternalLabels()
        self._lines = [
            self._make_line(number, line)
            for number, line in enumerate(text.splitlines(), start=1)
        ]

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        external: Optional[ExternalLabels] = None,
    ) -> "ScriptSource":
        """
        Load a script from disk.

        Raises:
            FileNotFoundError: If the script does not exist
        """
        path = Path(path)
        return cls(
            path.read_text(),
            filename=str(path),
            fileroot=path.with_suffix(""),
            external=external,
        )

    def _make_line(self, number: int, text: str) -> SourceLine:
        directive, column = find_directive(text)
        return SourceLine(
            location=SourceLocation(self.filename, number, column),
            text=text,
            directive=directive,
        )

    def __iter__(self) -> Iterator[SourceLine]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def directives(self) -> Iterator[SourceLine]:
        """Yield the lines that carry a directive, in order."""
        return (line for line in self._lines if line.is_directive)

    def output_path(self, suffix: str, extra: str = "") -> Path:
        """
        Synthesize an output file name: ``<fileroot>[-<extra>]<suffix>``.
        """
        name = self.fileroot
        if extra:
            name = f"{name}-{extra}"
        return Path(name + suffix)
