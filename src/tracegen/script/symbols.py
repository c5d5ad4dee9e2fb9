"""
Label Namespaces
================

A test script sees two kinds of labels:

1. **Local labels** name positions in the trace stream. They are defined by
   directives (``; @pt p1: psb()``) and stamped with the byte offset of the
   packet they prefix. They live in a SymbolTable owned by the session.

2. **External labels** name addresses in the assembled program the trace
   describes (``loop: jmp loop``). They are supplied by the assembler that
   processed the script and are read-only here.

Although stored separately, the two form one logical global namespace: a
name may be defined in at most one of them. LabelNamespace is the single
place where that rule is enforced.
"""

import difflib
import logging
from enum import Enum
from pathlib import Path
from typing import Iterator, Mapping, Optional, Union

from tracegen.errors import (
    DuplicateLabelError,
    InternalError,
    UndefinedLabelError,
)
from tracegen.script.literals import parse_int, U64_MASK

logger = logging.getLogger(__name__)


class LabelOrigin(Enum):
    """Which namespace a label was resolved from."""
    LOCAL = "directive"
    EXTERNAL = "assembly"


# =============================================================================
# Local Symbol Table
# =============================================================================

class SymbolTable:
    """
    Ordered, append-only mapping from label name to a 64-bit address.

    Iteration order is the order of first appearance. There is no deletion;
    the table lives as long as its session.
    """

    def __init__(self):
        self._labels: dict[str, int] = {}

    def append(self, name: str, address: int) -> None:
        """
        Record a new label.

        Raises:
            DuplicateLabelError: If ``name`` is already in this table
            InternalError: If ``address`` does not fit in 64 bits
        """
        if name in self._labels:
            raise DuplicateLabelError(name, namespace=LabelOrigin.LOCAL.value)
        if not 0 <= address <= U64_MASK:
            raise InternalError(f"label '{name}' address {address:#x} exceeds 64 bits")
        self._labels[name] = address

    def lookup(self, name: str) -> int:
        """
        Return the address of ``name`` (exact match).

        Raises:
            UndefinedLabelError: If ``name`` is not in this table
        """
        try:
            return self._labels[name]
        except KeyError:
            raise UndefinedLabelError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def items(self):
        return self._labels.items()


# =============================================================================
# External Labels
# =============================================================================

class ExternalLabels:
    """
    Read-only view of the labels defined by the surrounding assembly source.

    Labels can be given directly as a mapping, read from a symbol file, or
    parsed from ``NAME=VALUE`` strings (the ``-L`` command-line option).

    Symbol file format (as written by ``psasm -s``):

        # Symbol table
        loop $8004
        start 0x8000
    """

    def __init__(self, labels: Optional[Mapping[str, int]] = None):
        self._labels: dict[str, int] = {}
        for name, value in (labels or {}).items():
            self.add(name, value)

    def add(self, name: str, value: int) -> None:
        if name in self._labels:
            raise DuplicateLabelError(name, namespace=LabelOrigin.EXTERNAL.value)
        self._labels[name] = value & U64_MASK

    @classmethod
    def from_symbol_file(cls, path: Union[str, Path]) -> "ExternalLabels":
        """
        Load labels from a symbol file.

        Raises:
            DirectiveSyntaxError: If an address cannot be parsed
            DuplicateLabelError: If a name appears twice
            OSError: If the file cannot be read
        """
        labels = cls()
        text = Path(path).read_text()
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            fields = line.split()
            if len(fields) != 2:
                logger.warning(f"{path}: ignoring malformed symbol line '{line}'")
                continue
            name, value = fields
            labels.add(name, parse_int(value))
        logger.debug(f"Loaded {len(labels)} external labels from {path}")
        return labels

    @classmethod
    def from_definitions(cls, definitions: list[str]) -> "ExternalLabels":
        """Build labels from ``NAME=VALUE`` strings."""
        labels = cls()
        for definition in definitions:
            name, sep, value = definition.partition("=")
            if not sep or not name.strip():
                raise ValueError(f"expected NAME=VALUE, got '{definition}'")
            labels.add(name.strip(), parse_int(value))
        return labels

    def merge(self, other: "ExternalLabels") -> None:
        for name, value in other.items():
            self.add(name, value)

    def lookup(self, name: str) -> int:
        """
        Return the address of ``name``.

        Raises:
            UndefinedLabelError: If the assembly source does not define it
        """
        try:
            return self._labels[name]
        except KeyError:
            raise UndefinedLabelError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def items(self):
        return self._labels.items()


# =============================================================================
# Combined Namespace
# =============================================================================

class LabelNamespace:
    """
    Facade over the local SymbolTable and the external labels.

    All label definitions go through ``define`` so that uniqueness across
    both namespaces is checked in exactly one place.
    """

    def __init__(
        self,
        external: Optional[ExternalLabels] = None,
        local: Optional[SymbolTable] = None,
    ):
        self.external = external if external is not None else ExternalLabels()
        self.local = local if local is not None else SymbolTable()

    def check_unique(self, name: str) -> None:
        """
        Raise DuplicateLabelError if ``name`` exists in either namespace.
        """
        if name in self.external:
            raise DuplicateLabelError(name, namespace=LabelOrigin.EXTERNAL.value)
        if name in self.local:
            raise DuplicateLabelError(name, namespace=LabelOrigin.LOCAL.value)

    def define(self, name: str, address: int) -> None:
        """Append a local label after checking both namespaces."""
        self.check_unique(name)
        self.local.append(name, address)
        logger.debug(f"Label '{name}' = {address:#x}")

    def lookup_any(self, name: str, prefer: LabelOrigin = LabelOrigin.EXTERNAL) -> tuple[int, LabelOrigin]:
        """
        Resolve ``name`` in both namespaces.

        Args:
            name: Label name
            prefer: Namespace queried first

        Returns:
            Tuple of (address, origin)

        Raises:
            UndefinedLabelError: If neither namespace defines ``name``;
                                 similarly named labels are offered as a hint
        """
        order = [
            (LabelOrigin.EXTERNAL, self.external),
            (LabelOrigin.LOCAL, self.local),
        ]
        if prefer is LabelOrigin.LOCAL:
            order.reverse()

        for origin, table in order:
            if name in table:
                return table.lookup(name), origin

        raise UndefinedLabelError(name, similar_labels=self.similar(name))

    def similar(self, name: str) -> list[str]:
        """Return up to three label names close to ``name``."""
        candidates = list(self.external) + list(self.local)
        return difflib.get_close_matches(name, candidates, n=3)
