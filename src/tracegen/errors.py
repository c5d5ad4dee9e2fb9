"""
tracegen Error Hierarchy
========================

This module defines the exception hierarchy for the trace test generator.
All exceptions inherit from TraceGenError, allowing callers to catch every
generator-related error with a single except clause.

Exception Hierarchy
-------------------
TraceGenError (base)
├── ScriptError (errors tied to a line of the test script)
│   ├── DirectiveSyntaxError - malformed directive or operand
│   ├── ValueRangeError - operand does not fit its field
│   ├── LabelError - label handling
│   │   ├── UndefinedLabelError - reference to an unknown label
│   │   ├── DuplicateLabelError - label not unique across namespaces
│   │   └── LabelNameError - missing or over-long label name
│   └── EncoderError - the packet encoder rejected a directive
├── OutputError - .pt or .exp file could not be opened or written
└── InternalError - violated internal invariant (a bug)

Status Codes
------------
Every error kind carries a stable negative status code (ErrorCode). The
process-level entry point returns 0 on success or one of these codes, so
callers that only care about a number never have to inspect exception types.

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


# =============================================================================
# Status Codes
# =============================================================================

class ErrorCode(IntEnum):
    """Negative status codes reported by the process-level entry point."""
    SUCCESS = 0
    INTERNAL = -1
    NO_MEMORY = -2
    FILE_OPEN = -3
    FILE_WRITE = -4
    NO_DIRECTIVE = -5
    MISSING_DIRECTIVE = -6
    UNKNOWN_DIRECTIVE = -7
    TRAILING_TOKENS = -8
    UNKNOWN_CHAR = -9
    PARSE_INT = -10
    INT_TOO_BIG = -11
    MISSING_OPERAND = -12
    INVALID_ARGUMENT = -13
    NO_LABEL = -14
    LABEL_NAME = -15
    LABEL_NOT_UNIQUE = -16
    ENCODER = -17


# =============================================================================
# Base Exception Class
# =============================================================================

class TraceGenError(Exception):
    """
    Base exception for all tracegen errors.

        try:
            generate("loop.ptt")
        except TraceGenError as e:
            print(f"Error: {e}")
    """
    code: ErrorCode = ErrorCode.INTERNAL


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in a test script, used for diagnostics.

    Attributes:
        filename: Name of the script (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Script Exceptions
# =============================================================================

class ScriptError(TraceGenError):
    """
    Base exception for errors that can be attributed to the test script.

    Attributes:
        message: The error description
        location: Where in the script the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The script text at the error location (optional)
    """

    code = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            loop.ptt:7:9: error: unknown directive 'tipx'
                ; @pt tipx(3: %l0)
                        ^
            hint: known directives are ...
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def with_context(
        self,
        location: SourceLocation,
        source_line: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> "ScriptError":
        """
        Attach a location to an error raised by a location-agnostic helper.

        Operand sub-parsers and the placeholder renderer work on bare strings
        and raise without a location; the caller fills it in here, optionally
        naming what it was doing (``"tnt: parsing failed"``). An error that
        already has a location keeps it.
        """
        if self.location is None:
            self.location = location
            if self.source_line is None:
                self.source_line = source_line
        if prefix:
            self.message = f"{prefix}: {self.message}"
        self.args = (self._format_message(),)
        return self


class DirectiveSyntaxError(ScriptError):
    """
    Malformed directive.

    Raised for a missing or unknown directive name, trailing tokens, an
    unknown character in a TNT pattern, an unparsable integer, a missing
    operand, or an argument outside a keyword set.
    """

    code = ErrorCode.MISSING_DIRECTIVE


class ValueRangeError(ScriptError):
    """
    Operand value does not fit its field.

    Examples:
        ; @pt cbr(256)          value too large for 8 bits
        ;%?label.9              mask width outside 0..8
    """

    code = ErrorCode.INT_TOO_BIG


class LabelError(ScriptError):
    """Base class for label definition and lookup errors."""

    code = ErrorCode.NO_LABEL


class UndefinedLabelError(LabelError):
    """
    Reference to a label found in neither namespace.

    Similar names from both namespaces are offered as a hint, which catches
    the usual typo.
    """

    code = ErrorCode.NO_LABEL

    def __init__(
        self,
        label: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_labels: Optional[list[str]] = None,
    ):
        self.label = label
        self.similar_labels = similar_labels or []

        if not hint and self.similar_labels:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_labels[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined label '{label}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateLabelError(LabelError):
    """
    Label name is not unique.

    Directive labels and assembly labels form one global namespace even
    though they are stored separately; defining a name that exists in
    either one raises this error.
    """

    code = ErrorCode.LABEL_NOT_UNIQUE

    def __init__(
        self,
        label: str,
        namespace: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.label = label
        self.namespace = namespace

        hint = None
        if namespace:
            hint = f"'{label}' is already defined among the {namespace} labels"

        super().__init__(
            f"label '{label}' is not unique",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class LabelNameError(LabelError):
    """Missing or over-long label name in a placeholder."""

    code = ErrorCode.LABEL_NAME


class EncoderError(ScriptError):
    """
    The packet encoder returned a negative status for a directive.

    Attributes:
        directive: Name of the failing directive
        status: The encoder's negative status code
        status_text: The encoder's own description of the status
    """

    code = ErrorCode.ENCODER

    def __init__(
        self,
        directive: str,
        status: int,
        status_text: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.directive = directive
        self.status = status
        self.status_text = status_text

        super().__init__(
            f"encoder error in directive {directive} (status {status_text})",
            location=location,
            source_line=source_line,
        )


# =============================================================================
# Output and Internal Exceptions
# =============================================================================

class OutputError(TraceGenError):
    """
    An output file could not be opened or written.

    Attributes:
        path: The file that failed
        reason: Description from the underlying OSError
    """

    code = ErrorCode.FILE_WRITE

    def __init__(self, path: str, reason: str, code: ErrorCode = ErrorCode.FILE_WRITE):
        self.path = path
        self.reason = reason
        self.code = code
        action = "open" if code == ErrorCode.FILE_OPEN else "write"
        super().__init__(f"cannot {action} '{path}': {reason}")


class InternalError(TraceGenError):
    """Internal invariant violated. Always a bug in tracegen itself."""

    code = ErrorCode.INTERNAL
