"""
tracegen - Trace Test Generator
===============================

tracegen compiles small trace test scripts into two correlated artifacts:

- an encoded Intel PT trace stream (``<script>.pt``), and
- one or more expected-output files (``<script>[-<name>].exp``) describing
  what a correct decoder reports for that stream.

Test authors write the packets as ``@pt`` directives in the comments of an
assembly source file and the expected decoder output as ordinary comments,
using ``%label`` placeholders for stream offsets and code addresses.

Quick Start
-----------
    >>> from tracegen import generate
    >>> generate("tip.ptt")
    [PosixPath('tip.exp')]

Or from the command line:
    $ tracegen tip.ptt -s tip.sym
    tip.exp
"""

__version__ = "1.0.0"

from tracegen.encoder import EncoderConfig, PacketEncoder, PtEncoder
from tracegen.errors import (
    DirectiveSyntaxError,
    DuplicateLabelError,
    EncoderError,
    ErrorCode,
    InternalError,
    LabelError,
    LabelNameError,
    OutputError,
    ScriptError,
    SourceLocation,
    TraceGenError,
    UndefinedLabelError,
    ValueRangeError,
)
from tracegen.script import (
    ExternalLabels,
    ScriptSource,
    Session,
    generate,
    run_script,
)

__all__ = [
    "__version__",
    # Generation
    "Session",
    "ScriptSource",
    "ExternalLabels",
    "generate",
    "run_script",
    # Encoding
    "EncoderConfig",
    "PacketEncoder",
    "PtEncoder",
    # Errors
    "TraceGenError",
    "ScriptError",
    "DirectiveSyntaxError",
    "ValueRangeError",
    "LabelError",
    "UndefinedLabelError",
    "DuplicateLabelError",
    "LabelNameError",
    "EncoderError",
    "OutputError",
    "InternalError",
    "ErrorCode",
    "SourceLocation",
]
