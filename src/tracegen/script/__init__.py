"""
Trace Test Scripts
==================

This package turns a trace test script into an encoded trace stream (.pt)
and the expected decoder output (.exp).

Main Components
---------------
- **ScriptSource**: Loads a script and finds its directive lines
- **SymbolTable / LabelNamespace**: Directive labels and assembly labels
- **DirectiveParser**: Splits directives and decodes their operands
- **DirectiveDispatcher**: Encodes directives and tracks stream offsets
- **Expander**: Renders the expected-output files
- **Session**: Drives the encoding and expanding passes
"""

from tracegen.script.dispatcher import DIRECTIVE_TABLE, DirectiveDispatcher
from tracegen.script.expander import (
    Expander,
    ExpectedOutput,
    Placeholder,
    annotation_text,
    expand_line,
    render_address,
)
from tracegen.script.parser import (
    Directive,
    DirectiveParser,
    parse_empty,
    parse_exec_mode,
    parse_ip,
    parse_tnt,
    parse_tsx_mode,
    parse_uint8,
    parse_uint64,
    split_directive,
)
from tracegen.script.session import Phase, Session, generate, run_script
from tracegen.script.source import ScriptSource, SourceLine
from tracegen.script.symbols import (
    ExternalLabels,
    LabelNamespace,
    LabelOrigin,
    SymbolTable,
)

__all__ = [
    # Source
    "ScriptSource",
    "SourceLine",
    # Labels
    "ExternalLabels",
    "LabelNamespace",
    "LabelOrigin",
    "SymbolTable",
    # Parser
    "Directive",
    "DirectiveParser",
    "split_directive",
    "parse_empty",
    "parse_exec_mode",
    "parse_ip",
    "parse_tnt",
    "parse_tsx_mode",
    "parse_uint8",
    "parse_uint64",
    # Dispatcher
    "DIRECTIVE_TABLE",
    "DirectiveDispatcher",
    # Expander
    "Expander",
    "ExpectedOutput",
    "Placeholder",
    "annotation_text",
    "expand_line",
    "render_address",
    # Session
    "Phase",
    "Session",
    "generate",
    "run_script",
]
