"""
Generator Session
=================

A Session turns one test script into its trace stream and expected-output
files. It runs two strictly sequential passes:

1. **Encoding**: every directive up to the first ``.exp`` is parsed, encoded
   and appended to ``<root>.pt``. Directive labels are recorded as they go.

2. **Expanding**: the script is scanned again and the expected-output files
   are written. Placeholders may refer to labels defined anywhere in the
   script, which is why this pass waits for the label table to be complete.

The session moves through READY -> ENCODING -> EXPANDING -> DONE, or to
FAILED at the first error. There is no recovery from an error.

Example Usage
-------------
>>> from tracegen.script import Session, ScriptSource
>>> session = Session(ScriptSource.from_file("tip.ptt"))
>>> session.run()
[PosixPath('tip.exp')]
"""

import logging
import sys
from enum import Enum, auto
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from tracegen.encoder import EncoderConfig, PacketEncoder, PtEncoder
from tracegen.errors import (
    ErrorCode,
    InternalError,
    OutputError,
    TraceGenError,
)
from tracegen.script.dispatcher import DirectiveDispatcher
from tracegen.script.expander import Expander
from tracegen.script.parser import DirectiveParser
from tracegen.script.source import ScriptSource
from tracegen.script.symbols import ExternalLabels, LabelNamespace

logger = logging.getLogger(__name__)


PT_SUFFIX = ".pt"


class Phase(Enum):
    """Session state."""
    READY = auto()
    ENCODING = auto()
    EXPANDING = auto()
    DONE = auto()
    FAILED = auto()


class Session:
    """
    One run of the generator over one script.

    Attributes:
        source: The script being processed
        namespace: Assembly and directive labels
        encoder: Packet encoder
        phase: Current Phase
        pt_path: Trace stream output file
        exp_paths: Expected-output files written by the expanding pass
        on_written: Called with each expected-output file as soon as it is
            complete, so files finished before a failure are still reported
    """

    def __init__(
        self,
        source: ScriptSource,
        config: Optional[EncoderConfig] = None,
        encoder: Optional[PacketEncoder] = None,
        on_written: Optional[Callable[[Path], None]] = None,
    ):
        self.source = source
        self.config = config or EncoderConfig()
        self.encoder = encoder if encoder is not None else PtEncoder(self.config)
        self.namespace = LabelNamespace(external=source.external)
        self.phase = Phase.READY
        self.pt_path = source.output_path(PT_SUFFIX)
        self.exp_paths: list[Path] = []
        self.on_written = on_written

        self._parser = DirectiveParser(self.namespace)
        self._dispatcher = DirectiveDispatcher(self.namespace, self.encoder)

    @property
    def bytes_written(self) -> int:
        """Length of the trace stream emitted so far."""
        return self._dispatcher.offset

    def run(self) -> list[Path]:
        """
        Run both passes.

        Returns:
            The expected-output files written (empty if the script has no
            ``.exp`` directive)

        Raises:
            TraceGenError: On the first parse, label, encoder or output error
        """
        if self.phase is not Phase.READY:
            raise InternalError(f"session already run (phase {self.phase.name})")

        try:
            self.phase = Phase.ENCODING
            terminated = self._encode()

            if terminated:
                self.phase = Phase.EXPANDING
                expander = Expander(self.source, self.namespace, on_written=self.on_written)
                self.exp_paths = expander.run()
            else:
                logger.info(f"{self.source.filename}: no .exp directive, no expected output")
        except BaseException:
            self.phase = Phase.FAILED
            raise

        self.phase = Phase.DONE
        return self.exp_paths

    def _encode(self) -> bool:
        """
        Encoding pass.

        Returns:
            True if the pass ended at a terminator, False if the script ran
            out of directives
        """
        try:
            pt_file = open(self.pt_path, "wb")
        except OSError as e:
            raise OutputError(str(self.pt_path), e.strerror or str(e), code=ErrorCode.FILE_OPEN) from e

        with pt_file:
            for line in self.source.directives():
                directive = self._parser.parse(line)
                packet = self._dispatcher.dispatch(directive)
                if packet is None:
                    logger.info(f"Wrote {self.bytes_written} bytes to {self.pt_path}")
                    return True
                self._write(pt_file, packet)

        logger.info(f"Wrote {self.bytes_written} bytes to {self.pt_path}")
        return False

    def _write(self, pt_file: BinaryIO, packet: bytes) -> None:
        try:
            pt_file.write(packet)
        except OSError as e:
            raise OutputError(str(self.pt_path), e.strerror or str(e)) from e


# =============================================================================
# Convenience Functions
# =============================================================================

def generate(
    script: Union[str, Path],
    config: Optional[EncoderConfig] = None,
    external_labels: Optional[ExternalLabels] = None,
    encoder: Optional[PacketEncoder] = None,
    on_written: Optional[Callable[[Path], None]] = None,
) -> list[Path]:
    """
    Generate the trace stream and expected output for a script file.

    Returns:
        The expected-output files written

    Raises:
        FileNotFoundError: If the script does not exist
        TraceGenError: On any generation error
    """
    source = ScriptSource.from_file(script, external=external_labels)
    return Session(source, config=config, encoder=encoder, on_written=on_written).run()


def run_script(
    script: Union[str, Path],
    config: Optional[EncoderConfig] = None,
    external_labels: Optional[ExternalLabels] = None,
) -> int:
    """
    Process-level entry point.

    Prints each expected-output file name as it is completed and a
    diagnostic on stderr on failure.

    Returns:
        0 on success, a negative ErrorCode otherwise
    """
    try:
        generate(script, config=config, external_labels=external_labels, on_written=print)
    except TraceGenError as e:
        print(e, file=sys.stderr)
        return int(e.code)
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return int(ErrorCode.FILE_OPEN)
    except MemoryError:
        print("error: out of memory", file=sys.stderr)
        return int(ErrorCode.NO_MEMORY)

    return int(ErrorCode.SUCCESS)
