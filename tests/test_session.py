# =============================================================================
# test_session.py - Full Generator Pipeline Tests
# =============================================================================
# End-to-end tests for the two-pass generator: script in, .pt and .exp out.
#
# Test coverage includes:
#   - Trace stream length and content
#   - Label offsets visible in expected output
#   - Multiple checkpoints
#   - Failure handling and cleanup
#   - Phase transitions
#   - The status-code entry point
# =============================================================================

import pytest

from conftest import FakeEncoder
from tracegen.encoder import EncoderStatus, PtEncoder
from tracegen.errors import (
    DirectiveSyntaxError,
    DuplicateLabelError,
    EncoderError,
    ErrorCode,
    InternalError,
    UndefinedLabelError,
)
from tracegen.script.session import Phase, Session, generate, run_script
from tracegen.script.source import ScriptSource
from tracegen.script.symbols import ExternalLabels


TIP_SCRIPT = """\
org 0x100000
bits 64

; @pt p0: psb()
; @pt p1: fup(3: %l0)
; @pt p2: mode.exec(64bit)
; @pt p3: psbend()
l0: hlt
; @pt .exp(a)
;%0p0  psb
;%0p1  fup        3: %?l0
;%0p2  mode.exec  cs.l
;%0p3  psbend     # end of header
; @pt .exp(b)
;[%p3, %eos)
"""

LABELS = ExternalLabels({"l0": 0x100000})


def make_session(write_script, text, encoder=None, labels=LABELS):
    path = write_script(text)
    source = ScriptSource.from_file(path, external=labels)
    return Session(source, encoder=encoder if encoder is not None else FakeEncoder())


# =============================================================================
# Pipeline Tests
# =============================================================================

class TestPipeline:
    """Test complete runs."""

    def test_trace_length_is_sum_of_packets(self, write_script, tmp_path):
        session = make_session(write_script, TIP_SCRIPT)
        session.run()
        # psb 16 + fup 7 + mode.exec 2 + psbend 2
        assert (tmp_path / "test.pt").read_bytes() == (
            bytes([1]) * 16 + bytes([10]) * 7 + bytes([11]) * 2 + bytes([2]) * 2
        )
        assert session.bytes_written == 27

    def test_label_offsets(self, write_script):
        session = make_session(write_script, TIP_SCRIPT)
        session.run()
        local = session.namespace.local
        assert [(name, local.lookup(name)) for name in local] == [
            ("p0", 0), ("p1", 16), ("p2", 23), ("p3", 25), ("eos", 27),
        ]

    def test_expected_output_files(self, write_script, tmp_path):
        session = make_session(write_script, TIP_SCRIPT)
        written = session.run()
        assert written == [tmp_path / "test-a.exp", tmp_path / "test-b.exp"]
        assert (tmp_path / "test-a.exp").read_text() == (
            "0x0000000000000000  psb\n"
            "0x0000000000000010  fup        3: 0x0000000000100000\n"
            "0x0000000000000017  mode.exec  cs.l\n"
            "0x0000000000000019  psbend\n"
        )
        assert (tmp_path / "test-b.exp").read_text() == "[0x19, 0x1b)\n"

    def test_directives_after_terminator_not_encoded(self, write_script):
        encoder = FakeEncoder()
        session = make_session(write_script, (
            "; @pt psb()\n"
            "; @pt .exp()\n"
            "; @pt pad()\n"
        ), encoder=encoder)
        session.run()
        assert [method for method, _ in encoder.calls] == ["psb"]

    def test_no_terminator(self, write_script, tmp_path):
        session = make_session(write_script, "; @pt pad()\n; @pt pad()\n;text\n")
        assert session.run() == []
        assert (tmp_path / "test.pt").read_bytes() == bytes([3, 3])
        assert not list(tmp_path.glob("*.exp"))
        assert session.phase is Phase.DONE

    def test_real_encoder(self, write_script, tmp_path):
        session = make_session(write_script, TIP_SCRIPT, encoder=PtEncoder())
        session.run()
        stream = (tmp_path / "test.pt").read_bytes()
        assert stream[:16] == bytes([0x02, 0x82] * 8)
        assert stream[16:23] == bytes([0x7D, 0x00, 0x00, 0x10, 0x00, 0x00, 0x00])
        assert stream[23:] == bytes([0x99, 0x01, 0x02, 0x23])

    def test_ip_from_directive_label(self, write_script):
        encoder = FakeEncoder()
        session = make_session(write_script, (
            "; @pt p0: pad()\n"
            "; @pt tip(3: %p0)\n"
        ), encoder=encoder)
        session.run()
        assert encoder.calls[-1] == ("tip", (0, 3))


# =============================================================================
# Failure Tests
# =============================================================================

class TestFailures:
    """Test that any error aborts the run."""

    def test_duplicate_label(self, write_script, tmp_path):
        session = make_session(write_script, (
            "; @pt p0: psb()\n"
            "; @pt p0: psbend()\n"
            "; @pt .exp()\n"
            ";x\n"
        ))
        with pytest.raises(DuplicateLabelError):
            session.run()
        assert session.phase is Phase.FAILED
        assert not (tmp_path / "test.exp").exists()

    def test_label_clashes_with_assembly(self, write_script):
        session = make_session(write_script, "; @pt l0: psb()\n")
        with pytest.raises(DuplicateLabelError):
            session.run()

    def test_unknown_directive(self, write_script):
        session = make_session(write_script, "; @pt psbx()\n")
        with pytest.raises(DirectiveSyntaxError) as exc_info:
            session.run()
        assert "test.ptt:1:7" in str(exc_info.value)

    def test_encoder_failure(self, write_script):
        encoder = FakeEncoder(failures={"tsc": EncoderStatus.INVALID})
        session = make_session(write_script, "; @pt tsc(1)\n; @pt .exp()\n", encoder=encoder)
        with pytest.raises(EncoderError) as exc_info:
            session.run()
        assert "status invalid argument" in str(exc_info.value)

    def test_unresolved_placeholder(self, write_script, tmp_path):
        session = make_session(write_script, (
            "; @pt psb()\n"
            "; @pt .exp()\n"
            ";%missing\n"
        ))
        with pytest.raises(UndefinedLabelError):
            session.run()
        assert not (tmp_path / "test.exp").exists()
        assert session.phase is Phase.FAILED

    def test_run_once(self, write_script):
        session = make_session(write_script, "; @pt pad()\n")
        session.run()
        with pytest.raises(InternalError):
            session.run()


# =============================================================================
# Entry Point Tests
# =============================================================================

class TestEntryPoints:

    def test_generate(self, write_script, tmp_path):
        path = write_script("; @pt psb()\n; @pt .exp(x)\n;psb\n")
        assert generate(path) == [tmp_path / "test-x.exp"]
        assert (tmp_path / "test.pt").stat().st_size == 16

    def test_run_script_success(self, write_script, tmp_path, capsys):
        path = write_script("; @pt psb()\n; @pt .exp()\n;psb\n")
        assert run_script(path) == 0
        assert str(tmp_path / "test.exp") in capsys.readouterr().out

    def test_run_script_failure(self, write_script, capsys):
        path = write_script("; @pt cbr(256)\n")
        assert run_script(path) == ErrorCode.INT_TOO_BIG
        err = capsys.readouterr().err
        assert "cbr: parsing failed: value too large" in err

    def test_run_script_reports_completed_files(self, write_script, tmp_path, capsys):
        path = write_script("; @pt .exp(a)\n;ok\n; @pt .exp(b)\n;%nolabel\n")
        assert run_script(path) == ErrorCode.NO_LABEL
        captured = capsys.readouterr()
        assert captured.out == f"{tmp_path / 'test-a.exp'}\n"
        assert "undefined label 'nolabel'" in captured.err

    def test_run_script_missing_file(self, tmp_path, capsys):
        assert run_script(tmp_path / "nope.ptt") == ErrorCode.FILE_OPEN
