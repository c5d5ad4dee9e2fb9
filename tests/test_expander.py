# =============================================================================
# test_expander.py - Expected Output Expansion Tests
# =============================================================================
# Tests for placeholder rendering, annotation extraction and expected-output
# file handling.
#
# Test coverage includes:
#   - Directive label and assembly label rendering
#   - Zero padding and question-mark masking
#   - Mask width validation
#   - Label name errors
#   - Checkpoint file splitting and cleanup on failure
# =============================================================================

import errno

import pytest

from tracegen.errors import (
    DirectiveSyntaxError,
    ErrorCode,
    LabelNameError,
    OutputError,
    UndefinedLabelError,
    ValueRangeError,
)
from tracegen.script import expander
from tracegen.script.expander import (
    ExpectedOutput,
    Expander,
    Placeholder,
    annotation_text,
    expand_line,
    render_address,
)
from tracegen.script.source import ScriptSource
from tracegen.script.symbols import ExternalLabels, LabelNamespace, LabelOrigin


@pytest.fixture
def namespace():
    namespace = LabelNamespace(ExternalLabels({"extlabel": 0x1122334455667788}))
    namespace.define("mylabel", 0x2A)
    return namespace


# =============================================================================
# Placeholder Rendering Tests
# =============================================================================

class TestDirectiveLabels:
    """Labels defined by directives."""

    def test_zero_padded(self, namespace):
        assert expand_line("%0mylabel", namespace) == "0x000000000000002a"

    def test_unpadded(self, namespace):
        assert expand_line("%mylabel", namespace) == "0x2a"

    def test_mask_suffix_is_text(self, namespace):
        """A .N suffix means nothing for directive labels."""
        assert expand_line("%mylabel.2", namespace) == "0x2a.2"

    def test_question_mark_pads(self, namespace):
        assert expand_line("%?mylabel", namespace) == "0x000000000000002a"


class TestAssemblyLabels:
    """Labels defined by the assembly source."""

    def test_unpadded(self, namespace):
        assert expand_line("%extlabel", namespace) == "0x1122334455667788"

    def test_masked_question(self, namespace):
        assert expand_line("%?extlabel.2", namespace) == "0x????????????7788"

    def test_masked_zero_padded(self, namespace):
        assert expand_line("%0extlabel.2", namespace) == "0x0000000000007788"

    def test_masked_unpadded(self, namespace):
        assert expand_line("%extlabel.3", namespace) == "0x667788"

    def test_question_without_mask(self, namespace):
        assert expand_line("%?extlabel", namespace) == "0x1122334455667788"

    def test_mask_all(self, namespace):
        assert expand_line("%?extlabel.0", namespace) == "0x" + "??" * 8

    def test_mask_none(self, namespace):
        assert expand_line("%?extlabel.8", namespace) == "0x1122334455667788"

    def test_mask_followed_by_punctuation(self, namespace):
        assert expand_line("(%?extlabel.6)", namespace) == "(0x????334455667788)"

    def test_mask_width_out_of_range(self, namespace):
        with pytest.raises(ValueRangeError):
            expand_line("%?extlabel.9", namespace)

    def test_mask_width_unparsable(self, namespace):
        with pytest.raises(DirectiveSyntaxError) as exc_info:
            expand_line("%extlabel.x", namespace)
        assert exc_info.value.code == ErrorCode.PARSE_INT

    def test_mask_width_followed_by_letter(self, namespace):
        with pytest.raises(DirectiveSyntaxError):
            expand_line("%extlabel.2b", namespace)


class TestRenderAddress:

    def test_local(self):
        p = Placeholder("p", zero_pad=True)
        assert render_address(0x10, p, LabelOrigin.LOCAL) == "0x0000000000000010"

    def test_external_mask(self):
        p = Placeholder("l", zero_pad=True, mask_question=True, mask_bytes=4)
        assert render_address(0xFFFFFFFF00001000, p, LabelOrigin.EXTERNAL) == "0x????????00001000"


class TestExpandLine:
    """Whole-line expansion."""

    def test_plain_text(self, namespace):
        assert expand_line("psbend", namespace) == "psbend"

    def test_several_placeholders(self, namespace):
        line = "%0mylabel  fup  3: %?extlabel.6"
        assert expand_line(line, namespace) == "0x000000000000002a  fup  3: 0x????334455667788"

    def test_missing_name_at_end(self, namespace):
        with pytest.raises(LabelNameError):
            expand_line("offset %", namespace)

    def test_missing_name_before_space(self, namespace):
        with pytest.raises(LabelNameError):
            expand_line("% mylabel", namespace)

    def test_missing_name_after_modifier(self, namespace):
        with pytest.raises(LabelNameError):
            expand_line("%0 x", namespace)

    def test_name_too_long(self, namespace):
        with pytest.raises(LabelNameError) as exc_info:
            expand_line("%" + "a" * 256, namespace)
        assert "too long" in str(exc_info.value)

    def test_longest_name(self, namespace):
        name = "a" * 255
        namespace.define(name, 1)
        assert expand_line("%" + name, namespace) == "0x1"

    def test_undefined(self, namespace):
        with pytest.raises(UndefinedLabelError):
            expand_line("%nolabel", namespace)


class TestAnnotationText:

    def test_no_semicolon(self):
        assert annotation_text("l1: hlt") is None

    def test_text_after_first_semicolon(self):
        assert annotation_text("nop ;%0p1  psb ; x") == "%0p1  psb ; x"

    def test_comment_and_trailing_space(self):
        assert annotation_text(";psbend   # the end  ") == "psbend"

    def test_empty(self):
        assert annotation_text(";") == ""


# =============================================================================
# Expected Output File Tests
# =============================================================================

class TestExpander:
    """Test the expanding pass over a whole script."""

    def make_source(self, tmp_path, text):
        return ScriptSource(text, filename="t.ptt", fileroot=tmp_path / "t")

    def test_single_file(self, tmp_path, namespace):
        source = self.make_source(tmp_path, (
            "; @pt p: psb()\n"
            "; ignored before checkpoint\n"
            "; @pt .exp()\n"
            ";%0mylabel  psb\n"
            "l1: hlt\n"
            ";%?extlabel.2\n"
        ))
        written = Expander(source, namespace).run()
        assert written == [tmp_path / "t.exp"]
        assert (tmp_path / "t.exp").read_text() == (
            "0x000000000000002a  psb\n"
            "0x????????????7788\n"
        )

    def test_checkpoints_split_files(self, tmp_path, namespace):
        source = self.make_source(tmp_path, (
            "; @pt .exp(a)\n"
            ";first\n"
            "; @pt .exp(b)\n"
            ";second\n"
        ))
        written = Expander(source, namespace).run()
        assert written == [tmp_path / "t-a.exp", tmp_path / "t-b.exp"]
        assert (tmp_path / "t-a.exp").read_text() == "first\n"
        assert (tmp_path / "t-b.exp").read_text() == "second\n"

    def test_directive_lines_are_skipped(self, tmp_path, namespace):
        source = self.make_source(tmp_path, (
            "; @pt .exp()\n"
            "; @pt psb()\n"
            ";kept\n"
        ))
        Expander(source, namespace).run()
        assert (tmp_path / "t.exp").read_text() == "kept\n"

    def test_failure_removes_current_file(self, tmp_path, namespace):
        source = self.make_source(tmp_path, (
            "; @pt .exp(a)\n"
            ";%mylabel\n"
            "; @pt .exp(b)\n"
            ";%nolabel\n"
        ))
        with pytest.raises(UndefinedLabelError) as exc_info:
            Expander(source, namespace).run()
        assert "t.ptt:4" in str(exc_info.value)
        assert (tmp_path / "t-a.exp").read_text() == "0x2a\n"
        assert not (tmp_path / "t-b.exp").exists()

    def test_no_checkpoint_writes_nothing(self, tmp_path, namespace):
        source = self.make_source(tmp_path, ";just a comment\n")
        assert Expander(source, namespace).run() == []
        assert list(tmp_path.iterdir()) == []

    def test_reused_name_listed_once(self, tmp_path, namespace):
        source = self.make_source(tmp_path, (
            "; @pt .exp()\n"
            ";first\n"
            "; @pt .exp()\n"
            ";second\n"
        ))
        assert Expander(source, namespace).run() == [tmp_path / "t.exp"]
        assert (tmp_path / "t.exp").read_text() == "second\n"


class TestCompletionReporting:
    """Each file is reported as soon as its checkpoint closes it."""

    def test_reported_in_order(self, tmp_path, namespace):
        source = ScriptSource(
            "; @pt .exp(a)\n;one\n; @pt .exp(b)\n;two\n",
            filename="t.ptt", fileroot=tmp_path / "t",
        )
        reported = []
        Expander(source, namespace, on_written=reported.append).run()
        assert reported == [tmp_path / "t-a.exp", tmp_path / "t-b.exp"]

    def test_finished_file_reported_before_failure(self, tmp_path, namespace):
        source = ScriptSource(
            "; @pt .exp(a)\n;ok\n; @pt .exp(b)\n;%nolabel\n",
            filename="t.ptt", fileroot=tmp_path / "t",
        )
        reported = []
        with pytest.raises(UndefinedLabelError):
            Expander(source, namespace, on_written=reported.append).run()
        assert reported == [tmp_path / "t-a.exp"]
        assert (tmp_path / "t-a.exp").read_text() == "ok\n"


# =============================================================================
# Write Failure Tests
# =============================================================================

class FailingFile:
    """Text file whose second write fails with ENOSPC."""

    def __init__(self, path, mode="w"):
        self._file = open(path, mode)
        self._writes = 0

    def write(self, text):
        if self._writes:
            raise OSError(errno.ENOSPC, "No space left on device")
        self._writes += 1
        return self._file.write(text)

    def close(self):
        self._file.close()


class TestWriteFailure:
    """A failed write aborts the run and removes the partial file."""

    def test_partial_file_removed(self, tmp_path, namespace, monkeypatch):
        monkeypatch.setattr(expander, "open", FailingFile, raising=False)
        source = ScriptSource(
            "; @pt .exp()\n;line one\n;line two\n",
            filename="t.ptt", fileroot=tmp_path / "t",
        )
        with pytest.raises(OutputError) as exc_info:
            Expander(source, namespace).run()
        assert exc_info.value.code == ErrorCode.FILE_WRITE
        assert "cannot write" in str(exc_info.value)
        assert "No space left on device" in str(exc_info.value)
        assert not (tmp_path / "t.exp").exists()

    def test_earlier_files_kept(self, tmp_path, namespace, monkeypatch):
        source = ScriptSource(
            "; @pt .exp(a)\n;kept\n; @pt .exp(b)\n;line one\n;line two\n",
            filename="t.ptt", fileroot=tmp_path / "t",
        )
        output = ExpectedOutput(source)
        output.checkpoint("a")
        output.write_line("kept")
        monkeypatch.setattr(expander, "open", FailingFile, raising=False)
        output.checkpoint("b")
        output.write_line("line one")
        with pytest.raises(OutputError):
            output.write_line("line two")
        output.discard()
        assert output.written == [tmp_path / "t-a.exp"]
        assert (tmp_path / "t-a.exp").read_text() == "kept\n"
        assert not (tmp_path / "t-b.exp").exists()
