"""
tracegen Test Configuration
===========================

Shared fixtures:
- FakeEncoder: deterministic PacketEncoder stand-in
- write_script: writes a script into a temporary directory
"""

import pytest
from pathlib import Path

from tracegen.encoder import status_text


class FakeEncoder:
    """
    PacketEncoder that emits ``size`` copies of a per-kind marker byte.

    Every call is recorded in ``calls`` as (method, args). Methods listed in
    ``failures`` return the given negative status instead.
    """

    SIZES = {
        "psb": 16, "psbend": 2, "pad": 1, "ovf": 2,
        "tnt_8": 1, "tnt_64": 8,
        "tip": 7, "tip_pge": 7, "tip_pgd": 7, "fup": 7,
        "mode_exec": 2, "mode_tsx": 2,
        "pip": 8, "tsc": 8, "cbr": 4,
    }

    def __init__(self, failures: dict | None = None, buffer_size: int = 64):
        self.buffer = bytearray(buffer_size)
        self.calls: list[tuple[str, tuple]] = []
        self.failures = failures or {}

    def _emit(self, method: str, *args) -> int:
        self.calls.append((method, args))
        if method in self.failures:
            return self.failures[method]
        size = self.SIZES[method]
        marker = list(self.SIZES).index(method) + 1
        fill = min(size, len(self.buffer))
        self.buffer[:fill] = bytes([marker]) * fill
        return size

    def psb(self): return self._emit("psb")
    def psbend(self): return self._emit("psbend")
    def pad(self): return self._emit("pad")
    def ovf(self): return self._emit("ovf")
    def tnt_8(self, bits, size): return self._emit("tnt_8", bits, size)
    def tnt_64(self, bits, size): return self._emit("tnt_64", bits, size)
    def tip(self, ip, ipc): return self._emit("tip", ip, ipc)
    def tip_pge(self, ip, ipc): return self._emit("tip_pge", ip, ipc)
    def tip_pgd(self, ip, ipc): return self._emit("tip_pgd", ip, ipc)
    def fup(self, ip, ipc): return self._emit("fup", ip, ipc)
    def mode_exec(self, mode): return self._emit("mode_exec", mode)
    def mode_tsx(self, state): return self._emit("mode_tsx", state)
    def pip(self, cr3): return self._emit("pip", cr3)
    def tsc(self, tsc): return self._emit("tsc", tsc)
    def cbr(self, ratio): return self._emit("cbr", ratio)

    def status_text(self, status: int) -> str:
        return status_text(status)


@pytest.fixture
def fake_encoder():
    """A fresh FakeEncoder."""
    return FakeEncoder()


@pytest.fixture
def write_script(tmp_path):
    """Write script text to ``tmp_path/<name>`` and return its path."""
    def _write(text: str, name: str = "test.ptt") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write


