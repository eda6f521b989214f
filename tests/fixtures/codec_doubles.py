"""Codec doubles for the non-regression plugin tests."""

from __future__ import annotations

from rohcverify.codec import CompressionError, DecompressionError
from rohcverify.plugins.nonreg.session import BuiltinCodecBackend


class RecordingBackend(BuiltinCodecBackend):
    """Built-in backend logging every creation and release."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.events: list[str] = []
        self.fail_on = fail_on

    def create_compressor(self, *, session_id, **kwargs):
        name = f"compressor {session_id}"
        if name == self.fail_on:
            raise ValueError("out of memory")
        compressor = super().create_compressor(session_id=session_id, **kwargs)
        self.events.append(f"create {name}")
        return compressor

    def create_decompressor(self, *, session_id, **kwargs):
        name = f"decompressor {session_id}"
        if name == self.fail_on:
            raise ValueError("out of memory")
        decompressor = super().create_decompressor(session_id=session_id, **kwargs)
        self.events.append(f"create {name}")
        return decompressor

    def release_compressor(self, compressor) -> None:
        self.events.append(f"release {compressor.name}")

    def release_decompressor(self, decompressor) -> None:
        self.events.append(f"release {decompressor.name}")


class FailingAfter:
    """Wrap a codec object so that its n-th call raises."""

    def __init__(self, inner, fail_at: int, error: type[Exception]) -> None:
        self.inner = inner
        self.fail_at = fail_at
        self.error = error
        self.calls = 0

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def _tick(self) -> None:
        self.calls += 1
        if self.calls == self.fail_at:
            raise self.error(f"forced failure on call {self.calls}")

    def compress(self, packet):
        self._tick()
        return self.inner.compress(packet)

    def decompress(self, packet):
        self._tick()
        return self.inner.decompress(packet)


class FaultyBackend(RecordingBackend):
    """Backend whose compressor or decompressor of one session fails on its n-th call."""

    def __init__(self, session_id: int, fail_at: int, stage: str = "compress") -> None:
        super().__init__()
        self.session_id = session_id
        self.fail_at = fail_at
        self.stage = stage

    def create_compressor(self, *, session_id, **kwargs):
        compressor = super().create_compressor(session_id=session_id, **kwargs)
        if self.stage == "compress" and session_id == self.session_id:
            return FailingAfter(compressor, self.fail_at, CompressionError)
        return compressor

    def create_decompressor(self, *, session_id, **kwargs):
        decompressor = super().create_decompressor(session_id=session_id, **kwargs)
        if self.stage == "decompress" and session_id == self.session_id:
            return FailingAfter(decompressor, self.fail_at, DecompressionError)
        return decompressor
