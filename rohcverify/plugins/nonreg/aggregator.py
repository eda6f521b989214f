"""Outcome counters and end-of-run verdict."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rohcverify.plugins.nonreg.pipeline import FrameOutcome

EXIT_PASS = 0
EXIT_FAIL = 1
# Exit code understood as "test skipped" by automake-style test drivers
EXIT_SKIPPED = 77

_ABORTING_OUTCOMES = frozenset({FrameOutcome.COMPRESSION_FAILED, FrameOutcome.DECOMPRESSION_FAILED})


class RunVerdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"

    @property
    def exit_code(self) -> int:
        return {
            RunVerdict.PASS: EXIT_PASS,
            RunVerdict.FAIL: EXIT_FAIL,
            RunVerdict.SKIPPED: EXIT_SKIPPED,
        }[self]


@dataclass
class ResultAggregator:
    """
    Counts pass outcomes for a run.

    Every recorded pass increments exactly one counter. Compression and
    decompression failures set ``aborted`` and ask the caller to stop.
    """

    reference_check: bool = True
    frames: int = 0
    successes: int = 0
    reference_mismatches: int = 0
    compression_failures: int = 0
    decompression_failures: int = 0
    round_trip_mismatches: int = 0
    malformed_frames: int = 0
    aborted: bool = False

    def start_frame(self) -> None:
        self.frames += 1

    def record(self, outcome: FrameOutcome) -> bool:
        """Count one pass. Returns True when the run must stop."""
        if outcome is FrameOutcome.OK:
            self.successes += 1
        elif outcome is FrameOutcome.REFERENCE_MISMATCH:
            self.reference_mismatches += 1
        elif outcome is FrameOutcome.ROUND_TRIP_MISMATCH:
            self.round_trip_mismatches += 1
        elif outcome is FrameOutcome.COMPRESSION_FAILED:
            self.compression_failures += 1
        elif outcome is FrameOutcome.DECOMPRESSION_FAILED:
            self.decompression_failures += 1
        elif outcome is FrameOutcome.MALFORMED_FRAME:
            self.malformed_frames += 1
        else:
            raise ValueError(f"unknown outcome {outcome!r}")

        if outcome in _ABORTING_OUTCOMES:
            self.aborted = True
        return self.aborted

    @property
    def passes(self) -> int:
        return (
            self.successes
            + self.reference_mismatches
            + self.round_trip_mismatches
            + self.compression_failures
            + self.decompression_failures
            + self.malformed_frames
        )

    @property
    def failures(self) -> int:
        return (
            self.compression_failures
            + self.decompression_failures
            + self.round_trip_mismatches
            + self.malformed_frames
        )

    @property
    def packets_processed(self) -> int:
        # Both sessions see every frame read, even after an abort
        return 2 * self.frames

    @property
    def compression_failed(self) -> int:
        return self.compression_failures + self.malformed_frames

    def verdict(self) -> RunVerdict:
        if self.reference_check:
            if self.failures == 0 and self.successes == self.passes:
                return RunVerdict.PASS
            return RunVerdict.FAIL

        if self.failures == 0 and self.successes == 0 and self.reference_mismatches == self.passes:
            return RunVerdict.SKIPPED
        return RunVerdict.FAIL
