"""Cross-wired codec sessions.

Two sessions each own a compressor and a decompressor. The decompressor of
one session is associated with the compressor of the other one for
feedback, which closes the loop::

    A.decompressor -> B.compressor -> B.decompressor -> A.compressor

Sessions live in a ``SessionArena`` and reach their partner through its
index in the arena, so no session holds a reference to the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from rohcverify.codec import (
    ALL_PROFILES,
    CodecError,
    Compressor,
    CrcTables,
    Decompressor,
    FeedbackTarget,
    RohcCompressor,
    RohcDecompressor,
)
from rohcverify.utils.errors import CodecSetupError

logger = logging.getLogger(__name__)

SESSION_COUNT = 2


class CodecBackend(Protocol):
    """Factory for the compressors and decompressors of a run."""

    def create_compressor(
        self,
        *,
        session_id: int,
        max_cid: int,
        large_cid: bool,
        crc_tables: CrcTables,
        rtp_ports: Sequence[int],
        ir_repetitions: int,
    ) -> Compressor: ...

    def create_decompressor(
        self,
        *,
        session_id: int,
        large_cid: bool,
        crc_tables: CrcTables,
        feedback: FeedbackTarget,
    ) -> Decompressor: ...

    def release_compressor(self, compressor: Compressor) -> None: ...

    def release_decompressor(self, decompressor: Decompressor) -> None: ...


class BuiltinCodecBackend:
    """Backend creating the codec shipped with rohcverify."""

    def create_compressor(
        self,
        *,
        session_id: int,
        max_cid: int,
        large_cid: bool,
        crc_tables: CrcTables,
        rtp_ports: Sequence[int],
        ir_repetitions: int,
    ) -> Compressor:
        return RohcCompressor(
            max_cid=max_cid,
            large_cid=large_cid,
            crc_tables=crc_tables,
            rtp_ports=tuple(rtp_ports),
            ir_repetitions=ir_repetitions,
            name=f"compressor {session_id}",
        )

    def create_decompressor(
        self,
        *,
        session_id: int,
        large_cid: bool,
        crc_tables: CrcTables,
        feedback: FeedbackTarget,
    ) -> Decompressor:
        return RohcDecompressor(
            large_cid=large_cid,
            crc_tables=crc_tables,
            feedback=feedback,
            name=f"decompressor {session_id}",
        )

    def release_compressor(self, compressor: Compressor) -> None:
        logger.debug("released %s", getattr(compressor, "name", "compressor"))

    def release_decompressor(self, decompressor: Decompressor) -> None:
        logger.debug("released %s", getattr(decompressor, "name", "decompressor"))


@dataclass
class CodecSession:
    """One compressor/decompressor pair plus the arena index of its partner."""

    session_id: int
    partner: int
    compressor: Compressor
    decompressor: Decompressor


class FeedbackLink:
    """Feedback target resolving the partner compressor at call time."""

    def __init__(self, arena: "SessionArena", partner: int) -> None:
        self._arena = arena
        self._partner = partner

    def piggyback_feedback(self, feedback: bytes) -> None:
        self._arena.compressor(self._partner).piggyback_feedback(feedback)

    def deliver_feedback(self, feedback: bytes) -> None:
        self._arena.compressor(self._partner).deliver_feedback(feedback)


class SessionArena:
    """
    Owner of the two sessions of a run.

    ``open`` builds compressor 1, compressor 2, decompressor 1 and
    decompressor 2 in that order. ``close`` releases every decompressor
    then every compressor, including after a partial ``open``.
    """

    def __init__(self, backend: CodecBackend | None = None) -> None:
        self.backend: CodecBackend = backend or BuiltinCodecBackend()
        self._compressors: list[Compressor] = []
        self._decompressors: list[Decompressor] = []
        self._sessions: list[CodecSession] = []

    @property
    def sessions(self) -> list[CodecSession]:
        return list(self._sessions)

    def compressor(self, index: int) -> Compressor:
        return self._compressors[index]

    @staticmethod
    def partner_of(index: int) -> int:
        return (index + 1) % SESSION_COUNT

    def open(
        self,
        *,
        max_cids: tuple[int, int],
        large_cid: bool,
        crc_tables: CrcTables,
        rtp_ports: Sequence[int],
        ir_repetitions: int,
    ) -> list[CodecSession]:
        """
        Create both sessions.

        Raises:
            CodecSetupError: If a compressor or decompressor cannot be created
        """
        if self._sessions or self._compressors or self._decompressors:
            raise RuntimeError("sessions are already open")

        component = ""
        try:
            for index, max_cid in enumerate(max_cids):
                component = f"compressor {index + 1}"
                compressor = self.backend.create_compressor(
                    session_id=index + 1,
                    max_cid=max_cid,
                    large_cid=large_cid,
                    crc_tables=crc_tables,
                    rtp_ports=rtp_ports,
                    ir_repetitions=ir_repetitions,
                )
                self._compressors.append(compressor)
                for profile in ALL_PROFILES:
                    compressor.activate_profile(profile)
                logger.debug("created %s with MAX_CID = %d", component, max_cid)

            for index in range(SESSION_COUNT):
                component = f"decompressor {index + 1}"
                decompressor = self.backend.create_decompressor(
                    session_id=index + 1,
                    large_cid=large_cid,
                    crc_tables=crc_tables,
                    feedback=FeedbackLink(self, self.partner_of(index)),
                )
                self._decompressors.append(decompressor)
                logger.debug("created %s", component)
        except (ValueError, CodecError) as exc:
            self.close()
            raise CodecSetupError(component, str(exc)) from exc
        except BaseException:
            self.close()
            raise

        self._sessions = [
            CodecSession(
                session_id=index + 1,
                partner=self.partner_of(index),
                compressor=self._compressors[index],
                decompressor=self._decompressors[index],
            )
            for index in range(SESSION_COUNT)
        ]
        return self.sessions

    def statistics(self) -> str:
        """XML fragments of every compressor then every decompressor."""
        parts = [c.statistics(indent=2) for c in self._compressors]
        parts.extend(d.statistics(indent=2) for d in self._decompressors)
        return "\n".join(parts)

    def close(self) -> None:
        """Release decompressors then compressors. Safe to call twice."""
        self._sessions = []
        while self._decompressors:
            self.backend.release_decompressor(self._decompressors.pop(0))
        while self._compressors:
            self.backend.release_compressor(self._compressors.pop(0))

    def __enter__(self) -> "SessionArena":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
