"""Tests for the cross-wired codec sessions."""

from __future__ import annotations

import pytest

from rohcverify.codec import ALL_PROFILES, CrcTables
from rohcverify.codec.base import DEFAULT_RTP_PORTS
from rohcverify.codec.packet import is_co_packet, split_feedback
from rohcverify.plugins.nonreg.config import NonregConfig
from rohcverify.plugins.nonreg.session import SessionArena
from rohcverify.utils.errors import CodecSetupError
from tests.fixtures import udp_packet
from tests.fixtures.codec_doubles import RecordingBackend


def _open(arena: SessionArena, crc_tables: CrcTables, max_cids=(14, 15), large_cid=False):
    return arena.open(
        max_cids=max_cids,
        large_cid=large_cid,
        crc_tables=crc_tables,
        rtp_ports=DEFAULT_RTP_PORTS,
        ir_repetitions=3,
    )


class TestSessionArena:
    """Test cases for SessionArena."""

    def test_sessions_are_partners(self, crc_tables: CrcTables) -> None:
        with SessionArena() as arena:
            first, second = _open(arena, crc_tables)

            assert (first.session_id, first.partner) == (1, 1)
            assert (second.session_id, second.partner) == (2, 0)
            assert arena.compressor(first.partner) is second.compressor

    def test_every_profile_activated(self, crc_tables: CrcTables) -> None:
        with SessionArena() as arena:
            for session in _open(arena, crc_tables):
                assert session.compressor.profiles == frozenset(ALL_PROFILES)

    def test_context_budget_per_session(self, crc_tables: CrcTables) -> None:
        with SessionArena() as arena:
            first, second = _open(arena, crc_tables, max_cids=(3, 4))

            assert first.compressor.max_cid == 3
            assert second.compressor.max_cid == 4

    def test_creation_and_release_order(self, crc_tables: CrcTables) -> None:
        backend = RecordingBackend()
        arena = SessionArena(backend)
        _open(arena, crc_tables)
        arena.close()
        arena.close()

        assert backend.events == [
            "create compressor 1",
            "create compressor 2",
            "create decompressor 1",
            "create decompressor 2",
            "release decompressor 1",
            "release decompressor 2",
            "release compressor 1",
            "release compressor 2",
        ]
        assert arena.sessions == []

    def test_partial_construction_is_released(self, crc_tables: CrcTables) -> None:
        backend = RecordingBackend(fail_on="decompressor 2")
        arena = SessionArena(backend)

        with pytest.raises(CodecSetupError) as excinfo:
            _open(arena, crc_tables)

        assert "decompressor 2" in excinfo.value.message
        assert backend.events == [
            "create compressor 1",
            "create compressor 2",
            "create decompressor 1",
            "release decompressor 1",
            "release compressor 1",
            "release compressor 2",
        ]

    def test_invalid_max_cid_is_a_setup_error(self, crc_tables: CrcTables) -> None:
        backend = RecordingBackend()
        arena = SessionArena(backend)

        with pytest.raises(CodecSetupError) as excinfo:
            _open(arena, crc_tables, max_cids=(14, 16))

        assert "compressor 2" in excinfo.value.message
        assert backend.events == ["create compressor 1", "release compressor 1"]

    def test_open_twice_is_rejected(self, crc_tables: CrcTables) -> None:
        with SessionArena() as arena:
            _open(arena, crc_tables)
            with pytest.raises(RuntimeError):
                _open(arena, crc_tables)


class TestFeedbackLoop:
    """Feedback travels A.decompressor -> B.compressor -> B.decompressor -> A.compressor."""

    def test_ack_reaches_the_compressor_through_the_partner(self, crc_tables: CrcTables) -> None:
        packet = udp_packet("10.0.0.1", "10.0.0.2", 4000, 4001, b"x" * 20)

        with SessionArena() as arena:
            a, b = _open(arena, crc_tables)

            a.decompressor.decompress(a.compressor.compress(packet))
            # The ACK of A's decompressor waits in B's compressor
            assert b.compressor.pending_feedback() == 1
            assert a.compressor.pending_feedback() == 0
            assert a.compressor.context_state(0)["acked"] is False

            rohc_b = b.compressor.compress(packet)
            feedbacks, _ = split_feedback(rohc_b)
            assert len(feedbacks) == 1

            b.decompressor.decompress(rohc_b)
            assert a.compressor.context_state(0)["acked"] is True
            # And B's own ACK now waits in A's compressor
            assert a.compressor.pending_feedback() == 1

            rohc_a = a.compressor.compress(packet)
            _, offset = split_feedback(rohc_a)
            assert is_co_packet(rohc_a[offset])
            assert a.decompressor.decompress(rohc_a) == packet
            assert b.compressor.context_state(0)["acked"] is True

    def test_statistics_cover_both_sessions(self, crc_tables: CrcTables) -> None:
        with SessionArena() as arena:
            _open(arena, crc_tables)
            stats = arena.statistics()

        for name in ("compressor 1", "compressor 2", "decompressor 1", "decompressor 2"):
            assert f'name="{name}"' in stats


@pytest.mark.parametrize(
    ("cid_type", "max_contexts", "symmetric", "expected"),
    [
        ("smallcid", 15, False, (13, 14)),
        ("smallcid", 15, True, (14, 14)),
        ("smallcid", 4, False, (2, 3)),
        ("smallcid", 16, False, (14, 15)),
        ("smallcid", 100, False, (14, 15)),
        ("largecid", 16384, False, (16382, 16383)),
        ("largecid", 1, False, (0, 0)),
    ],
)
def test_max_cids_from_config(cid_type: str, max_contexts: int, symmetric: bool, expected) -> None:
    config = NonregConfig(cid_type=cid_type, max_contexts=max_contexts, symmetric_contexts=symmetric)

    assert config.max_cids() == expected


@pytest.mark.parametrize("max_contexts", [1, 2, 4, 15, 16])
@pytest.mark.parametrize("symmetric", [False, True])
def test_no_compressor_exceeds_max_contexts(max_contexts: int, symmetric: bool) -> None:
    config = NonregConfig(max_contexts=max_contexts, symmetric_contexts=symmetric)

    # MAX_CID is the largest CID, so a compressor tracks MAX_CID + 1 contexts
    assert all(max_cid + 1 <= max_contexts for max_cid in config.max_cids())
