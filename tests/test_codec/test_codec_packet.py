"""Tests for the wire format helpers of the built-in codec."""

from __future__ import annotations

import pytest

from rohcverify.codec.base import ALL_PROFILES, DEFAULT_RTP_PORTS, DecompressionError, Profile
from rohcverify.codec.packet import (
    AckType,
    build_feedback2,
    classify,
    decode_sdvl,
    encode_sdvl,
    feedback_element,
    frame_with_cid,
    parse_feedback,
    split_feedback,
)
from tests.fixtures import (
    icmp_packet,
    ipv6_udp_packet,
    rtp_header,
    udp_packet,
)
from tests.fixtures.pcap_builder import IPPROTO_UDPLITE

PROFILES = frozenset(ALL_PROFILES)
RTP_PORTS = frozenset(DEFAULT_RTP_PORTS)


class TestSdvl:
    """Test cases for the SDVL encoding of large CIDs."""

    @pytest.mark.parametrize(("value", "size"), [(0, 1), (0x7F, 1), (0x80, 2), (16383, 2)])
    def test_encode_decode(self, value: int, size: int) -> None:
        encoded = encode_sdvl(value)

        assert len(encoded) == size
        assert decode_sdvl(b"\xfd" + encoded, 1) == (value, size)

    def test_value_too_large(self) -> None:
        with pytest.raises(ValueError):
            encode_sdvl(16384)

    def test_truncated_field(self) -> None:
        with pytest.raises(DecompressionError):
            decode_sdvl(b"\x81", 0)


class TestCidFraming:
    """Test cases for CID insertion."""

    def test_small_cid_zero_has_no_add_cid(self) -> None:
        assert frame_with_cid(0, False, b"\xfd\x01") == b"\xfd\x01"

    def test_small_cid_uses_add_cid_octet(self) -> None:
        assert frame_with_cid(3, False, b"\xfd\x01") == b"\xe3\xfd\x01"

    def test_large_cid_follows_type_octet(self) -> None:
        assert frame_with_cid(200, True, b"\xfd\x01") == b"\xfd\x80\xc8\x01"


class TestFeedback:
    """Test cases for feedback elements."""

    def test_feedback2_round_trip(self) -> None:
        data = build_feedback2(5, False, AckType.STATIC_NACK, 0x123)

        assert parse_feedback(data, False) == (5, AckType.STATIC_NACK, 0x123)

    def test_feedback2_large_cid(self) -> None:
        data = build_feedback2(300, True, AckType.ACK, 7)

        assert parse_feedback(data, True) == (300, AckType.ACK, 7)

    def test_split_feedback_elements(self) -> None:
        first = build_feedback2(0, False, AckType.ACK, 1)
        second = bytes(range(10))
        packet = feedback_element(first) + feedback_element(second) + b"\xfd\x00"

        feedbacks, offset = split_feedback(packet)

        assert feedbacks == [first, second]
        assert packet[offset:] == b"\xfd\x00"

    def test_truncated_feedback_element(self) -> None:
        with pytest.raises(DecompressionError):
            split_feedback(b"\xf3\x00")


class TestClassify:
    """Test cases for profile selection."""

    def test_rtp_on_known_port(self) -> None:
        packet = udp_packet("10.0.0.1", "10.0.0.2", 1234, 1234, rtp_header(1, 160, 0xABCD) + b"x" * 10)

        info = classify(packet, PROFILES, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.RTP
        assert info.header_len == 20 + 8 + 12

    def test_rtp_payload_on_other_port_is_udp(self) -> None:
        packet = udp_packet("10.0.0.1", "10.0.0.2", 4000, 4001, rtp_header(1, 160, 0xABCD))

        info = classify(packet, PROFILES, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.UDP
        assert info.header_len == 28

    def test_rtp_falls_back_to_udp_when_not_activated(self) -> None:
        packet = udp_packet("10.0.0.1", "10.0.0.2", 1234, 1234, rtp_header(1, 160, 0xABCD))

        info = classify(packet, PROFILES - {Profile.RTP}, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.UDP

    def test_udplite(self) -> None:
        packet = udp_packet("10.0.0.1", "10.0.0.2", 4000, 4001, b"data", protocol=IPPROTO_UDPLITE)

        info = classify(packet, PROFILES, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.UDPLITE

    def test_icmp_uses_ip_profile(self) -> None:
        info = classify(icmp_packet("10.0.0.1", "10.0.0.2"), PROFILES, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.IP
        assert info.header_len == 20

    def test_ipv6_udp(self) -> None:
        info = classify(ipv6_udp_packet(5000, 5001, b"hello"), PROFILES, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.UDP
        assert info.header_len == 48

    def test_non_ip_uses_uncompressed(self) -> None:
        info = classify(b"\x01\x02\x03\x04", PROFILES, RTP_PORTS)

        assert info is not None
        assert info.profile is Profile.UNCOMPRESSED

    def test_no_profile_applies(self) -> None:
        assert classify(b"\x01\x02\x03\x04", frozenset({Profile.IP}), RTP_PORTS) is None
