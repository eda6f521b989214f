"""Wire format of the built-in codec.

Packet layout, after any piggybacked feedback elements:

- small CIDs: ``[Add-CID] <type octet> <rest>``, Add-CID is ``0xE0 | cid``
  and is omitted for CID 0;
- large CIDs: ``<type octet> <SDVL cid> <rest>``.

Type octets: ``0xFD`` IR (profile, CRC-8, full packet), ``0x80 | CRC-3`` CO
(CRC-7, change count, (offset, value) pairs, payload). The CRC-3 in the
low bits of the CO type octet covers the change count and pairs, the
CRC-7 covers the reconstructed header. A packet of the
Uncompressed profile in its normal state is the IP packet itself, its
first octet standing in for the type octet.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from rohcverify.codec.base import DecompressionError, Profile

PACKET_IR = 0xFD
PACKET_CO = 0x80
CO_TYPE_MASK = 0xC0
CO_CRC3_MASK = 0x07
PACKET_PADDING = 0xE0
ADD_CID_PREFIX = 0xE0
FEEDBACK_PREFIX = 0xF0

RTP_HEADER_LEN = 12
UDP_HEADER_LEN = 8
IPV4_MIN_HEADER_LEN = 20
IPV6_HEADER_LEN = 40

IPPROTO_UDP = 17
IPPROTO_UDPLITE = 136

# CO packets address header bytes with one octet
MAX_CO_HEADER_LEN = 256
MAX_CO_CHANGES = 255


class AckType(IntEnum):
    """Acknowledgement type carried in FEEDBACK-2."""

    ACK = 0
    NACK = 1
    STATIC_NACK = 2


class Mode(IntEnum):
    """ROHC operating mode reported in FEEDBACK-2."""

    UNIDIRECTIONAL = 1
    OPTIMISTIC = 2
    RELIABLE = 3


@dataclass(frozen=True)
class HeaderInfo:
    """Result of classifying an uncompressed packet."""

    profile: Profile
    header_len: int
    flow_key: tuple


@dataclass(frozen=True)
class _IpInfo:
    version: int
    header_len: int
    protocol: int
    src: bytes
    dst: bytes
    fragmented: bool


def _parse_ip(packet: bytes) -> _IpInfo | None:
    if not packet:
        return None
    version = packet[0] >> 4
    if version == 4:
        ihl = (packet[0] & 0x0F) * 4
        if ihl < IPV4_MIN_HEADER_LEN or len(packet) < ihl:
            return None
        frag = struct.unpack_from("!H", packet, 6)[0] & 0x3FFF
        return _IpInfo(4, ihl, packet[9], packet[12:16], packet[16:20], frag != 0)
    if version == 6:
        if len(packet) < IPV6_HEADER_LEN:
            return None
        return _IpInfo(6, IPV6_HEADER_LEN, packet[6], packet[8:24], packet[24:40], False)
    return None


def _rtp_header_len(packet: bytes, offset: int) -> int | None:
    if len(packet) < offset + RTP_HEADER_LEN or packet[offset] >> 6 != 2:
        return None
    csrc_count = packet[offset] & 0x0F
    length = RTP_HEADER_LEN + 4 * csrc_count
    if len(packet) < offset + length:
        return None
    return length


def header_length(profile: Profile, packet: bytes) -> int | None:
    """
    Length of the header a profile compresses in packet.

    Returns None when the packet does not fit the profile.
    """
    if profile is Profile.UNCOMPRESSED:
        return 0

    ip = _parse_ip(packet)
    if ip is None:
        return None
    if profile is Profile.IP:
        return ip.header_len
    if ip.fragmented:
        return None

    if profile in (Profile.UDP, Profile.RTP):
        if ip.protocol != IPPROTO_UDP:
            return None
    elif profile is Profile.UDPLITE:
        if ip.protocol != IPPROTO_UDPLITE:
            return None

    transport_end = ip.header_len + UDP_HEADER_LEN
    if len(packet) < transport_end:
        return None
    if profile is Profile.RTP:
        rtp_len = _rtp_header_len(packet, transport_end)
        if rtp_len is None:
            return None
        return transport_end + rtp_len
    return transport_end


def classify(packet: bytes, profiles: frozenset[Profile], rtp_ports: frozenset[int]) -> HeaderInfo | None:
    """
    Pick the profile used to compress a packet.

    Profiles are tried from the most to the least specific, skipping the
    ones that are not activated.
    """
    ip = _parse_ip(packet)
    for profile in (Profile.RTP, Profile.UDP, Profile.UDPLITE, Profile.IP, Profile.UNCOMPRESSED):
        if profile not in profiles:
            continue
        length = header_length(profile, packet)
        if length is None:
            continue

        if profile is Profile.UNCOMPRESSED:
            return HeaderInfo(profile, 0, (profile,))

        key: tuple = (profile, ip.version, ip.src, ip.dst, ip.protocol)
        if profile is not Profile.IP:
            sport, dport = struct.unpack_from("!HH", packet, ip.header_len)
            if profile is Profile.RTP:
                if sport not in rtp_ports and dport not in rtp_ports:
                    continue
                ssrc = packet[ip.header_len + UDP_HEADER_LEN + 8 : ip.header_len + UDP_HEADER_LEN + 12]
                key += (sport, dport, ssrc)
            else:
                key += (sport, dport)
        return HeaderInfo(profile, length, key)
    return None


def encode_sdvl(value: int) -> bytes:
    """Self-describing variable length encoding of a large CID."""
    if value < 0x80:
        return bytes([value])
    if value < 0x4000:
        return bytes([0x80 | (value >> 8), value & 0xFF])
    raise ValueError(f"value {value} too large for a CID")


def decode_sdvl(data: bytes, offset: int) -> tuple[int, int]:
    """Decode an SDVL field, returning (value, bytes consumed)."""
    if offset >= len(data):
        raise DecompressionError("packet too short for a large CID")
    first = data[offset]
    if first & 0x80 == 0:
        return first, 1
    if first & 0xC0 == 0x80:
        if offset + 1 >= len(data):
            raise DecompressionError("packet too short for a 2-byte large CID")
        return ((first & 0x3F) << 8) | data[offset + 1], 2
    raise DecompressionError(f"unsupported SDVL prefix 0x{first:02x}")


def frame_with_cid(cid: int, large_cid: bool, body: bytes) -> bytes:
    """Insert the CID into a packet whose first octet is the type octet."""
    if large_cid:
        return body[:1] + encode_sdvl(cid) + body[1:]
    if cid == 0:
        return body
    return bytes([ADD_CID_PREFIX | cid]) + body


def encode_cid(cid: int, large_cid: bool) -> bytes:
    """CID field placed at the start of feedback data."""
    if large_cid:
        return encode_sdvl(cid)
    if cid == 0:
        return b""
    return bytes([ADD_CID_PREFIX | cid])


def build_feedback2(cid: int, large_cid: bool, ack_type: AckType, sn: int, mode: Mode = Mode.OPTIMISTIC) -> bytes:
    """Build FEEDBACK-2 data (without the feedback element header)."""
    first = (int(ack_type) << 6) | (int(mode) << 4) | ((sn >> 8) & 0x0F)
    return encode_cid(cid, large_cid) + bytes([first, sn & 0xFF])


def parse_feedback(data: bytes, large_cid: bool) -> tuple[int, AckType | None, int]:
    """
    Parse feedback data into (cid, ack type, sn).

    The ack type is None for FEEDBACK-1, which only acknowledges.
    """
    offset = 0
    cid = 0
    if large_cid:
        cid, used = decode_sdvl(data, 0)
        offset = used
    elif data and data[0] & 0xF0 == ADD_CID_PREFIX:
        cid = data[0] & 0x0F
        offset = 1

    remaining = data[offset:]
    if len(remaining) == 1:
        return cid, None, remaining[0]
    if len(remaining) < 2:
        raise DecompressionError("truncated feedback data")
    ack_type = AckType((remaining[0] >> 6) & 0x03)
    sn = ((remaining[0] & 0x0F) << 8) | remaining[1]
    return cid, ack_type, sn


def feedback_element(data: bytes) -> bytes:
    """Wrap feedback data into a feedback element ready to be piggybacked."""
    if not data:
        raise ValueError("empty feedback data")
    if len(data) < 8:
        return bytes([FEEDBACK_PREFIX | len(data)]) + data
    if len(data) > 0xFF:
        raise ValueError("feedback data too large")
    return bytes([FEEDBACK_PREFIX, len(data)]) + data


def split_feedback(packet: bytes) -> tuple[list[bytes], int]:
    """
    Extract the feedback elements at the start of a ROHC packet.

    Returns the feedback data list and the offset of the first octet after them.
    """
    feedbacks: list[bytes] = []
    offset = 0
    while offset < len(packet) and packet[offset] & 0xF8 == FEEDBACK_PREFIX:
        size = packet[offset] & 0x07
        offset += 1
        if size == 0:
            if offset >= len(packet):
                raise DecompressionError("truncated feedback size")
            size = packet[offset]
            offset += 1
        if offset + size > len(packet):
            raise DecompressionError("truncated feedback element")
        feedbacks.append(packet[offset : offset + size])
        offset += size
    return feedbacks, offset


def is_co_packet(type_octet: int) -> bool:
    return type_octet & CO_TYPE_MASK == PACKET_CO


def normal_packet_allowed(packet: bytes) -> bool:
    """Whether an Uncompressed-profile packet can be sent without an IR header."""
    if not packet:
        return False
    first = packet[0]
    # Octets that would be read as CO, padding, Add-CID, feedback or IR
    return not is_co_packet(first) and first < PACKET_PADDING
