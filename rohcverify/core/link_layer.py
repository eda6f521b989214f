"""Link-layer framing helpers.

Covers the three framings the harness accepts: Ethernet, Linux cooked
sockets and raw IP. Provides the offset of the network-layer payload,
detection of Ethernet minimum-size padding and the link header written
in front of ROHC packets in output captures.
"""

from __future__ import annotations

import logging
import struct
from enum import IntEnum

from rohcverify.utils.errors import UnsupportedLinkTypeError

logger = logging.getLogger(__name__)

ETHER_HDR_LEN = 14
LINUX_COOKED_HDR_LEN = 16
ETHER_FRAME_MIN_LEN = 60
IPV6_HDR_LEN = 40

# Link type values written in front of ROHC packets in output captures.
# The Ethernet value is stored in host order by the historical tool, hence
# the swapped bytes compared to the Linux cooked marker.
ETHER_ROHC_MARKER = b"\x2f\x16"
LINUX_COOKED_ROHC_MARKER = b"\x16\x2f"


class LinkType(IntEnum):
    """Link-layer types accepted in source and comparison captures."""

    ETHERNET = 1
    RAW = 101
    LINUX_SLL = 113


# DLT_RAW is 12 on most platforms and 14 on OpenBSD; some writers store the
# DLT value instead of LINKTYPE_RAW.
_RAW_ALIASES = frozenset({12, 14, int(LinkType.RAW)})

_HEADER_LENGTHS = {
    LinkType.ETHERNET: ETHER_HDR_LEN,
    LinkType.LINUX_SLL: LINUX_COOKED_HDR_LEN,
    LinkType.RAW: 0,
}

SUPPORTED_LINK_TYPES = (int(LinkType.ETHERNET), int(LinkType.LINUX_SLL), int(LinkType.RAW))


def classify_link_type(link_type: int, role: str = "source") -> LinkType:
    """
    Map a capture-header link type to a supported LinkType.

    Args:
        link_type: Link-layer type from the capture file header
        role: Flow name used in the error message

    Returns:
        The matching LinkType

    Raises:
        UnsupportedLinkTypeError: For any other link type
    """
    if link_type in _RAW_ALIASES:
        return LinkType.RAW
    if link_type == LinkType.ETHERNET:
        return LinkType.ETHERNET
    if link_type == LinkType.LINUX_SLL:
        return LinkType.LINUX_SLL
    raise UnsupportedLinkTypeError(link_type, role, SUPPORTED_LINK_TYPES)


def link_header_length(link_type: LinkType) -> int:
    """Return the byte offset of the network-layer payload for a link type."""
    return _HEADER_LENGTHS[link_type]


def declared_ip_length(ip_packet: bytes | memoryview) -> int | None:
    """
    Return the total length an IP packet declares for itself.

    IPv4 uses the total-length field, IPv6 the fixed header length plus the
    payload-length field. None when the version is neither 4 nor 6 or the
    buffer is too short to hold the length field.
    """
    if len(ip_packet) < 1:
        return None
    version = (ip_packet[0] >> 4) & 0x0F
    if version == 4 and len(ip_packet) >= 4:
        return struct.unpack_from("!H", ip_packet, 2)[0]
    if version == 6 and len(ip_packet) >= 6:
        return IPV6_HDR_LEN + struct.unpack_from("!H", ip_packet, 4)[0]
    return None


def trim_padding(
    ip_packet: bytes | memoryview,
    frame_len: int,
    link_type: LinkType,
) -> int:
    """
    Compute the IP packet length once Ethernet padding is removed.

    Padding is only possible on Ethernet frames of exactly the minimum frame
    size; for anything else the payload length is returned unchanged.

    Args:
        ip_packet: Network-layer payload (link header already stripped)
        frame_len: Total length of the captured frame
        link_type: Link type of the capture

    Returns:
        Length of the IP packet without trailing padding
    """
    ip_size = len(ip_packet)
    if link_type != LinkType.ETHERNET or frame_len != ETHER_FRAME_MIN_LEN:
        return ip_size

    tot_len = declared_ip_length(ip_packet)
    if tot_len is not None and tot_len < ip_size:
        logger.debug("Trimming %d padding bytes after a %d byte IP packet", ip_size - tot_len, tot_len)
        return tot_len
    return ip_size


def rohc_link_header(link_header: bytes, link_type: LinkType) -> bytes:
    """
    Build the link header written in front of a ROHC packet.

    The protocol type field is overwritten with an unused marker so that
    dissectors do not try to parse ROHC data as IP.
    """
    if link_type == LinkType.ETHERNET:
        return link_header[: ETHER_HDR_LEN - 2] + ETHER_ROHC_MARKER
    if link_type == LinkType.LINUX_SLL:
        return link_header[: LINUX_COOKED_HDR_LEN - 2] + LINUX_COOKED_ROHC_MARKER
    return b""
