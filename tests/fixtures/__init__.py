"""Test fixtures for PCAP files.

This package provides utilities to build PCAP files for testing.
"""

from __future__ import annotations

from .pcap_builder import (
    LINKTYPE_ETHERNET,
    LINKTYPE_LINUX_SLL,
    LINKTYPE_RAW,
    PcapBuilder,
    create_rtp_flow_pcap,
    create_udp_flow_pcap,
    icmp_packet,
    ipv4_header,
    ipv6_udp_packet,
    rtp_header,
    udp_packet,
)

__all__ = [
    "LINKTYPE_ETHERNET",
    "LINKTYPE_LINUX_SLL",
    "LINKTYPE_RAW",
    "PcapBuilder",
    "create_rtp_flow_pcap",
    "create_udp_flow_pcap",
    "icmp_packet",
    "ipv4_header",
    "ipv6_udp_packet",
    "rtp_header",
    "udp_packet",
]
