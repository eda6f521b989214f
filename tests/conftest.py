"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from rohcverify.codec import CrcTables, build_crc_tables
from tests.fixtures import create_rtp_flow_pcap, create_udp_flow_pcap


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(scope="session")
def crc_tables() -> CrcTables:
    """CRC tables shared by every codec instance of the test session."""
    return build_crc_tables()


@pytest.fixture
def udp_pcap(tmp_path: Path) -> Path:
    """Ethernet capture holding a 10-packet UDP flow."""
    return create_udp_flow_pcap(tmp_path / "udp.pcap", num_packets=10)


@pytest.fixture
def rtp_pcap(tmp_path: Path) -> Path:
    """Ethernet capture holding a 10-packet RTP stream."""
    return create_rtp_flow_pcap(tmp_path / "rtp.pcap", num_packets=10)
