"""Tests for PCAP reading and writing."""

from __future__ import annotations

from pathlib import Path

import pytest

from rohcverify.core.pcap_io import Frame, FrameSource, RohcDumper
from rohcverify.utils.errors import InvalidFileError, PcapFileNotFoundError
from tests.fixtures import LINKTYPE_LINUX_SLL, LINKTYPE_RAW, PcapBuilder, create_udp_flow_pcap


@pytest.mark.integration
class TestFrameSource:
    """Test cases for FrameSource."""

    def test_reads_every_frame(self, tmp_path: Path) -> None:
        pcap = create_udp_flow_pcap(tmp_path / "flow.pcap", num_packets=4)

        with FrameSource(pcap) as source:
            frames = list(source)

        assert source.link_type_value == 1
        assert source.frames_read == 4
        assert len(frames) == 4
        assert all(frame.wire_len == frame.cap_len == len(frame.data) for frame in frames)
        assert frames[0].data[12:14] == b"\x08\x00"
        assert frames[1].usec == 1000

    def test_next_frame_returns_none_at_end(self, tmp_path: Path) -> None:
        pcap = create_udp_flow_pcap(tmp_path / "flow.pcap", num_packets=1)

        with FrameSource(pcap) as source:
            assert source.next_frame() is not None
            assert source.next_frame() is None
            assert source.next_frame() is None

    @pytest.mark.parametrize("link_type", [LINKTYPE_LINUX_SLL, LINKTYPE_RAW])
    def test_link_type_is_exposed(self, tmp_path: Path, link_type: int) -> None:
        pcap = create_udp_flow_pcap(tmp_path / "flow.pcap", num_packets=1, link_type=link_type)

        with FrameSource(pcap) as source:
            assert source.link_type_value == link_type

    def test_truncated_record(self, tmp_path: Path) -> None:
        pcap = PcapBuilder().add_frame(b"\x00" * 20, wire_len=64).build(tmp_path / "cut.pcap")

        with FrameSource(pcap) as source:
            frame = source.next_frame()

        assert frame is not None
        assert frame.cap_len == 20
        assert frame.wire_len == 64
        assert frame.truncated

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(PcapFileNotFoundError):
            FrameSource(tmp_path / "missing.pcap")

    def test_not_a_capture(self, tmp_path: Path) -> None:
        bogus = tmp_path / "bogus.pcap"
        bogus.write_bytes(b"this is definitely not a capture file")

        with pytest.raises(InvalidFileError):
            FrameSource(bogus, role="comparison")


@pytest.mark.integration
class TestRohcDumper:
    """Test cases for RohcDumper."""

    def test_written_packets_read_back(self, tmp_path: Path) -> None:
        out = tmp_path / "out" / "rohc.pcap"

        with RohcDumper(out, LINKTYPE_LINUX_SLL) as dumper:
            dumper.write(b"\x01\x02\x03", sec=10, usec=5)
            dumper.write(b"\x04\x05")

        assert dumper.packets_written == 2
        with FrameSource(out) as source:
            frames = list(source)

        assert source.link_type_value == LINKTYPE_LINUX_SLL
        assert [f.data for f in frames] == [b"\x01\x02\x03", b"\x04\x05"]
        assert (frames[0].sec, frames[0].usec) == (10, 5)

    def test_empty_dump_is_a_valid_capture(self, tmp_path: Path) -> None:
        out = tmp_path / "empty.pcap"

        RohcDumper(out, 1).close()

        with FrameSource(out) as source:
            assert source.next_frame() is None


def test_frame_truncated_flag() -> None:
    assert not Frame(data=b"ab", wire_len=2, cap_len=2).truncated
    assert Frame(data=b"ab", wire_len=3, cap_len=2).truncated
