"""PCAP input and output built on scapy's raw readers and writers.

Frames are handled as raw bytes: the harness never dissects them with
scapy layers, it only needs the link type, the captured bytes and the
captured/original lengths of every record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from scapy.error import Scapy_Exception
from scapy.utils import RawPcapNgReader, RawPcapReader, RawPcapWriter

from rohcverify.utils.errors import InvalidFileError, OutputFileError, PcapFileNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """One captured link-layer frame."""

    data: bytes
    """Captured bytes, link-layer header included"""

    wire_len: int
    """Original length of the frame on the wire"""

    cap_len: int
    """Number of bytes actually captured"""

    sec: int = 0
    usec: int = 0

    @property
    def truncated(self) -> bool:
        """Whether the capture holds fewer bytes than the wire frame."""
        return self.cap_len != self.wire_len


class FrameSource:
    """
    Sequential reader of frames from a classic PCAP file.

    Frames are pulled one at a time with next_frame(), which returns None
    once the flow is exhausted, or iterated directly.
    """

    def __init__(self, path: Path, role: str = "source") -> None:
        """
        Open a capture file.

        Args:
            path: Capture file path
            role: Flow name used in log and error messages

        Raises:
            PcapFileNotFoundError: If the file does not exist
            InvalidFileError: If the file is not a readable classic PCAP
        """
        self.path = Path(path)
        self.role = role
        if not self.path.exists():
            raise PcapFileNotFoundError(self.path)

        try:
            reader = RawPcapReader(str(self.path))
        except (Scapy_Exception, OSError, EOFError) as exc:
            raise InvalidFileError(self.path, f"failed to open the {role} pcap file: {exc}") from exc

        if isinstance(reader, RawPcapNgReader):
            reader.close()
            raise InvalidFileError(self.path, "pcapng captures are not supported, convert to pcap")

        self._reader = reader
        self._iter = iter(reader)
        self._exhausted = False
        self.link_type_value: int = int(reader.linktype)
        self.frames_read = 0
        logger.debug("Opened %s flow %s (link type %d)", role, self.path, self.link_type_value)

    def next_frame(self) -> Frame | None:
        """Return the next frame, or None at end of flow."""
        if self._exhausted:
            return None
        try:
            data, meta = next(self._iter)
        except StopIteration:
            self._exhausted = True
            return None
        except (Scapy_Exception, EOFError) as exc:
            # A truncated record at the end of the file ends the flow
            logger.warning("Stopping %s flow %s after %d frames: %s", self.role, self.path, self.frames_read, exc)
            self._exhausted = True
            return None

        self.frames_read += 1
        return Frame(
            data=bytes(data),
            wire_len=int(meta.wirelen),
            cap_len=int(meta.caplen),
            sec=int(meta.sec),
            usec=int(meta.usec),
        )

    def __iter__(self) -> Iterator[Frame]:
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame

    def close(self) -> None:
        """Close the underlying capture file."""
        self._reader.close()

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class RohcDumper:
    """Writer of generated ROHC packets into a PCAP file."""

    def __init__(self, path: Path, link_type: int) -> None:
        """
        Create the output capture and write its global header.

        Args:
            path: Output capture path
            link_type: Link-layer type recorded in the file header

        Raises:
            OutputFileError: If the file cannot be created
        """
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = RawPcapWriter(str(self.path), linktype=link_type, sync=True)
            # Write the global header now so that an empty flow still yields a valid capture
            self._writer.write_header(None)
        except OSError as exc:
            raise OutputFileError(self.path, f"failed to open dump file: {exc}") from exc
        self.packets_written = 0

    def write(self, data: bytes, sec: int = 0, usec: int = 0) -> None:
        """Append one record holding the given bytes."""
        self._writer.write_packet(data, sec=sec, usec=usec)
        self.packets_written += 1

    def close(self) -> None:
        """Flush and close the output capture."""
        self._writer.close()

    def __enter__(self) -> "RohcDumper":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
