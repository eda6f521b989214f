"""Interfaces, constants and errors of the codec layer.

The harness only talks to compressors and decompressors through the
protocols below, so that another ROHC implementation can be plugged in.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Protocol

# Maximum size of a ROHC packet and of a decompressed packet
MAX_ROHC_SIZE = 5 * 1024

# Largest CID for each CID type
MAX_SMALL_CID = 15
MAX_LARGE_CID = 16383

# UDP ports on which RTP is looked for
DEFAULT_RTP_PORTS = (1234, 36780, 33238, 5020, 5002)


class CidType(str, Enum):
    """Context identifier width used for a whole run."""

    SMALL = "smallcid"
    LARGE = "largecid"

    @property
    def max_cid(self) -> int:
        return MAX_LARGE_CID if self is CidType.LARGE else MAX_SMALL_CID


class Profile(IntEnum):
    """ROHC profiles supported by the built-in codec."""

    UNCOMPRESSED = 0x0000
    RTP = 0x0001
    UDP = 0x0002
    IP = 0x0004
    UDPLITE = 0x0008


# Every profile the harness activates on both compressors
ALL_PROFILES = (
    Profile.UNCOMPRESSED,
    Profile.UDP,
    Profile.IP,
    Profile.UDPLITE,
    Profile.RTP,
)


class CodecError(Exception):
    """Base class for errors raised while compressing or decompressing."""


class CompressionError(CodecError):
    """The compressor could not produce a ROHC packet."""


class DecompressionError(CodecError):
    """The decompressor could not rebuild the original packet."""


class FeedbackTarget(Protocol):
    """Receiver of the feedback produced or extracted by a decompressor."""

    def piggyback_feedback(self, feedback: bytes) -> None:
        """Queue feedback data to be sent inside the next ROHC packet."""
        ...

    def deliver_feedback(self, feedback: bytes) -> None:
        """Hand feedback data received from the remote side to a compressor."""
        ...


class Compressor(FeedbackTarget, Protocol):
    """Compression half of a codec session."""

    def activate_profile(self, profile: Profile) -> None: ...

    def compress(self, packet: bytes | memoryview) -> bytes:
        """Compress one IP packet, raising CompressionError on failure."""
        ...

    def statistics(self, indent: int = 0) -> str: ...


class Decompressor(Protocol):
    """Decompression half of a codec session."""

    def decompress(self, rohc_packet: bytes | memoryview) -> bytes:
        """Decompress one ROHC packet, raising DecompressionError on failure."""
        ...

    def statistics(self, indent: int = 0) -> str: ...
