"""Built-in ROHC codec used by the non-regression harness."""

from rohcverify.codec.base import (
    ALL_PROFILES,
    DEFAULT_RTP_PORTS,
    MAX_ROHC_SIZE,
    CidType,
    CodecError,
    CompressionError,
    Compressor,
    DecompressionError,
    Decompressor,
    FeedbackTarget,
    Profile,
)
from rohcverify.codec.compressor import RohcCompressor
from rohcverify.codec.crc import CrcTables, CrcType, build_crc_tables
from rohcverify.codec.decompressor import RohcDecompressor

__all__ = [
    "ALL_PROFILES",
    "DEFAULT_RTP_PORTS",
    "MAX_ROHC_SIZE",
    "CidType",
    "CodecError",
    "CompressionError",
    "Compressor",
    "CrcTables",
    "CrcType",
    "DecompressionError",
    "Decompressor",
    "FeedbackTarget",
    "Profile",
    "RohcCompressor",
    "RohcDecompressor",
    "build_crc_tables",
]
