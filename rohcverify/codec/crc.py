"""CRC tables used by ROHC packets.

The tables are computed once per process by the entry point and passed to
every compressor and decompressor, which never build their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CrcType(Enum):
    """CRC kinds defined by ROHC, with their reflected polynomial and init value."""

    CRC_3 = (3, 0x6, 0x7)
    CRC_7 = (7, 0x79, 0x7F)
    CRC_8 = (8, 0xE0, 0xFF)

    @property
    def width(self) -> int:
        return self.value[0]

    @property
    def polynomial(self) -> int:
        return self.value[1]

    @property
    def init(self) -> int:
        return self.value[2]


def _build_table(crc_type: CrcType) -> tuple[int, ...]:
    mask = (1 << crc_type.width) - 1
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ crc_type.polynomial
            else:
                crc >>= 1
        table.append(crc & mask)
    return tuple(table)


@dataclass(frozen=True)
class CrcTables:
    """Immutable lookup tables for the three ROHC CRC kinds."""

    crc3: tuple[int, ...]
    crc7: tuple[int, ...]
    crc8: tuple[int, ...]

    def table(self, crc_type: CrcType) -> tuple[int, ...]:
        if crc_type is CrcType.CRC_3:
            return self.crc3
        if crc_type is CrcType.CRC_7:
            return self.crc7
        return self.crc8

    def compute(self, crc_type: CrcType, data: bytes | memoryview, init: int | None = None) -> int:
        """Compute the CRC of data, starting from the kind's init value by default."""
        table = self.table(crc_type)
        crc = crc_type.init if init is None else init
        for byte in data:
            crc = table[byte ^ crc]
        return crc


def build_crc_tables() -> CrcTables:
    """Compute the CRC-3, CRC-7 and CRC-8 lookup tables."""
    return CrcTables(
        crc3=_build_table(CrcType.CRC_3),
        crc7=_build_table(CrcType.CRC_7),
        crc8=_build_table(CrcType.CRC_8),
    )
