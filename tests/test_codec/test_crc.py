"""Tests for the ROHC CRC tables."""

from __future__ import annotations

import dataclasses

import pytest

from rohcverify.codec.crc import CrcTables, CrcType, build_crc_tables

CHECK_INPUT = b"123456789"


@pytest.mark.parametrize(
    ("crc_type", "expected"),
    [
        (CrcType.CRC_3, 0x6),
        (CrcType.CRC_7, 0x53),
        (CrcType.CRC_8, 0xD0),
    ],
)
def test_check_values(crc_tables: CrcTables, crc_type: CrcType, expected: int) -> None:
    """The CRCs match the published ROHC check values."""
    assert crc_tables.compute(crc_type, CHECK_INPUT) == expected


def test_tables_have_one_entry_per_byte(crc_tables: CrcTables) -> None:
    for crc_type in CrcType:
        table = crc_tables.table(crc_type)
        assert len(table) == 256
        assert max(table) < (1 << crc_type.width)


def test_tables_are_deterministic_and_immutable(crc_tables: CrcTables) -> None:
    assert build_crc_tables() == crc_tables
    with pytest.raises(dataclasses.FrozenInstanceError):
        crc_tables.crc8 = ()  # type: ignore[misc]


def test_explicit_init_value(crc_tables: CrcTables) -> None:
    first = crc_tables.compute(CrcType.CRC_8, b"1234")
    assert crc_tables.compute(CrcType.CRC_8, b"56789", init=first) == 0xD0
