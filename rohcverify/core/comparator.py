"""Byte-level packet comparator with a bounded diff rendering."""

from __future__ import annotations

from dataclasses import dataclass, field

# Do not render more than this many bytes to avoid huge output
MAX_COMPARED_BYTES = 180

# Bytes shown per side on one row of the rendering
BYTES_PER_ROW = 4

HEADER_LINE = "------------------------------ Compare ------------------------------"
FOOTER_LINE = "----------------------- packets are different -----------------------"


@dataclass
class ComparisonResult:
    """Result of comparing two packets."""

    equal: bool
    """Whether both packets have the same length and the same bytes"""

    size_a: int
    size_b: int

    compared: int
    """Number of leading bytes covered by the rendering"""

    lines: list[str] = field(default_factory=list)
    """Human-readable diff, empty when the packets are equal"""

    def render(self) -> str:
        """Return the diff rendering as a single string."""
        return "\n".join(self.lines)


def _format_byte(value: int, differs: bool) -> str:
    if differs:
        return f"#0x{value:02x}#"
    return f"[0x{value:02x}]"


def compare_packets(pkt_a: bytes | memoryview, pkt_b: bytes | memoryview) -> ComparisonResult:
    """
    Compare two packets and render their differences if any.

    Equality requires identical length and identical bytes. The rendering is
    limited to the first MAX_COMPARED_BYTES bytes of the shortest packet;
    that limit only bounds the output and never turns a difference into a
    match.

    Args:
        pkt_a: First packet (the reference side)
        pkt_b: Second packet

    Returns:
        ComparisonResult with the verdict and, on mismatch, the rendering
    """
    a = bytes(pkt_a)
    b = bytes(pkt_b)
    compared = min(len(a), len(b), MAX_COMPARED_BYTES)

    if a == b:
        return ComparisonResult(equal=True, size_a=len(a), size_b=len(b), compared=compared)

    lines = [HEADER_LINE]
    if len(a) != len(b):
        lines.append(
            f"packets have different sizes ({len(a)} != {len(b)}), "
            f"compare only the {compared} first bytes"
        )

    for row_start in range(0, compared, BYTES_PER_ROW):
        row_end = min(row_start + BYTES_PER_ROW, compared)
        left: list[str] = []
        right: list[str] = []
        for i in range(row_start, row_end):
            differs = a[i] != b[i]
            left.append(_format_byte(a[i], differs))
            right.append(_format_byte(b[i], differs))

        # Pad the left column so the right one stays aligned on short rows
        left_cells = [f"{cell}  " for cell in left]
        left_cells += [" " * 8] * (BYTES_PER_ROW - len(left))
        line = "".join(left_cells) + " " * 6 + "".join(f"{cell}  " for cell in right)
        lines.append(line)

    lines.append(FOOTER_LINE)
    return ComparisonResult(
        equal=False,
        size_a=len(a),
        size_b=len(b),
        compared=compared,
        lines=lines,
    )
