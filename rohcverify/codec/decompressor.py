"""ROHC decompressor of the built-in codec."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

from rohcverify.codec.base import (
    MAX_ROHC_SIZE,
    DecompressionError,
    FeedbackTarget,
    Profile,
)
from rohcverify.codec.crc import CrcTables, CrcType
from rohcverify.codec.packet import (
    ADD_CID_PREFIX,
    CO_CRC3_MASK,
    PACKET_IR,
    PACKET_PADDING,
    AckType,
    build_feedback2,
    decode_sdvl,
    header_length,
    is_co_packet,
    split_feedback,
)

logger = logging.getLogger(__name__)


@dataclass
class DecompressorStats:
    """Counters exposed in the end-of-run statistics."""

    packets: int = 0
    ir_packets: int = 0
    co_packets: int = 0
    normal_packets: int = 0
    failures: int = 0
    crc_failures: int = 0
    feedback_sent: int = 0
    feedback_forwarded: int = 0


@dataclass
class _Context:
    profile: Profile
    header: bytes
    packets: int = 0


class RohcDecompressor:
    """
    Decompressor associated with a compressor for feedback.

    Feedback this decompressor generates (ACK on IR, STATIC-NACK on CRC
    failure) is piggybacked by the associated compressor; feedback found
    at the start of received packets is delivered to it.
    """

    def __init__(
        self,
        *,
        large_cid: bool,
        crc_tables: CrcTables,
        feedback: FeedbackTarget | None = None,
        name: str = "decompressor",
    ) -> None:
        self.name = name
        self.large_cid = large_cid
        self._crc = crc_tables
        self._feedback = feedback
        self._contexts: dict[int, _Context] = {}
        self.stats = DecompressorStats()

    def context_count(self) -> int:
        return len(self._contexts)

    def _send_feedback(self, cid: int, ack_type: AckType, ctx: _Context | None) -> None:
        if self._feedback is None:
            return
        sn = ctx.packets & 0x0FFF if ctx is not None else 0
        self._feedback.piggyback_feedback(build_feedback2(cid, self.large_cid, ack_type, sn))
        self.stats.feedback_sent += 1

    def _fail(self, message: str) -> DecompressionError:
        self.stats.failures += 1
        return DecompressionError(f"{self.name}: {message}")

    def decompress(self, rohc_packet: bytes | memoryview) -> bytes:
        """
        Rebuild the IP packet carried by a ROHC packet.

        Raises:
            DecompressionError: On malformed packets, unknown contexts or CRC failures
        """
        data = bytes(rohc_packet)
        try:
            feedbacks, offset = split_feedback(data)
        except DecompressionError as exc:
            raise self._fail(str(exc)) from exc

        for feedback in feedbacks:
            if self._feedback is not None:
                self._feedback.deliver_feedback(feedback)
                self.stats.feedback_forwarded += 1

        while offset < len(data) and data[offset] == PACKET_PADDING:
            offset += 1
        if offset >= len(data):
            raise self._fail("no ROHC packet after feedback")

        cid = 0
        if not self.large_cid and data[offset] & 0xF0 == ADD_CID_PREFIX:
            cid = data[offset] & 0x0F
            offset += 1
            if offset >= len(data):
                raise self._fail("packet truncated after Add-CID")

        type_octet = data[offset]
        rest_start = offset + 1
        if self.large_cid:
            try:
                cid, used = decode_sdvl(data, rest_start)
            except DecompressionError as exc:
                raise self._fail(str(exc)) from exc
            rest_start += used

        if type_octet == PACKET_IR:
            packet = self._decode_ir(cid, data[rest_start:])
        elif is_co_packet(type_octet):
            packet = self._decode_co(cid, type_octet & CO_CRC3_MASK, data[rest_start:])
        else:
            packet = self._decode_normal(cid, bytes([type_octet]) + data[rest_start:])

        if len(packet) > MAX_ROHC_SIZE:
            raise self._fail(f"decompressed packet of {len(packet)} bytes exceeds {MAX_ROHC_SIZE} bytes")
        self.stats.packets += 1
        return packet

    def _decode_ir(self, cid: int, rest: bytes) -> bytes:
        if len(rest) < 2:
            raise self._fail("truncated IR packet")
        try:
            profile = Profile(rest[0])
        except ValueError:
            raise self._fail(f"unknown profile 0x{rest[0]:02x} in IR packet") from None

        packet = rest[2:]
        length = header_length(profile, packet)
        if length is None:
            raise self._fail(f"IR packet does not carry a {profile.name} header")
        header = packet[:length]
        crc = self._crc.compute(CrcType.CRC_8, bytes([rest[0]]) + header)
        if crc != rest[1]:
            self.stats.crc_failures += 1
            self._send_feedback(cid, AckType.STATIC_NACK, self._contexts.get(cid))
            raise self._fail(f"CRC failure on IR packet for CID {cid}")

        ctx = _Context(profile=profile, header=header, packets=1)
        self._contexts[cid] = ctx
        self.stats.ir_packets += 1
        self._send_feedback(cid, AckType.ACK, ctx)
        return packet

    def _decode_co(self, cid: int, crc3: int, rest: bytes) -> bytes:
        ctx = self._contexts.get(cid)
        if ctx is None or ctx.profile is Profile.UNCOMPRESSED:
            self._send_feedback(cid, AckType.STATIC_NACK, None)
            raise self._fail(f"CO packet for CID {cid} without a matching context")
        if len(rest) < 2:
            raise self._fail("truncated CO packet")

        crc, count = rest[0], rest[1]
        pos = 2
        if len(rest) < pos + 2 * count:
            raise self._fail("truncated CO change list")
        # The change list is checked before it touches the context
        if self._crc.compute(CrcType.CRC_3, rest[1 : pos + 2 * count]) != crc3:
            self.stats.crc_failures += 1
            raise self._fail(f"CRC-3 failure on the change list of CO packet for CID {cid}")
        header = bytearray(ctx.header)
        for _ in range(count):
            offset, value = rest[pos], rest[pos + 1]
            pos += 2
            if offset >= len(header):
                raise self._fail(f"CO change at offset {offset} outside a {len(header)} byte header")
            header[offset] = value

        if self._crc.compute(CrcType.CRC_7, header) != crc:
            self.stats.crc_failures += 1
            self._send_feedback(cid, AckType.STATIC_NACK, ctx)
            raise self._fail(f"CRC failure on CO packet for CID {cid}")

        ctx.header = bytes(header)
        ctx.packets += 1
        self.stats.co_packets += 1
        return ctx.header + rest[pos:]

    def _decode_normal(self, cid: int, packet: bytes) -> bytes:
        ctx = self._contexts.get(cid)
        if ctx is None or ctx.profile is not Profile.UNCOMPRESSED:
            raise self._fail(f"unexpected packet type 0x{packet[0]:02x} for CID {cid}")
        ctx.packets += 1
        self.stats.normal_packets += 1
        return packet

    def statistics(self, indent: int = 0) -> str:
        """Render counters as an XML fragment."""
        pad = "\t" * indent
        lines = [f'{pad}<decompressor name="{self.name}" contexts="{len(self._contexts)}">']
        for field in fields(self.stats):
            lines.append(f"{pad}\t<{field.name}>{getattr(self.stats, field.name)}</{field.name}>")
        lines.append(f"{pad}</decompressor>")
        return "\n".join(lines)
