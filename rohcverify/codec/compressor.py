"""ROHC compressor of the built-in codec."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

from rohcverify.codec.base import (
    DEFAULT_RTP_PORTS,
    MAX_LARGE_CID,
    MAX_ROHC_SIZE,
    MAX_SMALL_CID,
    CompressionError,
    DecompressionError,
    Profile,
)
from rohcverify.codec.crc import CrcTables, CrcType
from rohcverify.codec.packet import (
    MAX_CO_CHANGES,
    MAX_CO_HEADER_LEN,
    PACKET_CO,
    PACKET_IR,
    AckType,
    HeaderInfo,
    classify,
    feedback_element,
    frame_with_cid,
    normal_packet_allowed,
    parse_feedback,
)

logger = logging.getLogger(__name__)


@dataclass
class CompressorStats:
    """Counters exposed in the end-of-run statistics."""

    packets: int = 0
    ir_packets: int = 0
    co_packets: int = 0
    normal_packets: int = 0
    uncompressed_bytes: int = 0
    compressed_bytes: int = 0
    feedback_piggybacked: int = 0
    feedback_received: int = 0
    feedback_ignored: int = 0
    contexts_created: int = 0
    contexts_recycled: int = 0


@dataclass
class _Context:
    cid: int
    profile: Profile
    flow_key: tuple
    header: bytes = b""
    sn: int = 0
    ir_sent: int = 0
    acked: bool = False
    last_used: int = 0
    packets: int = 0


class RohcCompressor:
    """
    Compressor keeping one context per flow, up to max_cid + 1 contexts.

    A context starts in IR state and switches to CO packets once the
    decompressor acknowledged it, or after ir_repetitions IR packets when
    no feedback comes back. A NACK sends it back to IR state.
    """

    def __init__(
        self,
        *,
        max_cid: int,
        large_cid: bool,
        crc_tables: CrcTables,
        rtp_ports: tuple[int, ...] = DEFAULT_RTP_PORTS,
        ir_repetitions: int = 3,
        name: str = "compressor",
    ) -> None:
        limit = MAX_LARGE_CID if large_cid else MAX_SMALL_CID
        if not 0 <= max_cid <= limit:
            raise ValueError(f"max_cid must be between 0 and {limit}, got {max_cid}")
        if ir_repetitions < 1:
            raise ValueError("ir_repetitions must be at least 1")

        self.name = name
        self.max_cid = max_cid
        self.large_cid = large_cid
        self.ir_repetitions = ir_repetitions
        self._crc = crc_tables
        self._rtp_ports = frozenset(rtp_ports)
        self._profiles: set[Profile] = set()
        self._contexts: dict[int, _Context] = {}
        self._cid_by_key: dict[tuple, int] = {}
        self._pending_feedback: list[bytes] = []
        self._clock = 0
        self.stats = CompressorStats()

    @property
    def profiles(self) -> frozenset[Profile]:
        return frozenset(self._profiles)

    def activate_profile(self, profile: Profile) -> None:
        self._profiles.add(Profile(profile))

    def context_count(self) -> int:
        return len(self._contexts)

    def context_state(self, cid: int) -> dict[str, object] | None:
        """Snapshot of one context, None if the CID is unused."""
        ctx = self._contexts.get(cid)
        if ctx is None:
            return None
        return {
            "profile": ctx.profile,
            "acked": ctx.acked,
            "ir_sent": ctx.ir_sent,
            "packets": ctx.packets,
            "sn": ctx.sn,
        }

    # Feedback

    def piggyback_feedback(self, feedback: bytes) -> None:
        """Queue feedback from the associated decompressor for the next packet."""
        self._pending_feedback.append(feedback_element(bytes(feedback)))

    def pending_feedback(self) -> int:
        return len(self._pending_feedback)

    def deliver_feedback(self, feedback: bytes) -> None:
        """Apply feedback sent by the remote decompressor to the matching context."""
        self.stats.feedback_received += 1
        try:
            cid, ack_type, sn = parse_feedback(bytes(feedback), self.large_cid)
        except DecompressionError as exc:
            logger.debug("%s: ignoring malformed feedback: %s", self.name, exc)
            self.stats.feedback_ignored += 1
            return

        ctx = self._contexts.get(cid)
        if ctx is None:
            logger.debug("%s: feedback for unknown CID %d ignored", self.name, cid)
            self.stats.feedback_ignored += 1
            return

        if ack_type in (None, AckType.ACK):
            ctx.acked = True
            logger.debug("%s: CID %d acknowledged (sn %d)", self.name, cid, sn)
        else:
            ctx.acked = False
            ctx.ir_sent = 0
            logger.debug("%s: CID %d received %s, back to IR", self.name, cid, ack_type.name)

    # Compression

    def _find_context(self, info: HeaderInfo) -> _Context:
        cid = self._cid_by_key.get(info.flow_key)
        if cid is not None:
            return self._contexts[cid]

        free = next((c for c in range(self.max_cid + 1) if c not in self._contexts), None)
        if free is None:
            oldest = min(self._contexts.values(), key=lambda c: c.last_used)
            del self._cid_by_key[oldest.flow_key]
            free = oldest.cid
            self.stats.contexts_recycled += 1
            logger.debug("%s: recycling CID %d", self.name, free)

        ctx = _Context(cid=free, profile=info.profile, flow_key=info.flow_key)
        self._contexts[free] = ctx
        self._cid_by_key[info.flow_key] = free
        self.stats.contexts_created += 1
        return ctx

    def _build_ir(self, ctx: _Context, packet: bytes, header: bytes) -> bytes:
        profile_octet = int(ctx.profile) & 0xFF
        crc = self._crc.compute(CrcType.CRC_8, bytes([profile_octet]) + header)
        ctx.ir_sent += 1
        self.stats.ir_packets += 1
        return bytes([PACKET_IR, profile_octet, crc]) + packet

    def _build_co(self, ctx: _Context, packet: bytes, header: bytes) -> bytes | None:
        if len(header) != len(ctx.header) or len(header) > MAX_CO_HEADER_LEN:
            return None
        changes = [(i, b) for i, (a, b) in enumerate(zip(ctx.header, header)) if a != b]
        if len(changes) > MAX_CO_CHANGES:
            return None

        change_list = bytearray([len(changes)])
        for offset, value in changes:
            change_list += bytes([offset, value])
        crc3 = self._crc.compute(CrcType.CRC_3, change_list)
        crc7 = self._crc.compute(CrcType.CRC_7, header)
        body = bytearray([PACKET_CO | crc3, crc7]) + change_list
        body += packet[len(header):]
        self.stats.co_packets += 1
        return bytes(body)

    def compress(self, packet: bytes | memoryview) -> bytes:
        """
        Compress one IP packet into a ROHC packet.

        Pending feedback is piggybacked in front of the packet.

        Raises:
            CompressionError: If no activated profile accepts the packet or
                the ROHC packet would exceed MAX_ROHC_SIZE
        """
        packet = bytes(packet)
        info = classify(packet, self.profiles, self._rtp_ports)
        if info is None:
            raise CompressionError(f"{self.name}: no activated profile accepts the packet")

        self._clock += 1
        ctx = self._find_context(info)
        ctx.last_used = self._clock
        ctx.sn = (ctx.sn + 1) & 0xFFFF
        header = packet[: info.header_len]

        established = ctx.acked or ctx.ir_sent >= self.ir_repetitions
        body: bytes | None = None
        if established and ctx.profile is Profile.UNCOMPRESSED and normal_packet_allowed(packet):
            body = packet
            self.stats.normal_packets += 1
        elif established and ctx.profile is not Profile.UNCOMPRESSED:
            body = self._build_co(ctx, packet, header)
        if body is None:
            body = self._build_ir(ctx, packet, header)

        rohc_packet = b"".join(self._pending_feedback) + frame_with_cid(ctx.cid, self.large_cid, body)
        if len(rohc_packet) > MAX_ROHC_SIZE:
            raise CompressionError(
                f"{self.name}: ROHC packet of {len(rohc_packet)} bytes exceeds {MAX_ROHC_SIZE} bytes"
            )

        self.stats.feedback_piggybacked += len(self._pending_feedback)
        self._pending_feedback.clear()
        ctx.header = header
        ctx.packets += 1
        self.stats.packets += 1
        self.stats.uncompressed_bytes += len(packet)
        self.stats.compressed_bytes += len(rohc_packet)
        return rohc_packet

    def statistics(self, indent: int = 0) -> str:
        """Render counters and contexts as an XML fragment."""
        pad = "\t" * indent
        lines = [f'{pad}<compressor name="{self.name}" max_cid="{self.max_cid}">']
        for field in fields(self.stats):
            lines.append(f"{pad}\t<{field.name}>{getattr(self.stats, field.name)}</{field.name}>")
        for cid in sorted(self._contexts):
            ctx = self._contexts[cid]
            lines.append(
                f'{pad}\t<context cid="{cid}" profile="{ctx.profile.name}" '
                f'packets="{ctx.packets}" acked="{str(ctx.acked).lower()}" />'
            )
        lines.append(f"{pad}</compressor>")
        return "\n".join(lines)
