"""Per-frame, per-session pipeline.

Each pass walks ``FramingCheck -> Compress -> ReferenceCompare -> Decompress
-> RoundTripCompare`` in order and stops at the first stage that cannot
produce input for the next one. A pass yields exactly one ``FrameOutcome``
plus the stage reports rendered in the XML report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from rohcverify.codec import MAX_ROHC_SIZE, CodecError
from rohcverify.core.comparator import compare_packets
from rohcverify.core.link_layer import (
    LinkType,
    link_header_length,
    rohc_link_header,
    trim_padding,
)
from rohcverify.core.output_manager import SizeSink
from rohcverify.core.pcap_io import Frame, RohcDumper
from rohcverify.plugins.nonreg.session import CodecSession

logger = logging.getLogger(__name__)

STAGE_COMPRESSION = "compression"
STAGE_ROHC_COMPARISON = "rohc_comparison"
STAGE_DECOMPRESSION = "decompression"
STAGE_IP_COMPARISON = "ip_comparison"
STAGE_COMPARISON = "comparison"

MSG_EQUAL = "Packets are equal"
MSG_COMP_FAILED_NO_DECOMP = "Compression failed, cannot decompress the ROHC packet!"
MSG_COMP_FAILED_NO_COMPARE = "Compression failed, cannot compare the packets!"
MSG_DECOMP_FAILED_NO_COMPARE = "Decompression failed, cannot compare the packets!"
MSG_NO_REFERENCE_FLOW = "No ROHC packets given for reference, comparison skipped"
MSG_NO_REFERENCE_UNIT = "No ROHC packets given for reference, cannot compare (run with the -c option)"
MSG_REFERENCE_DISABLED = (
    "Reference comparison disabled for this run, ROHC packets of reference "
    "are not compared because they would not match"
)


class FrameOutcome(str, Enum):
    """Result of one frame going through one session."""

    OK = "ok"
    REFERENCE_MISMATCH = "reference-mismatch"
    ROUND_TRIP_MISMATCH = "round-trip-mismatch"
    COMPRESSION_FAILED = "compression-failed"
    DECOMPRESSION_FAILED = "decompression-failed"
    MALFORMED_FRAME = "malformed-frame"


class StageStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageReport:
    """Log and status of one stage of a pass."""

    name: str
    status: StageStatus
    log: list[str] = field(default_factory=list)


@dataclass
class PassResult:
    """Everything a pass produced, in stage order."""

    session_id: int
    packet_num: int
    outcome: FrameOutcome
    stages: list[StageReport] = field(default_factory=list)
    rohc_size: int = 0


class PacketPipeline:
    """
    Runs frames of the source flow through a codec session.

    Args:
        link_type: Link type of the source flow
        reference_link_type: Link type of the reference flow, None without one
        reference_check: When False the reference stage always reports a
            mismatch and never looks at reference units
        dumper: Optional output capture receiving the ROHC packets
        size_sink: Optional file receiving the ROHC packet sizes
    """

    def __init__(
        self,
        *,
        link_type: LinkType,
        reference_link_type: LinkType | None = None,
        reference_check: bool = True,
        dumper: RohcDumper | None = None,
        size_sink: SizeSink | None = None,
    ) -> None:
        self.link_type = link_type
        self.link_len = link_header_length(link_type)
        self.reference_link_type = reference_link_type
        self.reference_link_len = (
            link_header_length(reference_link_type) if reference_link_type is not None else 0
        )
        self.reference_check = reference_check
        self.dumper = dumper
        self.size_sink = size_sink

    @property
    def has_reference(self) -> bool:
        return self.reference_link_type is not None

    def run(
        self,
        session: CodecSession,
        packet_num: int,
        frame: Frame,
        reference: Frame | None = None,
    ) -> PassResult:
        """Process one frame through one session."""
        result = PassResult(
            session_id=session.session_id,
            packet_num=packet_num,
            outcome=FrameOutcome.OK,
        )

        # FramingCheck
        if frame.cap_len <= self.link_len or frame.truncated:
            message = f"bad PCAP packet (len = {frame.wire_len}, caplen = {frame.cap_len})"
            logger.warning("packet %d: %s", packet_num, message)
            result.outcome = FrameOutcome.MALFORMED_FRAME
            result.stages = [
                StageReport(STAGE_COMPRESSION, StageStatus.FAILED, [message]),
                StageReport(STAGE_DECOMPRESSION, StageStatus.FAILED, [MSG_COMP_FAILED_NO_DECOMP]),
                StageReport(STAGE_COMPARISON, StageStatus.FAILED, [MSG_COMP_FAILED_NO_COMPARE]),
            ]
            return result

        view = memoryview(frame.data)
        payload = view[self.link_len :]
        ip_size = trim_padding(payload, frame.wire_len, self.link_type)
        compression_log: list[str] = []
        if ip_size < len(payload):
            compression_log.append(
                f"The Ethernet frame has {len(payload) - ip_size} bytes of padding "
                f"after the {ip_size} byte IP packet!"
            )
        ip_packet = payload[:ip_size]

        # Compress
        rohc_packet = self._compress(session, ip_packet, compression_log)
        if rohc_packet is None:
            result.outcome = FrameOutcome.COMPRESSION_FAILED
            result.stages = [
                StageReport(STAGE_COMPRESSION, StageStatus.FAILED, compression_log),
                StageReport(STAGE_ROHC_COMPARISON, StageStatus.FAILED, [MSG_COMP_FAILED_NO_COMPARE]),
                StageReport(STAGE_DECOMPRESSION, StageStatus.FAILED, [MSG_COMP_FAILED_NO_DECOMP]),
                StageReport(STAGE_IP_COMPARISON, StageStatus.FAILED, [MSG_COMP_FAILED_NO_COMPARE]),
            ]
            return result

        result.rohc_size = len(rohc_packet)
        result.stages.append(StageReport(STAGE_COMPRESSION, StageStatus.OK, compression_log))

        if self.dumper is not None:
            header = rohc_link_header(bytes(view[: self.link_len]), self.link_type)
            self.dumper.write(header + rohc_packet, sec=frame.sec, usec=frame.usec)
        if self.size_sink is not None:
            self.size_sink.record(session.session_id, packet_num, len(rohc_packet))

        # ReferenceCompare
        reference_stage = self._compare_reference(rohc_packet, reference)
        result.stages.append(reference_stage)
        reference_ok = reference_stage.status is not StageStatus.FAILED

        # Decompress
        decompression_log: list[str] = []
        decomp_packet = self._decompress(session, rohc_packet, decompression_log)
        if decomp_packet is None:
            result.outcome = FrameOutcome.DECOMPRESSION_FAILED
            result.stages.extend(
                [
                    StageReport(STAGE_DECOMPRESSION, StageStatus.FAILED, decompression_log),
                    StageReport(STAGE_IP_COMPARISON, StageStatus.FAILED, [MSG_DECOMP_FAILED_NO_COMPARE]),
                ]
            )
            return result
        result.stages.append(StageReport(STAGE_DECOMPRESSION, StageStatus.OK, decompression_log))

        # RoundTripCompare
        comparison = compare_packets(ip_packet, decomp_packet)
        if comparison.equal:
            result.stages.append(StageReport(STAGE_IP_COMPARISON, StageStatus.OK, [MSG_EQUAL]))
        else:
            result.stages.append(StageReport(STAGE_IP_COMPARISON, StageStatus.FAILED, comparison.lines))

        if not comparison.equal:
            result.outcome = FrameOutcome.ROUND_TRIP_MISMATCH
        elif not reference_ok:
            result.outcome = FrameOutcome.REFERENCE_MISMATCH
        return result

    def _compress(
        self,
        session: CodecSession,
        ip_packet: memoryview,
        log: list[str],
    ) -> bytes | None:
        try:
            rohc_packet = session.compressor.compress(ip_packet)
        except CodecError as exc:
            log.append(f"compression failed: {exc}")
            logger.error("compressor %d: %s", session.session_id, exc)
            return None
        if not rohc_packet:
            log.append("compression failed: the compressor returned an empty ROHC packet")
            return None
        if len(rohc_packet) > MAX_ROHC_SIZE:
            log.append(f"compression failed: ROHC packet of {len(rohc_packet)} bytes exceeds {MAX_ROHC_SIZE} bytes")
            return None
        log.append(f"{len(ip_packet)} byte IP packet compressed into a {len(rohc_packet)} byte ROHC packet")
        return rohc_packet

    def _decompress(
        self,
        session: CodecSession,
        rohc_packet: bytes,
        log: list[str],
    ) -> bytes | None:
        try:
            packet = session.decompressor.decompress(rohc_packet)
        except CodecError as exc:
            log.append(f"decompression failed: {exc}")
            logger.error("decompressor %d: %s", session.session_id, exc)
            return None
        if not packet:
            log.append("decompression failed: the decompressor returned an empty packet")
            return None
        log.append(f"{len(rohc_packet)} byte ROHC packet decompressed into a {len(packet)} byte IP packet")
        return packet

    def _compare_reference(self, rohc_packet: bytes, reference: Frame | None) -> StageReport:
        if not self.reference_check:
            return StageReport(STAGE_ROHC_COMPARISON, StageStatus.FAILED, [MSG_REFERENCE_DISABLED])
        if not self.has_reference:
            return StageReport(STAGE_ROHC_COMPARISON, StageStatus.SKIPPED, [MSG_NO_REFERENCE_FLOW])
        if reference is None or len(reference.data) <= self.reference_link_len:
            return StageReport(STAGE_ROHC_COMPARISON, StageStatus.FAILED, [MSG_NO_REFERENCE_UNIT])

        comparison = compare_packets(memoryview(reference.data)[self.reference_link_len :], rohc_packet)
        if comparison.equal:
            return StageReport(STAGE_ROHC_COMPARISON, StageStatus.OK, [MSG_EQUAL])
        return StageReport(STAGE_ROHC_COMPARISON, StageStatus.FAILED, comparison.lines)
