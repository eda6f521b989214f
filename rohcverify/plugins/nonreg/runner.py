"""Driver of a non-regression run.

Opens the flows and sinks, builds the two codec sessions, feeds every
source frame to session 1 then session 2, and reports a verdict.
Everything opened during startup is released on every exit path, sessions
first, then the files.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from rohcverify.codec import CrcTables, build_crc_tables
from rohcverify.core.link_layer import LinkType, classify_link_type
from rohcverify.core.output_manager import SizeSink
from rohcverify.core.pcap_io import FrameSource, RohcDumper
from rohcverify.plugins.nonreg.aggregator import ResultAggregator, RunVerdict
from rohcverify.plugins.nonreg.config import NonregConfig
from rohcverify.plugins.nonreg.pipeline import PacketPipeline
from rohcverify.plugins.nonreg.report import XmlReport
from rohcverify.plugins.nonreg.session import CodecBackend, SessionArena
from rohcverify.utils.errors import RohcVerifyError

logger = logging.getLogger(__name__)


@dataclass
class _Flows:
    source: FrameSource
    link_type: LinkType
    reference: FrameSource | None = None
    reference_link_type: LinkType | None = None
    dumper: RohcDumper | None = None
    size_sink: SizeSink | None = None


def _open_flows(
    stack: ExitStack,
    flow_path: Path,
    output_path: Path | None,
    compare_path: Path | None,
    size_output_path: Path | None,
    log: list[str],
) -> _Flows:
    source = stack.enter_context(FrameSource(flow_path, role="source"))
    link_type = classify_link_type(source.link_type_value, role="source")
    log.append(f"source flow {flow_path} opened (link layer type {int(link_type)})")
    flows = _Flows(source=source, link_type=link_type)

    if output_path is not None:
        flows.dumper = stack.enter_context(RohcDumper(output_path, source.link_type_value))
        log.append(f"ROHC packets will be saved in {output_path}")

    if compare_path is not None:
        flows.reference = stack.enter_context(FrameSource(compare_path, role="comparison"))
        flows.reference_link_type = classify_link_type(flows.reference.link_type_value, role="comparison")
        log.append(
            f"ROHC packets of reference read from {compare_path} "
            f"(link layer type {int(flows.reference_link_type)})"
        )

    if size_output_path is not None:
        flows.size_sink = stack.enter_context(SizeSink(size_output_path))
        log.append(f"sizes of ROHC packets will be written in {size_output_path}")

    return flows


def _process_flow(
    flows: _Flows,
    arena: SessionArena,
    pipeline: PacketPipeline,
    aggregator: ResultAggregator,
    report: XmlReport,
) -> None:
    for frame in flows.source:
        aggregator.start_frame()
        packet_num = aggregator.frames
        for session in arena.sessions:
            reference = flows.reference.next_frame() if flows.reference is not None else None
            result = pipeline.run(session, packet_num, frame, reference)
            report.packet(result)
            if aggregator.record(result.outcome):
                logger.error(
                    "packet %d: %s in session %d, stopping the run",
                    packet_num,
                    result.outcome.value,
                    session.session_id,
                )
                return


def run_nonregression(
    config: NonregConfig,
    flow_path: Path,
    *,
    report: XmlReport,
    output_path: Path | None = None,
    compare_path: Path | None = None,
    size_output_path: Path | None = None,
    backend: CodecBackend | None = None,
    crc_tables: CrcTables | None = None,
) -> RunVerdict:
    """
    Run the source flow through both codec sessions.

    Args:
        config: Run configuration, validated during startup
        flow_path: Source capture
        report: Report receiving every section of the run
        output_path: Optional capture receiving the generated ROHC packets
        compare_path: Optional capture of reference ROHC packets
        size_output_path: Optional file receiving ROHC packet sizes
        backend: Codec factory, the built-in codec when None
        crc_tables: CRC tables shared by every codec instance

    Returns:
        The verdict; startup errors yield RunVerdict.FAIL
    """
    crc_tables = crc_tables if crc_tables is not None else build_crc_tables()
    report.begin()
    startup_log: list[str] = []

    with ExitStack() as stack:
        arena = SessionArena(backend)
        try:
            config.validate()
            flows = _open_flows(stack, flow_path, output_path, compare_path, size_output_path, startup_log)
            # Registered after the files so that sessions are released first
            stack.callback(arena.close)
            max_cids = config.max_cids()
            arena.open(
                max_cids=max_cids,
                large_cid=config.large_cid,
                crc_tables=crc_tables,
                rtp_ports=config.rtp_ports,
                ir_repetitions=config.ir_repetitions,
            )
            startup_log.append(
                f"{config.cid_type}: compressor 1 with MAX_CID = {max_cids[0]}, "
                f"compressor 2 with MAX_CID = {max_cids[1]}"
            )
        except RohcVerifyError as exc:
            logger.error("startup failed: %s", exc.message)
            startup_log.append(exc.message)
            report.startup(startup_log, ok=False)
            report.end()
            return RunVerdict.FAIL

        report.startup(startup_log, ok=True)

        pipeline = PacketPipeline(
            link_type=flows.link_type,
            reference_link_type=flows.reference_link_type,
            reference_check=config.reference_check,
            dumper=flows.dumper,
            size_sink=flows.size_sink,
        )
        aggregator = ResultAggregator(reference_check=config.reference_check)
        _process_flow(flows, arena, pipeline, aggregator, report)

        report.summary(aggregator)
        report.infos(arena.statistics())
        arena.close()
        report.shutdown(["compressors and decompressors released"], ok=True)

    report.end()
    verdict = aggregator.verdict()
    logger.info(
        "%d frame(s) processed: %d match(es), %d compression failure(s), "
        "%d decompression failure(s), %d round-trip mismatch(es), "
        "%d reference mismatch(es), %d malformed frame(s): %s",
        aggregator.frames,
        aggregator.successes,
        aggregator.compression_failures,
        aggregator.decompression_failures,
        aggregator.round_trip_mismatches,
        aggregator.reference_mismatches,
        aggregator.malformed_frames,
        verdict.value,
    )
    return verdict
