"""CLI command registration for the non-regression plugin.

Registers the ``run`` subcommand on the given Click group and delegates
execution back to the plugin instance.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from rohcverify.plugins.nonreg.config import MAX_CONTEXTS, MIN_CONTEXTS

if TYPE_CHECKING:
    from rohcverify.plugins.nonreg.plugin import NonregPlugin


def register_nonreg_command(plugin: "NonregPlugin", cli_group: click.Group) -> None:
    """Register the non-regression command on the given Click group."""

    @cli_group.command(name=plugin.name, context_settings=dict(help_option_names=["-h", "--help"]))
    @click.argument("cid_type", metavar="CID_TYPE")
    @click.argument("flow", type=click.Path(dir_okay=False, path_type=Path))
    @click.option(
        "-o",
        "--output",
        "output_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Save the generated ROHC packets in FILE (PCAP format)",
    )
    @click.option(
        "-c",
        "--compare",
        "compare_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Compare the generated ROHC packets with the ones stored in FILE",
    )
    @click.option(
        "--rohc-size-output",
        "--rohc-size-ouput",
        "size_output_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Save the sizes of the generated ROHC packets in FILE",
    )
    @click.option(
        "--max-contexts",
        type=int,
        default=None,
        help=f"Maximum number of ROHC contexts, {MIN_CONTEXTS} to {MAX_CONTEXTS} (default: 15)",
    )
    @click.option(
        "--symmetric-contexts",
        is_flag=True,
        default=False,
        help="Give both compressors the same number of contexts",
    )
    @click.option(
        "--no-reference-check",
        is_flag=True,
        default=False,
        help="Never compare with ROHC packets of reference; a clean run is reported as skipped",
    )
    @click.option(
        "--report",
        "report_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Write the XML report to FILE instead of stdout",
    )
    @click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="YAML configuration file",
    )
    @click.pass_context
    def run_command(
        ctx: click.Context,
        cid_type: str,
        flow: Path,
        output_path: Path | None,
        compare_path: Path | None,
        size_output_path: Path | None,
        max_contexts: int | None,
        symmetric_contexts: bool,
        no_reference_check: bool,
        report_path: Path | None,
        config_path: Path | None,
    ) -> None:
        """Run FLOW through two cross-wired ROHC compressor/decompressor pairs.

        Every frame is compressed then decompressed by both sessions. The
        decompressed packet must match the original one and, with
        ``--compare``, the ROHC packet must match the reference one.

        \b
        CID_TYPE:
          smallcid   small context identifiers (up to 16 contexts)
          largecid   large context identifiers (up to 16384 contexts)

        \b
        Exit codes:
          0   every packet matched
          1   a packet did not match, a codec failed or startup failed
          77  the test was skipped (--no-reference-check)

        \b
        Examples:
          # Round-trip check only
          rohcverify run smallcid flow.pcap

          # Generate the reference ROHC packets
          rohcverify run -o flow_rohc.pcap smallcid flow.pcap

          # Compare with the reference ROHC packets
          rohcverify run -c flow_rohc.pcap smallcid flow.pcap
        """
        exit_code = plugin.execute(
            cid_type=cid_type,
            flow=flow,
            output_path=output_path,
            compare_path=compare_path,
            size_output_path=size_output_path,
            max_contexts=max_contexts,
            symmetric_contexts=symmetric_contexts,
            no_reference_check=no_reference_check,
            report_path=report_path,
            config_path=config_path,
            crc_tables=(ctx.obj or {}).get("crc_tables"),
        )
        ctx.exit(exit_code)
