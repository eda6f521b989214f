"""Non-regression plugin: round-trip and reference checks of a ROHC codec."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click

from rohcverify.codec import CrcTables
from rohcverify.plugins import register_plugin
from rohcverify.plugins.base import PluginBase
from rohcverify.plugins.nonreg.aggregator import EXIT_FAIL
from rohcverify.plugins.nonreg.cli_commands import register_nonreg_command
from rohcverify.plugins.nonreg.config import build_runtime_config
from rohcverify.plugins.nonreg.report import XmlReport
from rohcverify.plugins.nonreg.runner import run_nonregression
from rohcverify.plugins.nonreg.session import CodecBackend
from rohcverify.utils.errors import OutputFileError, RohcVerifyError, handle_error
from rohcverify.utils.logger import get_logger

logger = get_logger(__name__)


@register_plugin
class NonregPlugin(PluginBase):
    """Plugin running a capture through two cross-wired codec sessions."""

    def __init__(self, backend: CodecBackend | None = None) -> None:
        self.backend = backend

    @property
    def name(self) -> str:  # pragma: no cover - trivial
        return "run"

    def setup_cli(self, cli_group: click.Group) -> None:
        """Register the run command."""
        register_nonreg_command(self, cli_group)

    def execute(  # type: ignore[override]
        self,
        cid_type: str,
        flow: Path,
        output_path: Path | None = None,
        compare_path: Path | None = None,
        size_output_path: Path | None = None,
        max_contexts: int | None = None,
        symmetric_contexts: bool = False,
        no_reference_check: bool = False,
        report_path: Path | None = None,
        config_path: Path | None = None,
        crc_tables: CrcTables | None = None,
        **kwargs: Any,
    ) -> int:
        """Run the non-regression test and return its exit code."""
        cli_overrides: dict[str, Any] = {"cid_type": cid_type}
        if max_contexts is not None:
            cli_overrides["max_contexts"] = max_contexts
        if symmetric_contexts:
            cli_overrides["symmetric_contexts"] = True
        if no_reference_check:
            cli_overrides["reference_check"] = False

        show_traceback = logger.getEffectiveLevel() <= logging.DEBUG
        try:
            config = build_runtime_config(config_file=config_path, cli_overrides=cli_overrides)

            if report_path is None:
                verdict = run_nonregression(
                    config,
                    flow,
                    report=XmlReport(sys.stdout),
                    output_path=output_path,
                    compare_path=compare_path,
                    size_output_path=size_output_path,
                    backend=self.backend,
                    crc_tables=crc_tables,
                )
            else:
                try:
                    report_file = report_path.open("w", encoding="iso-8859-15", errors="replace")
                except OSError as exc:
                    raise OutputFileError(report_path, str(exc)) from exc
                with report_file:
                    verdict = run_nonregression(
                        config,
                        flow,
                        report=XmlReport(report_file),
                        output_path=output_path,
                        compare_path=compare_path,
                        size_output_path=size_output_path,
                        backend=self.backend,
                        crc_tables=crc_tables,
                    )
        except RohcVerifyError as exc:
            return handle_error(exc, show_traceback=show_traceback)
        except Exception as exc:  # pragma: no cover - generic safety net
            handle_error(exc, show_traceback=show_traceback)
            return EXIT_FAIL

        return verdict.exit_code
