"""XML report of a non-regression run.

The layout follows the historical test tool so that existing report
parsers keep working: one ``<startup>`` block, one ``<packet>`` block per
pass, then ``<summary>``, ``<infos>`` and ``<shutdown>``.
"""

from __future__ import annotations

from typing import Iterable, TextIO
from xml.sax.saxutils import escape, quoteattr

from rohcverify.plugins.nonreg.aggregator import ResultAggregator
from rohcverify.plugins.nonreg.pipeline import PassResult

XML_DECLARATION = '<?xml version="1.0" encoding="ISO-8859-15"?>'


class XmlReport:
    """Streams report sections to a text stream as the run progresses."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._started = False
        self._ended = False

    def _write(self, text: str) -> None:
        self.stream.write(text + "\n")

    def _section(self, tag: str, log: Iterable[str], status: str, depth: int = 1) -> None:
        pad = "\t" * depth
        self._write(f"{pad}<{tag}>")
        self._write(f"{pad}\t<log>")
        for line in log:
            self._write(escape(line))
        self._write(f"{pad}\t</log>")
        self._write(f"{pad}\t<status>{escape(status)}</status>")
        self._write(f"{pad}</{tag}>")

    def begin(self) -> None:
        if self._started:
            return
        self._started = True
        self._write(XML_DECLARATION)
        self._write("<test>")

    def startup(self, log: Iterable[str], ok: bool) -> None:
        self._section("startup", log, "ok" if ok else "failed")
        self._write("")

    def packet(self, result: PassResult) -> None:
        self._write(
            f"\t<packet id={quoteattr(str(result.packet_num))} comp={quoteattr(str(result.session_id))}>"
        )
        for stage in result.stages:
            self._section(stage.name, stage.log, stage.status.value, depth=2)
        self._write("\t</packet>")
        self._write("")

    def summary(self, aggregator: ResultAggregator) -> None:
        self._write("\t<summary>")
        self._write(f"\t\t<packets_processed>{aggregator.packets_processed}</packets_processed>")
        self._write(f"\t\t<compression_failed>{aggregator.compression_failed}</compression_failed>")
        self._write(f"\t\t<decompression_failed>{aggregator.decompression_failures}</decompression_failed>")
        self._write(f"\t\t<matches>{aggregator.successes}</matches>")
        self._write("\t</summary>")
        self._write("")

    def infos(self, statistics: str) -> None:
        self._write("\t<infos>")
        if statistics:
            self._write(statistics)
        self._write("\t</infos>")
        self._write("")

    def shutdown(self, log: Iterable[str], ok: bool = True) -> None:
        self._section("shutdown", log, "ok" if ok else "failed")
        self._write("")

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._write("</test>")
        self.stream.flush()
