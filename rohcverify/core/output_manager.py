"""Output file management for the non-regression run."""

from __future__ import annotations

from pathlib import Path
from typing import TextIO

from rohcverify.utils.errors import OutputFileError


class OutputManager:
    """Manage output file paths."""

    @staticmethod
    def prepare_output_file(output_file: Path) -> Path:
        """
        Make sure the parent directory of an output file exists.

        Args:
            output_file: Path of the file about to be written

        Returns:
            The same path

        Raises:
            OutputFileError: If the directory cannot be created
        """
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputFileError(output_file, str(exc)) from exc
        return output_file


class SizeSink:
    """
    Text file receiving the size of every generated ROHC packet.

    Each record is one line:
    ``compressor_num = N<TAB>packet_num = M<TAB>rohc_size = S``
    """

    def __init__(self, path: Path) -> None:
        self.path = OutputManager.prepare_output_file(Path(path))
        try:
            self._file: TextIO = self.path.open("w+", encoding="utf-8")
        except OSError as exc:
            raise OutputFileError(
                self.path, f"failed to open file to output the sizes of ROHC packets: {exc}"
            ) from exc

    def record(self, session_id: int, packet_num: int, rohc_size: int) -> None:
        """Append the size of one ROHC packet."""
        self._file.write(
            f"compressor_num = {session_id}\tpacket_num = {packet_num}\trohc_size = {rohc_size}\n"
        )

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "SizeSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
