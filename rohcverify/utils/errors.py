"""Error types shared by the rohcverify commands."""

from __future__ import annotations

from pathlib import Path

from rohcverify.utils.logger import console_err


class RohcVerifyError(Exception):
    """Base exception for rohcverify errors."""

    def __init__(self, message: str, suggestion: str | None = None):
        """
        Initialize error with message and optional suggestion.

        Args:
            message: Error message
            suggestion: Optional suggestion for fixing the error
        """
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def display(self) -> None:
        """Display error message with suggestion."""
        console_err.print(f"[bold red]Error:[/bold red] {self.message}")
        if self.suggestion:
            console_err.print(f"[yellow]Suggestion:[/yellow] {self.suggestion}")


class PcapFileNotFoundError(RohcVerifyError):
    """Error when a required PCAP file is not found."""

    def __init__(self, file_path: Path):
        message = f"File not found: {file_path}"
        suggestion = "Please check that the file exists and the path is correct."
        super().__init__(message, suggestion)


class InvalidFileError(RohcVerifyError):
    """Error when a capture file cannot be opened or parsed."""

    def __init__(self, file_path: Path, reason: str):
        """
        Initialize invalid file error.

        Args:
            file_path: Path to the invalid file
            reason: Reason why the file is invalid
        """
        message = f"Invalid file: {file_path} - {reason}"
        suggestion = "Please ensure the file is a valid classic PCAP capture."
        super().__init__(message, suggestion)


class UnsupportedLinkTypeError(RohcVerifyError):
    """Error when a capture uses a link layer the harness cannot strip."""

    def __init__(self, link_type: int, role: str, supported: tuple[int, ...]):
        """
        Initialize unsupported link type error.

        Args:
            link_type: Link-layer type found in the capture header
            role: Which flow carried it ("source" or "comparison")
            supported: Link-layer types that are accepted
        """
        self.link_type = link_type
        supported_str = ", ".join(str(s) for s in supported)
        message = (
            f"link layer type {link_type} not supported in {role} dump "
            f"(supported = {supported_str})"
        )
        suggestion = "Convert the capture to Ethernet, Linux cooked or raw IP framing."
        super().__init__(message, suggestion)


class ConfigurationError(RohcVerifyError):
    """Error when configuration is invalid."""

    def __init__(self, config_file: Path | None, reason: str):
        """
        Initialize configuration error.

        Args:
            config_file: Path to the configuration file, None for CLI/runtime values
            reason: Reason for the error
        """
        if config_file is None:
            message = f"Invalid configuration: {reason}"
        else:
            message = f"Invalid configuration in {config_file}: {reason}"
        suggestion = "Please check the configuration file format and contents."
        super().__init__(message, suggestion)


class OutputFileError(RohcVerifyError):
    """Error when an output file cannot be created or written to."""

    def __init__(self, file_path: Path, reason: str):
        message = f"Cannot write output file: {file_path} - {reason}"
        suggestion = "Please check directory permissions or specify a different path."
        super().__init__(message, suggestion)


class CodecSetupError(RohcVerifyError):
    """Error when a compressor or decompressor cannot be created."""

    def __init__(self, component: str, reason: str):
        message = f"cannot create the {component}: {reason}"
        super().__init__(message)


def handle_error(error: Exception, *, show_traceback: bool = False) -> int:
    """
    Handle an error and return appropriate exit code.

    Args:
        error: The exception to handle
        show_traceback: Whether to show full traceback (keyword-only)

    Returns:
        Exit code (non-zero)
    """
    if isinstance(error, RohcVerifyError):
        error.display()
    else:
        console_err.print(f"[bold red]Unexpected error:[/bold red] {error}")
        if not show_traceback:
            console_err.print("[dim]Run with -vv for more details[/dim]")

    if show_traceback:
        import traceback

        console_err.print("\n[dim]Traceback:[/dim]")
        traceback.print_exc()
    return 1
