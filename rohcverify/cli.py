"""Main CLI entry point for rohcverify."""

import sys

import click

from rohcverify import __version__
from rohcverify.codec import build_crc_tables
from rohcverify.plugins import discover_plugins, get_all_plugins
from rohcverify.utils.logger import console, console_err, setup_logger

_PLUGINS_REGISTERED = False


class RohcVerifyGroup(click.Group):
    """Click group printing the description first and the examples last."""

    def format_help(self, ctx, formatter):
        if self.help:
            formatter.write(self.help + "\n\n")

        self.format_usage(ctx, formatter)
        self.format_options(ctx, formatter)

        if self.epilog:
            formatter.write("\n")
            formatter.write(self.epilog + "\n")

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as exc:
            # Bad command arguments are a failed startup, not a distinct status
            exc.exit_code = 1
            raise


@click.group(
    cls=RohcVerifyGroup,
    context_settings=dict(help_option_names=["-h", "--help"]),
    epilog="""Examples:

  1. Check that every packet of a capture survives compression
     rohcverify run smallcid capture.pcap

  2. Record the ROHC packets as a reference
     rohcverify run -o capture_rohc.pcap smallcid capture.pcap

  3. Compare against the reference with large CIDs
     rohcverify run -c capture_rohc.pcap largecid capture.pcap

  For more information on a specific command:
    rohcverify <command> --help
""",
)
@click.version_option(version=__version__, prog_name="rohcverify")
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for INFO, -vv for DEBUG)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """
    rohcverify - ROHC non-regression tool.

    Runs captures through two cross-wired ROHC compressor/decompressor
    sessions and checks the round trip and the reference ROHC packets.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["logger"] = setup_logger("rohcverify", verbose)

    # Shared by every compressor and decompressor of the process
    ctx.obj["crc_tables"] = build_crc_tables()


def register_cli_plugins() -> None:
    """Discover plugins and register their CLI commands once."""
    global _PLUGINS_REGISTERED
    if _PLUGINS_REGISTERED:
        return

    discover_plugins()
    for plugin_class in get_all_plugins():
        plugin = plugin_class()
        plugin.setup_cli(cli)

    _PLUGINS_REGISTERED = True


# Ensure commands are available upon import for test invocation.
register_cli_plugins()


def main() -> None:
    """Main entry point for the CLI."""
    try:
        register_cli_plugins()
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except click.ClickException:
        raise
    except Exception as e:
        console_err.print(f"[red]Fatal error during initialization: {e}[/red]")
        console_err.print("[dim]This is likely a bug. Please report it.[/dim]")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
