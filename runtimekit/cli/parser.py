"""
RuntimeKit CLI argument parser.

This module implements the command-line interface for RuntimeKit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from runtimekit import __version__
from runtimekit.core.exceptions import RuntimeKitError

logger = logging.getLogger(__name__)

# Command name -> module with a run(args) function
COMMAND_MAP = {
    "install": "runtimekit.cli.commands.install",
    "detect-platform": "runtimekit.cli.commands.detect_platform",
    "list": "runtimekit.cli.commands.list_cached",
}


class CLI:
    """RuntimeKit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="runtimekit",
            description="RuntimeKit - install pinned .NET runtimes and SDKs into the tool cache",
            epilog='Use "runtimekit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"RuntimeKit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./runtimekit.yaml)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_detect_platform_command(subparsers)
        self._add_list_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install a runtime or SDK into the tool cache",
            description=(
                "Install an exact runtime or SDK version into the tool cache and "
                "expose it on PATH. Omitted options are read from the pipeline "
                "inputs INPUT_PACKAGETYPE and INPUT_VERSION."
            ),
        )
        parser.add_argument(
            "--package-type",
            metavar="TYPE",
            help="Package to install (sdk|runtime)",
        )
        parser.add_argument(
            "--version",
            dest="package_version",
            metavar="VERSION",
            help="Exact version to install (e.g., 3.1.404)",
        )

    def _add_detect_platform_command(self, subparsers):
        """Add 'detect-platform' subcommand."""
        subparsers.add_parser(
            "detect-platform",
            help="Print platform suffixes for this machine",
            description="Print the platform suffixes used to select downloads, most specific first",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List cached versions",
            description="List versions present in the tool cache",
        )
        parser.add_argument(
            "--package-type",
            choices=["sdk", "runtime"],
            default="sdk",
            metavar="TYPE",
            help="Package type to list (sdk|runtime) [default: sdk]",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except RuntimeKitError as e:
            logger.error(f"Error [{e.kind.value}]: {e.message}")
            logger.debug(f"Error details: {e.to_dict()}")
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        module_name = COMMAND_MAP.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
