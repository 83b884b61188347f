"""
Detect-platform command implementation.

Prints the platform suffixes downloads are selected with.
"""

from runtimekit.config import load_config
from runtimekit.core.platform import default_detector


def run(args) -> int:
    """
    Run the detect-platform command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args.config)
    for suffix in default_detector(config.probe_path).detect():
        print(suffix)
    return 0
