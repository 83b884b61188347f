"""
Install command implementation.

Installs an exact runtime or SDK version into the tool cache.
"""

import logging
import os

from runtimekit.config import load_config
from runtimekit.installer import Installer, ToolRequest

logger = logging.getLogger(__name__)

PACKAGE_TYPE_INPUT = "INPUT_PACKAGETYPE"
VERSION_INPUT = "INPUT_VERSION"


def read_inputs(args, environ=None):
    """
    Collect raw request inputs.

    Command-line options win; missing ones fall back to pipeline inputs.

    Returns:
        Tuple of (package_type, version) as raw strings (may be empty)
    """
    environ = os.environ if environ is None else environ
    package_type = args.package_type or environ.get(PACKAGE_TYPE_INPUT, "")
    version = args.package_version or environ.get(VERSION_INPUT, "")
    return package_type, version


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)

    Raises:
        RuntimeKitError: If any install stage fails
    """
    package_type, version = read_inputs(args)
    request = ToolRequest.from_inputs(package_type, version)

    config = load_config(args.config)
    logger.debug(f"Tool cache: {config.tool_cache_dir}")

    result = Installer.from_config(config).install(request)

    state = "cached" if result.was_cached else "installed"
    print(f"{request.package_type.value} {request.version} {state} at {result.tool_path}")
    return 0
