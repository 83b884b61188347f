"""
List command implementation.

Lists versions of a package that are present in the tool cache.
"""

from runtimekit.config import load_config
from runtimekit.core.tool_cache import ToolCache
from runtimekit.installer import PackageType


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args.config)
    cache = ToolCache(config.tool_cache_dir)
    tool_name = PackageType(args.package_type).tool_name

    versions = cache.list_versions(tool_name)
    if not versions:
        print(f"No cached {args.package_type} versions in {config.tool_cache_dir}")
        return 0

    for version in versions:
        print(version)
    return 0
