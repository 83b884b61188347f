"""
RuntimeKit - installs exactly pinned .NET runtimes and SDKs into a shared
tool cache for later build pipeline steps.
"""

__version__ = "0.1.0"
