"""
Core interfaces for RuntimeKit.

The installer depends on these abstractions rather than on concrete
implementations, so each pipeline stage can be replaced in tests.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List


class UrlResolver(ABC):
    """
    Abstract interface for components that map a request to download URLs.
    """

    @abstractmethod
    def get_download_urls(
        self, suffixes: Iterable[str], version: str, package_type: str
    ) -> List[str]:
        """
        Resolve candidate download URLs.

        Args:
            suffixes: Platform suffixes, most specific first
            version: Exact version
            package_type: 'sdk' or 'runtime'

        Returns:
            Candidate URLs, most platform-specific first
        """
        pass


__all__ = ["UrlResolver"]
