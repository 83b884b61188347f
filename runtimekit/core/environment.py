"""
Process environment side effects.

Updates the current process environment and, when running under a pipeline
agent, emits the agent logging commands that carry the same change over to
later steps of the job.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, TextIO, Union

logger = logging.getLogger(__name__)


class ProcessEnvironment:
    """
    Applies search-path and variable changes.

    Example:
        >>> env = ProcessEnvironment()
        >>> env.prepend_path(Path("/agent/_tool/dncs/3.1.404/x64"))
        >>> env.set_variable("DOTNET_ROOT", "/agent/_tool/dncs/3.1.404/x64")
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        emit_pipeline_commands: bool = True,
        environ: Optional[dict] = None,
    ):
        """
        Initialize process environment.

        Args:
            stream: Where agent logging commands are written (default: stdout)
            emit_pipeline_commands: Whether to write agent logging commands
            environ: Environment mapping to update (default: os.environ)
        """
        self.stream = stream
        self.emit_pipeline_commands = emit_pipeline_commands
        self.environ = os.environ if environ is None else environ

    def _emit(self, command: str):
        if not self.emit_pipeline_commands:
            return
        stream = self.stream or sys.stdout
        stream.write(command + "\n")
        stream.flush()

    def prepend_path(self, path: Union[str, Path]):
        """
        Prepend a directory to the executable search path.

        Args:
            path: Directory to prepend
        """
        entry = str(path)
        current = self.environ.get("PATH", "")
        parts = current.split(os.pathsep) if current else []

        if not parts or parts[0] != entry:
            self.environ["PATH"] = os.pathsep.join([entry] + parts)
        logger.debug(f"Prepended to PATH: {entry}")

        self._emit(f"##vso[task.prependpath]{entry}")

    def set_variable(self, name: str, value: Union[str, Path]):
        """
        Set an environment variable.

        Args:
            name: Variable name
            value: Variable value
        """
        self.environ[name] = str(value)
        logger.debug(f"Set variable {name}={value}")

        self._emit(f"##vso[task.setvariable variable={name};]{value}")


__all__ = ["ProcessEnvironment"]
