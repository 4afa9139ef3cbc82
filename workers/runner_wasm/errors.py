"""
Errors — failure kinds raised by synthesis and compilation.

Both phases are build-time steps: a failure is raised to the caller and
never retried.  Diagnostics printed by the compiler are not interpreted,
only its exit status.
"""
from pathlib import Path
from typing import List, Optional


class RunnerBuildError(Exception):
    """Base class for every runner build failure."""


class SynthesisFailure(RunnerBuildError):
    """runner.c could not be fully written, or a fragment broke its contract."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class CompileFailure(RunnerBuildError):
    """The compiler could not be started or exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.returncode = returncode


class ToolchainNotFound(CompileFailure):
    """The compiler executable is not reachable on PATH."""
