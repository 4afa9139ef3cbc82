"""
Compile — turn a CompileConfiguration into one clang invocation.

One input file, one output artifact.  The argument list is a pure,
order-stable function of (configuration, profile):

    <cc> -std=… -O… [-Wall] [-Wextra] [-Werror] [-Wno-…]*
         <profile target flags> [-D<name>=<value>]* <input> -o <output>

The compiler runs synchronously with no timeout; its output is passed
through to the parent's stdout/stderr and only the exit status is used.
"""
from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum, unique
from pathlib import Path
from typing import List, Mapping, Tuple, Union

from runner_wasm.errors import CompileFailure, ToolchainNotFound
from runner_wasm.policy.profile import WasmProfile

logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================

@unique
class LanguageStandard(str, Enum):
    """C dialects accepted by -std=."""
    C89 = "c89"
    C99 = "c99"
    C11 = "c11"
    C17 = "c17"

    def to_flag(self) -> str:
        return f"-std={self.value}"


@unique
class OptimisationLevel(str, Enum):
    """Optimisation levels (exact -O suffixes)."""
    O0 = "0"
    O1 = "1"
    O2 = "2"
    O3 = "3"
    FAST = "fast"
    S = "s"
    Z = "z"
    G = "g"

    @classmethod
    def level(cls, n: int) -> "OptimisationLevel":
        """Numeric level 0-3.  Anything else is a programming error."""
        if isinstance(n, bool) or not isinstance(n, int) or not 0 <= n <= 3:
            raise ValueError(f"Invalid optimisation level: {n!r}")
        return cls(str(n))

    def to_flag(self) -> str:
        return f"-O{self.value}"


@unique
class CompileWarning(str, Enum):
    """Warning categories that can be individually suppressed."""
    UNUSED_FUNCTION = "unused-function"

    def to_flag(self) -> str:
        return f"-Wno-{self.value}"


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class WarningFlags:
    all_warnings: bool = False
    extra_warnings: bool = False
    warnings_as_errors: bool = False
    suppressed: Tuple[CompileWarning, ...] = ()

    def __post_init__(self):
        object.__setattr__(
            self, "suppressed", tuple(CompileWarning(w) for w in self.suppressed)
        )

    def to_flags(self) -> List[str]:
        flags = []
        if self.all_warnings:
            flags.append("-Wall")
        if self.extra_warnings:
            flags.append("-Wextra")
        if self.warnings_as_errors:
            flags.append("-Werror")
        flags.extend(w.to_flag() for w in self.suppressed)
        return flags


MacroPairs = Union[Mapping[str, str], Tuple[Tuple[str, str], ...], List[Tuple[str, str]]]


@dataclass(frozen=True)
class CompileConfiguration:
    """
    Everything one compiler invocation needs.  Immutable and fully
    specified up front; invoke_compiler() never fills in defaults.

    Values given as plain strings are coerced into their enums, and an
    integer optimisation goes through OptimisationLevel.level(), so an
    unknown dialect or optimisation level fails here with ValueError,
    before any process is spawned.
    """
    standard: LanguageStandard
    optimisation: OptimisationLevel
    warnings: WarningFlags
    macros: Tuple[Tuple[str, str], ...]
    input_path: Path
    output_path: Path

    def __post_init__(self):
        object.__setattr__(self, "standard", LanguageStandard(self.standard))
        optimisation = self.optimisation
        if isinstance(optimisation, int):
            optimisation = OptimisationLevel.level(optimisation)
        object.__setattr__(self, "optimisation", OptimisationLevel(optimisation))
        macros = self.macros.items() if isinstance(self.macros, Mapping) else self.macros
        object.__setattr__(
            self, "macros", tuple((str(name), str(value)) for name, value in macros)
        )
        object.__setattr__(self, "input_path", Path(self.input_path))
        object.__setattr__(self, "output_path", Path(self.output_path))


@dataclass
class CompileOutcome:
    """Successful compiler run."""
    command: List[str]
    returncode: int = 0
    duration_ms: int = 0
    output_path: Path = field(default_factory=Path)


# =============================================================================
# Command construction and execution
# =============================================================================

def build_command(config: CompileConfiguration, profile: WasmProfile) -> List[str]:
    """Build the full argument list, executable first."""
    cmd = [profile.compiler, config.standard.to_flag(), config.optimisation.to_flag()]
    cmd.extend(config.warnings.to_flags())
    cmd.extend(profile.target_flags())
    for name, value in config.macros:
        cmd.append(f"-D{name}={value}")
    cmd.append(str(config.input_path))
    cmd.extend(["-o", str(config.output_path)])
    return cmd


def invoke_compiler(config: CompileConfiguration, profile: WasmProfile) -> CompileOutcome:
    """
    Compile config.input_path into config.output_path.

    Blocks until the compiler exits.  Raises ToolchainNotFound when the
    executable cannot be found and CompileFailure for any other start
    error or non-zero exit.  After a failure nothing at output_path may
    be trusted.
    """
    cmd = build_command(config, profile)
    logger.info("Compiling %s -> %s", config.input_path, config.output_path)
    logger.debug("Compile command: %s", " ".join(cmd))

    t0 = time.monotonic()
    try:
        result = subprocess.run(cmd)
    except FileNotFoundError as e:
        logger.error("Compiler %r not found on PATH", profile.compiler)
        raise ToolchainNotFound(
            f"Compiler {profile.compiler!r} not found: {e}", command=cmd
        ) from e
    except OSError as e:
        logger.error("Could not start compiler %r: %s", profile.compiler, e)
        raise CompileFailure(f"Could not start compiler: {e}", command=cmd) from e
    duration = int((time.monotonic() - t0) * 1000)

    if result.returncode != 0:
        logger.error(
            "Compilation of %s failed with exit code %d",
            config.input_path, result.returncode,
        )
        raise CompileFailure(
            f"Failed to compile WASM (exit code {result.returncode})",
            command=cmd,
            returncode=result.returncode,
        )

    logger.info("Compiled %s in %d ms", config.output_path, duration)
    return CompileOutcome(
        command=cmd,
        returncode=result.returncode,
        duration_ms=duration,
        output_path=config.output_path,
    )
