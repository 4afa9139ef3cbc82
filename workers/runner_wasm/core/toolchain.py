"""
Toolchain identity — recorded in the receipt, never used to decide anything.

Probing runs once per compiler name per process.  A compiler that cannot
be probed is reported as "unknown"; whether it can actually compile is
only decided by invoke_compiler().
"""
import logging
import platform
import subprocess
from typing import Dict, List

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ToolchainIdentity(BaseModel):
    """Immutable record of the compiler used for a build."""
    compiler: str
    compiler_version: str  # first line of `<compiler> --version`
    os_release: str
    arch: str


_cached: Dict[str, ToolchainIdentity] = {}


def _run_quiet(cmd: List[str], timeout: int = 5) -> str:
    """Run a probe command and return stdout, or "" if it cannot run."""
    try:
        r = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        return r.stdout.strip()
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Toolchain probe %s failed: %s", cmd[0], e)
        return ""


def capture_toolchain(compiler: str) -> ToolchainIdentity:
    """Capture the identity of *compiler*.  Cached per compiler name."""
    if compiler in _cached:
        return _cached[compiler]

    raw = _run_quiet([compiler, "--version"])
    version = raw.splitlines()[0] if raw else "unknown"

    identity = ToolchainIdentity(
        compiler=compiler,
        compiler_version=version,
        os_release=f"{platform.system()} {platform.release()}".strip() or "unknown",
        arch=platform.machine() or "unknown",
    )
    _cached[compiler] = identity
    return identity
