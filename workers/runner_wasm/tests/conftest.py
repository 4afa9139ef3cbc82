"""
Shared pytest fixtures for runner_wasm tests.

Most tests replace subprocess.run with a fake compiler that records the
command line and writes a minimal wasm module to the -o path, so no
toolchain is needed.  The end-to-end tests compile for real and are
skipped unless clang can target wasm32 and link with wasm-ld.
"""
import shutil
import subprocess
import tempfile
from pathlib import Path

import pytest

from runner_wasm.core import toolchain
from runner_wasm.core.synthesis import RunnerSpec
from runner_wasm.policy.profile import WasmProfile

# Smallest valid module: magic + version 1, no sections.
EMPTY_WASM = b"\x00asm\x01\x00\x00\x00"


class FakeCompiler:
    """Stand-in for subprocess.run that records compile commands."""

    def __init__(self, returncode: int = 0, output: bytes = EMPTY_WASM):
        self.returncode = returncode
        self.output = output
        self.calls = []
        self.sources = []

    def __call__(self, cmd, *args, **kwargs):
        if "-o" not in cmd:
            # toolchain probe (`clang --version`)
            return subprocess.CompletedProcess(cmd, 0, stdout="fake clang 0.0\n", stderr="")
        self.calls.append(list(cmd))
        # input file as it stood when the compiler started
        source = Path(cmd[cmd.index("-o") - 1])
        self.sources.append(source.read_bytes() if source.exists() else None)
        if self.returncode == 0 and self.output is not None:
            Path(cmd[cmd.index("-o") + 1]).write_bytes(self.output)
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=None, stderr=None)

    @property
    def last(self):
        return self.calls[-1]


@pytest.fixture(autouse=True)
def _fresh_toolchain_cache():
    """Toolchain identity is cached per process; tests swap the compiler."""
    toolchain._cached.clear()
    yield
    toolchain._cached.clear()


@pytest.fixture
def fake_compiler(monkeypatch) -> FakeCompiler:
    """Successful compiler run producing a minimal wasm module."""
    fake = FakeCompiler()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def failing_compiler(monkeypatch) -> FakeCompiler:
    """Compiler run exiting with status 1 and producing nothing."""
    fake = FakeCompiler(returncode=1, output=None)
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def garbage_compiler(monkeypatch) -> FakeCompiler:
    """Compiler run that succeeds but writes something that is not wasm."""
    fake = FakeCompiler(output=b"\x7fELF not a wasm module")
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def example_spec() -> RunnerSpec:
    """Small spec with two terms bytes and one document byte."""
    return RunnerSpec(
        max_results=10,
        max_query_terms=5,
        terms_chunks_raw="0xAA,0xBB",
        terms_chunks_len=2,
        documents_chunks_raw="0xCC",
        documents_chunks_len=1,
        nonportable=False,
    )


# ── Real toolchain ───────────────────────────────────────────────────

def _clang_targets_wasm() -> bool:
    """True if clang can compile and link a freestanding wasm32 module."""
    if shutil.which("clang") is None:
        return False
    profile = WasmProfile.v0()
    with tempfile.TemporaryDirectory() as tmpdir:
        src = Path(tmpdir) / "probe.c"
        out = Path(tmpdir) / "probe.wasm"
        src.write_text('__attribute__((visibility("default"))) int probe(void) { return 1; }\n')
        cmd = ["clang", "-O1"] + profile.target_flags() + [str(src), "-o", str(out)]
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=60)
        except (OSError, subprocess.SubprocessError):
            return False
        return result.returncode == 0 and out.exists()


@pytest.fixture(scope="session")
def clang_wasm_ok():
    """Skip tests if clang cannot build freestanding wasm32 modules."""
    if not _clang_targets_wasm():
        pytest.skip(
            "clang with the wasm32 target and wasm-ld is required for "
            "end-to-end runner builds"
        )
