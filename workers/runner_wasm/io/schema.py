"""
RunnerReceipt schema — one JSON receipt per runner build.

Records what was asked for, which fragments and toolchain were used,
the exact compiler command and what came out of it.  Chunk payloads are
summarized (size + sha256), never copied into the receipt.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from runner_wasm import BUILDER_NAME, BUILDER_VERSION, PROFILE_ID, SCHEMA_VERSION
from runner_wasm.core.artifact import WasmMeta
from runner_wasm.core.toolchain import ToolchainIdentity


# =============================================================================
# Enums
# =============================================================================

class PhaseStatus(str, Enum):
    """Status of the write or compile phase."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class BuildFlag(str, Enum):
    """Flags raised by a runner build."""
    SOURCE_WRITE_FAILED = "SOURCE_WRITE_FAILED"
    TOOLCHAIN_NOT_FOUND = "TOOLCHAIN_NOT_FOUND"
    COMPILE_FAILED = "COMPILE_FAILED"
    NO_ARTIFACT = "NO_ARTIFACT"
    NON_WASM_OUTPUT = "NON_WASM_OUTPUT"


# =============================================================================
# Inputs
# =============================================================================

class BuilderInfo(BaseModel):
    name: str = BUILDER_NAME
    version: str = BUILDER_VERSION
    schema_version: str = SCHEMA_VERSION


class ProfileInfo(BaseModel):
    """The toolchain profile the build ran under."""
    profile_id: str = PROFILE_ID
    compiler: str
    target: str
    target_flags: List[str] = []


class PayloadSummary(BaseModel):
    """One chunk payload, by size and hash only."""
    chunks_len: int
    raw_bytes: int
    raw_sha256: str


class SpecSummary(BaseModel):
    max_results: int
    max_query_terms: int
    terms: PayloadSummary
    documents: PayloadSummary
    nonportable: bool = False


class FragmentInfo(BaseModel):
    origin: str  # "bundled" or the override directory
    sha256: Dict[str, str] = Field(default_factory=dict)  # file name -> hash


# =============================================================================
# Phases & outputs
# =============================================================================

class FileMeta(BaseModel):
    path_rel: str
    sha256: str
    size_bytes: int


class WritePhase(BaseModel):
    """Writing runner.c."""
    status: PhaseStatus = PhaseStatus.SKIPPED
    source: Optional[FileMeta] = None


class CompilePhase(BaseModel):
    """Compiling runner.c → runner.wasm."""
    command: List[str] = []
    exit_code: Optional[int] = None
    duration_ms: int = 0
    status: PhaseStatus = PhaseStatus.SKIPPED


class ArtifactMeta(FileMeta):
    wasm: WasmMeta = WasmMeta()


class JobInfo(BaseModel):
    name: str
    created_at: str  # ISO 8601
    finished_at: Optional[str] = None
    status: str = "BUILDING"  # BUILDING, SUCCESS, FAILED


# =============================================================================
# Top-level receipt
# =============================================================================

class RunnerReceipt(BaseModel):
    """
    Single authoritative receipt for one runner build: runner_receipt.json
    """
    builder: BuilderInfo = BuilderInfo()
    job: JobInfo
    profile: ProfileInfo
    toolchain: ToolchainIdentity
    spec: SpecSummary
    fragments: FragmentInfo
    write: WritePhase = WritePhase()
    compile: CompilePhase = CompilePhase()
    artifact: Optional[ArtifactMeta] = None
    flags: List[BuildFlag] = []
    error_message: Optional[str] = None

    def compute_status(self) -> str:
        """SUCCESS only when both phases succeeded and a valid artifact exists."""
        if self.flags:
            return "FAILED"
        if self.write.status != PhaseStatus.SUCCESS or self.compile.status != PhaseStatus.SUCCESS:
            return "FAILED"
        if self.artifact is None:
            return "FAILED"
        return "SUCCESS"


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()
