"""
Runner Router — runner_wasm

Build a wasm32 index runner from chunk payloads supplied in the request.
Profile: wasm32-freestanding-clang-c (locked; only the compiler name is
configurable, via WASM_COMPILER).

Builds run synchronously inside the request.  Two requests with the same
name write into the same directory and must not overlap.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.config import Settings
from runner_wasm import BUILDER_NAME, BUILDER_VERSION, PROFILE_ID  # type: ignore
from runner_wasm.core.fragments import load_fragments  # type: ignore
from runner_wasm.core.synthesis import RunnerSpec  # type: ignore
from runner_wasm.errors import CompileFailure, SynthesisFailure, ToolchainNotFound  # type: ignore
from runner_wasm.policy.profile import WasmProfile  # type: ignore
from runner_wasm.runner import run_runner_build  # type: ignore

logger = logging.getLogger(__name__)


# =============================================================================
# Dependencies
# =============================================================================

def get_settings() -> Settings:
    return Settings()


# =============================================================================
# Request / Response Models
# =============================================================================

class RunnerBuildRequest(BaseModel):
    """Request to build one runner module."""
    name: str = Field(
        ...,
        description="Build name; also the output directory under RUNNER_OUTPUT_ROOT",
        pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$",
    )
    max_results: int = Field(..., gt=0, description="MAX_RESULTS capacity macro")
    max_query_terms: int = Field(..., gt=0, description="MAX_QUERY_TERMS capacity macro")
    terms_chunks_raw: str = Field(..., description="Raw terms chunk initializer text")
    terms_chunks_len: int = Field(..., ge=0)
    documents_chunks_raw: str = Field(..., description="Raw documents chunk initializer text")
    documents_chunks_len: int = Field(..., ge=0)
    nonportable: bool = Field(
        False,
        description="Use the native (non-portable) bitmap deserialiser",
    )


class RunnerBuildResponse(BaseModel):
    """Response after a runner build."""
    builder: str = BUILDER_NAME
    builder_version: str = BUILDER_VERSION
    profile_id: str = PROFILE_ID
    name: str
    status: str
    output_dir: str
    receipt: Optional[Dict[str, Any]] = None


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "/build",
    response_model=RunnerBuildResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Synthesize runner.c and compile runner.wasm",
)
def build_runner(
    request: RunnerBuildRequest,
    settings: Settings = Depends(get_settings),
):
    """
    Write ``runner.c`` and compile ``runner.wasm`` under
    ``RUNNER_OUTPUT_ROOT/<name>/`` together with ``runner_receipt.json``.

    - **201**: build succeeded, receipt returned
    - **422**: compiler rejected the generated source
    - **503**: compiler not installed
    - **500**: runner.c could not be written
    """
    output_dir = Path(settings.RUNNER_OUTPUT_ROOT) / request.name
    spec = RunnerSpec(
        max_results=request.max_results,
        max_query_terms=request.max_query_terms,
        terms_chunks_raw=request.terms_chunks_raw,
        terms_chunks_len=request.terms_chunks_len,
        documents_chunks_raw=request.documents_chunks_raw,
        documents_chunks_len=request.documents_chunks_len,
        nonportable=request.nonportable,
    )
    profile = WasmProfile.v0().with_compiler(settings.WASM_COMPILER)
    fragments_dir = Path(settings.FRAGMENTS_DIR) if settings.FRAGMENTS_DIR else None

    try:
        fragments = load_fragments(fragments_dir)
        receipt = run_runner_build(
            output_dir, spec, profile=profile, fragments=fragments, name=request.name,
        )
    except ToolchainNotFound as e:
        logger.error("Runner build %s: %s", request.name, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    except CompileFailure as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(e),
                "exit_code": e.returncode,
                "command": e.command,
            },
        )
    except SynthesisFailure as e:
        logger.error("Runner build %s: %s", request.name, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return RunnerBuildResponse(
        name=request.name,
        status=receipt.job.status,
        output_dir=str(output_dir),
        receipt=receipt.model_dump(mode="json"),
    )
