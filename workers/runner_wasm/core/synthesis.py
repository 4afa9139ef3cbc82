"""
Synthesis — write runner.c from the fragments, then compile runner.wasm.

Two states, each terminal on its first failure:

    Writing    sys → roaring (variant) → index → chunks (placeholders filled)
    Compiling  clang, C11, -O3, -Wall -Wextra, -Wno-unused-function,
               -DMAX_RESULTS, -DMAX_QUERY_TERMS

The fragment order is fixed: later fragments use symbols defined by the
earlier ones.  Nothing is locked; two syntheses into the same directory
must be serialized by the caller.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from runner_wasm.core.compile import (
    CompileConfiguration,
    CompileOutcome,
    CompileWarning,
    LanguageStandard,
    OptimisationLevel,
    WarningFlags,
    invoke_compiler,
)
from runner_wasm.core.fragments import (
    DOCUMENTS_CHUNKS_LEN_PLACEHOLDER,
    DOCUMENTS_CHUNKS_PLACEHOLDER,
    TERMS_CHUNKS_LEN_PLACEHOLDER,
    TERMS_CHUNKS_PLACEHOLDER,
    FragmentSet,
    bundled_fragments,
)
from runner_wasm.errors import SynthesisFailure
from runner_wasm.policy.profile import WasmProfile

logger = logging.getLogger(__name__)

SOURCE_FILENAME = "runner.c"
ARTIFACT_FILENAME = "runner.wasm"


@dataclass(frozen=True)
class RunnerSpec:
    """
    Parameters for one synthesis pass.

    The chunk payloads are opaque C initializer text and are inserted
    verbatim; their counts are written as decimal literals.
    """
    max_results: int
    max_query_terms: int
    terms_chunks_raw: str
    terms_chunks_len: int
    documents_chunks_raw: str
    documents_chunks_len: int
    nonportable: bool = False

    def __post_init__(self):
        for name in ("max_results", "max_query_terms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        for name in ("terms_chunks_len", "documents_chunks_len"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")


@dataclass
class SynthesisOutcome:
    """Paths and compiler run of a successful synthesis."""
    source_path: Path
    artifact_path: Path
    compile: CompileOutcome


def source_parts(spec: RunnerSpec, fragments: FragmentSet) -> List[str]:
    """The four fragments for *spec*, in their fixed order, ready to write."""
    fragments.check_placeholders()
    chunks = fragments.chunks_with({
        TERMS_CHUNKS_PLACEHOLDER: spec.terms_chunks_raw,
        TERMS_CHUNKS_LEN_PLACEHOLDER: str(spec.terms_chunks_len),
        DOCUMENTS_CHUNKS_PLACEHOLDER: spec.documents_chunks_raw,
        DOCUMENTS_CHUNKS_LEN_PLACEHOLDER: str(spec.documents_chunks_len),
    })
    return [
        fragments.system,
        fragments.bitmap_for(spec.nonportable),
        fragments.index,
        chunks,
    ]


def render_source(spec: RunnerSpec, fragments: FragmentSet) -> str:
    """The complete runner.c text for *spec*."""
    return "".join(source_parts(spec, fragments))


def write_source(source_path: Path, spec: RunnerSpec, fragments: FragmentSet) -> None:
    """
    Truncate-create *source_path* and write every fragment in order.
    The file is fsynced and closed before returning.  Any OSError becomes
    SynthesisFailure; a partially written file is never a success.
    """
    # Placeholder errors surface here, before the file is touched.
    parts = source_parts(spec, fragments)

    logger.info("Writing %s", source_path)
    try:
        with open(source_path, "w", encoding="utf-8", newline="") as f:
            for part in parts:
                f.write(part)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        logger.error("Writing %s failed: %s", source_path, e)
        raise SynthesisFailure(f"Cannot write {source_path}: {e}", path=source_path) from e


def runner_compile_configuration(
    spec: RunnerSpec,
    source_path: Path,
    artifact_path: Path,
) -> CompileConfiguration:
    """Fixed compile settings for the runner module."""
    return CompileConfiguration(
        standard=LanguageStandard.C11,
        optimisation=OptimisationLevel.O3,
        warnings=WarningFlags(
            all_warnings=True,
            extra_warnings=True,
            warnings_as_errors=False,
            # Shared fragments carry helpers a given runner never calls.
            suppressed=(CompileWarning.UNUSED_FUNCTION,),
        ),
        macros=(
            ("MAX_RESULTS", str(spec.max_results)),
            ("MAX_QUERY_TERMS", str(spec.max_query_terms)),
        ),
        input_path=source_path,
        output_path=artifact_path,
    )


def synthesize(
    output_dir: Path,
    spec: RunnerSpec,
    fragments: Optional[FragmentSet] = None,
    profile: Optional[WasmProfile] = None,
) -> SynthesisOutcome:
    """
    Generate output_dir/runner.c and compile it to output_dir/runner.wasm.

    Raises SynthesisFailure when the source cannot be written and lets
    CompileFailure from the compiler propagate unchanged.  output_dir must
    already exist.
    """
    if fragments is None:
        fragments = bundled_fragments()
    if profile is None:
        profile = WasmProfile.v0()

    output_dir = Path(output_dir)
    source_path = output_dir / SOURCE_FILENAME
    artifact_path = output_dir / ARTIFACT_FILENAME

    write_source(source_path, spec, fragments)

    config = runner_compile_configuration(spec, source_path, artifact_path)
    outcome = invoke_compiler(config, profile)

    return SynthesisOutcome(
        source_path=source_path,
        artifact_path=artifact_path,
        compile=outcome,
    )
