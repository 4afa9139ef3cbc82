"""
Runner builder — top-level orchestration: RunnerSpec → runner.wasm + receipt.

Ties synthesis, artifact validation and the receipt together into a
single ``run_runner_build`` function that can be called from the API
endpoint or from the CLI.  Failures are recorded in the receipt, which
is written, and then re-raised unchanged.

CLI:
    runner-wasm -o out/ --max-results 10 --max-query-terms 5 \\
        --terms-chunks terms.txt --terms-chunks-len 2 \\
        --documents-chunks docs.txt --documents-chunks-len 1
"""
import argparse
import hashlib
import logging
import sys
from pathlib import Path
from typing import Optional

from runner_wasm.core.artifact import hash_file, validate_wasm
from runner_wasm.core.compile import build_command, invoke_compiler
from runner_wasm.core.fragments import FragmentSet, load_fragments
from runner_wasm.core.synthesis import (
    ARTIFACT_FILENAME,
    SOURCE_FILENAME,
    RunnerSpec,
    runner_compile_configuration,
    write_source,
)
from runner_wasm.core.toolchain import capture_toolchain
from runner_wasm.errors import CompileFailure, RunnerBuildError, SynthesisFailure, ToolchainNotFound
from runner_wasm.io.schema import (
    ArtifactMeta,
    BuildFlag,
    FileMeta,
    FragmentInfo,
    JobInfo,
    PayloadSummary,
    PhaseStatus,
    ProfileInfo,
    RunnerReceipt,
    SpecSummary,
    now_iso,
)
from runner_wasm.io.writer import write_receipt
from runner_wasm.policy.profile import WasmProfile

logger = logging.getLogger(__name__)


# ── Receipt helpers ──────────────────────────────────────────────────────────

def _payload_summary(raw: str, chunks_len: int) -> PayloadSummary:
    data = raw.encode("utf-8")
    return PayloadSummary(
        chunks_len=chunks_len,
        raw_bytes=len(data),
        raw_sha256=hashlib.sha256(data).hexdigest(),
    )


def _spec_summary(spec: RunnerSpec) -> SpecSummary:
    return SpecSummary(
        max_results=spec.max_results,
        max_query_terms=spec.max_query_terms,
        terms=_payload_summary(spec.terms_chunks_raw, spec.terms_chunks_len),
        documents=_payload_summary(spec.documents_chunks_raw, spec.documents_chunks_len),
        nonportable=spec.nonportable,
    )


def _file_meta(path: Path, base: Path) -> FileMeta:
    return FileMeta(
        path_rel=path.relative_to(base).as_posix(),
        sha256=hash_file(path),
        size_bytes=path.stat().st_size,
    )


def _finish(receipt: RunnerReceipt, output_dir: Path, save: bool) -> None:
    receipt.job.finished_at = now_iso()
    receipt.job.status = receipt.compute_status()
    if save:
        path = write_receipt(receipt, output_dir)
        logger.info("Receipt saved: %s", path)


# ── Orchestration ────────────────────────────────────────────────────────────

def run_runner_build(
    output_dir: Path,
    spec: RunnerSpec,
    profile: Optional[WasmProfile] = None,
    fragments: Optional[FragmentSet] = None,
    name: str = "runner",
    save_receipt: bool = True,
) -> RunnerReceipt:
    """
    Build runner.wasm into *output_dir* (created if missing).

    Parameters
    ----------
    output_dir : Path
        Receives runner.c, runner.wasm and runner_receipt.json.
    spec : RunnerSpec
        Capacities, chunk payloads and portability variant.
    profile : WasmProfile, optional
        Toolchain profile.  Defaults to WasmProfile.v0().
    fragments : FragmentSet, optional
        Source fragments.  Defaults to the bundled set.
    name : str
        Job name recorded in the receipt.
    save_receipt : bool
        Write runner_receipt.json (also on failure).

    Returns
    -------
    RunnerReceipt with status SUCCESS.  Any failure raises the
    SynthesisFailure / CompileFailure after the receipt is written.
    """
    if profile is None:
        profile = WasmProfile.v0()
    if fragments is None:
        fragments = load_fragments()

    output_dir = Path(output_dir)
    source_path = output_dir / SOURCE_FILENAME
    artifact_path = output_dir / ARTIFACT_FILENAME
    config = runner_compile_configuration(spec, source_path, artifact_path)

    logger.info("Starting runner build: %s -> %s", name, output_dir)
    receipt = RunnerReceipt(
        job=JobInfo(name=name, created_at=now_iso()),
        profile=ProfileInfo(
            profile_id=profile.profile_id,
            compiler=profile.compiler,
            target=profile.target,
            target_flags=profile.target_flags(),
        ),
        toolchain=capture_toolchain(profile.compiler),
        spec=_spec_summary(spec),
        fragments=FragmentInfo(origin=fragments.origin, sha256=fragments.hashes()),
    )
    receipt.compile.command = build_command(config, profile)

    # Phase 1: write runner.c
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        write_source(source_path, spec, fragments)
    except (OSError, SynthesisFailure) as e:
        receipt.write.status = PhaseStatus.FAILED
        receipt.flags.append(BuildFlag.SOURCE_WRITE_FAILED)
        receipt.error_message = str(e)
        _finish(receipt, output_dir, save_receipt and output_dir.is_dir())
        if isinstance(e, SynthesisFailure):
            raise
        raise SynthesisFailure(f"Cannot create {output_dir}: {e}", path=output_dir) from e
    receipt.write.status = PhaseStatus.SUCCESS
    receipt.write.source = _file_meta(source_path, output_dir)

    # Phase 2: compile runner.wasm
    try:
        outcome = invoke_compiler(config, profile)
    except CompileFailure as e:
        receipt.compile.status = PhaseStatus.FAILED
        receipt.compile.exit_code = e.returncode
        receipt.flags.append(
            BuildFlag.TOOLCHAIN_NOT_FOUND if isinstance(e, ToolchainNotFound)
            else BuildFlag.COMPILE_FAILED
        )
        receipt.error_message = str(e)
        _finish(receipt, output_dir, save_receipt)
        raise
    receipt.compile.status = PhaseStatus.SUCCESS
    receipt.compile.exit_code = outcome.returncode
    receipt.compile.duration_ms = outcome.duration_ms

    # Artifact metadata
    if not artifact_path.is_file():
        receipt.flags.append(BuildFlag.NO_ARTIFACT)
        receipt.error_message = f"Compiler succeeded but {artifact_path} is missing"
    else:
        is_valid, wasm_meta = validate_wasm(artifact_path)
        meta = _file_meta(artifact_path, output_dir)
        receipt.artifact = ArtifactMeta(**meta.model_dump(), wasm=wasm_meta)
        if not is_valid:
            receipt.flags.append(BuildFlag.NON_WASM_OUTPUT)
            receipt.error_message = f"{artifact_path} is not a wasm module"

    _finish(receipt, output_dir, save_receipt)
    if receipt.job.status != "SUCCESS":
        raise CompileFailure(receipt.error_message or "Runner build failed", command=receipt.compile.command)

    logger.info("Runner build %s finished: %s", name, receipt.job.status)
    return receipt


# ── CLI ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        description="runner_wasm — build the freestanding wasm32 index runner",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        required=True,
        help="Directory receiving runner.c, runner.wasm and the receipt",
    )
    parser.add_argument("--max-results", type=int, required=True)
    parser.add_argument("--max-query-terms", type=int, required=True)
    parser.add_argument(
        "--terms-chunks",
        type=Path,
        required=True,
        help="File holding the raw terms chunk initializer text",
    )
    parser.add_argument("--terms-chunks-len", type=int, required=True)
    parser.add_argument(
        "--documents-chunks",
        type=Path,
        required=True,
        help="File holding the raw documents chunk initializer text",
    )
    parser.add_argument("--documents-chunks-len", type=int, required=True)
    parser.add_argument(
        "--nonportable",
        action="store_true",
        help="Decode query bitmaps with the native (non-portable) deserialiser",
    )
    parser.add_argument("--compiler", default=None, help="Compiler executable (default: clang)")
    parser.add_argument(
        "--fragments-dir",
        type=Path,
        default=None,
        help="Directory with replacement sys.c/roaring.c/index.c/chunks.c",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    for p in (args.terms_chunks, args.documents_chunks):
        if not p.exists():
            logger.error("File not found: %s", p)
            return 1

    try:
        terms_raw = args.terms_chunks.read_text(encoding="utf-8")
        documents_raw = args.documents_chunks.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read chunk payload: %s", e)
        return 1

    try:
        spec = RunnerSpec(
            max_results=args.max_results,
            max_query_terms=args.max_query_terms,
            terms_chunks_raw=terms_raw,
            terms_chunks_len=args.terms_chunks_len,
            documents_chunks_raw=documents_raw,
            documents_chunks_len=args.documents_chunks_len,
            nonportable=args.nonportable,
        )
    except ValueError as e:
        parser.error(str(e))

    profile = WasmProfile.v0()
    if args.compiler:
        profile = profile.with_compiler(args.compiler)

    try:
        fragments = load_fragments(args.fragments_dir)
        receipt = run_runner_build(args.output_dir, spec, profile=profile, fragments=fragments)
    except RunnerBuildError as e:
        logger.error("Runner build failed: %s", e)
        return 1

    print(f"Built {args.output_dir / ARTIFACT_FILENAME}")
    if receipt.artifact is not None:
        print(f"  size:   {receipt.artifact.size_bytes} bytes")
        print(f"  sha256: {receipt.artifact.sha256}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
