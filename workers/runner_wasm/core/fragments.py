"""
Fragments — the four ordered C source pieces that make up runner.c.

    sys.c      freestanding runtime shim (types, WASM_EXPORT, allocator)
    roaring.c  compressed-set container and its two deserialisers
    index.c    query execution, sized by MAX_RESULTS / MAX_QUERY_TERMS
    chunks.c   chunk data, four placeholders filled at build time

The bundled set ships as package data and is read once per process.
A directory with the same four file names can replace it.
"""
import hashlib
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from runner_wasm.errors import SynthesisFailure

logger = logging.getLogger(__name__)


FRAGMENT_FILES: Tuple[Tuple[str, str], ...] = (
    ("system", "sys.c"),
    ("bitmap", "roaring.c"),
    ("index", "index.c"),
    ("chunks", "chunks.c"),
)

# Portability variant: deserialiser entry points in the bitmap fragment
PORTABLE_DESERIALIZE = "roaring_bitmap_portable_deserialize"
NONPORTABLE_DESERIALIZE = "roaring_bitmap_deserialize"

# Chunk fragment placeholders
TERMS_CHUNKS_PLACEHOLDER = "___NORMAL_TERMS_CHUNKS___"
TERMS_CHUNKS_LEN_PLACEHOLDER = "___NORMAL_TERMS_CHUNKS_LEN___"
DOCUMENTS_CHUNKS_PLACEHOLDER = "___DOCUMENTS_CHUNKS___"
DOCUMENTS_CHUNKS_LEN_PLACEHOLDER = "___DOCUMENTS_CHUNKS_LEN___"

CHUNK_PLACEHOLDERS: Tuple[str, ...] = (
    TERMS_CHUNKS_PLACEHOLDER,
    TERMS_CHUNKS_LEN_PLACEHOLDER,
    DOCUMENTS_CHUNKS_PLACEHOLDER,
    DOCUMENTS_CHUNKS_LEN_PLACEHOLDER,
)

_PORTABLE_IDENT_RE = re.compile(rf"\b{PORTABLE_DESERIALIZE}\b")
_PLACEHOLDER_RE = re.compile("|".join(re.escape(p) for p in CHUNK_PLACEHOLDERS))


@dataclass(frozen=True)
class FragmentSet:
    """Read-only source text of the four fragments."""
    system: str
    bitmap: str
    index: str
    chunks: str
    origin: str = "bundled"

    def check_placeholders(self) -> None:
        """Every chunk placeholder must appear exactly once."""
        counts = {p: 0 for p in CHUNK_PLACEHOLDERS}
        for match in _PLACEHOLDER_RE.finditer(self.chunks):
            counts[match.group(0)] += 1
        bad = {p: n for p, n in counts.items() if n != 1}
        if bad:
            detail = ", ".join(f"{p} x{n}" for p, n in bad.items())
            raise SynthesisFailure(
                f"Chunk fragment ({self.origin}) violates placeholder contract: {detail}"
            )

    def bitmap_for(self, nonportable: bool) -> str:
        """
        Bitmap fragment for the requested variant.  The portable text is
        returned unchanged; the non-portable variant swaps whole-identifier
        occurrences of the portable deserialiser for the native one.
        """
        if not nonportable:
            return self.bitmap
        return _PORTABLE_IDENT_RE.sub(NONPORTABLE_DESERIALIZE, self.bitmap)

    def chunks_with(self, values: Mapping[str, str]) -> str:
        """Chunk fragment with each placeholder replaced by values[placeholder]."""
        return _PLACEHOLDER_RE.sub(lambda m: values[m.group(0)], self.chunks)

    def hashes(self) -> Dict[str, str]:
        """sha256 of each fragment, keyed by file name."""
        return {
            filename: hashlib.sha256(getattr(self, attr).encode("utf-8")).hexdigest()
            for attr, filename in FRAGMENT_FILES
        }


@lru_cache(maxsize=None)
def bundled_fragments() -> FragmentSet:
    """The fragments shipped in runner_wasm/resources (cached)."""
    package = resources.files("runner_wasm") / "resources"
    texts = {
        attr: (package / filename).read_text(encoding="utf-8")
        for attr, filename in FRAGMENT_FILES
    }
    return FragmentSet(origin="bundled", **texts)


def load_fragments(directory: Optional[Path] = None) -> FragmentSet:
    """
    Load a fragment set.  None means the bundled set; otherwise the four
    files are read from *directory*.  A missing or unreadable file raises
    SynthesisFailure.
    """
    if directory is None:
        return bundled_fragments()

    directory = Path(directory)
    texts = {}
    for attr, filename in FRAGMENT_FILES:
        path = directory / filename
        try:
            texts[attr] = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SynthesisFailure(f"Cannot read fragment {path}: {e}", path=path) from e
    logger.info("Loaded fragments from %s", directory)
    return FragmentSet(origin=str(directory), **texts)
