"""
Artifact checks — is runner.wasm a WebAssembly binary module?

Header check only: magic "\\0asm" followed by a little-endian u32
version.  Sections, imports and exports are not parsed.
"""
import hashlib
import logging
import struct
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)

WASM_MAGIC = b"\x00asm"
WASM_VERSION = 1


class WasmMeta(BaseModel):
    """Minimal header metadata of a wasm module."""
    version: Optional[int] = None


def hash_file(path: Path) -> str:
    """SHA-256 of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def validate_wasm(path: Path) -> Tuple[bool, WasmMeta]:
    """
    Check the wasm header of *path*.
    Returns (is_valid, meta); a missing or short file is simply invalid.
    """
    try:
        with open(path, "rb") as f:
            header = f.read(8)
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return False, WasmMeta()

    if len(header) < 8 or header[:4] != WASM_MAGIC:
        logger.warning("%s is not a wasm module", path)
        return False, WasmMeta()

    (version,) = struct.unpack("<I", header[4:8])
    if version != WASM_VERSION:
        logger.warning("%s has unsupported wasm version %d", path, version)
        return False, WasmMeta(version=version)
    return True, WasmMeta(version=version)
