"""
Writer — serialize the runner receipt.

Layout:
    <output_dir>/runner_receipt.json
"""
import json
from pathlib import Path

from runner_wasm.io.schema import RunnerReceipt

RECEIPT_FILENAME = "runner_receipt.json"


def write_receipt(receipt: RunnerReceipt, output_dir: Path) -> Path:
    """Write runner_receipt.json into *output_dir* and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / RECEIPT_FILENAME
    path.write_text(
        json.dumps(
            receipt.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )
    return path
