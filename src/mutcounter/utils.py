from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def default_prefix(bam_path: str | Path) -> str:
    """Output prefix derived from a BAM path (``sample.sorted.bam`` -> ``sample.sorted``)."""
    name = Path(bam_path).name
    for suffix in (".bam", ".sam", ".cram"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode, encoding="utf-8")


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)


def read_json(path: str | Path) -> Any:
    with open(path, "rt", encoding="utf-8") as f:
        return json.load(f)
