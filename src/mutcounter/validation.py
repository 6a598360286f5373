from __future__ import annotations

import logging
from pathlib import Path

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def check_bam_index(bam_path: str | Path) -> bool:
    """Warn (and return False) if a BAM has no index.

    The count scan reads the file front to back and does not need one, but region queries
    in downstream tools do.
    """
    bam = Path(bam_path)
    bai1 = bam.with_suffix(bam.suffix + ".bai")
    bai2 = bam.with_suffix(".bai")
    if bai1.exists() or bai2.exists():
        return True
    logger.warning("BAM is not indexed. To index it, run: samtools index %s", bam)
    return False


def check_bam_exists(bam_path: str | Path) -> None:
    bam = Path(bam_path)
    if not bam.is_file():
        raise ConfigurationError(f"BAM file not found: {bam}")
    if bam.suffix not in (".bam", ".sam", ".cram"):
        logger.warning("Input %s does not have a .bam extension; trying to read it anyway.", bam)


def validate_count_settings(*, edge_margin: int, coverage_threshold: int, lengths_from: str) -> None:
    """Reject invalid count settings before any reads are scanned."""
    if edge_margin < 0:
        raise ConfigurationError("Number of bases excluded from edge of reads must be non-negative!")
    if coverage_threshold < 0:
        raise ConfigurationError("Coverage threshold must be non-negative!")
    if lengths_from not in ("header", "reads"):
        raise ConfigurationError(
            f"Unknown chromosome length source {lengths_from!r}; expected 'header' or 'reads'."
        )
