from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, TextIO

from .models import MutationEvent, Strand
from .profiles import RATE_NAMES, MutationProfileCollection
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)

CSV_HEADER = (
    "chromosome",
    "orientation",
    "position",
    "=",
    "I",
    "D",
    "A",
    "C",
    "G",
    "T",
    "total",
    "mutationRate",
    "deletionRate",
    "substitutionRate",
)

BEDGRAPH_HEADER = "track type=bedGraph"


def _fmt_rate(x: float) -> str:
    return f"{x:.6g}"


def output_paths(outdir: str | Path, prefix: str, *, dump_events: bool = False) -> Dict[str, Path]:
    """Every file a count run writes, keyed by a short name."""
    outdir = Path(outdir)
    paths = {"csv": outdir / f"{prefix}.csv"}
    for strand in (Strand.POSITIVE, Strand.NEGATIVE):
        for rate in RATE_NAMES:
            paths[f"{strand.short}_{rate}"] = outdir / f"{prefix}_{strand.short}_{rate}_rate.bedgraph"
    if dump_events:
        paths["events"] = outdir / f"{prefix}_read_mutations.txt"
    return paths


def check_outputs_absent(paths: Iterable[Path]) -> None:
    existing = [str(p) for p in paths if Path(p).exists()]
    if existing:
        raise FileExistsError(
            "Output file(s) already exist: " + ", ".join(existing)
            + ". Remove them, pick another --prefix/--outdir, or pass --resume."
        )


def write_profile_csv(
    profiles: MutationProfileCollection,
    path: str | Path,
    *,
    coverage_threshold: Optional[int] = None,
) -> int:
    """Write one CSV row per covered (chromosome, strand, position); positions are 1-based.

    Rows are ordered by chromosome, then position, with the positive strand row first.
    """
    n = 0
    with open_textmaybe_gzip(path, "wt") as fh:
        fh.write(",".join(CSV_HEADER) + "\n")
        for row in profiles.iter_rows(coverage_threshold):
            c = row.counts
            fh.write(
                f"{row.chrom},{row.strand.label},{row.pos0 + 1},"
                f"{c.match},{c.insertion},{c.deletion},"
                f"{c.to_a},{c.to_c},{c.to_g},{c.to_t},{c.total},"
                f"{_fmt_rate(c.mutation_rate)},{_fmt_rate(c.deletion_rate)},"
                f"{_fmt_rate(c.substitution_rate)}\n"
            )
            n += 1
    logger.info("Wrote %d rows to %s", n, path)
    return n


def write_bedgraph(
    profiles: MutationProfileCollection,
    path: str | Path,
    *,
    strand: Strand,
    rate: str,
    coverage_threshold: Optional[int] = None,
) -> int:
    n = 0
    with open_textmaybe_gzip(path, "wt") as fh:
        fh.write(BEDGRAPH_HEADER + "\n")
        for chrom, pos0, value in profiles.iter_track(strand, rate, coverage_threshold):
            fh.write(f"{chrom}\t{pos0}\t{pos0 + 1}\t{_fmt_rate(value)}\n")
            n += 1
    return n


def write_bedgraphs(
    profiles: MutationProfileCollection,
    paths: Dict[str, Path],
    *,
    coverage_threshold: Optional[int] = None,
) -> Dict[str, int]:
    """Write the six strand/rate tracks named in ``paths`` (see :func:`output_paths`)."""
    written: Dict[str, int] = {}
    for strand in (Strand.POSITIVE, Strand.NEGATIVE):
        for rate in RATE_NAMES:
            key = f"{strand.short}_{rate}"
            written[key] = write_bedgraph(
                profiles, paths[key], strand=strand, rate=rate, coverage_threshold=coverage_threshold
            )
    return written


class EventDumpWriter:
    """Per-read event sink writing one line per non-match event.

    Lines are ``chrom<TAB>read<TAB>pos1<TAB>kind`` where kind is ``D``, ``I`` or ``REF->ALT``.
    Use as a context manager and pass the instance as ``event_sink`` to the walker.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.lines_written = 0
        self._fh: Optional[TextIO] = None

    def __enter__(self) -> "EventDumpWriter":
        self._fh = open_textmaybe_gzip(self.path, "wt")
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __call__(self, event: MutationEvent) -> None:
        kind = event.describe()
        if kind is None:
            return
        if self._fh is None:
            raise RuntimeError("EventDumpWriter must be opened before use.")
        self._fh.write(f"{event.chrom}\t{event.read_name}\t{event.pos0 + 1}\t{kind}\n")
        self.lines_written += 1
