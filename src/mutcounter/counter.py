from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from functools import partial
from pathlib import Path
from typing import Dict, Optional

import numpy as np
from tqdm import tqdm

from .bam import (
    chromosome_lengths_from_header,
    chromosome_lengths_from_reads,
    iter_fragments,
    md_tags_present,
    new_read_counts,
)
from .models import Strand
from .output import EventDumpWriter, check_outputs_absent, output_paths, write_bedgraphs, write_profile_csv
from .profiles import MutationProfileCollection
from .utils import default_prefix, ensure_outdir, write_json
from .validation import check_bam_index, validate_count_settings
from .walker import ReadWalker

logger = logging.getLogger(__name__)

RATE_HIST_BINS = 50
MD_CHECK_READS = 1000


def load_chromosome_lengths(bam_path: str | Path, source: str = "header") -> Dict[str, int]:
    """Chromosome lengths from the BAM header or from a pre-scan of the reads."""
    if source == "reads":
        lengths = chromosome_lengths_from_reads(bam_path)
    else:
        lengths = chromosome_lengths_from_header(bam_path)
    kept = {c: n for c, n in lengths.items() if n > 0}
    if len(kept) < len(lengths):
        logger.warning("Ignoring %d chromosomes with zero length", len(lengths) - len(kept))
    return kept


def profile_totals(profiles: MutationProfileCollection) -> Dict[str, int]:
    """Counter sums over every chromosome and strand."""
    totals = {"match": 0, "insertion": 0, "deletion": 0, "substitution": 0}
    for chrom_profile in profiles:
        for strand in (Strand.POSITIVE, Strand.NEGATIVE):
            p = chrom_profile.strand(strand)
            totals["match"] += sum(p.matches.values())
            totals["insertion"] += sum(p.insertions.values())
            totals["deletion"] += sum(p.deletions.values())
            totals["substitution"] += sum(sum(c.values()) for c in p.substitutions.values())
    return totals


def mutation_rate_histogram(
    profiles: MutationProfileCollection,
    *,
    coverage_threshold: Optional[int] = None,
    nbins: int = RATE_HIST_BINS,
) -> Dict[str, list]:
    """Histogram of mutation rates over positions passing the coverage threshold."""
    thr = profiles.coverage_threshold if coverage_threshold is None else coverage_threshold
    bin_edges = np.linspace(0.0, 1.0, nbins + 1)
    counts = np.zeros(nbins, dtype=np.int64)
    for chrom_profile in profiles:
        for strand in (Strand.POSITIVE, Strand.NEGATIVE):
            arrays = chrom_profile.strand(strand).to_arrays()
            keep = (arrays["total"] >= thr) & (arrays["total"] > 0)
            counts += np.histogram(arrays["mutation_rate"][keep], bins=bin_edges)[0]
    return {"bin_edges": bin_edges.tolist(), "counts": counts.tolist()}


def count_bam(
    *,
    bam_path: str,
    outdir: str | Path,
    prefix: Optional[str] = None,
    edge_margin: int = 0,
    coverage_threshold: int = 1,
    paired: bool = False,
    lengths_from: str = "header",
    dump_events: bool = False,
    skip_duplicates: bool = True,
    include_secondary: bool = False,
    include_supplementary: bool = False,
    progress: bool = True,
) -> Dict[str, object]:
    """Main workhorse: scan a BAM, accumulate mutation profiles, write outputs, return a summary."""
    t0 = time.time()
    validate_count_settings(
        edge_margin=edge_margin, coverage_threshold=coverage_threshold, lengths_from=lengths_from
    )
    outdir_path = ensure_outdir(outdir)
    prefix = prefix or default_prefix(bam_path)
    paths = output_paths(outdir_path, prefix, dump_events=dump_events)
    check_outputs_absent(paths.values())

    check_bam_index(bam_path)
    if not md_tags_present(bam_path, limit=MD_CHECK_READS):
        logger.warning(
            "Some reads have no MD tag and will be skipped. "
            "To add MD tags, run: samtools calmd -b %s ref.fa > with_md.bam",
            bam_path,
        )

    lengths = load_chromosome_lengths(bam_path, lengths_from)
    logger.info("Registering %d chromosomes (lengths from %s)", len(lengths), lengths_from)
    profiles = MutationProfileCollection(lengths, coverage_threshold=coverage_threshold)
    walker = ReadWalker(profiles, edge_margin=edge_margin)

    read_counts = new_read_counts()
    wrap = partial(tqdm, unit="read", desc="Counting mutations") if progress else None

    with ExitStack() as stack:
        sink = None
        if dump_events:
            sink = stack.enter_context(EventDumpWriter(paths["events"]))
        fragments = iter_fragments(
            bam_path,
            paired=paired,
            skip_duplicates=skip_duplicates,
            include_secondary=include_secondary,
            include_supplementary=include_supplementary,
            counts=read_counts,
            progress=wrap,
        )
        stats = walker.walk(fragments, event_sink=sink)

    if stats.fragments_failed:
        logger.warning(
            "%d of %d fragments were skipped because of alignment errors: %s",
            stats.fragments_failed,
            stats.fragments_total,
            ", ".join(f"{k}={v}" for k, v in sorted(stats.errors_by_kind.items())),
        )

    rows = write_profile_csv(profiles, paths["csv"])
    tracks = write_bedgraphs(profiles, paths)

    dt = time.time() - t0
    summary = {
        "bam_path": str(bam_path),
        "prefix": prefix,
        "edge_margin": int(edge_margin),
        "coverage_threshold": int(coverage_threshold),
        "paired": bool(paired),
        "lengths_from": lengths_from,
        "skip_duplicates": bool(skip_duplicates),
        "include_secondary": bool(include_secondary),
        "include_supplementary": bool(include_supplementary),
        "dump_events": bool(dump_events),
        "chromosomes": len(profiles),
        "outputs": {k: str(v) for k, v in paths.items()},
        "read_counts": read_counts,
        "walk": stats.as_dict(),
        "positions_reported": rows,
        "bedgraph_lines": tracks,
        "event_totals": profile_totals(profiles),
        "mutation_rate_hist": mutation_rate_histogram(profiles),
        "runtime_seconds": float(dt),
    }

    write_json(outdir_path / "summary.json", summary)
    logger.info("Counted %d fragments in %.1fs", stats.fragments_counted, dt)
    return summary
