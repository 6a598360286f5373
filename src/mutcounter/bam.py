from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, MutableMapping, Optional, Union

import pysam

from .models import AlignedRead, ReadPair, Strand

logger = logging.getLogger(__name__)

Fragment = Union[AlignedRead, ReadPair]

FILTER_COUNT_KEYS = (
    "reads_total",
    "reads_unmapped",
    "reads_skipped_secondary",
    "reads_skipped_supplementary",
    "reads_skipped_duplicates",
    "reads_kept",
    "pairs",
    "orphan_mates",
)


def new_read_counts() -> Dict[str, int]:
    return {k: 0 for k in FILTER_COUNT_KEYS}


def segment_strand(seg: pysam.AlignedSegment) -> Strand:
    return Strand.NEGATIVE if seg.is_reverse else Strand.POSITIVE


def read_from_segment(seg: pysam.AlignedSegment, strand: Optional[Strand] = None) -> AlignedRead:
    """Convert a pysam segment into an :class:`AlignedRead`.

    ``strand`` overrides the segment's own orientation (used to put both mates of a pair
    on the fragment strand).
    """
    chrom = seg.reference_name if seg.reference_name is not None else "*"
    start0 = int(seg.reference_start) if seg.reference_start is not None else -1
    end0 = int(seg.reference_end) if seg.reference_end is not None else -1
    md = seg.get_tag("MD") if seg.has_tag("MD") else None
    return AlignedRead(
        name=str(seg.query_name),
        chrom=chrom,
        start0=start0,
        end0=end0,
        strand=strand if strand is not None else segment_strand(seg),
        cigar=tuple((int(op), int(n)) for op, n in (seg.cigartuples or ())),
        md=str(md) if md is not None else None,
        sequence=seg.query_sequence or "",
        is_read1=bool(seg.is_read1),
        is_read2=bool(seg.is_read2),
    )


def _pair_from_segments(a: pysam.AlignedSegment, b: pysam.AlignedSegment) -> ReadPair:
    seg1, seg2 = (a, b) if a.is_read1 or not b.is_read1 else (b, a)
    strand = segment_strand(seg1)
    return ReadPair(
        name=str(seg1.query_name),
        read1=read_from_segment(seg1, strand),
        read2=read_from_segment(seg2, strand),
    )


def iter_fragments(
    bam_path: str | Path,
    *,
    paired: bool = False,
    skip_duplicates: bool = True,
    include_secondary: bool = False,
    include_supplementary: bool = False,
    counts: Optional[MutableMapping[str, int]] = None,
    progress=None,
) -> Iterator[Fragment]:
    """Yield reads (or mate pairs, with ``paired=True``) in file order.

    Unmapped, secondary, supplementary and duplicate records are filtered and counted in
    ``counts`` (see :data:`FILTER_COUNT_KEYS`). With ``paired=True`` the first mate seen is
    held until its partner arrives; mates whose partner never passes the filters are
    yielded as single reads once the file is exhausted.

    ``progress`` optionally wraps the raw segment iterator (e.g. a ``tqdm`` factory).
    """
    counts = counts if counts is not None else new_read_counts()
    for key in FILTER_COUNT_KEYS:
        counts.setdefault(key, 0)

    pending: Dict[str, pysam.AlignedSegment] = {}
    with pysam.AlignmentFile(str(bam_path), "rb", check_sq=False) as bam:
        it = bam.fetch(until_eof=True)
        if progress is not None:
            it = progress(it)
        for seg in it:
            counts["reads_total"] += 1
            if seg.is_unmapped:
                counts["reads_unmapped"] += 1
                continue
            if seg.is_secondary and not include_secondary:
                counts["reads_skipped_secondary"] += 1
                continue
            if seg.is_supplementary and not include_supplementary:
                counts["reads_skipped_supplementary"] += 1
                continue
            if skip_duplicates and seg.is_duplicate:
                counts["reads_skipped_duplicates"] += 1
                continue
            counts["reads_kept"] += 1

            if not paired or not seg.is_paired or seg.is_secondary or seg.is_supplementary:
                yield read_from_segment(seg)
                continue

            qname = str(seg.query_name)
            mate = pending.pop(qname, None)
            if mate is None:
                pending[qname] = seg
                continue
            counts["pairs"] += 1
            yield _pair_from_segments(mate, seg)

    if pending:
        logger.info("%d mates had no partner passing filters; counting them as single reads", len(pending))
    for seg in pending.values():
        counts["orphan_mates"] += 1
        yield read_from_segment(seg)


def chromosome_lengths_from_header(bam_path: str | Path) -> Dict[str, int]:
    """``{name: length}`` from the ``@SQ`` lines of the BAM header."""
    with pysam.AlignmentFile(str(bam_path), "rb", check_sq=False) as bam:
        return {name: int(n) for name, n in zip(bam.references, bam.lengths)}


def chromosome_lengths_from_reads(bam_path: str | Path) -> Dict[str, int]:
    """Largest aligned end (plus one) per reference, in order of first appearance.

    This needs a full pass over the file and only knows about chromosomes that have reads.
    """
    lengths: Dict[str, int] = {}
    with pysam.AlignmentFile(str(bam_path), "rb", check_sq=False) as bam:
        for seg in bam.fetch(until_eof=True):
            if seg.is_unmapped or seg.reference_name is None or seg.reference_end is None:
                continue
            end = int(seg.reference_end) + 1
            if end > lengths.get(seg.reference_name, 0):
                lengths[seg.reference_name] = end
    logger.debug("Pre-scan found %d chromosomes with mapped reads", len(lengths))
    return lengths


def md_tags_present(bam_path: str | Path, limit: Optional[int] = None) -> bool:
    """True if each of the first ``limit`` mapped reads (all when None) has a non-empty MD tag."""
    seen = 0
    with pysam.AlignmentFile(str(bam_path), "rb", check_sq=False) as bam:
        for seg in bam.fetch(until_eof=True):
            if seg.is_unmapped:
                continue
            if not seg.has_tag("MD") or not seg.get_tag("MD"):
                return False
            seen += 1
            if limit is not None and seen >= limit:
                break
    return True
