import pysam
import pytest

from mutcounter.bam import (
    chromosome_lengths_from_header,
    chromosome_lengths_from_reads,
    iter_fragments,
    md_tags_present,
    new_read_counts,
    read_from_segment,
)
from mutcounter.models import AlignedRead, ReadPair, Strand
from mutcounter.toy_data import build_alignment

HEADER = pysam.AlignmentHeader.from_dict(
    {"HD": {"VN": "1.6"}, "SQ": [{"SN": "chr1", "LN": 1000}]}
)


def make_segment(seq: str, start: int = 100, cigar=None, md=None, flag: int = 0) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment(HEADER)
    a.query_name = "r1"
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = 0
    a.reference_start = start
    a.mapping_quality = 60
    a.cigartuples = cigar or [(0, len(seq))]
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    if md is not None:
        a.set_tag("MD", md)
    return a


def test_read_from_segment():
    seg = make_segment("ACGTACGTAA", cigar=[(4, 2), (0, 5), (2, 1), (0, 3)], md="5^C3")
    read = read_from_segment(seg)
    assert read.name == "r1"
    assert read.chrom == "chr1"
    assert (read.start0, read.end0) == (100, 109)
    assert read.cigar == ((4, 2), (0, 5), (2, 1), (0, 3))
    assert read.md == "5^C3"
    assert read.sequence == "ACGTACGTAA"
    assert read.strand is Strand.POSITIVE
    assert read.is_mapped


def test_read_from_segment_strand_and_missing_md():
    seg = make_segment("ACGT", flag=16)
    assert read_from_segment(seg).strand is Strand.NEGATIVE
    assert read_from_segment(seg, Strand.POSITIVE).strand is Strand.POSITIVE
    assert read_from_segment(seg).md is None


def test_build_alignment():
    ref = "ACGTACGTACGTACGTACGT"
    seq, cigar, md, end0 = build_alignment(
        ref, 2, [("S", "TT"), ("M", 3), ("X", "A"), ("D", 2), ("X", "G"), ("I", "CC"), ("M", 2)]
    )
    # ref[2:5] = GTA, ref[5] = C (mismatch), ref[6:8] = GT deleted, ref[8] = A (mismatch), ref[9:11] = CG
    assert seq == "TTGTAAGCCCG"
    assert cigar == [(4, 2), (0, 4), (2, 2), (0, 1), (1, 2), (0, 2)]
    assert md == "3C0^GT0A2"
    assert end0 == 11
    with pytest.raises(ValueError):
        build_alignment(ref, 0, [("X", "A")])


def test_iter_fragments_single(toy_bam):
    counts = new_read_counts()
    frags = list(iter_fragments(toy_bam, counts=counts))
    assert all(isinstance(f, AlignedRead) for f in frags)
    assert counts["reads_total"] == 13
    assert counts["reads_unmapped"] == 1
    assert counts["reads_skipped_duplicates"] == 1
    assert counts["reads_kept"] == 11
    assert len(frags) == 11
    by_name = {}
    for f in frags:
        by_name.setdefault(f.name, []).append(f)
    assert [r.strand for r in by_name["pair_a"]] == [Strand.POSITIVE, Strand.NEGATIVE]
    assert by_name["clip_rev"][0].strand is Strand.NEGATIVE


def test_iter_fragments_paired(toy_bam):
    counts = new_read_counts()
    frags = list(iter_fragments(toy_bam, paired=True, counts=counts))
    pairs = {f.name: f for f in frags if isinstance(f, ReadPair)}
    assert counts["pairs"] == 2
    assert counts["orphan_mates"] == 0
    assert len(frags) == 9
    pair_a, pair_b = pairs["pair_a"], pairs["pair_b"]
    assert pair_a.read1.is_read1 and pair_a.read2.is_read2
    # Both mates take read1's orientation.
    assert {m.strand for m in pair_a.mates} == {Strand.POSITIVE}
    assert {m.strand for m in pair_b.mates} == {Strand.NEGATIVE}
    assert pair_b.read1.start0 == 40


def test_keep_duplicates(toy_bam):
    counts = new_read_counts()
    frags = list(iter_fragments(toy_bam, skip_duplicates=False, counts=counts))
    assert len(frags) == 12
    assert counts["reads_skipped_duplicates"] == 0


def test_chromosome_lengths(toy_bam):
    assert chromosome_lengths_from_header(toy_bam) == {"chr1": 300, "chr2": 200}
    from_reads = chromosome_lengths_from_reads(toy_bam)
    assert list(from_reads) == ["chr1", "chr2"]
    assert from_reads == {"chr1": 181, "chr2": 81}


def test_md_tags_present(toy_bam):
    assert not md_tags_present(toy_bam)
    assert md_tags_present(toy_bam, limit=1)
