from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pysam

from .cigar import CigarOperator
from .utils import ensure_outdir, write_json

# Edits understood by build_alignment:
#   ("M", n)      n reference-matching bases
#   ("X", base)   one mismatching read base
#   ("D", n)      n deleted reference bases
#   ("I", seq)    inserted read bases
#   ("S", seq)    soft-clipped read bases
Edit = Tuple[str, object]

TOY_CONTIGS = {"chr1": 300, "chr2": 200}

_FLAG_PAIRED = 0x1
_FLAG_PROPER = 0x2
_FLAG_UNMAPPED = 0x4
_FLAG_REVERSE = 0x10
_FLAG_MATE_REVERSE = 0x20
_FLAG_READ1 = 0x40
_FLAG_READ2 = 0x80
_FLAG_DUPLICATE = 0x400


def _write_fasta(path: Path, contigs: Dict[str, str]) -> None:
    lines = []
    for name, seq in contigs.items():
        lines.append(f">{name}")
        for i in range(0, len(seq), 60):
            lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _random_sequence(rng: random.Random, n: int) -> str:
    return "".join(rng.choice("ACGT") for _ in range(n))


def _other_base(base: str) -> str:
    return {"A": "G", "C": "T", "G": "A", "T": "C"}.get(base.upper(), "A")


def build_alignment(
    ref_seq: str, start0: int, edits: Sequence[Edit]
) -> Tuple[str, List[Tuple[int, int]], str, int]:
    """Build a consistent (sequence, cigartuples, MD tag, end0) for a read placed at ``start0``.

    Reference bases come from ``ref_seq``; adjacent CIGAR operators of the same kind are
    merged, so ``[("M", 5), ("X", "T"), ("M", 4)]`` gives ``10M`` with an MD tag like ``5G4``
    (G being the reference base under the mismatch).
    """
    seq: List[str] = []
    cigar: List[Tuple[int, int]] = []
    md: List[str] = []
    matches = 0
    pos = start0

    def add_cigar(op: CigarOperator, n: int) -> None:
        if cigar and cigar[-1][0] == op.value:
            cigar[-1] = (op.value, cigar[-1][1] + n)
        else:
            cigar.append((op.value, n))

    for kind, arg in edits:
        if kind == "M":
            n = int(arg)
            seq.append(ref_seq[pos : pos + n])
            add_cigar(CigarOperator.MATCH, n)
            matches += n
            pos += n
        elif kind == "X":
            ref_base = ref_seq[pos]
            alt = str(arg)
            if alt.upper() == ref_base.upper():
                raise ValueError(f"Mismatch at {pos} must differ from reference base {ref_base}")
            seq.append(alt)
            add_cigar(CigarOperator.MATCH, 1)
            md.append(f"{matches}{ref_base}")
            matches = 0
            pos += 1
        elif kind == "D":
            n = int(arg)
            add_cigar(CigarOperator.DELETION, n)
            md.append(f"{matches}^{ref_seq[pos : pos + n]}")
            matches = 0
            pos += n
        elif kind == "I":
            add_cigar(CigarOperator.INSERTION, len(str(arg)))
            seq.append(str(arg))
        elif kind == "S":
            add_cigar(CigarOperator.SOFT_CLIP, len(str(arg)))
            seq.append(str(arg))
        else:
            raise ValueError(f"Unknown edit {kind!r}")
    md.append(str(matches))
    return "".join(seq), cigar, "".join(md), pos


def _make_read(
    name: str,
    ref_id: int,
    ref_seq: str,
    start0: int,
    edits: Sequence[Edit],
    *,
    flag: int = 0,
    md_override: Optional[str] = None,
    with_md: bool = True,
    mapq: int = 60,
) -> pysam.AlignedSegment:
    seq, cigar, md, _ = build_alignment(ref_seq, start0, edits)
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = ref_id
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = cigar
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    if with_md:
        a.set_tag("MD", md_override if md_override is not None else md, value_type="Z")
    return a


def _mate_up(r1: pysam.AlignedSegment, r2: pysam.AlignedSegment) -> None:
    for a, b in ((r1, r2), (r2, r1)):
        a.next_reference_id = b.reference_id
        a.next_reference_start = b.reference_start
    span = max(r1.reference_end, r2.reference_end) - min(r1.reference_start, r2.reference_start)
    left, right = (r1, r2) if r1.reference_start <= r2.reference_start else (r2, r1)
    left.template_length = span
    right.template_length = -span


def _unmapped_read(name: str, seq: str) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = _FLAG_UNMAPPED
    a.reference_id = -1
    a.reference_start = -1
    a.mapping_quality = 0
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    return a


def toy_output_paths(outdir: str | Path) -> Dict[str, Path]:
    outdir_p = Path(outdir)
    return {
        "ref_fa": outdir_p / "toy_ref.fa",
        "bam": outdir_p / "toy.bam",
        "summary": outdir_p / "toy_summary.json",
    }


def make_toy_data(*, outdir: str | Path, seed: int = 7) -> Dict[str, object]:
    """Create a tiny reference and an MD-tagged BAM suitable for quick demos/tests.

    The outputs include:
    - toy_ref.fa (+ .fai)
    - toy.bam (+ .bai) with single reads carrying substitutions, deletions, insertions and
      soft clips; two overlapping mate pairs; one duplicate; one unmapped read; one read
      whose MD tag contradicts its CIGAR and one read without an MD tag.

    Returns
    -------
    dict
        Paths to the generated files and the expected read-level outcomes.
    """
    outdir_p = ensure_outdir(outdir)
    paths = toy_output_paths(outdir_p)
    rng = random.Random(seed)

    contigs = {name: _random_sequence(rng, n) for name, n in TOY_CONTIGS.items()}
    _write_fasta(paths["ref_fa"], contigs)
    pysam.faidx(str(paths["ref_fa"]))

    chr1, chr2 = contigs["chr1"], contigs["chr2"]

    reads: List[pysam.AlignedSegment] = [
        _make_read("sub_fwd", 0, chr1, 10, [("M", 20), ("X", _other_base(chr1[30])), ("M", 19)]),
        _make_read("del_fwd", 0, chr1, 20, [("M", 15), ("D", 2), ("M", 25)]),
        _make_read("ins_fwd", 0, chr1, 30, [("M", 10), ("I", "GT"), ("M", 28)]),
        _make_read("clip_rev", 0, chr1, 40, [("S", "AAAA"), ("M", 36)], flag=_FLAG_REVERSE),
        _make_read(
            "mixed_fwd",
            0,
            chr1,
            50,
            [
                ("S", "TT"),
                ("M", 5),
                ("X", _other_base(chr1[55])),
                ("M", 3),
                ("D", 1),
                ("X", _other_base(chr1[60])),
                ("M", 10),
                ("X", "N"),
                ("M", 4),
                ("I", "A"),
                ("M", 14),
                ("S", "G"),
            ],
        ),
        _make_read("bad_md", 0, chr1, 60, [("M", 40)], md_override="10^AC28"),
        _make_read("no_md", 0, chr1, 70, [("M", 40)], with_md=False),
        _make_read(
            "sub_fwd", 0, chr1, 10, [("M", 20), ("X", _other_base(chr1[30])), ("M", 19)],
            flag=_FLAG_DUPLICATE,
        ),
    ]

    # chr1 pair: read1 forward, read2 reverse, overlapping on [130, 150)
    p1_r1 = _make_read(
        "pair_a", 0, chr1, 100, [("M", 20), ("X", _other_base(chr1[120])), ("M", 29)],
        flag=_FLAG_PAIRED | _FLAG_PROPER | _FLAG_MATE_REVERSE | _FLAG_READ1,
    )
    p1_r2 = _make_read(
        "pair_a", 0, chr1, 130, [("M", 10), ("D", 1), ("M", 29), ("X", _other_base(chr1[170])), ("M", 9)],
        flag=_FLAG_PAIRED | _FLAG_PROPER | _FLAG_REVERSE | _FLAG_READ2,
    )
    _mate_up(p1_r1, p1_r2)

    # chr2 pair: read1 reverse (negative fragment strand), read2 forward
    p2_r2 = _make_read(
        "pair_b", 1, chr2, 20, [("M", 30), ("X", _other_base(chr2[50])), ("M", 19)],
        flag=_FLAG_PAIRED | _FLAG_PROPER | _FLAG_MATE_REVERSE | _FLAG_READ2,
    )
    p2_r1 = _make_read(
        "pair_b", 1, chr2, 40, [("M", 40)],
        flag=_FLAG_PAIRED | _FLAG_PROPER | _FLAG_REVERSE | _FLAG_READ1,
    )
    _mate_up(p2_r1, p2_r2)

    reads.extend([p1_r1, p1_r2, p2_r2, p2_r1])
    reads.sort(key=lambda r: (r.reference_id, r.reference_start))
    reads.append(_unmapped_read("unmapped", _random_sequence(rng, 40)))

    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": len(seq)} for name, seq in contigs.items()],
    }
    with pysam.AlignmentFile(str(paths["bam"]), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)
    pysam.index(str(paths["bam"]))

    summary = {
        "ref_fa": str(paths["ref_fa"]),
        "bam": str(paths["bam"]),
        "outdir": str(outdir_p),
        "contigs": {name: len(seq) for name, seq in contigs.items()},
        "records": len(reads),
        "expected_failures": {"bad_md": "IncompatibleOperatorsError", "no_md": "MissingAnnotationError"},
    }

    write_json(paths["summary"], summary)
    return summary
