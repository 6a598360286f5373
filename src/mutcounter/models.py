from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .operators import GenericOperator


class Strand(Enum):
    POSITIVE = "+"
    NEGATIVE = "-"

    @property
    def label(self) -> str:
        return "positive" if self is Strand.POSITIVE else "negative"

    @property
    def short(self) -> str:
        return "pos" if self is Strand.POSITIVE else "neg"


@dataclass(frozen=True)
class AlignedRead:
    """One aligned read, as consumed by the read walker.

    Coordinates are 0-based half-open in internal representation.

    Attributes
    ----------
    name:
        Query name.
    chrom:
        Reference name as present in the BAM header ("*" or None when unmapped).
    start0, end0:
        Reference span of the aligned bases, soft clips excluded.
    strand:
        Strand whose profile receives this read's counts.
    cigar:
        pysam-style ``(op_code, length)`` tuples.
    md:
        Raw MD tag string, or None if the record had none.
    sequence:
        Read bases (soft-clipped bases included, as stored in the BAM).
    """

    name: str
    chrom: Optional[str]
    start0: int
    end0: int
    strand: Strand
    cigar: Tuple[Tuple[int, int], ...]
    md: Optional[str]
    sequence: str
    is_read1: bool = False
    is_read2: bool = False

    @property
    def is_mapped(self) -> bool:
        return self.chrom not in (None, "*") and self.start0 >= 0


@dataclass(frozen=True)
class ReadPair:
    """Both mates of one fragment. Overlapping bases are counted once."""

    name: str
    read1: AlignedRead
    read2: AlignedRead

    @property
    def mates(self) -> Tuple[AlignedRead, AlignedRead]:
        return (self.read1, self.read2)


@dataclass(frozen=True)
class MutationEvent:
    """One counted reference position of one read.

    ``read_base`` is set for substitutions (the base the reference mutated to) and
    ``ref_base`` for substitutions and base-specific deletions.
    """

    read_name: str
    chrom: str
    strand: Strand
    pos0: int
    read_pos: int
    operator: GenericOperator
    read_base: Optional[str] = None
    ref_base: Optional[str] = None

    def describe(self) -> Optional[str]:
        """Short label used in per-read dumps; None for matches."""
        op = self.operator
        if op.is_deletion:
            return "D"
        if op is GenericOperator.INSERTION:
            return "I"
        if op.is_mutation:
            return f"{self.ref_base or 'N'}->{self.read_base or 'N'}"
        return None
