from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .errors import MalformedAlignmentError
from .runstack import Run, RunLengthStack


class CigarOperator(Enum):
    """CIGAR operators, valued by their BAM integer code (as in pysam ``cigartuples``)."""

    MATCH = 0
    INSERTION = 1
    DELETION = 2
    SKIP = 3
    SOFT_CLIP = 4
    HARD_CLIP = 5
    PAD = 6
    EQUAL = 7
    DIFF = 8
    BACK = 9

    @property
    def char(self) -> str:
        return _CIGAR_CHARS[self]

    @property
    def consumes_read_bases(self) -> bool:
        return _CONSUMES[self][0]

    @property
    def consumes_reference_bases(self) -> bool:
        return _CONSUMES[self][1]

    @classmethod
    def from_char(cls, ch: str) -> "CigarOperator":
        for op, c in _CIGAR_CHARS.items():
            if c == ch:
                return op
        raise MalformedAlignmentError(f"Unknown CIGAR operator: {ch!r}")

    def __str__(self) -> str:
        return self.char


_CIGAR_CHARS: Dict[CigarOperator, str] = {
    CigarOperator.MATCH: "M",
    CigarOperator.INSERTION: "I",
    CigarOperator.DELETION: "D",
    CigarOperator.SKIP: "N",
    CigarOperator.SOFT_CLIP: "S",
    CigarOperator.HARD_CLIP: "H",
    CigarOperator.PAD: "P",
    CigarOperator.EQUAL: "=",
    CigarOperator.DIFF: "X",
    CigarOperator.BACK: "B",
}

# (consumes read, consumes reference), as defined by the SAM format
_CONSUMES: Dict[CigarOperator, Tuple[bool, bool]] = {
    CigarOperator.MATCH: (True, True),
    CigarOperator.INSERTION: (True, False),
    CigarOperator.DELETION: (False, True),
    CigarOperator.SKIP: (False, True),
    CigarOperator.SOFT_CLIP: (True, False),
    CigarOperator.HARD_CLIP: (False, False),
    CigarOperator.PAD: (False, False),
    CigarOperator.EQUAL: (True, True),
    CigarOperator.DIFF: (True, True),
    CigarOperator.BACK: (False, False),
}


def parse_cigar_string(cigar: str) -> Tuple[Tuple[int, int], ...]:
    """Parse a text CIGAR (``"3S10M1D5M"``) into pysam-style ``(op_code, length)`` tuples."""
    out = []
    num = []
    for ch in cigar:
        if ch.isdigit():
            num.append(ch)
            continue
        if not num:
            raise MalformedAlignmentError(f"Invalid CIGAR string: {cigar!r}")
        out.append((CigarOperator.from_char(ch).value, int("".join(num))))
        num = []
    if num:
        raise MalformedAlignmentError(f"Invalid CIGAR string: {cigar!r}")
    return tuple(out)


def cigar_to_string(cigartuples: Iterable[Tuple[int, int]]) -> str:
    return "".join(f"{length}{CigarOperator(op).char}" for op, length in cigartuples)


class CigarStack(RunLengthStack[CigarOperator]):
    """A CIGAR loaded so that the leftmost (lowest-coordinate) operation pops first."""

    @classmethod
    def from_cigartuples(
        cls,
        cigartuples: Optional[Sequence[Tuple[int, int]]],
        *,
        read_name: Optional[str] = None,
    ) -> "CigarStack":
        if not cigartuples:
            raise MalformedAlignmentError("Read has no CIGAR string.", read_name=read_name)
        runs = []
        for op, length in cigartuples:
            try:
                operator = CigarOperator(int(op))
            except ValueError:
                raise MalformedAlignmentError(
                    f"Unknown CIGAR operator code {op}", read_name=read_name
                ) from None
            runs.append(Run(int(length), operator))
        return cls(runs)
