"""MD tag parsing and serialization.

The MD tag records, for the reference-consuming part of an alignment, which bases match
the reference, which reference base was substituted (``A``, ``C``...), and which reference
bases were deleted (``^AC``). Insertions and soft clips never appear in it.

Parsed tags are kept as a list of :class:`~mutcounter.runstack.Run` objects whose operators
are :class:`MdTagOperator` members. A run of matches has the length of the match; each
mismatch and deleted base is one unit, and adjacent identical units merge into one run.
``"10A5^AC6"`` therefore becomes::

    10=  1A  5=  1a  1c  6=
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .errors import MalformedAnnotationError, MissingAnnotationError
from .runstack import Run, RunLengthStack

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"(?=\^)|(?<=[A-Za-z])|(?=[A-Za-z])")
_DIGITS = re.compile(r"[0-9]+")


class MdTagOperator(Enum):
    """Operators that can appear in a parsed MD tag, valued by their canonical code."""

    EXACT_MATCH = "="
    GENERIC_MISMATCH = "X"
    MISMATCH_FROM_A = "A"
    MISMATCH_FROM_C = "C"
    MISMATCH_FROM_G = "G"
    MISMATCH_FROM_T = "T"
    GENERIC_DELETION = "D"
    DELETION_OF_A = "a"
    DELETION_OF_C = "c"
    DELETION_OF_G = "g"
    DELETION_OF_T = "t"
    # Used for barcodes and other things; treated as "unknown" when found.
    IGNORE = "N"

    @property
    def code(self) -> str:
        return self.value

    @property
    def consumes_read_bases(self) -> bool:
        return self not in _DELETIONS

    @property
    def consumes_reference_bases(self) -> bool:
        return True

    @property
    def is_deletion(self) -> bool:
        return self in _DELETIONS

    @property
    def reference_base(self) -> Optional[str]:
        """The reference base named by this operator, if any."""
        return _REFERENCE_BASE.get(self)

    @classmethod
    def from_code(cls, code: str) -> "MdTagOperator":
        try:
            return cls(code)
        except ValueError:
            raise MalformedAnnotationError(f"Unrecognized MD tag operator code: {code!r}") from None

    @classmethod
    def mismatch_from(cls, base: str) -> "MdTagOperator":
        """Operator for a substituted reference base (N gives IGNORE)."""
        return _MISMATCH_FROM[base.upper()]

    @classmethod
    def deletion_of(cls, base: str) -> "MdTagOperator":
        """Operator for a deleted reference base (N gives GENERIC_DELETION)."""
        return _DELETION_OF[base.upper()]

    def __str__(self) -> str:
        return self.value


_DELETIONS = frozenset(
    {
        MdTagOperator.GENERIC_DELETION,
        MdTagOperator.DELETION_OF_A,
        MdTagOperator.DELETION_OF_C,
        MdTagOperator.DELETION_OF_G,
        MdTagOperator.DELETION_OF_T,
    }
)

_MISMATCH_FROM = {
    "A": MdTagOperator.MISMATCH_FROM_A,
    "C": MdTagOperator.MISMATCH_FROM_C,
    "G": MdTagOperator.MISMATCH_FROM_G,
    "T": MdTagOperator.MISMATCH_FROM_T,
    "N": MdTagOperator.IGNORE,
}

_DELETION_OF = {
    "A": MdTagOperator.DELETION_OF_A,
    "C": MdTagOperator.DELETION_OF_C,
    "G": MdTagOperator.DELETION_OF_G,
    "T": MdTagOperator.DELETION_OF_T,
    "N": MdTagOperator.GENERIC_DELETION,
}

_REFERENCE_BASE = {
    MdTagOperator.MISMATCH_FROM_A: "A",
    MdTagOperator.MISMATCH_FROM_C: "C",
    MdTagOperator.MISMATCH_FROM_G: "G",
    MdTagOperator.MISMATCH_FROM_T: "T",
    MdTagOperator.DELETION_OF_A: "A",
    MdTagOperator.DELETION_OF_C: "C",
    MdTagOperator.DELETION_OF_G: "G",
    MdTagOperator.DELETION_OF_T: "T",
}

# Letter written back into an MD string for each non-match operator.
_MD_LETTER = {
    MdTagOperator.GENERIC_MISMATCH: "X",
    MdTagOperator.MISMATCH_FROM_A: "A",
    MdTagOperator.MISMATCH_FROM_C: "C",
    MdTagOperator.MISMATCH_FROM_G: "G",
    MdTagOperator.MISMATCH_FROM_T: "T",
    MdTagOperator.IGNORE: "N",
    MdTagOperator.GENERIC_DELETION: "N",
    MdTagOperator.DELETION_OF_A: "A",
    MdTagOperator.DELETION_OF_C: "C",
    MdTagOperator.DELETION_OF_G: "G",
    MdTagOperator.DELETION_OF_T: "T",
}


def _append_run(runs: List[Run[MdTagOperator]], length: int, operator: MdTagOperator) -> None:
    if runs and runs[-1].operator == operator:
        runs[-1] = Run(runs[-1].length + length, operator)
    else:
        runs.append(Run(length, operator))


def tokenize(md: str) -> List[str]:
    """Split an MD string into digit runs, single letters and ``^`` markers."""
    return [tok for tok in _TOKEN_SPLIT.split(md) if tok]


class MdTag:
    """An MD tag as an ordered, immutable sequence of runs."""

    def __init__(self, runs: Sequence[Run[MdTagOperator]] = ()) -> None:
        self._runs: Tuple[Run[MdTagOperator], ...] = tuple(runs)

    @classmethod
    def parse(cls, md: Optional[str], *, read_name: Optional[str] = None) -> "MdTag":
        """Parse the string form of an MD tag.

        Raises
        ------
        MissingAnnotationError
            If ``md`` is None or empty.
        MalformedAnnotationError
            On any character other than digits, ``^`` and the letters A/C/G/T/N
            (either case), or on a ``^`` not followed by a deleted base.
        """
        if md is None or md == "":
            raise MissingAnnotationError("Read does not have an MD tag.", read_name=read_name)

        runs: List[Run[MdTagOperator]] = []
        deletion_mode = False
        dangling_caret = False
        for tok in tokenize(md):
            if dangling_caret and (tok == "^" or _DIGITS.fullmatch(tok)):
                break
            if _DIGITS.fullmatch(tok):
                _append_run(runs, int(tok), MdTagOperator.EXACT_MATCH)
                deletion_mode = False
            elif tok == "^":
                deletion_mode = True
                dangling_caret = True
            else:
                lookup = MdTagOperator.deletion_of if deletion_mode else MdTagOperator.mismatch_from
                try:
                    op = lookup(tok)
                except KeyError:
                    raise MalformedAnnotationError(
                        f"Invalid MD tag {md!r}: unexpected {tok!r}", read_name=read_name
                    ) from None
                _append_run(runs, 1, op)
                dangling_caret = False
        if dangling_caret:
            raise MalformedAnnotationError(
                f"Invalid MD tag {md!r}: '^' not followed by a deleted base", read_name=read_name
            )
        return cls(runs)

    @property
    def runs(self) -> Tuple[Run[MdTagOperator], ...]:
        return self._runs

    def __len__(self) -> int:
        return len(self._runs)

    def __iter__(self):
        return iter(self._runs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MdTag):
            return NotImplemented
        return self._runs == other._runs

    def __repr__(self) -> str:
        return f"MdTag({self.to_code_string()!r})"

    def is_empty(self) -> bool:
        return not self._runs

    def reference_length(self) -> int:
        """Number of reference bases covered by the tag."""
        return sum(r.length for r in self._runs if r.operator.consumes_reference_bases)

    def read_length(self) -> int:
        """Number of read bases covered by the tag (insertions and soft clips excluded)."""
        return sum(r.length for r in self._runs if r.operator.consumes_read_bases)

    def compact_runs(self) -> List[Run[MdTagOperator]]:
        """Runs with zero-length entries dropped and their neighbours re-merged."""
        out: List[Run[MdTagOperator]] = []
        for run in self._runs:
            if run.length > 0:
                _append_run(out, run.length, run.operator)
        return out

    def to_code_string(self) -> str:
        """Canonical run-length form, e.g. ``10=1A5=1a1c6=``."""
        return "".join(f"{r.length}{r.operator.code}" for r in self.compact_runs())

    def to_md_string(self) -> str:
        """Serialize back to SAM MD syntax."""
        out: List[str] = []
        matches = 0
        in_deletion = False
        for run in self.compact_runs():
            op = run.operator
            if op is MdTagOperator.EXACT_MATCH:
                matches += run.length
                in_deletion = False
            elif op.is_deletion:
                if not in_deletion:
                    out.append(f"{matches}^")
                    matches = 0
                    in_deletion = True
                out.append(_MD_LETTER[op] * run.length)
            else:
                for _ in range(run.length):
                    out.append(f"{matches}{_MD_LETTER[op]}")
                    matches = 0
                in_deletion = False
        out.append(str(matches))
        return "".join(out)

    def __str__(self) -> str:
        return self.to_md_string()


class MdTagStack(RunLengthStack[MdTagOperator]):
    """Unit-granularity consumption of an :class:`MdTag`, e.g. 2^AT3 -> 1^AT3 -> ^AT3 -> ^T3."""

    @classmethod
    def from_md_tag(cls, md_tag: MdTag) -> "MdTagStack":
        return cls(md_tag.runs)

    def pop_unit(self) -> Optional[MdTagOperator]:
        # MD tags sometimes contain runs of length 0; skip over them.
        while True:
            top = self.peek()
            if top is None:
                return None
            if top.length == 0:
                self.pop_run()
                continue
            return super().pop_unit()

    def remaining_units(self) -> int:
        return self.total_units()
