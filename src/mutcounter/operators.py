from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple


class GenericOperator(Enum):
    """Per-base classification combining a CIGAR operator with an MD tag operator.

    Values are the short codes used in event dumps. Substitutions are named
    ``<reference>_TO_<read>``; the ``*_TO_N`` members are what :func:`classify` returns,
    since the MD tag names the reference base but not the read base.
    """

    DELETION = "D"
    DELETION_OF_A = "DA"
    DELETION_OF_C = "DC"
    DELETION_OF_G = "DG"
    DELETION_OF_T = "DT"

    MATCH = "="
    INSERTION = "I"

    UNKNOWN_MISMATCH = "X"
    A_TO_C = "AC"
    A_TO_G = "AG"
    A_TO_N = "AN"
    A_TO_T = "AT"
    C_TO_A = "CA"
    C_TO_G = "CG"
    C_TO_N = "CN"
    C_TO_T = "CT"
    G_TO_A = "GA"
    G_TO_C = "GC"
    G_TO_N = "GN"
    G_TO_T = "GT"
    T_TO_A = "TA"
    T_TO_C = "TC"
    T_TO_G = "TG"
    T_TO_N = "TN"

    UNKNOWN = "N"
    SOFT_CLIP = "S"
    SPLICE_JUNCTION = "J"

    @property
    def code(self) -> str:
        return self.value

    @property
    def is_mutation(self) -> bool:
        return _TRAITS[self][0]

    @property
    def consumes_read_bases(self) -> bool:
        return _TRAITS[self][1]

    @property
    def consumes_reference_bases(self) -> bool:
        return _TRAITS[self][2]

    @property
    def is_deletion(self) -> bool:
        return self.is_mutation and not self.consumes_read_bases

    @property
    def is_substitution(self) -> bool:
        return self.is_mutation and self.consumes_read_bases

    @property
    def reference_base(self) -> Optional[str]:
        """Reference base for base-specific deletions and substitutions."""
        if self.name.startswith("DELETION_OF_"):
            return self.name[-1]
        if "_TO_" in self.name:
            return self.name[0]
        return None

    @classmethod
    def substitution(cls, ref: str, alt: str) -> "GenericOperator":
        """Return the ``<ref>_TO_<alt>`` member (``alt`` may be N)."""
        try:
            return cls[f"{ref.upper()}_TO_{alt.upper()}"]
        except KeyError:
            raise ValueError(f"No substitution operator for {ref}->{alt}") from None

    def __str__(self) -> str:
        return self.value


_MUT_READ_REF = (True, True, True)

# (is_mutation, consumes_read_bases, consumes_reference_bases)
_TRAITS: Dict[GenericOperator, Tuple[bool, bool, bool]] = {
    GenericOperator.DELETION: (True, False, True),
    GenericOperator.DELETION_OF_A: (True, False, True),
    GenericOperator.DELETION_OF_C: (True, False, True),
    GenericOperator.DELETION_OF_G: (True, False, True),
    GenericOperator.DELETION_OF_T: (True, False, True),
    GenericOperator.MATCH: (False, True, True),
    GenericOperator.INSERTION: (False, True, False),
    GenericOperator.UNKNOWN: (False, True, True),
    GenericOperator.SOFT_CLIP: (False, True, True),
    GenericOperator.SPLICE_JUNCTION: (False, False, True),
}
for _op in GenericOperator:
    if _op is GenericOperator.UNKNOWN_MISMATCH or "_TO_" in _op.name:
        _TRAITS[_op] = _MUT_READ_REF
del _op
