from __future__ import annotations

from typing import Dict, Optional

from .cigar import CigarOperator
from .errors import IncompatibleOperatorsError, MalformedAlignmentError
from .mdtag import MdTagOperator
from .operators import GenericOperator

_AT_MATCH: Dict[MdTagOperator, GenericOperator] = {
    MdTagOperator.EXACT_MATCH: GenericOperator.MATCH,
    MdTagOperator.MISMATCH_FROM_A: GenericOperator.A_TO_N,
    MdTagOperator.MISMATCH_FROM_C: GenericOperator.C_TO_N,
    MdTagOperator.MISMATCH_FROM_G: GenericOperator.G_TO_N,
    MdTagOperator.MISMATCH_FROM_T: GenericOperator.T_TO_N,
    MdTagOperator.IGNORE: GenericOperator.UNKNOWN,
}

_AT_DELETION: Dict[MdTagOperator, GenericOperator] = {
    MdTagOperator.GENERIC_DELETION: GenericOperator.DELETION,
    MdTagOperator.DELETION_OF_A: GenericOperator.DELETION_OF_A,
    MdTagOperator.DELETION_OF_C: GenericOperator.DELETION_OF_C,
    MdTagOperator.DELETION_OF_G: GenericOperator.DELETION_OF_G,
    MdTagOperator.DELETION_OF_T: GenericOperator.DELETION_OF_T,
}


def classify(
    cigar_op: CigarOperator,
    md_op: Optional[MdTagOperator],
    *,
    read_name: Optional[str] = None,
) -> GenericOperator:
    """Combine one CIGAR unit and one MD tag unit into a :class:`GenericOperator`.

    MD tags do not describe insertions or soft clips, so ``md_op`` is not consulted for
    those (and is usually None).

    Raises
    ------
    IncompatibleOperatorsError
        If the CIGAR says match and the MD tag says deletion, or vice versa, or if the MD
        tag ran out before the CIGAR did (``md_op`` is None).
    MalformedAlignmentError
        For CIGAR operators other than M, I, D and S.
    """
    if cigar_op is CigarOperator.INSERTION:
        return GenericOperator.INSERTION
    if cigar_op is CigarOperator.SOFT_CLIP:
        return GenericOperator.SOFT_CLIP

    if cigar_op is CigarOperator.MATCH:
        table = _AT_MATCH
    elif cigar_op is CigarOperator.DELETION:
        table = _AT_DELETION
    else:
        raise MalformedAlignmentError(
            f"Unsupported CIGAR operator {cigar_op.char}; only M, I, D and S are recognized.",
            read_name=read_name,
        )

    if md_op is None:
        raise IncompatibleOperatorsError(
            f"MD tag is shorter than the CIGAR string (CIGAR operator {cigar_op.char}).",
            cigar_op=cigar_op,
            md_op=md_op,
            read_name=read_name,
        )
    try:
        return table[md_op]
    except KeyError:
        raise IncompatibleOperatorsError(
            "CIGAR string and MD tag are not compatible. "
            f"CIGAR operator is {cigar_op.char} and MD tag operator is {md_op.code}.",
            cigar_op=cigar_op,
            md_op=md_op,
            read_name=read_name,
        ) from None
