import pytest

from mutcounter.cigar import CigarOperator, CigarStack, cigar_to_string, parse_cigar_string
from mutcounter.errors import IncompatibleOperatorsError, MalformedAlignmentError
from mutcounter.mdtag import MdTagOperator
from mutcounter.operators import GenericOperator
from mutcounter.reconcile import classify

M = CigarOperator.MATCH
D = CigarOperator.DELETION


@pytest.mark.parametrize(
    "cigar_op, md_op, expected",
    [
        (M, MdTagOperator.EXACT_MATCH, GenericOperator.MATCH),
        (M, MdTagOperator.MISMATCH_FROM_A, GenericOperator.A_TO_N),
        (M, MdTagOperator.MISMATCH_FROM_G, GenericOperator.G_TO_N),
        (M, MdTagOperator.IGNORE, GenericOperator.UNKNOWN),
        (D, MdTagOperator.GENERIC_DELETION, GenericOperator.DELETION),
        (D, MdTagOperator.DELETION_OF_T, GenericOperator.DELETION_OF_T),
        (CigarOperator.INSERTION, None, GenericOperator.INSERTION),
        (CigarOperator.SOFT_CLIP, None, GenericOperator.SOFT_CLIP),
        # MD operator is not consulted for insertions and soft clips
        (CigarOperator.INSERTION, MdTagOperator.DELETION_OF_A, GenericOperator.INSERTION),
    ],
)
def test_classify_table(cigar_op, md_op, expected):
    assert classify(cigar_op, md_op) is expected


@pytest.mark.parametrize(
    "cigar_op, md_op",
    [
        (M, MdTagOperator.DELETION_OF_A),
        (M, MdTagOperator.GENERIC_DELETION),
        (M, MdTagOperator.GENERIC_MISMATCH),
        (D, MdTagOperator.EXACT_MATCH),
        (D, MdTagOperator.MISMATCH_FROM_C),
        (M, None),
        (D, None),
    ],
)
def test_classify_incompatible(cigar_op, md_op):
    with pytest.raises(IncompatibleOperatorsError) as excinfo:
        classify(cigar_op, md_op, read_name="r1")
    assert excinfo.value.cigar_op is cigar_op
    assert excinfo.value.md_op is md_op
    assert excinfo.value.read_name == "r1"


def test_incompatible_message():
    with pytest.raises(IncompatibleOperatorsError, match="not compatible"):
        classify(M, MdTagOperator.DELETION_OF_C)


@pytest.mark.parametrize(
    "cigar_op",
    [CigarOperator.HARD_CLIP, CigarOperator.SKIP, CigarOperator.PAD, CigarOperator.EQUAL, CigarOperator.DIFF],
)
def test_unsupported_cigar_operators(cigar_op):
    with pytest.raises(MalformedAlignmentError):
        classify(cigar_op, MdTagOperator.EXACT_MATCH)


def test_generic_operator_traits():
    assert GenericOperator.DELETION_OF_A.is_deletion
    assert not GenericOperator.DELETION_OF_A.consumes_read_bases
    assert GenericOperator.C_TO_T.is_substitution
    assert GenericOperator.C_TO_T.reference_base == "C"
    assert not GenericOperator.MATCH.is_mutation
    assert not GenericOperator.INSERTION.consumes_reference_bases
    assert not GenericOperator.SPLICE_JUNCTION.consumes_read_bases
    assert GenericOperator.substitution("a", "g") is GenericOperator.A_TO_G
    with pytest.raises(ValueError):
        GenericOperator.substitution("A", "A")


def test_cigar_string_helpers():
    tuples = parse_cigar_string("3S10M1D5M2I")
    assert tuples == ((4, 3), (0, 10), (2, 1), (0, 5), (1, 2))
    assert cigar_to_string(tuples) == "3S10M1D5M2I"
    with pytest.raises(MalformedAlignmentError):
        parse_cigar_string("10")
    with pytest.raises(MalformedAlignmentError):
        parse_cigar_string("5Q")


def test_cigar_stack():
    stack = CigarStack.from_cigartuples([(4, 1), (0, 2), (1, 1)])
    assert stack.expand() == [
        CigarOperator.SOFT_CLIP,
        CigarOperator.MATCH,
        CigarOperator.MATCH,
        CigarOperator.INSERTION,
    ]
    with pytest.raises(MalformedAlignmentError):
        CigarStack.from_cigartuples([])
    with pytest.raises(MalformedAlignmentError):
        CigarStack.from_cigartuples([(12, 3)])
