import numpy as np
import pytest

from mutcounter.errors import (
    ConfigurationError,
    OutOfRangePositionError,
    UnregisteredChromosomeError,
)
from mutcounter.models import Strand
from mutcounter.operators import GenericOperator
from mutcounter.profiles import (
    ChromosomeProfile,
    MutationProfile,
    MutationProfileCollection,
    PositionCounts,
)

POS = Strand.POSITIVE
NEG = Strand.NEGATIVE


def filled_collection() -> MutationProfileCollection:
    profiles = MutationProfileCollection({"chr1": 100, "chr2": 50})
    for _ in range(3):
        profiles.record("chr1", POS, 9, GenericOperator.MATCH)
    profiles.record("chr1", POS, 9, GenericOperator.DELETION_OF_A)
    profiles.record("chr1", POS, 9, GenericOperator.C_TO_N, read_base="G")
    profiles.record("chr1", POS, 9, GenericOperator.INSERTION)
    profiles.record("chr1", NEG, 20, GenericOperator.MATCH)
    profiles.record("chr2", POS, 0, GenericOperator.T_TO_N, read_base="a")
    return profiles


def test_rates_and_total():
    c = PositionCounts(match=3, insertion=2, deletion=1, to_g=1)
    assert c.total == 5
    assert c.substitution == 1
    assert c.mutation_rate == pytest.approx(0.4)
    assert c.deletion_rate == pytest.approx(0.2)
    assert c.substitution_rate == pytest.approx(0.2)
    assert c.rate("deletion") == pytest.approx(0.2)
    with pytest.raises(ValueError):
        c.rate("insertion")


def test_zero_total_rates_are_zero():
    c = PositionCounts(insertion=4)
    assert c.total == 0
    assert (c.mutation_rate, c.deletion_rate, c.substitution_rate) == (0.0, 0.0, 0.0)


def test_record_dispatch():
    profiles = filled_collection()
    assert profiles.counts("chr1", POS, 9) == PositionCounts(match=3, insertion=1, deletion=1, to_g=1)
    assert profiles.counts("chr1", NEG, 20) == PositionCounts(match=1)
    assert profiles.counts("chr1", NEG, 9).total == 0
    assert profiles.counts("chr2", POS, 0) == PositionCounts(to_a=1)


def test_unknown_counts_as_match_and_n_base_is_ignored():
    profiles = MutationProfileCollection({"chr1": 10})
    profiles.record("chr1", POS, 1, GenericOperator.UNKNOWN)
    profiles.record("chr1", POS, 2, GenericOperator.A_TO_N, read_base="N")
    assert profiles.counts("chr1", POS, 1) == PositionCounts(match=1)
    assert profiles.counts("chr1", POS, 2).total == 0
    with pytest.raises(OutOfRangePositionError):
        profiles.record("chr1", POS, 10, GenericOperator.A_TO_N, read_base="N")


def test_unrecordable_operator():
    profiles = MutationProfileCollection({"chr1": 10})
    with pytest.raises(ValueError):
        profiles.record("chr1", POS, 1, GenericOperator.SOFT_CLIP)


def test_out_of_range_and_unregistered():
    profiles = MutationProfileCollection({"chr1": 10})
    with pytest.raises(OutOfRangePositionError):
        profiles.record("chr1", POS, 10, GenericOperator.MATCH)
    with pytest.raises(IndexError):
        profiles.record("chr1", POS, -1, GenericOperator.MATCH)
    with pytest.raises(UnregisteredChromosomeError):
        profiles.record("chrX", POS, 1, GenericOperator.MATCH)
    with pytest.raises(KeyError):
        profiles.length("chrX")


def test_register_is_idempotent():
    profiles = MutationProfileCollection()
    first = profiles.register("chr1", 100)
    assert profiles.register("chr1", 100) is first
    assert len(profiles) == 1
    assert "chr1" in profiles
    with pytest.raises(ConfigurationError):
        profiles.register("chr1", 200)
    with pytest.raises(ConfigurationError):
        profiles.register("chr2", 0)


def test_negative_threshold_rejected():
    with pytest.raises(ConfigurationError):
        MutationProfileCollection(coverage_threshold=-1)
    with pytest.raises(ConfigurationError):
        list(MutationProfileCollection().iter_rows(-2))


def test_chromosome_profile_validation():
    pos = MutationProfile("chr1", 100, POS)
    neg = MutationProfile("chr1", 100, NEG)
    cp = ChromosomeProfile(pos, neg)
    assert cp.name == "chr1"
    assert cp.length == 100
    assert cp.strand(NEG) is neg
    with pytest.raises(ConfigurationError):
        ChromosomeProfile(neg, pos)
    with pytest.raises(ConfigurationError):
        ChromosomeProfile(pos, MutationProfile("chr2", 100, NEG))
    with pytest.raises(ConfigurationError):
        ChromosomeProfile(pos, MutationProfile("chr1", 99, NEG))


def test_iter_rows_order_and_threshold():
    profiles = filled_collection()
    rows = list(profiles.iter_rows())
    assert [(r.chrom, r.strand, r.pos0) for r in rows] == [
        ("chr1", POS, 9),
        ("chr1", NEG, 20),
        ("chr2", POS, 0),
    ]
    rows = list(profiles.iter_rows(coverage_threshold=2))
    assert [(r.chrom, r.pos0) for r in rows] == [("chr1", 9)]


def test_insertion_only_position_needs_zero_threshold():
    profiles = MutationProfileCollection({"chr1": 10})
    profiles.record("chr1", POS, 3, GenericOperator.INSERTION)
    assert list(profiles.iter_rows()) == []
    rows = list(profiles.iter_rows(coverage_threshold=0))
    assert len(rows) == 1
    assert rows[0].counts.insertion == 1


def test_iter_rows_interleaves_strands_by_position():
    profiles = MutationProfileCollection({"chr1": 100})
    profiles.record("chr1", NEG, 5, GenericOperator.MATCH)
    profiles.record("chr1", POS, 7, GenericOperator.MATCH)
    profiles.record("chr1", NEG, 7, GenericOperator.DELETION)
    profiles.record("chr1", POS, 30, GenericOperator.MATCH)
    rows = [(r.strand, r.pos0) for r in profiles.iter_rows()]
    assert rows == [(NEG, 5), (POS, 7), (NEG, 7), (POS, 30)]


def test_zero_threshold_reports_touched_positions_only():
    profiles = MutationProfileCollection({"chr1": 5}, coverage_threshold=0)
    profiles.record("chr1", POS, 2, GenericOperator.MATCH)
    rows = list(profiles.iter_rows())
    assert [(r.strand, r.pos0) for r in rows] == [(POS, 2)]


def test_iter_track_nonzero_only():
    profiles = filled_collection()
    assert list(profiles.iter_track(POS, "mutation")) == [
        ("chr1", 9, pytest.approx(0.4)),
        ("chr2", 0, pytest.approx(1.0)),
    ]
    assert list(profiles.iter_track(POS, "deletion")) == [("chr1", 9, pytest.approx(0.2))]
    assert list(profiles.iter_track(NEG, "mutation")) == []
    assert list(profiles.iter_track(POS, "mutation", coverage_threshold=2)) == [
        ("chr1", 9, pytest.approx(0.4))
    ]
    with pytest.raises(ValueError):
        list(profiles.iter_track(POS, "insertion"))


def test_to_arrays():
    profiles = filled_collection()
    arrays = profiles.profile("chr1", POS).to_arrays()
    assert arrays["position"].tolist() == [9]
    assert arrays["total"].tolist() == [5]
    assert arrays["insertion"].tolist() == [1]
    np.testing.assert_allclose(arrays["mutation_rate"], [0.4])
    empty = profiles.profile("chr2", NEG).to_arrays()
    assert len(empty["position"]) == 0
    assert len(empty["mutation_rate"]) == 0


def test_merge():
    a = filled_collection()
    b = filled_collection()
    b.register("chr3", 10)
    a.merge(b)
    assert a.counts("chr1", POS, 9).match == 6
    assert a.chromosomes == ["chr1", "chr2", "chr3"]
