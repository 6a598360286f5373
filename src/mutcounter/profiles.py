"""Position-indexed mutation counters.

A :class:`MutationProfileCollection` holds one :class:`ChromosomeProfile` per reference
sequence, each pairing a positive- and a negative-strand :class:`MutationProfile`. Counts
are sparse (only touched positions are stored) and positions are 0-based.

Rates at a position are derived from ``total = matches + deletions + substitutions``.
Insertions are reported but left out of the denominator: an insertion does not occupy a
reference position.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from .errors import ConfigurationError, OutOfRangePositionError, UnregisteredChromosomeError
from .models import MutationEvent, Strand
from .operators import GenericOperator

logger = logging.getLogger(__name__)

BASES: Tuple[str, ...] = ("A", "C", "G", "T")
RATE_NAMES: Tuple[str, ...] = ("mutation", "deletion", "substitution")


def _ratio(num: int, total: int) -> float:
    return num / total if total > 0 else 0.0


@dataclass(frozen=True)
class PositionCounts:
    """Counters at one (chromosome, strand, position)."""

    match: int = 0
    insertion: int = 0
    deletion: int = 0
    to_a: int = 0
    to_c: int = 0
    to_g: int = 0
    to_t: int = 0

    @property
    def substitution(self) -> int:
        return self.to_a + self.to_c + self.to_g + self.to_t

    @property
    def total(self) -> int:
        return self.match + self.deletion + self.substitution

    @property
    def mutation_rate(self) -> float:
        return _ratio(self.deletion + self.substitution, self.total)

    @property
    def deletion_rate(self) -> float:
        return _ratio(self.deletion, self.total)

    @property
    def substitution_rate(self) -> float:
        return _ratio(self.substitution, self.total)

    def rate(self, name: str) -> float:
        if name not in RATE_NAMES:
            raise ValueError(f"Unknown rate {name!r}; expected one of {RATE_NAMES}")
        return getattr(self, f"{name}_rate")


@dataclass(frozen=True)
class ProfileRow:
    chrom: str
    strand: Strand
    pos0: int
    counts: PositionCounts


class MutationProfile:
    """Counts for one strand of one chromosome."""

    def __init__(self, chrom: str, length: int, strand: Strand) -> None:
        if not chrom:
            raise ConfigurationError("Chromosome name must be a non-empty string.")
        if length <= 0:
            raise ConfigurationError(
                f"Chromosome lengths must be positive; got {length} for {chrom}."
            )
        if not isinstance(strand, Strand):
            raise ConfigurationError(f"Invalid strand {strand!r}.")
        self.chrom = chrom
        self.length = int(length)
        self.strand = strand
        self.matches: Counter = Counter()
        self.insertions: Counter = Counter()
        self.deletions: Counter = Counter()
        self.substitutions: Dict[str, Counter] = {b: Counter() for b in BASES}

    def __repr__(self) -> str:
        return f"MutationProfile({self.chrom!r}, length={self.length}, strand={self.strand.label})"

    def check_position(self, pos0: int) -> None:
        if not 0 <= pos0 < self.length:
            raise OutOfRangePositionError(
                f"Position {pos0} is outside {self.chrom} (length {self.length})."
            )

    def add_match(self, pos0: int) -> None:
        self.check_position(pos0)
        self.matches[pos0] += 1

    def add_insertion(self, pos0: int) -> None:
        self.check_position(pos0)
        self.insertions[pos0] += 1

    def add_deletion(self, pos0: int) -> None:
        self.check_position(pos0)
        self.deletions[pos0] += 1

    def add_substitution(self, base: str, pos0: int) -> None:
        self.check_position(pos0)
        self.substitutions[base][pos0] += 1

    def counts(self, pos0: int) -> PositionCounts:
        subs = self.substitutions
        return PositionCounts(
            match=self.matches[pos0],
            insertion=self.insertions[pos0],
            deletion=self.deletions[pos0],
            to_a=subs["A"][pos0],
            to_c=subs["C"][pos0],
            to_g=subs["G"][pos0],
            to_t=subs["T"][pos0],
        )

    def positions(self) -> List[int]:
        """Sorted positions with at least one count of any kind."""
        touched = set(self.matches) | set(self.insertions) | set(self.deletions)
        for counter in self.substitutions.values():
            touched.update(counter)
        return sorted(touched)

    def merge(self, other: "MutationProfile") -> None:
        """Add another profile's counts into this one (e.g. per-shard accumulation)."""
        if (other.chrom, other.length, other.strand) != (self.chrom, self.length, self.strand):
            raise ConfigurationError(f"Cannot merge {other!r} into {self!r}.")
        self.matches.update(other.matches)
        self.insertions.update(other.insertions)
        self.deletions.update(other.deletions)
        for b in BASES:
            self.substitutions[b].update(other.substitutions[b])

    def to_arrays(self) -> Dict[str, np.ndarray]:
        """Column arrays over touched positions, including derived totals and rates."""
        pos = np.asarray(self.positions(), dtype=np.int64)

        def col(counter: Counter) -> np.ndarray:
            return np.fromiter((counter[p] for p in pos.tolist()), dtype=np.int64, count=len(pos))

        out: Dict[str, np.ndarray] = {
            "position": pos,
            "match": col(self.matches),
            "insertion": col(self.insertions),
            "deletion": col(self.deletions),
        }
        for b in BASES:
            out[b] = col(self.substitutions[b])
        substitution = out["A"] + out["C"] + out["G"] + out["T"]
        total = out["match"] + out["deletion"] + substitution
        out["substitution"] = substitution
        out["total"] = total

        def rate(num: np.ndarray) -> np.ndarray:
            return np.divide(
                num, total, out=np.zeros(len(pos), dtype=np.float64), where=total > 0
            )

        out["mutation_rate"] = rate(out["deletion"] + substitution)
        out["deletion_rate"] = rate(out["deletion"])
        out["substitution_rate"] = rate(substitution)
        return out


@dataclass(frozen=True)
class ChromosomeProfile:
    """The positive- and negative-strand profiles of one chromosome."""

    positive: MutationProfile
    negative: MutationProfile

    def __post_init__(self) -> None:
        if self.positive.strand is not Strand.POSITIVE:
            raise ConfigurationError("ChromosomeProfile positive profile must be on the positive strand.")
        if self.negative.strand is not Strand.NEGATIVE:
            raise ConfigurationError("ChromosomeProfile negative profile must be on the negative strand.")
        if self.positive.chrom != self.negative.chrom:
            raise ConfigurationError(
                "ChromosomeProfile passed strand profiles with different chromosome names "
                f"({self.positive.chrom} vs {self.negative.chrom})."
            )
        if self.positive.length != self.negative.length:
            raise ConfigurationError(
                "ChromosomeProfile passed strand profiles with different lengths "
                f"({self.positive.length} vs {self.negative.length})."
            )

    @property
    def name(self) -> str:
        return self.positive.chrom

    @property
    def length(self) -> int:
        return self.positive.length

    def strand(self, strand: Strand) -> MutationProfile:
        return self.positive if strand is Strand.POSITIVE else self.negative


class MutationProfileCollection:
    """Chromosome name -> :class:`ChromosomeProfile`, kept in registration order.

    Parameters
    ----------
    lengths:
        Optional ``{chrom: length}`` mapping registered up front.
    coverage_threshold:
        Default minimum ``total`` for positions reported by :meth:`iter_rows` and
        :meth:`iter_track`.
    """

    def __init__(
        self,
        lengths: Optional[Mapping[str, int]] = None,
        *,
        coverage_threshold: int = 1,
    ) -> None:
        if coverage_threshold < 0:
            raise ConfigurationError("Coverage threshold must be non-negative!")
        self.coverage_threshold = int(coverage_threshold)
        self._profiles: Dict[str, ChromosomeProfile] = {}
        for chrom, length in (lengths or {}).items():
            self.register(chrom, length)

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, chrom: object) -> bool:
        return chrom in self._profiles

    def __iter__(self) -> Iterator[ChromosomeProfile]:
        return iter(self._profiles.values())

    def __getitem__(self, chrom: str) -> ChromosomeProfile:
        try:
            return self._profiles[chrom]
        except KeyError:
            raise UnregisteredChromosomeError(f"Chromosome {chrom} has not been registered.") from None

    @property
    def chromosomes(self) -> List[str]:
        return list(self._profiles)

    def register(self, chrom: str, length: int) -> ChromosomeProfile:
        """Create the strand profiles for ``chrom``; re-registering the same length is a no-op."""
        existing = self._profiles.get(chrom)
        if existing is not None:
            if existing.length != int(length):
                raise ConfigurationError(
                    f"Chromosome {chrom} already registered with length {existing.length}; "
                    f"got {length}."
                )
            return existing
        profile = ChromosomeProfile(
            positive=MutationProfile(chrom, length, Strand.POSITIVE),
            negative=MutationProfile(chrom, length, Strand.NEGATIVE),
        )
        self._profiles[chrom] = profile
        logger.debug("Registered %s (length %d)", chrom, profile.length)
        return profile

    def length(self, chrom: str) -> int:
        return self[chrom].length

    def profile(self, chrom: str, strand: Strand) -> MutationProfile:
        return self[chrom].strand(strand)

    def record(
        self,
        chrom: str,
        strand: Strand,
        pos0: int,
        operator: GenericOperator,
        read_base: Optional[str] = None,
    ) -> None:
        """Increment the counter matching ``operator`` at ``pos0``.

        Matches and unknown bases (N in the MD tag) count as matches. Substitutions are
        keyed by ``read_base``; a read base outside A/C/G/T is not counted.
        """
        profile = self.profile(chrom, strand)
        if operator in (GenericOperator.MATCH, GenericOperator.UNKNOWN):
            profile.add_match(pos0)
        elif operator is GenericOperator.INSERTION:
            profile.add_insertion(pos0)
        elif operator.is_deletion:
            profile.add_deletion(pos0)
        elif operator.is_substitution:
            base = (read_base or "N").upper()
            if base in BASES:
                profile.add_substitution(base, pos0)
            else:
                profile.check_position(pos0)
        else:
            raise ValueError(f"Operator {operator.name} cannot be recorded in a mutation profile.")

    def record_event(self, event: MutationEvent) -> None:
        self.record(event.chrom, event.strand, event.pos0, event.operator, event.read_base)

    def counts(self, chrom: str, strand: Strand, pos0: int) -> PositionCounts:
        return self.profile(chrom, strand).counts(pos0)

    def merge(self, other: "MutationProfileCollection") -> None:
        """Add all counts of ``other`` (chromosomes are registered as needed)."""
        for chrom_profile in other:
            mine = self.register(chrom_profile.name, chrom_profile.length)
            mine.positive.merge(chrom_profile.positive)
            mine.negative.merge(chrom_profile.negative)

    def _threshold(self, coverage_threshold: Optional[int]) -> int:
        thr = self.coverage_threshold if coverage_threshold is None else int(coverage_threshold)
        if thr < 0:
            raise ConfigurationError("Coverage threshold must be non-negative!")
        return thr

    def iter_rows(self, coverage_threshold: Optional[int] = None) -> Iterator[ProfileRow]:
        """Tabular records per touched (chromosome, strand, position) with enough coverage.

        Rows follow chromosome registration order, then position; at a position covered on
        both strands the positive row comes first. Untouched positions are never reported,
        even with a threshold of 0.
        """
        thr = self._threshold(coverage_threshold)
        for chrom_profile in self:
            strands = [chrom_profile.strand(s) for s in (Strand.POSITIVE, Strand.NEGATIVE)]
            touched = sorted(set(strands[0].positions()) | set(strands[1].positions()))
            for pos0 in touched:
                for profile in strands:
                    counts = profile.counts(pos0)
                    if counts.total >= thr and counts != PositionCounts():
                        yield ProfileRow(chrom_profile.name, profile.strand, pos0, counts)

    def iter_track(
        self,
        strand: Strand,
        rate: str = "mutation",
        coverage_threshold: Optional[int] = None,
    ) -> Iterator[Tuple[str, int, float]]:
        """``(chrom, pos0, rate)`` for positions with a nonzero rate and enough coverage."""
        if rate not in RATE_NAMES:
            raise ValueError(f"Unknown rate {rate!r}; expected one of {RATE_NAMES}")
        thr = self._threshold(coverage_threshold)
        for chrom_profile in self:
            arrays = chrom_profile.strand(strand).to_arrays()
            values = arrays[f"{rate}_rate"]
            keep = (values != 0) & (arrays["total"] >= thr)
            for pos0, value in zip(arrays["position"][keep].tolist(), values[keep].tolist()):
                yield chrom_profile.name, int(pos0), float(value)
