from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .cigar import CigarOperator, CigarStack
from .errors import ConfigurationError, MalformedAlignmentError, ReadError
from .mdtag import MdTag, MdTagOperator, MdTagStack
from .models import AlignedRead, MutationEvent, ReadPair
from .operators import GenericOperator
from .profiles import BASES, MutationProfileCollection
from .reconcile import classify

logger = logging.getLogger(__name__)

Fragment = Union[AlignedRead, ReadPair]
EventSink = Callable[[MutationEvent], None]
# Reference positions already counted for a fragment, keyed by chromosome.
Visited = Set[Tuple[str, int]]

# MD tags leave out insertions and soft clips.
_NOT_IN_MD = (CigarOperator.INSERTION, CigarOperator.SOFT_CLIP)


@dataclass
class WalkStats:
    """Counters collected while walking a stream of fragments."""

    fragments_total: int = 0
    fragments_counted: int = 0
    fragments_unmapped: int = 0
    fragments_failed: int = 0
    events_recorded: int = 0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)
    diagnostics: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "fragments_total": self.fragments_total,
            "fragments_counted": self.fragments_counted,
            "fragments_unmapped": self.fragments_unmapped,
            "fragments_failed": self.fragments_failed,
            "events_recorded": self.events_recorded,
            "errors_by_kind": dict(self.errors_by_kind),
            "diagnostics": list(self.diagnostics),
        }


class ReadWalker:
    """Classify every aligned base of a read and accumulate the results.

    Parameters
    ----------
    profiles:
        Collection receiving the counts. Every chromosome a read maps to must be
        registered before walking.
    edge_margin:
        Number of reference positions at each end of every read that are not counted.
    max_diagnostics:
        Number of per-read error messages kept in :class:`WalkStats` (and logged at
        WARNING level; later ones go to DEBUG).
    """

    def __init__(
        self,
        profiles: MutationProfileCollection,
        *,
        edge_margin: int = 0,
        max_diagnostics: int = 100,
    ) -> None:
        if edge_margin < 0:
            raise ConfigurationError("Number of bases excluded from edge of reads must be non-negative!")
        self.profiles = profiles
        self.edge_margin = int(edge_margin)
        self.max_diagnostics = int(max_diagnostics)

    # -----------------
    # Single read
    # -----------------

    def iter_read_events(self, read: AlignedRead, visited: Visited) -> Iterator[MutationEvent]:
        """Walk one read, yielding an event for each counted reference position.

        ``visited`` holds ``(chrom, pos0)`` keys and is updated in place. Positions already in
        it are skipped, which is how mates sharing one set avoid counting their overlap
        twice; mates on different chromosomes never shadow each other.

        Raises
        ------
        ReadError
            If the MD tag is missing or malformed, the CIGAR is unsupported, or the two
            disagree. Events already yielded for this read must then be discarded.
        """
        md_stack = MdTagStack.from_md_tag(MdTag.parse(read.md, read_name=read.name))
        cigar_stack = CigarStack.from_cigartuples(read.cigar, read_name=read.name)
        chrom = read.chrom
        length = self.profiles.length(chrom)

        k = self.edge_margin
        if k > 0:
            visited.update((chrom, p) for p in range(read.start0, read.start0 + k))
            visited.update((chrom, p) for p in range(read.end0 - k, read.end0))

        ref_pos = read.start0
        read_pos = 0
        while cigar_stack.has_elements():
            cigar_op = cigar_stack.pop_unit()
            md_op: Optional[MdTagOperator] = None
            if cigar_op not in _NOT_IN_MD:
                md_op = md_stack.pop_unit()
            op = classify(cigar_op, md_op, read_name=read.name)

            if 0 <= ref_pos < length and (chrom, ref_pos) not in visited:
                event = self._make_event(read, op, ref_pos, read_pos)
                if event is not None:
                    yield event
                # A soft-clipped base may still be covered by the mate.
                if cigar_op is not CigarOperator.SOFT_CLIP:
                    visited.add((chrom, ref_pos))

            if cigar_op.consumes_reference_bases:
                ref_pos += 1
            if cigar_op.consumes_read_bases:
                read_pos += 1

        leftover = md_stack.remaining_units()
        if leftover > 0:
            raise MalformedAlignmentError(
                f"MD tag covers {leftover} more reference bases than the CIGAR string.",
                read_name=read.name,
            )

    @staticmethod
    def _make_event(
        read: AlignedRead, op: GenericOperator, ref_pos: int, read_pos: int
    ) -> Optional[MutationEvent]:
        if op is GenericOperator.SOFT_CLIP:
            return None
        read_base = None
        if op.is_substitution:
            seq = read.sequence or ""
            read_base = seq[read_pos].upper() if read_pos < len(seq) else "N"
            # Only A, C, G and T are counted as substitution targets.
            if read_base not in BASES:
                return None
        return MutationEvent(
            read_name=read.name,
            chrom=read.chrom,
            strand=read.strand,
            pos0=ref_pos,
            read_pos=read_pos,
            operator=op,
            read_base=read_base,
            ref_base=op.reference_base,
        )

    # -----------------
    # Fragments
    # -----------------

    @staticmethod
    def _mapped_mates(fragment: Fragment) -> List[AlignedRead]:
        if isinstance(fragment, ReadPair):
            return [m for m in fragment.mates if m.is_mapped]
        if isinstance(fragment, AlignedRead):
            return [fragment] if fragment.is_mapped else []
        raise TypeError(
            "Mutation counter only accepts AlignedRead and ReadPair records; "
            f"got {type(fragment).__name__}."
        )

    def fragment_events(self, fragment: Fragment) -> List[MutationEvent]:
        """All events of a read or mate pair, without recording them."""
        visited: Visited = set()
        events: List[MutationEvent] = []
        for mate in self._mapped_mates(fragment):
            events.extend(self.iter_read_events(mate, visited))
        return events

    def _record(self, events: Iterable[MutationEvent], sink: Optional[EventSink]) -> int:
        n = 0
        for event in events:
            self.profiles.record_event(event)
            if sink is not None:
                sink(event)
            n += 1
        return n

    def walk_read(self, read: AlignedRead, *, event_sink: Optional[EventSink] = None) -> List[MutationEvent]:
        events = self.fragment_events(read)
        self._record(events, event_sink)
        return events

    def walk_pair(self, pair: ReadPair, *, event_sink: Optional[EventSink] = None) -> List[MutationEvent]:
        events = self.fragment_events(pair)
        self._record(events, event_sink)
        return events

    def walk(
        self,
        fragments: Iterable[Fragment],
        *,
        event_sink: Optional[EventSink] = None,
        stats: Optional[WalkStats] = None,
    ) -> WalkStats:
        """Walk a stream of reads and pairs, skipping (and reporting) fragments that fail."""
        stats = stats if stats is not None else WalkStats()
        for fragment in fragments:
            stats.fragments_total += 1
            if not self._mapped_mates(fragment):
                stats.fragments_unmapped += 1
                continue
            try:
                events = self.fragment_events(fragment)
            except ReadError as err:
                self._report(stats, err)
                continue
            stats.events_recorded += self._record(events, event_sink)
            stats.fragments_counted += 1
        return stats

    def _report(self, stats: WalkStats, err: ReadError) -> None:
        stats.fragments_failed += 1
        kind = type(err).__name__
        stats.errors_by_kind[kind] = stats.errors_by_kind.get(kind, 0) + 1
        msg = f"{kind}: {err}"
        if len(stats.diagnostics) < self.max_diagnostics:
            stats.diagnostics.append(msg)
            logger.warning("Skipping fragment: %s", msg)
        else:
            logger.debug("Skipping fragment: %s", msg)
