"""Exceptions raised while classifying reads and filling mutation profiles.

Per-read problems derive from :class:`ReadError`; the read walker catches those, logs them
and moves on to the next fragment. Everything else is fatal for the run.
"""

from __future__ import annotations

from typing import Any, Optional


class MutationCounterError(RuntimeError):
    """Base class for all mutcounter errors."""


class ReadError(MutationCounterError):
    """A single read (or read pair) cannot be classified."""

    def __init__(self, message: str, *, read_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.read_name = read_name

    def __str__(self) -> str:
        msg = super().__str__()
        if self.read_name:
            return f"{msg} (read {self.read_name})"
        return msg


class MissingAnnotationError(ReadError):
    """The read has no MD tag, or an empty one."""


class MalformedAnnotationError(ReadError):
    """The MD tag contains characters that cannot be parsed."""


class MalformedAlignmentError(ReadError):
    """The CIGAR is missing, uses an unsupported operator, or disagrees in length with the MD tag."""


class IncompatibleOperatorsError(ReadError):
    """CIGAR and MD tag disagree at one base."""

    def __init__(
        self,
        message: str,
        *,
        cigar_op: Any = None,
        md_op: Any = None,
        read_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, read_name=read_name)
        self.cigar_op = cigar_op
        self.md_op = md_op


class ProfileError(MutationCounterError):
    """Invalid access to a mutation profile."""


class OutOfRangePositionError(ProfileError, IndexError):
    pass


class UnregisteredChromosomeError(ProfileError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class ConfigurationError(MutationCounterError, ValueError):
    """Invalid settings detected before scanning."""
