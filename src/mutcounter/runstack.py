"""Run-length operator stacks.

A CIGAR or MD tag is a sequence of ``(length, operator)`` runs. To walk two of them in
lockstep we load each onto a stack and pop one base ("unit") at a time; a popped run that
still has length left is pushed back with its length decremented::

    3M1I2M  --pop-->  M, stack is 2M1I2M
    1D2M1I  --pop-->  D, stack is 2M1I

Pushing merges into the top run when the operators match, so pushing M onto 3M1D2M gives
4M1D2M rather than 1M3M1D2M. No two adjacent runs ever share an operator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, Tuple, TypeVar

Op = TypeVar("Op")


@dataclass(frozen=True)
class Run(Generic[Op]):
    """A run of ``length`` consecutive units of ``operator``."""

    length: int
    operator: Op

    def __str__(self) -> str:
        return f"{self.length}{self.operator}"


class RunLengthStack(Generic[Op]):
    """LIFO container of runs with unit-granularity pop/push.

    ``runs`` is given in consumption order: ``runs[0]`` becomes the top of the stack.
    """

    def __init__(self, runs: Iterable[Run[Op]] | Iterable[Tuple[int, Op]] = ()) -> None:
        # Top of the stack is the end of the list.
        self._runs: List[Run[Op]] = []
        for run in reversed(list(runs)):
            if not isinstance(run, Run):
                run = Run(int(run[0]), run[1])
            self.push_run(run.length, run.operator)

    def __len__(self) -> int:
        return len(self._runs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({' '.join(str(r) for r in self.runs())})"

    def is_empty(self) -> bool:
        return not self._runs

    def has_elements(self) -> bool:
        return bool(self._runs)

    def total_units(self) -> int:
        return sum(r.length for r in self._runs)

    def peek(self) -> Optional[Run[Op]]:
        return self._runs[-1] if self._runs else None

    def pop_run(self) -> Optional[Run[Op]]:
        return self._runs.pop() if self._runs else None

    def pop_unit(self) -> Optional[Op]:
        """Remove one unit of the top run and return its operator (None when empty)."""
        if not self._runs:
            return None
        top = self._runs.pop()
        if top.length > 1:
            self._runs.append(Run(top.length - 1, top.operator))
        return top.operator

    def push_unit(self, operator: Op) -> None:
        self.push_run(1, operator)

    def push_run(self, length: int, operator: Op) -> None:
        if length < 0:
            raise ValueError(f"Run length must be non-negative, got {length}")
        top = self.peek()
        if top is not None and top.operator == operator:
            self._runs[-1] = Run(top.length + length, operator)
        else:
            self._runs.append(Run(length, operator))

    def reverse(self) -> None:
        """Reverse the stack in place: the top run becomes the bottom one."""
        self._runs.reverse()

    def runs(self) -> List[Run[Op]]:
        """Runs in consumption order (top first)."""
        return list(reversed(self._runs))

    def expand(self) -> List[Op]:
        """Unit-by-unit expansion in consumption order."""
        out: List[Op] = []
        for run in self.runs():
            out.extend([run.operator] * run.length)
        return out
