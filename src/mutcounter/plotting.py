from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def plot_mutation_rate_hist(
    *,
    bin_edges: List[float],
    counts: List[int],
    out_png: str | Path,
    title: str = "Mutation rate at covered positions",
    log_scale: bool = True,
) -> None:
    """Bar plot of a precomputed mutation-rate histogram (as stored in summary.json).

    Most positions sit in the first bin, so the y axis is logarithmic by default.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    if len(bin_edges) != len(counts) + 1:
        raise ValueError("mutation_rate_hist must contain bin_edges of length len(counts)+1")

    widths = [bin_edges[i + 1] - bin_edges[i] for i in range(len(counts))]
    centers = [bin_edges[i] + widths[i] / 2.0 for i in range(len(counts))]

    plt.figure()
    plt.bar(centers, counts, width=widths, align="center")
    if log_scale and any(c > 0 for c in counts):
        plt.yscale("log")
    plt.xlabel("Mutation rate (deletions + substitutions) / total")
    plt.ylabel("Positions")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_event_totals(
    *,
    event_totals: Dict[str, int],
    out_png: str | Path,
    title: str = "Counted events",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    keys = ["match", "substitution", "deletion", "insertion"]
    labels = ["Match", "Substitution", "Deletion", "Insertion"]
    values = [int(event_totals.get(k, 0)) for k in keys]

    plt.figure()
    plt.bar(labels, values)
    plt.ylabel("Count")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_fragment_outcomes(
    *,
    walk_stats: Dict[str, object],
    out_png: str | Path,
    title: str = "Fragments",
) -> None:
    """Counted, unmapped and failed fragments, with failures split by error kind."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = ["Counted", "Unmapped"]
    values = [int(walk_stats.get("fragments_counted", 0)), int(walk_stats.get("fragments_unmapped", 0))]
    errors = walk_stats.get("errors_by_kind") or {}
    for kind, n in sorted(errors.items()):
        labels.append(kind.replace("Error", ""))
        values.append(int(n))

    plt.figure()
    plt.bar(range(len(values)), values)
    plt.ylabel("Fragment count")
    plt.title(title)
    plt.xticks(range(len(values)), labels, rotation=15, ha="right")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
