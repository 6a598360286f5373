from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .counter import count_bam, load_chromosome_lengths
from .errors import MutationCounterError
from .output import output_paths
from .plotting import plot_event_totals, plot_fragment_outcomes, plot_mutation_rate_hist
from .report import render_report
from .toy_data import make_toy_data, toy_output_paths
from .utils import default_prefix, ensure_outdir, read_json
from .validation import check_bam_exists, check_bam_index, validate_count_settings


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _non_negative_int(s: str) -> int:
    try:
        value = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected an integer, got {s!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"Expected a non-negative integer, got {value}")
    return value


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    if isinstance(err, (MutationCounterError, FileExistsError)):
        msg = str(err)
    else:
        msg = f"{err.__class__.__name__}: {err}"

    sys.stderr.write(msg + "\n")
    if log_path is not None and log_path.exists():
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mutcounter",
        description=(
            "mutcounter: per-position mismatch, deletion and insertion rates from aligned reads. "
            "Reconciles each read's CIGAR string with its MD tag and writes CSV and bedGraph profiles."
        ),
    )
    p.add_argument("--version", action="version", version=f"mutcounter {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny reference and MD-tagged BAM for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Print planned outputs without writing files.")

    # -----------------
    # count
    # -----------------
    c = sub.add_parser(
        "count",
        help="Count mutations per reference position and strand in an MD-tagged BAM.",
    )
    c.add_argument("--bam", required=True, type=_path_exists, help="Input BAM with MD tags.")
    c.add_argument("--outdir", required=True, help="Output directory.")
    c.add_argument(
        "--prefix",
        default=None,
        help="Output file prefix (default: BAM file name without extension).",
    )
    c.add_argument(
        "-n",
        "--edge-margin",
        type=_non_negative_int,
        default=0,
        help="Number of reference bases excluded from each end of every read.",
    )
    c.add_argument(
        "-t",
        "--coverage-threshold",
        type=_non_negative_int,
        default=1,
        help=(
            "Minimum total coverage (matches + deletions + substitutions) to report a position. "
            "Only positions touched by at least one read are reported, even with -t 0."
        ),
    )
    c.add_argument(
        "--paired",
        action="store_true",
        help="Pair mates by read name; overlapping bases are counted once per fragment.",
    )
    c.add_argument(
        "--lengths-from",
        choices=["header", "reads"],
        default="header",
        help="Chromosome lengths from the BAM header or from a pre-scan of the reads.",
    )
    c.add_argument(
        "--dump-events",
        action="store_true",
        help="Also write <prefix>_read_mutations.txt with one line per read-level mutation.",
    )

    # Read filters
    c.add_argument("--keep-duplicates", action="store_true", help="Do not skip duplicate reads.")
    c.add_argument("--include-secondary", action="store_true", help="Include secondary alignments.")
    c.add_argument(
        "--include-supplementary", action="store_true", help="Include supplementary alignments."
    )

    c.add_argument("--no-report", action="store_true", help="Skip plots and report.html.")
    c.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("--resume", action="store_true", help="Skip if outputs already exist.")

    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # report
    # -----------------
    r = sub.add_parser(
        "report",
        help="Rebuild plots and report.html from the summary.json of a finished count run.",
    )
    r.add_argument("--outdir", required=True, type=_path_exists, help="Output directory of a count run.")

    return p


def cmd_quickstart() -> int:
    lines = [
        "mutcounter quickstart (copy/paste):",
        "",
        "1) Single-end reads:",
        "   mutcounter count \\",
        "     --bam sample.bam \\",
        "     --outdir results/",
        "   Outputs: results/sample.csv, results/sample_{pos,neg}_*_rate.bedgraph,",
        "            results/report.html, results/summary.json",
        "",
        "2) Paired-end reads, ignoring 3 bases at each read end, positions with >= 10 reads:",
        "   mutcounter count \\",
        "     --bam sample.bam \\",
        "     --outdir results/ \\",
        "     --paired -n 3 -t 10",
        "",
        "3) Try it on generated data:",
        "   mutcounter make-toy-data --outdir toy/",
        "   mutcounter count --bam toy/toy.bam --outdir toy_out/ --paired --dump-events",
        "",
        "Tip: reads need MD tags. Add them with: samtools calmd -b in.bam ref.fa > out.bam",
        "Tip: use --dry-run to validate inputs and print the planned outputs.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        for name, path in toy_output_paths(outdir).items():
            print(f"  {name} -> {path}")
        return 0

    try:
        summary = make_toy_data(outdir=outdir)
    except Exception as e:
        return _handle_error(e)
    print(json.dumps(summary, indent=2))
    return 0


def _write_plots_and_report(outdir: Path, run: dict) -> Path:
    plots_dir = outdir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    rate_png = plots_dir / "mutation_rate_hist.png"
    events_png = plots_dir / "event_totals.png"
    fragments_png = plots_dir / "fragment_outcomes.png"

    plot_mutation_rate_hist(
        bin_edges=run["mutation_rate_hist"]["bin_edges"],
        counts=run["mutation_rate_hist"]["counts"],
        out_png=rate_png,
    )
    plot_event_totals(event_totals=run["event_totals"], out_png=events_png)
    plot_fragment_outcomes(walk_stats=run["walk"], out_png=fragments_png)

    plots_rel = {
        "mutation_rate_hist": str(Path("plots") / rate_png.name),
        "event_totals": str(Path("plots") / events_png.name),
        "fragment_outcomes": str(Path("plots") / fragments_png.name),
    }
    return render_report(outdir=outdir, version=__version__, run=run, plots=plots_rel)


def cmd_count(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "count.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("mutcounter")
    logger.info("mutcounter %s", __version__)

    try:
        validate_count_settings(
            edge_margin=int(args.edge_margin),
            coverage_threshold=int(args.coverage_threshold),
            lengths_from=args.lengths_from,
        )
        check_bam_exists(args.bam)
        prefix = args.prefix or default_prefix(args.bam)
        paths = output_paths(outdir, prefix, dump_events=bool(args.dump_events))

        if args.dry_run:
            indexed = check_bam_index(args.bam)
            lengths = load_chromosome_lengths(args.bam, args.lengths_from)
            print("Dry-run: inputs look OK.")
            print(f"BAM index: {'found' if indexed else 'missing (not required)'}")
            print(f"Chromosomes: {len(lengths)} (lengths from {args.lengths_from})")
            print("Planned outputs:")
            for name, path in paths.items():
                print(f"  {name} -> {path}")
            print(f"  summary.json -> {outdir / 'summary.json'}")
            if not args.no_report:
                print(f"  report.html -> {outdir / 'report.html'}")
            return 0

        outdir = ensure_outdir(outdir)

        summary_path = outdir / "summary.json"
        if args.resume and summary_path.exists() and all(p.exists() for p in paths.values()):
            logger.info("Resume enabled: outputs already exist in %s", outdir)
            print(str(paths["csv"]))
            return 0

        run = count_bam(
            bam_path=args.bam,
            outdir=outdir,
            prefix=prefix,
            edge_margin=int(args.edge_margin),
            coverage_threshold=int(args.coverage_threshold),
            paired=bool(args.paired),
            lengths_from=args.lengths_from,
            dump_events=bool(args.dump_events),
            skip_duplicates=not bool(args.keep_duplicates),
            include_secondary=bool(args.include_secondary),
            include_supplementary=bool(args.include_supplementary),
            progress=not bool(args.no_progress),
        )

        if not args.no_report:
            report_path = _write_plots_and_report(outdir, run)
            logger.info("Report written: %s", report_path)

        print(str(paths["csv"]))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_report(args: argparse.Namespace) -> int:
    """Rebuild plots and report.html from an existing summary.json."""
    outdir = Path(args.outdir).expanduser().resolve()
    try:
        run = read_json(outdir / "summary.json")
        print(str(_write_plots_and_report(outdir, run)))
        return 0
    except Exception as e:
        return _handle_error(e)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "count":
        return cmd_count(args)
    if args.cmd == "report":
        return cmd_report(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
