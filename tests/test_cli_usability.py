import json
import subprocess
import sys
from pathlib import Path


def _run_cli(args: list) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "mutcounter"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


def test_quickstart_output() -> None:
    cp = _run_cli(["quickstart"])
    assert cp.returncode == 0
    assert "mutcounter count" in cp.stdout
    assert "mutcounter make-toy-data" in cp.stdout


def test_make_toy_data_dry_run(tmp_path: Path) -> None:
    outdir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(outdir), "--dry-run"])
    assert cp.returncode == 0
    assert "Would write toy data" in cp.stdout
    assert not outdir.exists()


def test_count_dry_run_does_not_write_outputs(toy_bam: Path, tmp_path: Path) -> None:
    outdir = tmp_path / "count"
    cp = _run_cli(["count", "--bam", str(toy_bam), "--outdir", str(outdir), "--dry-run"])
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert "toy_pos_mutation_rate.bedgraph" in cp.stdout
    assert not (outdir / "summary.json").exists()


def test_make_toy_data_and_count(tmp_path: Path) -> None:
    toy_dir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(toy_dir)])
    assert cp.returncode == 0

    outdir = tmp_path / "out"
    args = [
        "count",
        "--bam",
        str(toy_dir / "toy.bam"),
        "--outdir",
        str(outdir),
        "--paired",
        "--dump-events",
        "--no-progress",
    ]
    cp = _run_cli(args)
    assert cp.returncode == 0, cp.stderr
    assert cp.stdout.strip().endswith("toy.csv")

    assert (outdir / "report.html").exists()
    assert (outdir / "plots" / "mutation_rate_hist.png").exists()
    assert (outdir / "logs" / "count.log").exists()
    for strand in ("pos", "neg"):
        for rate in ("mutation", "deletion", "substitution"):
            bg = outdir / f"toy_{strand}_{rate}_rate.bedgraph"
            assert bg.read_text().startswith("track type=bedGraph\n")

    header = (outdir / "toy.csv").read_text().splitlines()[0]
    assert header.startswith("chromosome,orientation,position,=,I,D,A,C,G,T,total")

    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["walk"]["fragments_total"] == 9
    assert summary["walk"]["fragments_failed"] == 2
    assert summary["walk"]["errors_by_kind"] == {
        "IncompatibleOperatorsError": 1,
        "MissingAnnotationError": 1,
    }
    assert summary["read_counts"]["pairs"] == 2
    totals = summary["event_totals"]
    assert (totals["substitution"], totals["deletion"], totals["insertion"]) == (5, 3, 2)

    events = (outdir / "toy_read_mutations.txt").read_text().splitlines()
    assert len(events) == 10

    # Same outputs again: refused without --resume, skipped with it.
    cp = _run_cli(args)
    assert cp.returncode == 2
    assert "already exist" in cp.stderr
    cp = _run_cli(args + ["--resume"])
    assert cp.returncode == 0

    cp = _run_cli(["report", "--outdir", str(outdir)])
    assert cp.returncode == 0
    assert cp.stdout.strip().endswith("report.html")


def test_count_unpaired_counts_mate_overlap_twice(toy_bam: Path, tmp_path: Path) -> None:
    outdir = tmp_path / "out"
    cp = _run_cli(
        ["count", "--bam", str(toy_bam), "--outdir", str(outdir), "--no-progress", "--no-report"]
    )
    assert cp.returncode == 0, cp.stderr
    assert not (outdir / "report.html").exists()
    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["walk"]["fragments_total"] == 11
    totals = summary["event_totals"]
    assert (totals["substitution"], totals["deletion"]) == (6, 4)


def test_negative_edge_margin_rejected(toy_bam: Path, tmp_path: Path) -> None:
    cp = _run_cli(["count", "--bam", str(toy_bam), "--outdir", str(tmp_path), "-n", "-1"])
    assert cp.returncode == 2
    assert "non-negative" in cp.stderr


def test_missing_bam_message(tmp_path: Path) -> None:
    cp = _run_cli(["count", "--bam", str(tmp_path / "nope.bam"), "--outdir", str(tmp_path)])
    assert cp.returncode != 0
    assert "does not exist" in cp.stderr
