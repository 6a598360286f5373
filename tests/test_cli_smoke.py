import subprocess
import sys


def test_cli_help() -> None:
    cp = subprocess.run(
        [sys.executable, "-m", "mutcounter", "--help"],
        check=True,
        capture_output=True,
        text=True,
    )
    assert "mutcounter" in cp.stdout.lower()
    assert "count" in cp.stdout


def test_cli_version() -> None:
    from mutcounter import __version__

    cp = subprocess.run(
        [sys.executable, "-m", "mutcounter", "--version"],
        check=True,
        capture_output=True,
        text=True,
    )
    assert __version__ in cp.stdout
