from pathlib import Path

import pytest

from mutcounter.toy_data import make_toy_data


@pytest.fixture(scope="session")
def toy(tmp_path_factory) -> dict:
    return make_toy_data(outdir=tmp_path_factory.mktemp("toy"))


@pytest.fixture(scope="session")
def toy_bam(toy) -> Path:
    return Path(toy["bam"])
