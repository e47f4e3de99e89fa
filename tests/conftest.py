from concurrent.futures import ThreadPoolExecutor

import pytest

from helpers import write_border, write_decoration


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def asset_root(tmp_path):
    write_border(tmp_path, "classic", {"width": "40", "outset": "0", "slice": "10"})
    write_border(tmp_path, "ornate", {"width": "20 20 40 20", "outset": "5", "slice": "10 10 10 10"})
    write_border(tmp_path, "broken", "{not json")
    write_decoration(tmp_path, "star", {"defaultScale": 0.2})
    write_decoration(tmp_path, "plain")
    return tmp_path
