from __future__ import annotations

import pytest

from helpers import bsp_bytes


@pytest.fixture
def make_bsp(tmp_path):
    def _make(name: str = "map.bsp", size: int = 500, version: int = 20, ident: bytes = b"VBSP"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bsp_bytes(size, version, ident))
        return path

    return _make
