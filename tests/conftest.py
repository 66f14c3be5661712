from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from gallery.config import GalleryConfig
from gallery.main import create_app
from gallery.service import GalleryService
from gallery.store import MetadataStore


class FakeClock:
    """Millisecond clock that moves forward only when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def tick(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


def write_video(root: Path, rel: str, size: int = 2) -> Path:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(b"0" * size)
    return p


@pytest.fixture()
def library(tmp_path):
    """Library root kept apart from the data/thumbnail dirs."""
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture()
def config(tmp_path, library):
    cfg = GalleryConfig.for_root(
        str(library),
        data_dir=str(tmp_path / "data"),
        thumb_dir=str(tmp_path / "thumbs"),
    )
    cfg.ensure_dirs()
    return cfg


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(config, clock):
    return MetadataStore(config.metadata_file, clock=clock)


@pytest.fixture()
def service(config, store):
    return GalleryService(config, store)


@pytest.fixture()
def client(config, store):
    with TestClient(create_app(config, store)) as c:
        yield c
