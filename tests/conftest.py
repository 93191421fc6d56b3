"""Shared test fixtures: in-memory database, fake extractor, synthetic image folders."""

import pytest

from services import build_service, init_db, make_engine, make_session_factory
from tests.helpers import COLORS, DIM, CountingEmbedder, make_image


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def embedder():
    return CountingEmbedder()


@pytest.fixture
def image_dir(tmp_path):
    """Three coloured images plus entries the scanner must ignore."""
    folder = tmp_path / "images"
    folder.mkdir()
    for name, color in COLORS.items():
        make_image(folder / name, color)
    (folder / "notes.txt").write_text("not an image")
    (folder / "UPPER.JPG").write_bytes(b"ignored: suffix match is case-sensitive")
    nested = folder / "nested.jpg"
    nested.mkdir()
    make_image(nested / "d.jpg")
    return folder


@pytest.fixture
def service(session_factory, embedder):
    return build_service(
        session_factory,
        embed_fn=embedder,
        dim=DIM,
        time_budget=60.0,
        hidden_dims=(16, 8),
        seed=0,
        epochs=5,
        lr=1e-2,
    )
