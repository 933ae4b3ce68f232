"""
Shared fixtures for vibenodes tests
"""
import pytest

from tests.helpers import EXTENSION_SOURCE, VALID_MANIFEST, build_archive


@pytest.fixture
def valid_manifest():
    return dict(VALID_MANIFEST)


@pytest.fixture
def foo_archive():
    return build_archive({"manifest.json": VALID_MANIFEST, "index.py": EXTENSION_SOURCE})


@pytest.fixture
def install_root(tmp_path):
    root = tmp_path / "extensions"
    root.mkdir()
    return root
