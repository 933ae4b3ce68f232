"""
Tests for the extension host HTTP API.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from vibenodes.api.server import create_app
from vibenodes.client.catalog_client import CatalogClient
from vibenodes.client.loader import RemoteModuleLoader
from vibenodes.config.settings import ExtensionHostConfig
from vibenodes.extensions.catalog import CatalogService, NodeCatalogService

from tests.helpers import EXTENSION_SOURCE, VALID_MANIFEST, build_archive, write_extension


@pytest.fixture
def config(tmp_path):
    return ExtensionHostConfig(
        extensions_dir=tmp_path / "extensions",
        nodes_dir=tmp_path / "nodes",
        server_url="http://testserver",
        watch=False,
    )


@pytest.fixture
def api(config):
    with TestClient(create_app(config)) as client:
        yield client


def upload(api, archive, file_name="foo.zip", content_type="application/zip"):
    return api.post(
        "/api/extensions/upload",
        files={"extension": (file_name, archive, content_type)},
    )


def test_health(api):
    response = api.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_empty_list(api):
    response = api.get("/api/extensions")

    assert response.status_code == 200
    assert response.json() == {"success": True, "extensions": [], "count": 0}


def test_extensions_path(api, config):
    data = api.get("/api/extensions/path").json()

    assert data["path"] == str(config.extensions_dir)
    assert data["exists"] is True


def test_upload_and_list(api, foo_archive):
    response = upload(api, foo_archive)

    assert response.status_code == 200
    assert response.json()["extensionId"] == "foo"

    data = api.get("/api/extensions").json()
    assert data["count"] == 1
    extension = data["extensions"][0]
    assert extension["componentName"] == "foo"
    assert extension["status"] == "installed"
    assert extension["url"] == "http://testserver/api/extensions/foo"


def test_upload_rejects_non_zip(api):
    response = upload(api, b"hello", file_name="notes.txt", content_type="text/plain")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Only ZIP files are allowed"}


def test_upload_without_file(api):
    response = api.post("/api/extensions/upload")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_upload_too_large(tmp_path):
    config = ExtensionHostConfig(
        extensions_dir=tmp_path / "extensions",
        nodes_dir=tmp_path / "nodes",
        max_upload_size=64,
        watch=False,
    )
    archive = build_archive({"manifest.json": VALID_MANIFEST, "index.py": EXTENSION_SOURCE})

    with TestClient(create_app(config)) as client:
        response = upload(client, archive)

    assert response.status_code == 400
    assert "limit" in response.json()["error"]


def test_upload_invalid_manifest(api):
    manifest = dict(VALID_MANIFEST)
    del manifest["componentName"]

    response = upload(api, build_archive({"manifest.json": manifest, "index.py": "x = 1"}))

    assert response.status_code == 400
    assert "componentName" in response.json()["error"]


def test_upload_duplicate(api, foo_archive):
    upload(api, foo_archive)

    response = upload(api, foo_archive)

    assert response.status_code == 400
    assert "already exists" in response.json()["error"]


def test_get_extension_file(api, foo_archive):
    upload(api, foo_archive)

    response = api.get("/api/extensions/foo")

    assert response.status_code == 200
    assert response.text == EXTENSION_SOURCE
    assert response.headers["content-type"].startswith("text/x-python")


def test_get_extension_file_not_found(api):
    response = api.get("/api/extensions/missing")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_get_metadata(api, foo_archive):
    upload(api, foo_archive)

    data = api.get("/api/extensions/foo/metadata").json()

    assert data["success"] is True
    assert data["extension"]["id"] == "foo"
    assert api.get("/api/extensions/missing/metadata").status_code == 404


def test_update_status(api, foo_archive):
    upload(api, foo_archive)

    response = api.put("/api/extensions/foo/status", json={"status": "disabled"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert api.get("/api/extensions/foo/metadata").json()["extension"]["status"] == "disabled"


def test_update_status_invalid(api, foo_archive):
    upload(api, foo_archive)

    response = api.put("/api/extensions/foo/status", json={"status": "broken"})

    assert response.status_code == 400


def test_update_status_not_found(api):
    response = api.put("/api/extensions/missing/status", json={"status": "enabled"})

    assert response.status_code == 404


def test_delete(api, foo_archive):
    upload(api, foo_archive)

    response = api.delete("/api/extensions/foo")

    assert response.status_code == 200
    assert api.get("/api/extensions").json()["count"] == 0
    assert api.delete("/api/extensions/foo").status_code == 404


def test_module_route(api):
    archive = build_archive({
        "manifest.json": VALID_MANIFEST,
        "index.py": EXTENSION_SOURCE,
        "assets/logo.svg": "<svg/>",
    })
    upload(api, archive)

    module = api.get("/extensions/foo/index.py")
    asset = api.get("/api/extensions/foo/files/assets/logo.svg")

    assert module.status_code == 200
    assert module.text == EXTENSION_SOURCE
    assert asset.status_code == 200
    assert asset.text == "<svg/>"
    assert api.get("/extensions/foo/missing.py").status_code == 404


def test_nodes_routes(config):
    write_extension(config.nodes_dir, "MathAdd", None, {"dist/index.py": "default_config = {'a': 0}\n"})

    with TestClient(create_app(config)) as client:
        listing = client.get("/api/nodes").json()
        metadata = client.get("/api/nodes/MathAdd/metadata").json()
        source = client.get("/api/nodes/MathAdd")
        missing = client.get("/api/nodes/Missing")

    assert listing["count"] == 1
    assert metadata["node"]["category"] == "Math"
    assert metadata["node"]["defaultConfig"] == {"a": 0}
    assert source.text == "default_config = {'a': 0}\n"
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_loader_against_api(tmp_path, foo_archive):
    """Test the loader end to end against the real routes"""
    catalog = CatalogService(root=tmp_path / "extensions", server_url="http://testserver", watch=False)
    nodes = NodeCatalogService(root=tmp_path / "nodes", watch=False)
    await catalog.start()
    await nodes.start()
    app = create_app(catalog=catalog, nodes=nodes)

    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    client = CatalogClient("http://testserver", http_client=http)
    loader = RemoteModuleLoader(client, shared={"runtime": "host"})
    try:
        uploaded = await client.upload(foo_archive, "foo.zip")
        assert uploaded.success is True

        component = await loader.load("foo")
        assert component.runtime == "host"
        assert component.activated is True

        await loader.set_status("foo", "disabled")
        assert await loader.load("foo") is None
        assert catalog.get_metadata("foo").status.value == "disabled"
    finally:
        await http.aclose()
        await catalog.stop()
        await nodes.stop()


def test_upload_internal_failure(api, foo_archive, monkeypatch):
    """Test unexpected install failures surface as 500"""
    async def broken_install(archive_bytes, declared_file_name=""):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(api.app.state.catalog.installer, "install", broken_install)

    response = upload(api, foo_archive)

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "disk on fire"}
