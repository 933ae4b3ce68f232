"""
Tests for the extension catalog service.
"""
import pytest
import pytest_asyncio

from vibenodes.extensions.catalog import CatalogService, NodeCatalogService
from vibenodes.extensions.types import ExtensionStatus

from tests.helpers import EXTENSION_SOURCE, VALID_MANIFEST, build_archive, write_extension


@pytest_asyncio.fixture
async def catalog(tmp_path):
    service = CatalogService(root=tmp_path / "extensions", watch=False)
    await service.start()
    yield service
    await service.stop()


@pytest.mark.asyncio
async def test_start_creates_root(tmp_path):
    root = tmp_path / "nested" / "extensions"
    service = CatalogService(root=root, watch=False)

    await service.start()

    assert root.is_dir()
    assert service.get_path() == root
    assert service.list() == []


@pytest.mark.asyncio
async def test_install_then_list(catalog, foo_archive):
    """Test an uploaded archive becomes an installed catalog entry"""
    result = await catalog.install(foo_archive, "foo.zip")

    assert result.success is True
    assert result.extension_id == "foo"
    entries = catalog.list()
    assert [(e.id, e.status) for e in entries] == [("foo", ExtensionStatus.INSTALLED)]
    assert catalog.get_metadata("foo").component_name == "foo"


@pytest.mark.asyncio
async def test_install_failure_is_a_result(catalog, foo_archive):
    """Test installer errors never escape the service"""
    await catalog.install(foo_archive, "foo.zip")

    duplicate = await catalog.install(foo_archive, "foo.zip")
    missing = await catalog.install(build_archive({"index.py": "x = 1"}), "bad.zip")
    garbage = await catalog.install(b"garbage", "bad.zip")

    assert duplicate.success is False
    assert duplicate.code == "ALREADY_EXISTS"
    assert missing.code == "MISSING_MANIFEST"
    assert garbage.code == "INVALID_ARCHIVE"
    assert len(catalog.list()) == 1


@pytest.mark.asyncio
async def test_get_file_contents(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")

    assert await catalog.get_file_contents("foo") == EXTENSION_SOURCE.encode("utf-8")
    assert await catalog.get_file_contents("unknown") is None


@pytest.mark.asyncio
async def test_get_file_contents_error_entry(catalog):
    manifest = dict(VALID_MANIFEST)
    del manifest["author"]
    write_extension(catalog.root, "broken", manifest, {"index.py": "x = 1"})
    await catalog.rescan()

    assert catalog.get_metadata("broken").status == ExtensionStatus.ERROR
    assert await catalog.get_file_contents("broken") is None


@pytest.mark.asyncio
async def test_set_status(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")
    before = catalog.get_metadata("foo")
    version = catalog.snapshot.version

    result = catalog.set_status("foo", "enabled")

    assert result.success is True
    after = catalog.get_metadata("foo")
    assert after.status == ExtensionStatus.ENABLED
    assert after.updated_at != before.updated_at
    assert catalog.snapshot.version == version + 1
    # The previous snapshot object is untouched
    assert before.status == ExtensionStatus.INSTALLED


@pytest.mark.asyncio
async def test_set_status_not_found(catalog):
    result = catalog.set_status("missing", "enabled")

    assert result.success is False
    assert result.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_set_status_rejects_other_values(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")

    assert catalog.set_status("foo", "error").success is False
    assert catalog.set_status("foo", "bogus").success is False


@pytest.mark.asyncio
async def test_status_survives_rescan(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")
    catalog.set_status("foo", ExtensionStatus.DISABLED)

    await catalog.rescan()

    assert catalog.get_metadata("foo").status == ExtensionStatus.DISABLED


@pytest.mark.asyncio
async def test_delete(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")

    result = await catalog.delete("foo")

    assert result.success is True
    assert not (catalog.root / "foo").exists()
    assert catalog.list() == []


@pytest.mark.asyncio
async def test_delete_not_found(catalog):
    assert (await catalog.delete("missing")).code == "NOT_FOUND"
    assert (await catalog.delete("../outside")).code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_reinstall_after_delete_resets_status(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")
    catalog.set_status("foo", "disabled")
    await catalog.delete("foo")

    await catalog.install(foo_archive, "foo.zip")

    assert catalog.get_metadata("foo").status == ExtensionStatus.INSTALLED


@pytest.mark.asyncio
async def test_rescan_swaps_snapshot(catalog):
    first = catalog.snapshot
    write_extension(catalog.root, "foo", VALID_MANIFEST, {"index.py": EXTENSION_SOURCE})

    second = await catalog.rescan()

    assert second is catalog.snapshot
    assert second.version == first.version + 1
    assert len(first) == 0
    assert len(second) == 1


@pytest.mark.asyncio
async def test_resolve_asset(catalog):
    write_extension(catalog.root, "foo", VALID_MANIFEST, {
        "index.py": EXTENSION_SOURCE,
        "assets/logo.svg": "<svg/>",
    })
    await catalog.rescan()

    assert catalog.resolve_asset("foo", "assets/logo.svg").read_text() == "<svg/>"
    assert catalog.resolve_asset("foo", "../foo/index.py") is not None
    assert catalog.resolve_asset("foo", "../../secret") is None
    assert catalog.resolve_asset("foo", "missing.txt") is None


@pytest.mark.asyncio
async def test_clear(catalog, foo_archive):
    await catalog.install(foo_archive, "foo.zip")

    result = await catalog.clear()

    assert result.success is True
    assert catalog.root.is_dir()
    assert catalog.list() == []


@pytest.mark.asyncio
async def test_node_catalog(tmp_path):
    nodes_root = tmp_path / "nodes"
    write_extension(nodes_root, "Calculator", None, {"dist/index.py": "default_config = {'op': '+'}\n"})
    nodes = NodeCatalogService(root=nodes_root, watch=False)

    await nodes.start()

    entry = nodes.get_metadata("Calculator")
    assert entry.category == "Math"
    assert entry.default_config == {"op": "+"}
    assert await nodes.get_file_contents("Calculator") == b"default_config = {'op': '+'}\n"


@pytest.mark.asyncio
async def test_install_non_string_description(catalog, foo_archive):
    """Test a mistyped optional field is rejected before anything is extracted"""
    await catalog.install(foo_archive, "foo.zip")
    manifest = dict(VALID_MANIFEST, componentName="bar", description=5)
    archive = build_archive({"manifest.json": manifest, "index.py": EXTENSION_SOURCE})

    result = await catalog.install(archive, "bar.zip")

    assert result.success is False
    assert result.code == "INVALID_MANIFEST"
    assert not (catalog.root / "bar").exists()
    assert [e.id for e in catalog.list()] == ["foo"]


@pytest.mark.asyncio
async def test_start_with_mistyped_manifest(tmp_path):
    root = tmp_path / "extensions"
    write_extension(root, "odd", dict(VALID_MANIFEST, icon=3), {"index.py": EXTENSION_SOURCE})
    service = CatalogService(root=root, watch=False)

    await service.start()

    assert service.get_metadata("odd").status == ExtensionStatus.ERROR
