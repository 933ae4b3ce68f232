"""Archive and extension-directory builders used across tests"""
import io
import json
import zipfile

VALID_MANIFEST = {
    "name": "Foo",
    "componentName": "foo",
    "version": "1.0.0",
    "author": "A",
    "main": "index.py",
}

EXTENSION_SOURCE = '''
class FooComponent:
    def __init__(self):
        self.activated = False
        self.runtime = __shared__.get("runtime")

    def node_function(self, config=None):
        return {"echo": config}

    def describe(self):
        return {"name": "foo"}

    def activate(self):
        self.activated = True


def get(name):
    if name == "./Component":
        return FooComponent
    raise KeyError(name)
'''


def build_archive(files: dict) -> bytes:
    """Zip an in-memory mapping of archive path -> str/bytes/dict (dict = JSON)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            if isinstance(content, dict):
                content = json.dumps(content)
            zf.writestr(name, content)
    return buffer.getvalue()


def write_extension(root, dir_name: str, manifest: dict | None, files: dict | None = None):
    """Create an extension directory on disk."""
    ext_dir = root / dir_name
    ext_dir.mkdir(parents=True)
    if manifest is not None:
        (ext_dir / "manifest.json").write_text(json.dumps(manifest))
    for name, content in (files or {}).items():
        path = ext_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return ext_dir
