"""
Shared fixtures: build real extension archives in tmp_path.
"""

import json
import textwrap
import zipfile
from pathlib import Path
from typing import Optional, Union

import pytest

from appext.extensions.manifest import MANIFEST_NAME


EXTENSION_TEMPLATE = '''
from appext.core.properties import ConfigProperty
from appext.extensions import AppExtension, ManifestInfo


class {cls}(AppExtension):
    def __init__(self):
        self.events = []
        self.props = [
            ConfigProperty("{name}.color", "blue", label="Color"),
            ConfigProperty("{name}.size", 3, label="Size"),
        ]

    def get_info(self):
        return ManifestInfo(name="{name}", target_app_name="TestApp", version="1.0")

    def get_config_properties(self):
        return self.props

    def on_activate(self):
        self.events.append("activate")

    def on_deactivate(self):
        self.events.append("deactivate")
'''


def _manifest(name: str, target_app: str = "TestApp", target_version: Optional[str] = "1.0", **extra) -> dict:
    data = {
        "name": name,
        "author": "Test Author",
        "version": "1.0.0",
        "targetAppName": target_app,
        "shortDescription": f"{name} extension",
    }
    if target_version is not None:
        data["targetAppVersion"] = target_version
    data.update(extra)
    return data


def _extension_source(cls: str, name: str) -> str:
    return EXTENSION_TEMPLATE.format(cls=cls, name=name)


@pytest.fixture
def manifest():
    """Factory for manifest dicts."""
    return _manifest


@pytest.fixture
def extension_source():
    """Factory for extension module source: extension_source(cls, name)."""
    return _extension_source


@pytest.fixture
def extensions_dir(tmp_path):
    d = tmp_path / "extensions"
    d.mkdir()
    return d


@pytest.fixture
def make_archive(extensions_dir):
    """
    Build a zip archive.

    make_archive("a.zip", manifest=dict|str|None, modules={"pkg/mod.py": src})
    Entries are written manifest first (unless manifest_first=False), then
    modules in dict order.
    """

    def _make(
        filename: str,
        manifest: Union[dict, str, None] = None,
        modules: Optional[dict[str, str]] = None,
        manifest_path: str = MANIFEST_NAME,
        manifest_first: bool = True,
        root: Optional[Path] = None,
    ) -> Path:
        path = (root or extensions_dir) / filename
        path.parent.mkdir(parents=True, exist_ok=True)

        entries: list[tuple[str, str]] = []
        if manifest is not None:
            payload = manifest if isinstance(manifest, str) else json.dumps(manifest)
            entries.append((manifest_path, payload))
        for module_path, source in (modules or {}).items():
            entries.append((module_path, textwrap.dedent(source)))
        if not manifest_first and manifest is not None:
            entries.append(entries.pop(0))

        with zipfile.ZipFile(path, "w") as zf:
            for name, data in entries:
                zf.writestr(name, data)
        return path

    return _make


@pytest.fixture
def simple_extension(make_archive, manifest, extension_source):
    """Factory: one archive with one working extension."""

    def _make(filename: str, module: str, cls: str, name: str, **manifest_kwargs) -> Path:
        return make_archive(
            filename,
            manifest=manifest(name, **manifest_kwargs),
            modules={f"{module}.py": extension_source(cls, name)},
        )

    return _make
