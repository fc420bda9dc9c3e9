"""Shared fixtures: fake provider, fake downloader, JAR builders."""

import hashlib
import json
import os
import zipfile
from typing import Dict, List, Optional

import pytest

from modkeeper.api.base import CompatibilityProvider
from modkeeper.exceptions import APINotFoundError, DownloadNetworkError
from modkeeper.models import MinecraftVersion, RemoteArtifact
from modkeeper.services import ModRegistry, load_declarations


def sha512(data: bytes) -> str:
    return hashlib.sha512(data).hexdigest()


def make_jar(path, version: Optional[str] = None, minecraft: Optional[str] = None):
    """Write a minimal Fabric mod JAR."""
    with zipfile.ZipFile(path, "w") as archive:
        if version is not None or minecraft is not None:
            data = {"schemaVersion": 1}
            if version is not None:
                data["version"] = version
            if minecraft is not None:
                data["depends"] = {"minecraft": minecraft}
            archive.writestr("fabric.mod.json", json.dumps(data))
        archive.writestr("README.txt", "mod")
    return str(path)


def declaration(project_id: str, name: Optional[str] = None, **extra) -> dict:
    record = {
        "project_id": project_id,
        "name": name or project_id.capitalize(),
        "type": "server_only",
        "filename_pattern": f"^{project_id}-.*\\.jar$",
    }
    record.update(extra)
    return record


class FakeProvider(CompatibilityProvider):
    """In-memory provider: project_id -> supported versions, artifacts keyed by (project_id, mc)."""

    def __init__(
        self,
        versions: Optional[Dict[str, List[str]]] = None,
        artifacts: Optional[Dict[tuple, RemoteArtifact]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.versions = versions or {}
        self.artifacts = artifacts or {}
        self.errors = errors or {}
        self.queried: List[str] = []
        self.resolved: List[str] = []
        self.closed = False

    async def supported_versions(self, project_id, loader):
        self.queried.append(project_id)
        if project_id in self.errors:
            raise self.errors[project_id]
        if project_id not in self.versions:
            raise APINotFoundError(f"unknown project {project_id}")
        return sorted(MinecraftVersion(v) for v in self.versions[project_id])

    async def resolve_artifact(self, project_id, minecraft_version, loader):
        self.resolved.append(project_id)
        key = (project_id, str(minecraft_version))
        if key not in self.artifacts:
            raise APINotFoundError(f"no version of {project_id} for {minecraft_version}")
        return self.artifacts[key]

    async def close(self):
        self.closed = True


class FakeDownloader:
    """Serves bytes from a url -> payload map."""

    def __init__(self, payloads: Optional[Dict[str, bytes]] = None):
        self.payloads = payloads or {}
        self.downloaded: List[str] = []

    async def download_file(self, url: str, temp_path: str) -> int:
        if url not in self.payloads:
            raise DownloadNetworkError("HTTP 404", context={"url": url})
        os.makedirs(os.path.dirname(temp_path), exist_ok=True)
        data = self.payloads[url]
        with open(temp_path, "wb") as f:
            f.write(data)
        self.downloaded.append(url)
        return len(data)

    async def close(self):
        pass


def artifact_for(
    project_id: str,
    version: str,
    data: bytes,
    filename: Optional[str] = None,
    digest: Optional[str] = "auto",
) -> RemoteArtifact:
    return RemoteArtifact(
        project_id=project_id,
        filename=filename or f"{project_id}-{version}.jar",
        download_url=f"https://cdn.example/{project_id}/{version}.jar",
        sha512=sha512(data) if digest == "auto" else digest,
        minecraft_version=version,
        version_number=f"{project_id}-build",
    )


@pytest.fixture
def mods_dir(tmp_path):
    path = tmp_path / "server" / "mods"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def platform_graph():
    """P is a platform with dependents X and Y; Y is a platform with dependent Z."""
    return load_declarations(
        [
            declaration("p", "Platform", is_platform=True),
            declaration("x", "Xmod", depends_on=["p"]),
            declaration("y", "Ymod", depends_on=["p"], is_platform=True),
            declaration("z", "Zmod", depends_on=["y"]),
            declaration("lonely", "Lonely Lib", is_platform=True),
        ]
    )


@pytest.fixture
def platform_registry(platform_graph, mods_dir):
    return ModRegistry(platform_graph, str(mods_dir))

