"""Fixtures that lay out P2 repositories on disk and resolve them over ``file:`` locators."""

from __future__ import annotations

import lzma
import zipfile
from pathlib import Path
from typing import Iterator, Sequence, Tuple

import pytest

from P2Resolve.engine import RepositoryResolver
from P2Resolve.settings import ResolverSettings, load_settings

ArtifactSpec = Tuple[str, str, str]

BUNDLE_RULE = "${repoUrl}/plugins/${id}_${version}.jar"
FEATURE_RULE = "${repoUrl}/features/${id}_${version}.jar"


def artifacts_xml(artifacts: Sequence[ArtifactSpec], *, packed: Sequence[ArtifactSpec] = ()) -> str:
    """Render a simple artifact repository for ``(classifier, id, version)`` triples."""

    rows = []
    for classifier, artifact_id, version in artifacts:
        rows.append(
            f"    <artifact classifier='{classifier}' id='{artifact_id}' version='{version}'>\n"
            "      <properties size='2'>\n"
            "        <property name='download.size' value='42'/>\n"
            f"        <property name='download.md5' value='md5-{artifact_id}'/>\n"
            "      </properties>\n"
            "    </artifact>"
        )
    for classifier, artifact_id, version in packed:
        rows.append(
            f"    <artifact classifier='{classifier}' id='{artifact_id}' version='{version}'>\n"
            "      <properties size='1'><property name='format' value='packed'/></properties>\n"
            "    </artifact>"
        )
    body = "\n".join(rows)
    return (
        "<?xml version='1.0' encoding='UTF-8'?>\n"
        "<repository name='test' type='org.eclipse.equinox.p2.artifact.repository.simpleRepository' version='1'>\n"
        "  <mappings size='3'>\n"
        f"    <rule filter='(&amp; (classifier=osgi.bundle) (format=packed))' output='{BUNDLE_RULE}.pack.gz'/>\n"
        f"    <rule filter='(&amp; (classifier=osgi.bundle))' output='{BUNDLE_RULE}'/>\n"
        f"    <rule filter='(&amp; (classifier=org.eclipse.update.feature))' output='{FEATURE_RULE}'/>\n"
        "  </mappings>\n"
        f"  <artifacts size='{len(rows)}'>\n{body}\n  </artifacts>\n"
        "</repository>\n"
    )


def composite_xml(children: Sequence[str]) -> str:
    rows = "\n".join(f"    <child location='{child}'/>" for child in children)
    return (
        "<?xml version='1.0' encoding='UTF-8'?>\n"
        "<repository name='composite' type='org.eclipse.equinox.internal.p2.artifact.repository.CompositeArtifactRepository' version='1.0.0'>\n"
        f"  <children size='{len(children)}'>\n{rows}\n  </children>\n"
        "</repository>\n"
    )


class RepoBuilder:
    """Write repository documents under a base directory in any P2 encoding."""

    def __init__(self, base: Path) -> None:
        self.base = base

    def dir(self, name: str) -> Path:
        path = self.base / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write(self, name: str, filename: str, text: str, *, encoding: str = "plain") -> Path:
        """Write ``filename`` in ``name`` as plain XML, ``.xz``, or inside the ``.jar`` sibling."""

        directory = self.dir(name)
        data = text.encode("utf-8")
        if encoding == "plain":
            target = directory / filename
            target.write_bytes(data)
        elif encoding == "xz":
            target = directory / f"{filename}.xz"
            target.write_bytes(lzma.compress(data))
        elif encoding == "jar":
            target = directory / filename.replace(".xml", ".jar")
            with zipfile.ZipFile(target, "w") as archive:
                archive.writestr(filename, data)
        else:
            raise ValueError(encoding)
        return target

    def corrupt_archive(self, name: str, *artifacts: ArtifactSpec) -> Path:
        """Write ``artifacts.jar`` with one stored byte of its listing altered.

        The entry stays well formed XML, so only the archive CRC check fails.
        """

        text = artifacts_xml(artifacts)
        target = self.write(name, "artifacts.xml", text, encoding="jar")
        data = bytearray(target.read_bytes())
        payload = text.encode("utf-8")
        offset = data.index(payload) + payload.index(b"name='") + len("name='")
        data[offset : offset + 1] = data[offset : offset + 1].upper()
        target.write_bytes(bytes(data))
        return self.dir(name)

    def artifacts(
        self, name: str, *artifacts: ArtifactSpec, encoding: str = "plain", packed: Sequence[ArtifactSpec] = ()
    ) -> Path:
        self.write(name, "artifacts.xml", artifacts_xml(artifacts, packed=packed), encoding=encoding)
        return self.dir(name)

    def composite(self, name: str, *children: str, encoding: str = "plain") -> Path:
        self.write(name, "compositeArtifacts.xml", composite_xml(children), encoding=encoding)
        return self.dir(name)

    def index(
        self,
        name: str,
        *,
        version: str = "1",
        artifacts: str = "artifacts.xml,!",
        metadata: str = "content.xml,!",
    ) -> Path:
        directory = self.dir(name)
        target = directory / "p2.index"
        target.write_text(
            "#Sun Jan 01 00:00:00 UTC 2023\n"
            f"version={version}\n"
            f"metadata.repository.factory.order={metadata}\n"
            f"artifact.repository.factory.order={artifacts}\n",
            encoding="iso-8859-1",
        )
        return target


@pytest.fixture
def repo(tmp_path: Path) -> RepoBuilder:
    return RepoBuilder(tmp_path.resolve() / "repos")


@pytest.fixture
def settings(tmp_path: Path) -> ResolverSettings:
    """Settings rooted in ``tmp_path`` with a small pool and no retries."""

    return load_settings(
        cache={"dir": str(tmp_path / "cache")},
        logging={"dir": str(tmp_path / "logs"), "emit_json_logs": False, "level": "DEBUG"},
        retry={"max_attempts": 1},
        concurrency={"workers": 4},
    )


@pytest.fixture
def resolver(settings: ResolverSettings) -> Iterator[RepositoryResolver]:
    with RepositoryResolver(settings=settings) as instance:
        yield instance
