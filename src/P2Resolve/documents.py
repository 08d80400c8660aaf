# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.documents",
#   "purpose": "Parse P2 artifact and composite artifact repository documents",
#   "sections": [
#     {"id": "artifact", "name": "Artifact", "anchor": "class-artifact", "kind": "class"},
#     {"id": "compositelisting", "name": "CompositeListing", "anchor": "class-compositelisting", "kind": "class"},
#     {"id": "mappingrule", "name": "MappingRule", "anchor": "class-mappingrule", "kind": "class"},
#     {"id": "parse-artifacts", "name": "parse_artifacts", "anchor": "function-parse-artifacts", "kind": "function"},
#     {"id": "parse-composite", "name": "parse_composite", "anchor": "function-parse-composite", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Parsers for P2 ``artifacts.xml`` and ``compositeArtifacts.xml`` documents.

A simple artifact repository lists artifacts and a set of mapping rules that
turn an artifact's coordinates into a download location::

    <repository name='Example' type='org.eclipse.equinox.p2.artifact.repository.simpleRepository' version='1'>
      <mappings size='1'>
        <rule filter='(&amp; (classifier=osgi.bundle))' output='${repoUrl}/plugins/${id}_${version}.jar'/>
      </mappings>
      <artifacts size='1'>
        <artifact classifier='osgi.bundle' id='org.example' version='1.0.0'>
          <properties size='1'><property name='download.md5' value='...'/></properties>
        </artifact>
      </artifacts>
    </repository>

A composite repository only lists ``<child location='...'/>`` entries.
"""

from __future__ import annotations

import logging
import lzma
import re
import xml.etree.ElementTree as ET
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import MalformedDocumentError
from .locators import Locator, resolve

__all__ = [
    "Artifact",
    "CompositeListing",
    "DEFAULT_MAPPING_RULES",
    "MappingRule",
    "parse_artifacts",
    "parse_composite",
]

LOGGER = logging.getLogger(__name__)

_FILTER_TERM_RE = re.compile(r"\(\s*([\w.\-]+)\s*=\s*([^()]*?)\s*\)")
_TEMPLATE_RE = re.compile(r"\$\{(\w+)\}")


@dataclass(frozen=True)
class Artifact:
    """One downloadable unit published by a repository."""

    id: str
    version: str
    classifier: str
    uri: str
    md5: Optional[str] = None
    sha256: Optional[str] = None
    size: Optional[int] = None
    properties: Mapping[str, str] = field(default_factory=dict, compare=False, hash=False, repr=False)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "version": self.version,
            "classifier": self.classifier,
            "uri": self.uri,
            "md5": self.md5,
            "sha256": self.sha256,
            "size": self.size,
        }


@dataclass(frozen=True)
class CompositeListing:
    """Children declared by a composite document; ``base`` resolves them."""

    base: Locator
    children: Tuple[str, ...]


@dataclass(frozen=True)
class MappingRule:
    """An LDAP style filter paired with an output location template."""

    filter: str
    output: str

    def terms(self) -> List[Tuple[str, str]]:
        return _FILTER_TERM_RE.findall(self.filter)

    def matches(self, attributes: Mapping[str, Optional[str]]) -> bool:
        return all(attributes.get(key) == value for key, value in self.terms())

    def expand(self, values: Mapping[str, str]) -> str:
        return _TEMPLATE_RE.sub(lambda match: values.get(match.group(1), match.group(0)), self.output)


DEFAULT_MAPPING_RULES: Tuple[MappingRule, ...] = (
    MappingRule("(& (classifier=osgi.bundle))", "${repoUrl}/plugins/${id}_${version}.jar"),
    MappingRule("(& (classifier=binary))", "${repoUrl}/binary/${id}_${version}"),
    MappingRule("(& (classifier=org.eclipse.update.feature))", "${repoUrl}/features/${id}_${version}.jar"),
)


def _parse(stream: BinaryIO, locator: Locator) -> ET.Element:
    try:
        with stream:
            return ET.parse(stream).getroot()
    except ET.ParseError as exc:
        raise MalformedDocumentError(f"Malformed repository document {locator}: {exc}") from exc
    except (EOFError, OSError, lzma.LZMAError, zipfile.BadZipFile, zlib.error) as exc:
        # truncated or corrupt xz data and archive entries surface while reading
        raise MalformedDocumentError(f"Unreadable repository document {locator}: {exc}") from exc


def _properties(element: ET.Element) -> Dict[str, str]:
    return {
        prop.get("name", ""): prop.get("value", "")
        for prop in element.iterfind("properties/property")
        if prop.get("name")
    }


def _mapping_rules(root: ET.Element) -> Sequence[MappingRule]:
    rules = [
        MappingRule(rule.get("filter", ""), rule.get("output", ""))
        for rule in root.iterfind("mappings/rule")
        if rule.get("output")
    ]
    return rules or DEFAULT_MAPPING_RULES


def _size(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_artifacts(stream: BinaryIO, locator: Locator) -> List[Artifact]:
    """Parse a simple artifact repository document opened from ``locator``.

    ``stream`` is always consumed and closed. Packed artifacts and artifacts
    without a matching mapping rule are skipped.
    """

    root = _parse(stream, locator)
    rules = _mapping_rules(root)
    repo_url = resolve(locator, ".").rstrip("/")

    artifacts: List[Artifact] = []
    for element in root.iterfind("artifacts/artifact"):
        artifact_id = element.get("id")
        version = element.get("version")
        classifier = element.get("classifier")
        if not (artifact_id and version and classifier):
            LOGGER.debug("skipping incomplete artifact entry", extra={"locator": locator})
            continue
        properties = _properties(element)
        fmt = properties.get("format")
        if fmt == "packed":
            continue

        attributes = {"id": artifact_id, "version": version, "classifier": classifier, "format": fmt}
        rule = next((candidate for candidate in rules if candidate.matches(attributes)), None)
        if rule is None:
            LOGGER.debug(
                "no mapping rule for %s %s %s", classifier, artifact_id, version, extra={"locator": locator}
            )
            continue
        uri = rule.expand(
            {"repoUrl": repo_url, "id": artifact_id, "version": version, "classifier": classifier}
        )
        artifacts.append(
            Artifact(
                id=artifact_id,
                version=version,
                classifier=classifier,
                uri=uri,
                md5=properties.get("download.md5"),
                sha256=properties.get("download.checksum.sha-256"),
                size=_size(properties.get("download.size") or properties.get("artifact.size")),
                properties=properties,
            )
        )
    return artifacts


def parse_composite(stream: BinaryIO, locator: Locator) -> CompositeListing:
    """Parse a composite repository document opened from ``locator``."""

    root = _parse(stream, locator)
    children = tuple(
        child.get("location", "").strip()
        for child in root.iterfind("children/child")
        if child.get("location", "").strip()
    )
    return CompositeListing(base=locator, children=children)
