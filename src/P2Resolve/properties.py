# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.properties",
#   "purpose": "Read Java properties files and bnd style parameter lists used by p2.index",
#   "sections": [
#     {"id": "load-properties", "name": "load_properties", "anchor": "function-load-properties", "kind": "function"},
#     {"id": "parse-parameters", "name": "parse_parameters", "anchor": "function-parse-parameters", "kind": "function"},
#     {"id": "parameter-keys", "name": "parameter_keys", "anchor": "function-parameter-keys", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Parsers for the two small text grammars found in ``p2.index`` files.

``p2.index`` is a Java properties file::

    version = 1
    metadata.repository.factory.order = compositeContent.xml,\\!
    artifact.repository.factory.order = compositeArtifacts.xml,\\!

and each ``*.factory.order`` value is an OSGi/bnd parameter list: comma
separated clauses, each holding one or more ``;`` separated keys followed by
optional ``name=value`` attributes and ``name:=value`` directives.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

__all__ = ["load_properties", "parameter_keys", "parse_parameters"]

_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_WHITESPACE = " \t\f"


def _unescape(text: str) -> str:
    def _replace(match: re.Match) -> str:
        token = match.group(1)
        if token.startswith("u") and len(token) == 5:
            return chr(int(token[1:], 16))
        return _ESCAPES.get(token, token)

    return _ESCAPE_RE.sub(_replace, text)


def _logical_lines(text: str) -> Iterator[str]:
    buffer: Optional[str] = None
    for natural in text.splitlines():
        line = natural.lstrip(_WHITESPACE)
        if buffer is None:
            if not line or line[0] in "#!":
                continue
            buffer = ""
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2:
            buffer += line[:-1]
            continue
        buffer += line
        yield buffer
        buffer = None
    if buffer is not None:
        yield buffer


def _split_entry(line: str) -> Tuple[str, str]:
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if char in "=:" or char in _WHITESPACE:
            break
        index += 1
    key = line[:index]
    cursor = index
    while cursor < length and line[cursor] in _WHITESPACE:
        cursor += 1
    if cursor < length and line[cursor] in "=:":
        cursor += 1
        while cursor < length and line[cursor] in _WHITESPACE:
            cursor += 1
    return _unescape(key), _unescape(line[cursor:])


def load_properties(source: Union[str, bytes, Path]) -> Dict[str, str]:
    """Parse Java properties from text, bytes (ISO-8859-1) or a file path.

    Later duplicates of a key win, as with ``java.util.Properties.load``.
    """

    if isinstance(source, Path):
        source = source.read_bytes()
    if isinstance(source, bytes):
        source = source.decode("iso-8859-1")
    properties: Dict[str, str] = {}
    for line in _logical_lines(source):
        key, value = _split_entry(line)
        properties[key] = value
    return properties


def _split_outside_quotes(text: str, separator: str) -> List[str]:
    parts: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in "\"'":
            quote = char
            current.append(char)
        elif char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_parameters(text: Optional[str]) -> List[Tuple[str, Dict[str, str]]]:
    """Parse a parameter list into ``(key, attributes)`` pairs in declared order.

    Keys sharing a clause share its attributes; directives keep their ``:``
    suffix in the attribute name. Empty clauses are ignored.
    """

    if not text:
        return []
    entries: List[Tuple[str, Dict[str, str]]] = []
    for clause in _split_outside_quotes(text, ","):
        keys: List[str] = []
        attributes: Dict[str, str] = {}
        for part in _split_outside_quotes(clause, ";"):
            part = part.strip()
            if not part:
                continue
            if "=" in part:
                name, value = part.split("=", 1)
                attributes[name.strip()] = _unquote(value)
            else:
                keys.append(_unquote(part))
        entries.extend((key, attributes) for key in keys)
    return entries


def parameter_keys(text: Optional[str]) -> List[str]:
    """Return the distinct keys of a parameter list in declared order."""

    return list(dict.fromkeys(key for key, _ in parse_parameters(text)))
