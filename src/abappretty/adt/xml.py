"""Parsers and builders for the ADT XML payloads used by the client.

ADT mixes several XML namespaces (``adtcore``, ``asx``, ``chkl``, ``ioc``,
``class``, ``atom``) and some payloads carry unqualified ABAP-XML fields.
Lookups here match on local names only, so prefix changes between
releases do not matter.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from xml.etree import ElementTree
from xml.sax.saxutils import quoteattr

from abappretty.models import (
    ActivationMessage,
    ActivationResult,
    AdtLock,
    InactiveObjectEntry,
    MainProgram,
    ObjectReference,
)

ADTCORE_NS = "http://www.sap.com/adt/core"
SOURCE_RELATION = "http://www.sap.com/adt/relations/source"

_ERROR_TYPES = {"E", "A", "X"}


@dataclass(slots=True)
class NodeEntry:
    """One ``SEU_ADT_REPOSITORY_OBJ_NODE`` of a repository node structure."""

    object_type: str
    object_name: str
    object_uri: str
    expandable: bool = False


@dataclass(slots=True)
class ClassInclude:
    """A source include listed in class metadata."""

    include_type: str
    source_uri: str


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _attr(element: ElementTree.Element, name: str, default: str = "") -> str:
    for key, value in element.attrib.items():
        if _local(key) == name:
            return value
    return default


def _iter(element: ElementTree.Element, name: str) -> Iterator[ElementTree.Element]:
    for child in element.iter():
        if _local(child.tag) == name:
            yield child


def _child_text(element: ElementTree.Element, name: str) -> str:
    for child in element:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def _parse(body: str | bytes) -> ElementTree.Element | None:
    if not body or not body.strip():
        return None
    return ElementTree.fromstring(body)


def parse_exception(body: str | bytes) -> tuple[str, str]:
    """Extract ``(type, message)`` from an ADT exception document.

    Returns empty strings when the body is not an ADT exception.
    """
    try:
        root = _parse(body)
    except ElementTree.ParseError:
        return "", ""
    if root is None or _local(root.tag) != "exception":
        return "", ""
    exc_type = ""
    for element in _iter(root, "type"):
        exc_type = _attr(element, "id")
        break
    message = _child_text(root, "message") or _child_text(root, "localizedMessage")
    return exc_type, message


def parse_lock(body: str | bytes) -> AdtLock:
    """Parse the ``asx:abap`` lock result."""
    root = _parse(body)
    if root is None:
        return AdtLock()
    data = next(_iter(root, "DATA"), root)
    return AdtLock(
        lock_handle=_child_text(data, "LOCK_HANDLE"),
        is_local=_child_text(data, "IS_LOCAL") == "X",
        corrnr=_child_text(data, "CORRNR"),
        corruser=_child_text(data, "CORRUSER"),
        corrtext=_child_text(data, "CORRTEXT"),
    )


def _reference(element: ElementTree.Element) -> ObjectReference:
    return ObjectReference(
        uri=_attr(element, "uri"),
        type=_attr(element, "type"),
        name=_attr(element, "name"),
        parent_uri=_attr(element, "parentUri"),
    )


def parse_object_references(body: str | bytes) -> list[ObjectReference]:
    """Parse an ``adtcore:objectReferences`` list (search results)."""
    root = _parse(body)
    if root is None:
        return []
    return [_reference(el) for el in _iter(root, "objectReference")]


def parse_main_programs(body: str | bytes) -> list[MainProgram]:
    return [
        MainProgram(uri=ref.uri, type=ref.type, name=ref.name)
        for ref in parse_object_references(body)
    ]


def parse_activation_result(body: str | bytes) -> ActivationResult:
    """Parse an activation response.

    An empty body means a clean activation. Otherwise the body holds a
    ``chkl:messages`` check list and/or an ``ioc:inactiveObjects`` list.
    The activation succeeded when no message is an error and nothing was
    left inactive.
    """
    root = _parse(body)
    if root is None:
        return ActivationResult(success=True)

    messages = [
        ActivationMessage(
            type=_attr(msg, "type"),
            short_text=" ".join(
                (txt.text or "").strip() for txt in _iter(msg, "txt") if txt.text
            ),
            obj_descr=_attr(msg, "objDescr"),
            href=_attr(msg, "href"),
        )
        for msg in _iter(root, "msg")
    ]

    inactive: list[InactiveObjectEntry] = []
    for entry in _iter(root, "entry"):
        obj = transport = None
        for child in entry:
            ref = next(_iter(child, "ref"), None)
            if ref is None:
                continue
            if _local(child.tag) == "object":
                obj = _reference(ref)
            elif _local(child.tag) == "transport":
                transport = _reference(ref)
        inactive.append(InactiveObjectEntry(object=obj, transport=transport))

    success = not any(m.type in _ERROR_TYPES for m in messages) and not inactive
    return ActivationResult(success=success, messages=messages, inactive=inactive)


def parse_node_structure(body: str | bytes) -> list[NodeEntry]:
    """Parse the ``TREE_CONTENT`` of a repository node structure."""
    root = _parse(body)
    if root is None:
        return []
    return [
        NodeEntry(
            object_type=_child_text(node, "OBJECT_TYPE"),
            object_name=_child_text(node, "OBJECT_NAME"),
            object_uri=_child_text(node, "OBJECT_URI"),
            expandable=_child_text(node, "EXPANDABLE") == "X",
        )
        for node in _iter(root, "SEU_ADT_REPOSITORY_OBJ_NODE")
    ]


def parse_class_includes(body: str | bytes) -> list[ClassInclude]:
    """List the source includes of a class from its metadata document."""
    root = _parse(body)
    if root is None:
        return []
    includes: list[ClassInclude] = []
    for element in _iter(root, "include"):
        source_uri = _attr(element, "sourceUri")
        if not source_uri:
            for link in _iter(element, "link"):
                if _attr(link, "rel") == SOURCE_RELATION:
                    source_uri = _attr(link, "href")
                    break
        if source_uri:
            includes.append(ClassInclude(_attr(element, "includeType"), source_uri))
    return includes


def build_object_references(references: Iterable[ObjectReference]) -> str:
    """Render references as an ``adtcore:objectReferences`` request body."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<adtcore:objectReferences xmlns:adtcore="{ADTCORE_NS}">',
    ]
    for ref in references:
        attrs = [f"adtcore:uri={quoteattr(ref.uri)}"]
        if ref.type:
            attrs.append(f"adtcore:type={quoteattr(ref.type)}")
        if ref.name:
            attrs.append(f"adtcore:name={quoteattr(ref.name)}")
        if ref.parent_uri:
            attrs.append(f"adtcore:parentUri={quoteattr(ref.parent_uri)}")
        lines.append(f"<adtcore:objectReference {' '.join(attrs)}/>")
    lines.append("</adtcore:objectReferences>")
    return "\n".join(lines)
