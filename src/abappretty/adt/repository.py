"""Repository browsing: object discovery and include expansion.

``list_objects`` turns a type/name selection into the objects to process;
``expand`` turns one object into the includes whose source gets
formatted. Both only read from the server.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from urllib.parse import urljoin

from abappretty.adt.client import AdtClient
from abappretty.constants import (
    CLASS,
    FUNCTION_GROUP,
    FUNCTION_GROUP_INCLUDE,
    FUNCTION_MODULE,
    INTERFACE,
    PACKAGE,
    PROGRAM,
    PROGRAM_INCLUDE,
    SUPPORTED_TYPES,
)
from abappretty.models import AbapInclude, AbapObject

logger = logging.getLogger(__name__)

# Types whose metadata URL directly exposes a single main source
_SINGLE_SOURCE_TYPES = {PROGRAM_INCLUDE, INTERFACE, FUNCTION_MODULE, FUNCTION_GROUP_INCLUDE}


def supported_type(object_type: str) -> bool:
    return object_type in SUPPORTED_TYPES


def _main_source(object_type: str, name: str, url: str) -> AbapInclude:
    return AbapInclude(
        type=object_type, name=name, source_url=f"{url}/source/main", meta_url=url
    )


async def expand(client: AdtClient, obj: AbapObject) -> list[AbapInclude]:
    """Expand an object into its includes, in server order.

    Args:
        client: Connected ADT client (only read calls are made).
        obj: Object to expand; ``url`` must be its ADT metadata URL.

    Returns:
        The includes to process. Unsupported types yield an empty list.
    """
    if obj.type in _SINGLE_SOURCE_TYPES:
        return [_main_source(obj.type, obj.name, obj.url)]

    if obj.type == PROGRAM:
        includes = [_main_source(PROGRAM, obj.name, obj.url)]
        for node in await client.node_contents(PROGRAM, obj.name):
            if node.object_type == PROGRAM_INCLUDE:
                includes.append(
                    _main_source(PROGRAM_INCLUDE, node.object_name, node.object_uri)
                )
        return includes

    if obj.type == CLASS:
        return [
            AbapInclude(
                type=CLASS,
                name=obj.name,
                source_url=urljoin(f"{obj.url}/", include.source_uri),
                meta_url=obj.url,
                part=include.include_type,
            )
            for include in await client.object_includes(obj.url)
        ]

    if obj.type == FUNCTION_GROUP:
        return [
            _main_source(node.object_type, node.object_name, node.object_uri)
            for node in await client.node_contents(FUNCTION_GROUP, obj.name)
            if node.object_type in (FUNCTION_MODULE, FUNCTION_GROUP_INCLUDE)
        ]

    if obj.type == PACKAGE:
        includes: list[AbapInclude] = []
        for node in await client.node_contents(PACKAGE, obj.name):
            if supported_type(node.object_type):
                child = AbapObject(node.object_type, node.object_name, node.object_uri)
                includes.extend(await expand(client, child))
        return includes

    logger.warning("Objects of type %s have no includes to process", obj.type)
    return []


async def list_objects(
    client: AdtClient,
    object_type: str,
    name: str,
    progress: Callable[[str], None] | None = None,
    recursive: bool = False,
) -> list[AbapObject]:
    """Discover the objects selected by type and name.

    A package yields its supported contents; sub-packages are only
    descended into when *recursive* is set. Any other type yields the
    object itself when the server knows it.
    """
    if object_type == PACKAGE:
        return await _package_contents(client, name, progress, recursive)

    if progress:
        progress(f"Searching {object_type} {name}")
    wanted = name.upper()
    return [
        AbapObject(ref.type, ref.name, ref.uri)
        for ref in await client.search_object(wanted, object_type)
        if ref.name.upper() == wanted and ref.type == object_type
    ]


async def _package_contents(
    client: AdtClient,
    name: str,
    progress: Callable[[str], None] | None,
    recursive: bool,
) -> list[AbapObject]:
    if progress:
        progress(f"Reading package {name}")
    objects: list[AbapObject] = []
    for node in await client.node_contents(PACKAGE, name):
        if node.object_type == PACKAGE:
            if recursive:
                objects.extend(
                    await _package_contents(client, node.object_name, progress, recursive)
                )
        elif supported_type(node.object_type):
            objects.append(AbapObject(node.object_type, node.object_name, node.object_uri))
    return objects
