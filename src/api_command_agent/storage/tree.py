"""Collection tree model and path resolution.

A tree is an ordered list of top-level folders. Each folder holds an ordered
list of children that are either folders or saved request leaves. Names are
not unique; path resolution always takes the first folder with a matching
name and only creates one when none exists.
"""

import uuid
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from api_command_agent.exceptions import EmptyPathError
from api_command_agent.parser.base import ParsedRequest


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class RequestLeaf(BaseModel):
    """A saved request record."""

    kind: Literal["request"] = "request"
    id: str = Field(default_factory=_new_id)
    name: str
    request: ParsedRequest
    implementation: str = ""
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Folder(BaseModel):
    """A collection or nested folder."""

    kind: Literal["folder"] = "folder"
    id: str = Field(default_factory=_new_id)
    name: str
    children: list["Node"] = []
    parent_path: list[str] = []
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def find_folder(self, name: str) -> "Folder | None":
        return _first_folder(self.children, name)


Node = Annotated[Union[Folder, RequestLeaf], Field(discriminator="kind")]
Folder.model_rebuild()

CollectionTree = list[Folder]


def resolve_or_create(tree: CollectionTree, path_segments: list[str], leaf: RequestLeaf) -> str:
    """Place ``leaf`` in the folder at ``path_segments``, creating folders as needed.

    Returns the id of the folder that received the leaf.
    """
    chain = _walk(tree, path_segments)
    target = chain[-1]
    target.children.append(leaf)
    target.updated_at = _now()
    return target.id


def find_path(tree: CollectionTree, path_segments: list[str]) -> list[Folder] | None:
    """Return the folder chain for ``path_segments`` without creating anything."""
    if not path_segments:
        raise EmptyPathError()
    chain: list[Folder] = []
    for name in path_segments:
        folder = chain[-1].find_folder(name) if chain else _first_folder(tree, name)
        if folder is None:
            return None
        chain.append(folder)
    return chain


def iter_requests(tree: CollectionTree) -> Iterator[tuple[list[str], RequestLeaf]]:
    """Yield (folder path, leaf) pairs depth first."""
    for folder in tree:
        yield from _iter_folder(folder, [folder.name])


def _iter_folder(folder: Folder, path: list[str]) -> Iterator[tuple[list[str], RequestLeaf]]:
    for child in folder.children:
        if isinstance(child, RequestLeaf):
            yield path, child
        else:
            yield from _iter_folder(child, path + [child.name])


def _walk(tree: CollectionTree, path_segments: list[str]) -> list[Folder]:
    if not path_segments:
        raise EmptyPathError()
    chain: list[Folder] = []
    for depth, name in enumerate(path_segments):
        parent = chain[-1] if chain else None
        folder = parent.find_folder(name) if parent is not None else _first_folder(tree, name)
        if folder is None:
            folder = Folder(name=name, parent_path=list(path_segments[:depth]))
            (parent.children if parent is not None else tree).append(folder)
        chain.append(folder)
    return chain


def _first_folder(nodes: list, name: str) -> Folder | None:
    for node in nodes:
        if isinstance(node, Folder) and node.name == name:
            return node
    return None
