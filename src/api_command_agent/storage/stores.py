"""Persistence for the collection tree.

Any object with ``get_all_collections()`` and ``save_all_collections(tree)``
can back the endpoint tool. Two stores ship here: an in-memory one and a
YAML file store.
"""

import logging
from pathlib import Path
from typing import Protocol

import yaml
from pydantic import TypeAdapter, ValidationError

from api_command_agent.exceptions import CollectionError
from api_command_agent.storage.tree import CollectionTree, Folder

logger = logging.getLogger(__name__)

_TREE_ADAPTER = TypeAdapter(list[Folder])


class CollectionStore(Protocol):
    def get_all_collections(self) -> CollectionTree: ...

    def save_all_collections(self, tree: CollectionTree) -> None: ...


class MemoryCollectionStore:
    """Keeps the tree in memory; each read returns a deep copy."""

    def __init__(self, tree: CollectionTree | None = None):
        self._tree: CollectionTree = list(tree or [])
        self.save_count = 0

    def get_all_collections(self) -> CollectionTree:
        return [folder.model_copy(deep=True) for folder in self._tree]

    def save_all_collections(self, tree: CollectionTree) -> None:
        self._tree = [folder.model_copy(deep=True) for folder in tree]
        self.save_count += 1


class YamlCollectionStore:
    """Stores the tree as a YAML document. A missing file is an empty tree."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def get_all_collections(self) -> CollectionTree:
        if not self.path.exists():
            return []
        text = self.path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(text) or []
            return _TREE_ADAPTER.validate_python(data)
        except (yaml.YAMLError, ValidationError) as e:
            raise CollectionError(f"Failed to load collections from {self.path}: {e}") from e

    def save_all_collections(self, tree: CollectionTree) -> None:
        data = _TREE_ADAPTER.dump_python(tree, mode="json")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        logger.info("Saved %d collections to %s", len(tree), self.path)
