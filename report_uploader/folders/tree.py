"""
Folder Tree Builder.

Builds a forest from the canonical FolderPath list and keeps the per-base
expand/collapse state.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set
import locale

from ..models import BaseState, FolderPath

ROOT_ID = "root"
PATH_SEPARATOR = "/"


@dataclass(frozen=True)
class TreeNode:
    id: str
    name: str
    parent_id: Optional[str]
    path: str


def split_path(path: str) -> List[str]:
    return [segment.strip() for segment in path.split(PATH_SEPARATOR) if segment.strip()]


def _sort_key(node: TreeNode):
    return (locale.strxfrm(node.name.casefold()), node.name)


class FolderTree:
    """
    Navigable folder forest for one task.

    Top-level nodes hang under the synthetic ROOT_ID bucket. Children are
    sorted by display name.
    """

    def __init__(self, paths: Iterable[FolderPath] = ()):
        self._paths = [p for p in paths if p.id and p.path]
        by_path = {PATH_SEPARATOR.join(split_path(p.path)): p.id for p in self._paths}

        self._nodes: Dict[str, TreeNode] = {}
        for item in self._paths:
            segments = split_path(item.path)
            parent_path = PATH_SEPARATOR.join(segments[:-1])
            parent_id = by_path.get(parent_path) if parent_path else None
            if parent_id == item.id:
                parent_id = None
            self._nodes[item.id] = TreeNode(
                id=item.id,
                name=segments[-1] if segments else item.path,
                parent_id=parent_id,
                path=PATH_SEPARATOR.join(segments),
            )

        self._children: Dict[str, List[TreeNode]] = {}
        for node in self._nodes.values():
            self._children.setdefault(node.parent_id or ROOT_ID, []).append(node)
        for bucket in self._children.values():
            bucket.sort(key=_sort_key)

    @property
    def has_structure(self) -> bool:
        """False in flat mode (no schema nodes at all)."""
        return bool(self._nodes)

    @property
    def nodes(self) -> List[TreeNode]:
        return list(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get(self, node_id: str) -> Optional[TreeNode]:
        return self._nodes.get(node_id)

    def children(self, node_id: Optional[str] = None) -> List[TreeNode]:
        return list(self._children.get(node_id or ROOT_ID, []))

    def roots(self) -> List[TreeNode]:
        return self.children(ROOT_ID)

    def child_count(self, node_id: Optional[str] = None) -> int:
        return len(self._children.get(node_id or ROOT_ID, []))

    def is_leaf(self, node_id: Optional[str]) -> bool:
        return self.child_count(node_id) == 0

    def path_of(self, node_id: Optional[str]) -> str:
        """Stored path of a node; "" for the root or an unknown id."""
        node = self._nodes.get(node_id) if node_id else None
        return node.path if node else ""

    def walk_path(self, node_id: str, visited: Optional[Set[str]] = None) -> str:
        """Re-derive a node path from parent links, stopping on a cycle."""
        visited = set() if visited is None else visited
        names: List[str] = []
        current = self._nodes.get(node_id)
        while current is not None and current.id not in visited:
            visited.add(current.id)
            names.insert(0, current.name)
            current = self._nodes.get(current.parent_id) if current.parent_id else None
        return PATH_SEPARATOR.join(names)

    def find_by_path(self, path: str) -> Optional[TreeNode]:
        wanted = PATH_SEPARATOR.join(split_path(path))
        for node in self._nodes.values():
            if node.path == wanted:
                return node
        return None

    def iter_depth_first(self, node_id: Optional[str] = None):
        """Yield (depth, node) in display order."""
        stack = [(0, node) for node in reversed(self.children(node_id))]
        seen: Set[str] = set()
        while stack:
            depth, node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(self.children(node.id)))

    # Expand state

    def default_expanded(self) -> Set[str]:
        return {ROOT_ID, *self._nodes}

    def ensure_expanded(self, state: BaseState) -> Set[str]:
        """Initialize the expand set of a base once; later calls keep it."""
        if state.expanded is None:
            state.expanded = self.default_expanded()
        return state.expanded

    def expanded_ids(self, state: BaseState) -> Set[str]:
        if state.expanded is None:
            return self.default_expanded()
        return set(state.expanded)

    def is_expanded(self, state: BaseState, node_id: str) -> bool:
        return node_id in self.expanded_ids(state)

    def toggle_expanded(self, state: BaseState, node_id: str) -> bool:
        """Flip one node and return its new expanded flag."""
        expanded = self.ensure_expanded(state)
        if node_id in expanded:
            expanded.discard(node_id)
            return False
        expanded.add(node_id)
        return True
