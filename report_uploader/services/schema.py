"""
Folder Schema Resolver - Single Responsibility: load the org folder schema.

The config endpoint answers in one of two shapes:
- {"folderPaths": [{"id", "path"}]}   already flattened
- {"folders": [{"id", "name", "parentId"}]}   parent/child node list

Both are parsed once into a tagged union and resolved into the canonical
list of FolderPath; nothing downstream looks at the source shape again.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple, Union
import logging

from ..models import FolderPath, UploadConfig
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_WARNING = "Could not load the folder structure"


@dataclass(frozen=True)
class FolderNodeSpec:
    """One node of a parent/child folder schema."""
    id: str
    name: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class FlatSchema:
    """Schema delivered as ready-made paths."""
    paths: Tuple[FolderPath, ...]

    def to_paths(self) -> List[FolderPath]:
        return [p for p in self.paths if p.id and p.path]


@dataclass(frozen=True)
class NodeSchema:
    """Schema delivered as a node list; paths are derived from parent chains."""
    nodes: Tuple[FolderNodeSpec, ...]

    def to_paths(self) -> List[FolderPath]:
        by_id = {node.id: node for node in self.nodes}
        resolved = [FolderPath(node.id, resolve_node_path(node.id, by_id)) for node in self.nodes]
        return [p for p in resolved if p.id and p.path]


FolderSchema = Union[FlatSchema, NodeSchema]


def resolve_node_path(
    node_id: str,
    by_id: Dict[str, FolderNodeSpec],
    visited: Optional[Set[str]] = None,
) -> str:
    """
    Join ancestor names root-first by walking parent links.

    Empty names are skipped. A cycle stops the walk at the first repeated
    node, so malformed input yields a truncated path instead of hanging.
    """
    visited = set() if visited is None else visited
    parts: List[str] = []
    current = by_id.get(node_id)
    while current is not None:
        if current.id in visited:
            logger.warning(f"Cycle in folder schema at node {current.id!r}, path truncated")
            break
        visited.add(current.id)
        parts.insert(0, (current.name or "").strip())
        if not current.parent_id:
            break
        current = by_id.get(current.parent_id)
    return "/".join(part for part in parts if part)


def _clean_id(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_schema_payload(data: Dict[str, Any]) -> FolderSchema:
    """Decide the schema shape. Neither shape present means flat mode."""
    direct = data.get("folderPaths")
    if isinstance(direct, list) and direct:
        return FlatSchema(tuple(
            FolderPath(_clean_id(item.get("id")), str(item.get("path") or "").strip())
            for item in direct
            if isinstance(item, dict)
        ))

    folders = data.get("folders")
    if isinstance(folders, list) and folders:
        return NodeSchema(tuple(
            FolderNodeSpec(
                id=_clean_id(item.get("id")),
                name=str(item.get("name") or ""),
                parent_id=_clean_id(item.get("parentId")) or None,
            )
            for item in folders
            if isinstance(item, dict)
        ))

    return FlatSchema(())


class FolderSchemaService:
    """
    Loads the folder schema for a task.

    Usage:
        schema = FolderSchemaService(api_client)
        paths, warning = await schema.load(task_id)
        # paths == [] means flat mode; warning is None on success
    """

    def __init__(self, api_client: IAPIClient, config: Optional[UploadConfig] = None):
        self._api = api_client
        self._config = config or UploadConfig()

    async def load(self, task_id: str) -> Tuple[List[FolderPath], Optional[str]]:
        if not task_id:
            return [], None

        try:
            response = await self._api.get(
                self._config.endpoint("/api/reports/config"),
                params={"taskId": task_id},
            )
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("folder config is not a JSON object")
            paths = parse_schema_payload(data).to_paths()
        except Exception as e:
            warning = getattr(e, "error", None) or str(e) or DEFAULT_SCHEMA_WARNING
            logger.warning(f"Folder schema unavailable for task {task_id}, using flat mode: {e}")
            return [], warning

        logger.info(f"Loaded {len(paths)} folder(s) for task {task_id}")
        return paths, None
