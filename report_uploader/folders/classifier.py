"""
Existing-File Classifier.

Stored files come back as a flat list of URLs whose storage key looks like
``.../<base id>/<folder>/<sub folder>/<file name>``. The folder part is
recovered from the key and matched against the folder tree by its
normalized storage path.
"""
from collections import Counter
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote, urlsplit
import logging
import re

from .tree import FolderTree, ROOT_ID

logger = logging.getLogger(__name__)

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_SEPARATORS = re.compile(r"[\\/]")
_WHITESPACE = re.compile(r"\s+")


def extract_storage_key(url: str) -> str:
    """Path part of a URL without leading slashes."""
    if not url:
        return ""
    if _ABSOLUTE_URL.match(url):
        try:
            return urlsplit(url).path.lstrip("/")
        except ValueError:
            return ""
    return url.lstrip("/")


def normalize_segment(segment: str) -> str:
    segment = _SEPARATORS.sub("_", segment.strip())
    return _WHITESPACE.sub("_", segment)


def normalize_path_for_storage(path: str) -> str:
    """Folder path as the storage writes it: one normalized segment per level."""
    segments = (normalize_segment(s) for s in (path or "").split("/"))
    return "/".join(s for s in segments if s)


def _decode_segment(segment: str) -> str:
    """Percent-decode one segment; malformed escapes keep the raw text."""
    try:
        return unquote(segment, errors="strict")
    except UnicodeDecodeError:
        return segment


def folder_path_from_url(url: str, base_id: str) -> Optional[str]:
    """
    Normalized folder path of a stored file.

    Returns:
        "" for a file directly under the base, the folder path otherwise,
        or None when the URL does not contain the base id at all
    """
    key = extract_storage_key(url)
    if not key or not base_id:
        return None
    segments = [_decode_segment(s) for s in key.split("/") if s]
    try:
        index = segments.index(base_id)
    except ValueError:
        return None
    tail = segments[index + 1:]
    if len(tail) <= 1:
        return ""
    return normalize_path_for_storage("/".join(tail[:-1]))


def count_by_folder(urls: Iterable[str], base_id: str) -> Counter:
    """Occupancy per normalized folder path; unattributable URLs are skipped."""
    counts: Counter = Counter()
    for url in urls:
        folder = folder_path_from_url(url, base_id)
        if folder is None:
            logger.debug(f"File not attributable to base {base_id!r}: {url}")
            continue
        counts[folder] += 1
    return counts


def visible_files(urls: Iterable[str], base_id: str, folder_path: str) -> List[str]:
    """Stored files located exactly in folder_path ("" for the base root)."""
    wanted = normalize_path_for_storage(folder_path)
    return [url for url in urls if folder_path_from_url(url, base_id) == wanted]


class OccupancyIndex:
    """
    Per-node file counts of one base.

    Usage:
        index = OccupancyIndex(tree, "BS-1", files)
        index.root_count, index.count_for(node_id), index.total
    """

    def __init__(self, tree: FolderTree, base_id: str, urls: Iterable[str]):
        self._tree = tree
        self._base_id = base_id
        self._counts = count_by_folder(urls, base_id)
        self._by_node: Dict[str, int] = {
            node.id: self._counts.get(normalize_path_for_storage(node.path), 0)
            for node in tree.nodes
        }

    @property
    def root_count(self) -> int:
        return self._counts.get("", 0)

    def count_for(self, node_id: Optional[str]) -> int:
        if not node_id or node_id == ROOT_ID:
            return self.root_count
        return self._by_node.get(node_id, 0)

    @property
    def by_path(self) -> Dict[str, int]:
        return dict(self._counts)

    @property
    def total(self) -> int:
        """Files attributed to the root or to a node of the tree."""
        return self.root_count + sum(self._by_node.values())

    @property
    def unmatched(self) -> int:
        """Files inside the base whose folder is not part of the tree."""
        return sum(self._counts.values()) - self.total
