"""Folder schema tree, stored-file classification and the upload gate."""
from .tree import FolderTree, TreeNode, ROOT_ID
from .classifier import OccupancyIndex, folder_path_from_url, normalize_path_for_storage
from .gate import can_upload

__all__ = [
    "FolderTree",
    "TreeNode",
    "ROOT_ID",
    "OccupancyIndex",
    "folder_path_from_url",
    "normalize_path_for_storage",
    "can_upload",
]
