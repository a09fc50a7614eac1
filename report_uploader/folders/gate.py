"""Upload Gate: may new files go into the selected folder?"""
from typing import Optional

from .tree import FolderTree, ROOT_ID


def can_upload(tree: FolderTree, selected_folder_id: Optional[str]) -> bool:
    """
    Flat mode is always open. With a folder schema only an explicitly
    selected leaf node accepts files; the synthetic root never does.
    """
    if not tree.has_structure:
        return True
    if not selected_folder_id or selected_folder_id == ROOT_ID:
        return False
    if selected_folder_id not in tree:
        return False
    return tree.is_leaf(selected_folder_id)
