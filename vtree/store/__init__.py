"""vtree Store - Persistence and locking of named trees.

Usage:
    from vtree.store import TreeStore

    store = TreeStore("~/.vtree")
    with store.lock("Project_A"):
        tree = store.load("Project_A")
        store.save(tree)
"""

from vtree.store.lock import TreeLock, pid_alive
from vtree.store.tree_store import TreeStore

__all__ = [
    "TreeStore",
    "TreeLock",
    "pid_alive",
]
