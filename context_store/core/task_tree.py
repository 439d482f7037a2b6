"""
Task Tree - parent/child lookups over stored contexts

The version store records ``parent_task_id`` but never validates it. This
module builds the task hierarchy on demand from a snapshot of live ledgers
so callers can navigate it and spot dangling parent references.
"""

from collections import defaultdict, deque
from typing import Dict, List, Optional

from context_store.core.context_manager import ContextVersionStore
from context_store.utils.exceptions import NotFoundError
from context_store.utils.logger import get_logger

logger = get_logger(__name__)


class TaskTree:
    """
    Read-only hierarchy view built from a ContextVersionStore.

    Usage:
        tree = TaskTree(store)
        tree.children_of("task_1")       # ["task_1.1", "task_1.2"]
        tree.ancestors_of("task_1.2.1")  # ["task_1.2", "task_1"]
        tree.dangling()                  # {"task_9": "task_missing"}
    """

    def __init__(self, store: ContextVersionStore):
        self.store = store

    def snapshot(self) -> Dict[str, Optional[str]]:
        """Map every live task to its recorded parent."""
        parents: Dict[str, Optional[str]] = {}
        for task_id in self.store.list_tasks():
            try:
                parents[task_id] = self.store.get_ledger(task_id).parent_task_id
            except NotFoundError:
                # Deleted between listing and lookup
                continue
        return parents

    def parent_of(self, task_id: str) -> Optional[str]:
        return self.store.get_ledger(task_id).parent_task_id

    def children_of(self, task_id: str) -> List[str]:
        parents = self.snapshot()
        return sorted(child for child, parent in parents.items() if parent == task_id)

    def ancestors_of(self, task_id: str) -> List[str]:
        """
        Walk parent links upwards, nearest first.

        The walk includes a dangling parent (recorded but not stored) and
        stops there; it also stops if a cycle is detected.
        """
        parents = self.snapshot()
        if task_id not in parents:
            raise NotFoundError(task_id)

        ancestors: List[str] = []
        seen = {task_id}
        current = parents[task_id]
        while current is not None and current not in seen:
            ancestors.append(current)
            seen.add(current)
            current = parents.get(current)

        if current is not None and current in seen:
            logger.warning(f"[TREE] Parent cycle detected above task {task_id} at {current}")
        return ancestors

    def descendants_of(self, task_id: str) -> List[str]:
        """All tasks below *task_id*, breadth-first."""
        parents = self.snapshot()
        if task_id not in parents:
            raise NotFoundError(task_id)

        children: Dict[str, List[str]] = defaultdict(list)
        for child, parent in parents.items():
            if parent is not None:
                children[parent].append(child)

        descendants: List[str] = []
        seen = {task_id}
        queue = deque(sorted(children[task_id]))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            descendants.append(current)
            queue.extend(sorted(children[current]))
        return descendants

    def roots(self) -> List[str]:
        """Tasks without a parent, or whose parent is not stored."""
        parents = self.snapshot()
        return sorted(
            task_id for task_id, parent in parents.items()
            if parent is None or parent not in parents
        )

    def dangling(self) -> Dict[str, str]:
        """Tasks whose recorded parent has no context in the store."""
        parents = self.snapshot()
        return {
            task_id: parent for task_id, parent in sorted(parents.items())
            if parent is not None and parent not in parents
        }
