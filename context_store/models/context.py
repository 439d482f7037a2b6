"""
Context module - Version and ledger structures

A ledger holds every version recorded for one task plus the pointer to the
version currently served by reads. Versions are never mutated in place in
memory; a corrective patch produces a replacement copy that keeps the
original sequence number and creation time.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Any

from context_store.utils.validation import TOKEN_SEPARATOR


def now_iso() -> str:
    """ISO-8601 timestamp used for created_at / updated_at fields."""
    return datetime.now().isoformat()


@dataclass(frozen=True)
class ContextVersion:
    """One recorded version of a task's context."""
    task_id: str
    version_id: str
    sequence: int
    content: str
    created_at: str
    updated_at: str
    revision: int = 0
    patched: bool = False

    @property
    def token(self) -> str:
        """
        Concurrency token for corrective updates: version id plus revision.

        A correction presented with this token fails with ConflictError once
        another correction has moved the revision on.
        """
        return f"{self.version_id}{TOKEN_SEPARATOR}{self.revision}"

    def with_patch(self, content: str, updated_at: Optional[str] = None) -> "ContextVersion":
        """Return the corrected copy of this version."""
        return replace(
            self,
            content=content,
            updated_at=updated_at or now_iso(),
            revision=self.revision + 1,
            patched=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "version_id": self.version_id,
            "sequence": self.sequence,
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "revision": self.revision,
            "patched": self.patched,
            "token": self.token,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContextVersion":
        return cls(
            task_id=data["task_id"],
            version_id=str(data["version_id"]),
            sequence=int(data["sequence"]),
            content=data["content"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at") or data["created_at"],
            revision=int(data.get("revision", 0)),
            patched=str(data.get("patched", False)).lower() in ("true", "1"),
        )


@dataclass
class TaskLedger:
    """
    Ordered version history of a single task.

    Attributes:
        task_id: Owning task
        parent_task_id: Task this one descends from (informational only)
        latest_version: version_id currently served by reads
        next_sequence: Sequence number the next appended version receives
        created_at: When the ledger was created
        versions: version_id -> ContextVersion, kept in sequence order
    """
    task_id: str
    parent_task_id: Optional[str]
    latest_version: str
    next_sequence: int
    created_at: str
    versions: Dict[str, ContextVersion] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        task_id: str,
        parent_task_id: Optional[str],
        content: str,
        created_at: Optional[str] = None
    ) -> "TaskLedger":
        """Build a new ledger holding exactly one version, pointed at by latest."""
        timestamp = created_at or now_iso()
        first = ContextVersion(
            task_id=task_id,
            version_id="1",
            sequence=1,
            content=content,
            created_at=timestamp,
            updated_at=timestamp,
        )
        return cls(
            task_id=task_id,
            parent_task_id=parent_task_id,
            latest_version=first.version_id,
            next_sequence=2,
            created_at=timestamp,
            versions={first.version_id: first},
        )

    def latest(self) -> ContextVersion:
        return self.versions[self.latest_version]

    def has_version(self, version_id: str) -> bool:
        return version_id in self.versions

    def get_version(self, version_id: str) -> Optional[ContextVersion]:
        return self.versions.get(version_id)

    def ordered_versions(self) -> List[ContextVersion]:
        return sorted(self.versions.values(), key=lambda v: v.sequence)

    def fallback_for(self, version_id: str) -> Optional[str]:
        """
        Pick the version the latest pointer moves to when *version_id* is removed.

        The immediately preceding version by sequence wins; when the removed
        version is the oldest, the nearest following version is used. Returns
        None when *version_id* is the only version left.
        """
        target = self.versions[version_id]
        preceding = [v for v in self.versions.values() if v.sequence < target.sequence]
        if preceding:
            return max(preceding, key=lambda v: v.sequence).version_id

        following = [v for v in self.versions.values() if v.sequence > target.sequence]
        if following:
            return min(following, key=lambda v: v.sequence).version_id

        return None

    def to_dict(self, include_versions: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "task_id": self.task_id,
            "parent_task_id": self.parent_task_id,
            "latest_version": self.latest_version,
            "next_sequence": self.next_sequence,
            "created_at": self.created_at,
            "version_count": len(self.versions),
        }
        if include_versions:
            data["versions"] = [v.to_dict() for v in self.ordered_versions()]
        return data
