"""
Data models for job tracking and orphan recovery.
"""

import json
from datetime import datetime, timezone
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional, List

from ..core.constants import DEFAULT_QUEUE


def encode_payload(job: Dict[str, Any]) -> str:
    """Serialize a job payload for storage."""
    return json.dumps(job)


def decode_payload(raw: str) -> Dict[str, Any]:
    """Parse a stored job payload."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Job payload must be a JSON object, got {type(data).__name__}")
    return data


@dataclass
class OrphanedJob:
    """A tracked job whose owning instance is no longer alive."""
    payload: Dict[str, Any]
    instance_id: str
    orphaned_at: Optional[float] = None
    orphaned_duration: Optional[float] = None

    @property
    def jid(self) -> Optional[str]:
        return self.payload.get('jid')

    @property
    def job_class(self) -> Optional[str]:
        return self.payload.get('class')

    @property
    def queue(self) -> str:
        return self.payload.get('queue', DEFAULT_QUEUE)

    @property
    def unique_digest(self) -> Optional[str]:
        return self.payload.get('unique_digest')

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the payload plus orphan metadata."""
        data = dict(self.payload)
        data['instance_id'] = self.instance_id
        data['orphaned_at'] = self.orphaned_at
        data['orphaned_duration'] = self.orphaned_duration
        return data


@dataclass
class InstanceStatus:
    """Liveness view of a worker instance."""
    instance_id: str
    status: str
    last_heartbeat: Optional[float] = None
    orphaned_job_count: int = 0

    @property
    def last_heartbeat_at(self) -> Optional[datetime]:
        if self.last_heartbeat is None:
            return None
        return datetime.fromtimestamp(self.last_heartbeat, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.last_heartbeat_at:
            data['last_heartbeat_at'] = self.last_heartbeat_at.isoformat()
        return data


@dataclass
class ActionResult:
    """Outcome of a retry/delete action on orphaned jobs."""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RecoveryReport:
    """Summary of one recovery sweep."""
    instance_id: str
    lock_acquired: bool = False
    dead_instances: List[str] = field(default_factory=list)
    recovered_jids: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def recovered_count(self) -> int:
        return len(self.recovered_jids)

    @property
    def succeeded(self) -> bool:
        return self.lock_acquired and self.error is None
