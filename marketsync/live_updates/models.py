"""
Data models for push-based change notifications.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..cache.keys import Domain


class ChangeType(Enum):
    """Kinds of row changes reported by the data service."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeNotification:
    """A change to one resource, as delivered by the push channel."""
    domain: Domain
    change_type: ChangeType = ChangeType.UPDATE
    entity_id: Optional[str] = None
    user_id: Optional[str] = None  # Owner of the changed record
    payload: Dict[str, Any] = field(default_factory=dict)
    received_at: float = field(default_factory=time.time)

    @property
    def topics(self) -> tuple:
        """Topics this notification is delivered on, broadest first."""
        if self.entity_id is None:
            return (topic_for(self.domain),)
        return (topic_for(self.domain), topic_for(self.domain, self.entity_id))

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "ChangeNotification":
        """
        Build a notification from a change-feed row.

        Raises:
            KeyError: Missing domain
            ValueError: Unknown domain or change type, or a payload that is
                not an object
        """
        entity_id = row.get("entity_id")
        user_id = row.get("user_id")
        payload = row.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError(f"payload must be an object, got {type(payload).__name__}")
        return cls(
            domain=Domain(row["domain"]),
            change_type=ChangeType(str(row.get("change_type", "UPDATE")).upper()),
            entity_id=str(entity_id) if entity_id is not None else None,
            user_id=str(user_id) if user_id is not None else None,
            payload=payload,
        )


def topic_for(domain: Domain, entity_id: Optional[str] = None) -> str:
    """Channel topic for a domain, or for one entity of a domain."""
    if entity_id is None:
        return domain.value
    return f"{domain.value}:{entity_id}"
