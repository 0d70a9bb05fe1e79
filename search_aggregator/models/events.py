from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MessageType(str, Enum):
    SEARCH = "search"
    STATUS = "status"
    ERROR = "error"
    SEARCH_COMPLETE = "search_complete"


@dataclass
class Envelope:
    type: MessageType
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "data": self.data}
