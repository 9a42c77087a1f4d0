from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ChatMessage:
    """One turn of conversation history."""

    role: ChatRole
    content: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatMessage":
        """
        Build a message from a loosely typed payload.

        Raises:
            ValueError: If the role is not one of system/user/assistant/tool
        """
        content = data.get("content")
        return cls(role=ChatRole(data.get("role")), content=content if isinstance(content, str) else "")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}
