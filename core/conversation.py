"""Immutable conversation passed through the gateway."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Message:
    """One conversation turn. Content is plain text or a list of content blocks."""

    role: str
    content: str | tuple[Mapping[str, Any], ...]

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unsupported role: {self.role!r}")
        if isinstance(self.content, list):
            object.__setattr__(self, "content", tuple(self.content))

    def text(self) -> str:
        """Flatten content to plain text (text of every block that has one)."""
        if isinstance(self.content, str):
            return self.content
        parts = []
        for block in self.content:
            if isinstance(block, Mapping):
                text = block.get("text")
                if isinstance(text, str) and text:
                    parts.append(text)
            elif block is not None:
                parts.append(str(block))
        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [copy.deepcopy(dict(b)) for b in self.content]}


@dataclass(frozen=True)
class Conversation:
    """Ordered messages plus the remaining request fields (model, max_tokens, tools...)."""

    messages: tuple[Message, ...]
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages))
        object.__setattr__(self, "params", MappingProxyType(copy.deepcopy(dict(self.params))))

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> Conversation:
        """Build from an inbound request body ``{messages: [...], ...}``."""
        raw_messages = body.get("messages") or []
        messages = tuple(Message(role=m["role"], content=m["content"]) for m in raw_messages)
        params = {k: v for k, v in body.items() if k != "messages"}
        return cls(messages=messages, params=params)

    @classmethod
    def from_prompt(cls, prompt: str, **params: Any) -> Conversation:
        return cls(messages=(Message(role="user", content=prompt),), params=params)

    def to_body(self) -> dict[str, Any]:
        """Request body with params verbatim and messages last."""
        body = copy.deepcopy(dict(self.params))
        body["messages"] = [m.to_dict() for m in self.messages]
        return body

    def user_text(self) -> str:
        """All message text joined by newlines (for providers without native roles)."""
        return "\n".join(m.text() for m in self.messages)
