"""Session domain models for the interview workflow."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

ContentPart = Dict[str, Any]
StructuredContent = Union[str, List[ContentPart]]


class Role(str, Enum):
	SYSTEM = "system"
	USER = "user"
	ASSISTANT = "assistant"


class Phase(str, Enum):
	INTERVIEW = "interview"
	COMPLETE = "complete"


@dataclass
class Message:
	"""One conversation turn.

	`display_content` is what the user sees; `structured_content` is replayed
	verbatim to the provider and is a list of content parts whenever the turn
	carried an attachment.
	"""

	role: Role
	display_content: str
	structured_content: StructuredContent
	synthetic: bool = False
	created_at: float = field(default_factory=lambda: time.time())

	def to_dict(self) -> Dict[str, Any]:
		return {
			"role": self.role.value,
			"display_content": self.display_content,
			"structured_content": self.structured_content,
			"synthetic": self.synthetic,
			"created_at": self.created_at,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Message":
		display = data.get("display_content") or ""
		structured = data.get("structured_content")
		if structured is None:
			structured = display
		return cls(
			role=Role(data.get("role", "assistant")),
			display_content=display,
			structured_content=structured,
			synthetic=bool(data.get("synthetic", False)),
			created_at=float(data.get("created_at") or time.time()),
		)


@dataclass
class SessionState:
	"""Conversation state owned by exactly one user."""

	user_id: str
	messages: List[Message] = field(default_factory=list)
	phase: Phase = Phase.INTERVIEW
	question_count: int = 0
	final_spec: Optional[str] = None
	is_modification_mode: bool = False
	spec_message_count: Optional[int] = None
