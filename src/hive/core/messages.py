"""
hive.core.messages - Conversation Message Model
=================================================

Every turn of a HIVE conversation appends ``Message`` objects to the
workflow state. A message is either from the user (``role="user"``, no
name), from an agent (``role="assistant"``, ``name`` = agent name) or a
system note.

Attribution Rule:
    Agent output is always attributed through ``name``. The in-band
    fallback produced when an agent fails is ALSO attributed to that agent,
    so the conversation shows who failed instead of an anonymous error.

Usage:
    >>> history = [Message.user("please build a login form")]
    >>> history.append(Message.from_agent("Builder", "Here is the form..."))
    >>> extract_user_query(history)
    'please build a login form'
"""

from __future__ import annotations

from typing import Literal, Optional, Sequence

from pydantic import BaseModel, Field


MessageRole = Literal["user", "assistant", "system"]


class Message(BaseModel):
    """A single conversation message.

    Attributes:
        role: Who produced the message.
        content: Message text (markdown allowed).
        name: Agent name for agent messages; None for the end user.
    """

    role: MessageRole = Field(default="user", description="Message author role")
    content: str = Field(description="Message text")
    name: Optional[str] = Field(
        default=None,
        description="Producing agent (None for user messages)",
    )

    model_config = {"frozen": True}

    @classmethod
    def user(cls, content: str) -> Message:
        """Build an end-user message."""
        return cls(role="user", content=content)

    @classmethod
    def from_agent(cls, agent_name: str, content: str) -> Message:
        """Build a message attributed to an agent."""
        return cls(role="assistant", content=content, name=agent_name)

    @property
    def is_from_user(self) -> bool:
        """True for unattributed user messages."""
        return self.role == "user" and self.name is None


def extract_user_query(messages: Sequence[Message]) -> str:
    """Return the text of the request currently being worked on.

    Selection order:
        1. The LAST user message with no agent name (the current request).
        2. Otherwise the content of the last message.
        3. Otherwise an empty string.

    Agents only append attributed messages, so the result stays stable for
    the whole of one request and changes when a resumed conversation
    receives a new one.

    Args:
        messages: Conversation history, oldest first.

    Returns:
        The extracted query text.
    """
    for message in reversed(messages):
        if message.is_from_user:
            return message.content
    if messages:
        return messages[-1].content
    return ""


def format_transcript(messages: Sequence[Message], limit: Optional[int] = None) -> str:
    """Render messages as ``Speaker: text`` lines for prompts.

    Args:
        messages: Conversation history, oldest first.
        limit: Keep only the last ``limit`` messages.
    """
    selected = list(messages)[-limit:] if limit else list(messages)
    lines = []
    for message in selected:
        speaker = message.name or message.role.capitalize()
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)
