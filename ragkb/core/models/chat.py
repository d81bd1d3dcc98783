"""Chat domain models."""
from dataclasses import dataclass, field


@dataclass
class ChatMessage:
    role: str  # "user" | "assistant" | "system"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatHistory:
    """Rolling conversation window handed to the answer model."""
    messages: list[ChatMessage] = field(default_factory=list)
    max_messages: int = 10

    def record_exchange(self, user_content: str, assistant_content: str) -> None:
        self.messages.append(ChatMessage(role="user", content=user_content))
        self.messages.append(ChatMessage(role="assistant", content=assistant_content))
        if len(self.messages) > self.max_messages:
            del self.messages[: len(self.messages) - self.max_messages]

    def as_messages(self, prompt: str) -> list[dict]:
        """History followed by the new user turn."""
        return [m.to_dict() for m in self.messages] + [
            {"role": "user", "content": prompt}
        ]
