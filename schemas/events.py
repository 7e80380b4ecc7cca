"""
Domain events published to the notification fan-out engine.

Each kind is its own model so the refs it carries are fixed and type-checked;
`DomainEvent` is the discriminated union accepted by `publish`.
"""
from typing import Annotated, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from models.notification import NotificationKind


def question_link(question_id: int, anchor: Optional[str] = None) -> str:
    link = f"/questions/{question_id}"
    return f"{link}#{anchor}" if anchor else link


class _QuestionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: int
    actor_id: int

    @property
    def event_key(self) -> str:
        raise NotImplementedError

    def related_refs(self) -> Dict[str, int]:
        return {"questionId": self.question_id}

    def deep_link(self) -> str:
        return question_link(self.question_id)

    def render(self, question_title: str) -> Tuple[str, str]:
        """(title, body) shown to the recipient"""
        raise NotImplementedError


class AnswerCreated(_QuestionEvent):
    kind: Literal["ANSWER_CREATED"] = NotificationKind.ANSWER_CREATED.value
    answer_id: int

    @property
    def event_key(self) -> str:
        return f"answer:{self.answer_id}"

    def related_refs(self) -> Dict[str, int]:
        return {"questionId": self.question_id, "answerId": self.answer_id}

    def deep_link(self) -> str:
        return question_link(self.question_id, f"answer-{self.answer_id}")

    def render(self, question_title: str) -> Tuple[str, str]:
        return "New answer", f'Your question "{question_title}" has a new answer.'


class QuestionApproved(_QuestionEvent):
    kind: Literal["QUESTION_APPROVED"] = NotificationKind.QUESTION_APPROVED.value

    @property
    def event_key(self) -> str:
        return f"question:{self.question_id}:approved"

    def render(self, question_title: str) -> Tuple[str, str]:
        return "Question approved", f'Your question "{question_title}" was approved and is now public.'


class QuestionRejected(_QuestionEvent):
    kind: Literal["QUESTION_REJECTED"] = NotificationKind.QUESTION_REJECTED.value
    reason: Optional[str] = None

    @property
    def event_key(self) -> str:
        return f"question:{self.question_id}:rejected"

    def render(self, question_title: str) -> Tuple[str, str]:
        body = f'Your question "{question_title}" was rejected.'
        if self.reason:
            body += f" Reason: {self.reason}"
        return "Question rejected", body


class MessageCreated(_QuestionEvent):
    kind: Literal["MESSAGE_CREATED"] = NotificationKind.MESSAGE_CREATED.value
    message_id: int
    actor_role: Optional[str] = None

    @property
    def event_key(self) -> str:
        return f"message:{self.message_id}"

    def related_refs(self) -> Dict[str, int]:
        return {"questionId": self.question_id, "messageId": self.message_id}

    def deep_link(self) -> str:
        return question_link(self.question_id, f"message-{self.message_id}")

    def render(self, question_title: str) -> Tuple[str, str]:
        return "New message", f'Question "{question_title}" has a new message.'


class VoteCast(_QuestionEvent):
    """Counter-only event: never notifies anyone."""
    kind: Literal["VOTE_CAST"] = NotificationKind.VOTE_CAST.value
    answer_id: int

    @property
    def event_key(self) -> str:
        return f"vote:{self.answer_id}:{self.actor_id}"

    def related_refs(self) -> Dict[str, int]:
        return {"questionId": self.question_id, "answerId": self.answer_id}

    def render(self, question_title: str) -> Tuple[str, str]:
        return "New vote", f'An answer on "{question_title}" received a vote.'


DomainEvent = Annotated[
    Union[AnswerCreated, QuestionApproved, QuestionRejected, MessageCreated, VoteCast],
    Field(discriminator="kind"),
]
