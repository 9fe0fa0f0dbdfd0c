"""Chat state for one browser while an answer streams in.

The user message and an empty assistant message are added before the request
is sent; deltas are merged into the assistant message as they arrive. A
failed request removes the pending assistant message again.
"""

import logging
from collections.abc import MutableMapping
from typing import Any

from chatrelay.models.schemas import (
    ChatHistory,
    ChatMessage,
    ChatRequest,
    Role,
    Settings,
    StoredMessage,
)
from chatrelay.store.client_state import HistoryBook, MessageLog, new_message_id
from chatrelay.store.settings_store import now_ms

logger = logging.getLogger(__name__)


class ChatSession:
    """Manages chat state for a browser session."""

    def __init__(self, storage: MutableMapping[str, Any]) -> None:
        self.log = MessageLog(storage)
        self.history = HistoryBook(storage)
        self.is_streaming: bool = False
        self.pending_id: str | None = None
        self._pending_content = ""

    @property
    def messages(self) -> list[StoredMessage]:
        return self.log.messages()

    def begin_exchange(
        self,
        text: str,
        image_url: str | None = None,
        document_name: str | None = None,
    ) -> StoredMessage:
        """Add the user message and an empty assistant placeholder.

        Returns:
            The placeholder that deltas will be merged into.
        """
        self.log.add(
            StoredMessage(
                id=new_message_id(),
                role=Role.USER,
                content=text,
                timestamp=now_ms(),
                image_url=image_url,
                document_name=document_name,
            )
        )
        pending = StoredMessage(
            id=new_message_id(),
            role=Role.ASSISTANT,
            content="",
            timestamp=now_ms(),
        )
        self.log.add(pending)
        self.pending_id = pending.id
        self._pending_content = ""
        self.is_streaming = True
        return pending

    def request_messages(self) -> list[ChatMessage]:
        """The conversation to send upstream, without the pending placeholder."""
        return [
            ChatMessage(role=m.role, content=m.content, image_url=m.image_url)
            for m in self.log.messages()
            if m.id != self.pending_id
        ]

    def append_delta(self, delta: str) -> str:
        """Merge one streamed delta into the pending message.

        Returns:
            The accumulated answer so far.
        """
        if self.pending_id is None:
            logger.warning("Received a delta with no pending message")
            return ""
        self._pending_content += delta
        self.log.update(self.pending_id, self._pending_content)
        return self._pending_content

    def fail(self) -> None:
        """Drop the pending assistant message after a failed request."""
        if self.pending_id is not None:
            self.log.delete(self.pending_id)
        self._finish()

    def complete(self) -> ChatHistory | None:
        """Finish the exchange and save the conversation to history."""
        messages = self.log.messages()
        self._finish()
        if len(messages) < 2:
            return None
        stamp = now_ms()
        return self.history.save([m.model_copy(update={"timestamp": stamp}) for m in messages])

    def _finish(self) -> None:
        self.pending_id = None
        self._pending_content = ""
        self.is_streaming = False

    def load_history(self, history_id: str) -> bool:
        """Replace the conversation with a saved one, giving messages new ids."""
        history = self.history.get(history_id)
        if history is None:
            return False
        self.log.replace(
            [m.model_copy(update={"id": new_message_id()}) for m in history.messages]
        )
        return True

    def delete_message(self, message_id: str) -> None:
        self.log.delete(message_id)

    def new_chat(self) -> None:
        self.log.clear()
        self._finish()


def build_chat_request(settings: Settings, messages: list[ChatMessage]) -> ChatRequest:
    """Assemble the proxy request from the browser's settings."""
    return ChatRequest(
        messages=messages,
        model=settings.model_name,
        api_key=settings.api_key,
        api_base_url=settings.api_base_url,
        system_prompt=settings.system_prompt,
        knowledge_base_files=settings.knowledge_base_files,
        knowledge_base_urls=settings.knowledge_base_urls,
        temperature=settings.temperature,
    )
