# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, Callable, Iterable, Optional
from uuid import uuid4

from src.config.settings import ChatSettings

from .errors import AlreadyResolved, ProtocolViolation, UnknownInvocation
from .events import ContentDelta, StreamEvent, ToolCallRegistered, ToolCallResolved, TurnFinished
from .models import Attachment, Message, Notice, Role, ToolInvocation, ToolState, log_notice
from .tools import ToolInvocationTracker

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CanonicalUrlAnnounced:
    session_id: str
    url: str


class MessageStreamReducer:
    """Folds user input and assistant stream events into a session's message log.

    One reducer owns one session and is not reentrant: events must be applied
    one at a time, in the order the assistant produced them.
    """

    def __init__(
        self,
        session_id: str,
        *,
        initial_messages: Optional[Iterable[Message]] = None,
        settings: Optional[ChatSettings] = None,
        on_submit: Optional[Callable[[Message], None]] = None,
        on_announce: Optional[Callable[[CanonicalUrlAnnounced], None]] = None,
        notify: Callable[[Notice], None] = log_notice,
    ) -> None:
        self.session_id = session_id
        self._settings = settings or ChatSettings.from_env()
        self._on_submit = on_submit
        self._on_announce = on_announce
        self._notify = notify
        self._tracker = ToolInvocationTracker()
        self._messages: list[Message] = []
        self._state = TurnState.IDLE
        self._current: Optional[Message] = None
        self._consumer: Optional[asyncio.Task[Any]] = None
        self._stopped: set[asyncio.Task[Any]] = set()

        for message in initial_messages or ():
            message.frozen = True
            for invocation in message.tool_invocations:
                self._tracker.adopt(invocation)
            self._messages.append(message)
        # A session loaded with messages already lives at its canonical URL.
        self._announced = bool(self._messages)

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def tracker(self) -> ToolInvocationTracker:
        return self._tracker

    @property
    def announced(self) -> bool:
        return self._announced

    def append_user_message(self, content: Any, attachments: Iterable[Attachment] = ()) -> Message:
        if self._state is TurnState.STREAMING:
            raise ProtocolViolation("Cannot submit a message while the assistant is responding")
        message = Message(
            id=uuid4().hex,
            role=Role.USER,
            session_id=self.session_id,
            content=content,
            attachments=tuple(attachments),
            frozen=True,
        )
        self._messages.append(message)
        self._current = None
        self._state = TurnState.STREAMING
        logger.debug("Session %s: user message %s appended", self.session_id, message.id)
        if self._on_submit is not None:
            self._on_submit(message)
        return message

    def apply_stream_event(self, event: StreamEvent) -> None:
        if isinstance(event, TurnFinished):
            self.finish_turn()
            return
        if isinstance(event, ToolCallResolved):
            existing = self._tracker.get(event.tool_call_id)
            if existing is not None and existing.state is not ToolState.PENDING:
                # Late frame for an earlier turn or a cancelled call.
                self._drop(AlreadyResolved(event.tool_call_id, existing.state.value))
                return
        if self._state is not TurnState.STREAMING:
            raise ProtocolViolation(f"Received {event.type} while no turn is in progress")

        try:
            if isinstance(event, ContentDelta):
                self._apply_content(event)
            elif isinstance(event, ToolCallRegistered):
                invocation = self._tracker.register_call(event.tool_call_id, event.tool_name)
                self._assistant_message().tool_invocations.append(invocation)
            elif isinstance(event, ToolCallResolved):
                self._tracker.resolve(event.tool_call_id, event.result)
            else:
                raise ProtocolViolation(f"Unsupported stream event {event!r}")
        except UnknownInvocation as exc:
            self._abort_turn(ProtocolViolation(f"Tool call {exc.tool_call_id!r} resolved before it was registered"))
        except AlreadyResolved as exc:
            self._drop(exc)
        except ProtocolViolation as exc:
            self._abort_turn(exc)

    def finish_turn(self) -> Optional[CanonicalUrlAnnounced]:
        if self._state is not TurnState.STREAMING:
            logger.debug("Session %s: duplicate turn-finished ignored", self.session_id)
            return None
        self._close_turn()
        if self._announced:
            return None
        self._announced = True
        announcement = CanonicalUrlAnnounced(
            session_id=self.session_id,
            url=self._settings.canonical_url(self.session_id),
        )
        logger.info("Session %s: canonical URL %s announced", self.session_id, announcement.url)
        if self._on_announce is not None:
            self._on_announce(announcement)
        return announcement

    def stop(self) -> list[ToolInvocation]:
        """Cancel the running turn. Calling it again, or while idle, does nothing."""
        if self._state is not TurnState.STREAMING:
            return []
        cancelled = self._close_turn()
        consumer = self._consumer
        if consumer is not None and not consumer.done() and consumer is not asyncio.current_task():
            self._stopped.add(consumer)
            consumer.cancel()
        logger.info("Session %s: turn stopped, %d tool call(s) cancelled", self.session_id, len(cancelled))
        return cancelled

    async def consume(self, source: AsyncIterable[StreamEvent]) -> None:
        """Apply events from ``source`` until the turn finishes or is stopped."""
        if self._state is not TurnState.STREAMING:
            raise ProtocolViolation("No turn in progress to consume events for")
        task = asyncio.current_task()
        self._consumer = task
        iterator = source.__aiter__()
        try:
            while self._state is TurnState.STREAMING:
                try:
                    event = await iterator.__anext__()
                except StopAsyncIteration:
                    if self._state is TurnState.STREAMING:
                        self._abort_turn(ProtocolViolation("Assistant stream ended before turn-finished"))
                    break
                self.apply_stream_event(event)
        except asyncio.CancelledError:
            # Absorb only the cancellation stop() issued for this task.
            if task not in self._stopped:
                raise
            self._stopped.discard(task)
            task.uncancel()
            logger.debug("Session %s: stream consumption cancelled by stop()", self.session_id)
        finally:
            self._stopped.discard(task)
            if self._consumer is task:
                self._consumer = None
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    def _apply_content(self, event: ContentDelta) -> None:
        message = self._assistant_message()
        if event.replace or not isinstance(event.text, str) or not isinstance(message.content, str):
            message.content = event.text
        else:
            message.content += event.text

    def _assistant_message(self) -> Message:
        if self._current is None:
            self._current = Message(id=uuid4().hex, role=Role.ASSISTANT, session_id=self.session_id)
            self._messages.append(self._current)
        return self._current

    def _close_turn(self) -> list[ToolInvocation]:
        # Calls still pending when the turn closes can never complete.
        cancelled = self._tracker.cancel_pending()
        if self._current is not None:
            self._current.frozen = True
        self._current = None
        self._state = TurnState.IDLE
        return cancelled

    def _abort_turn(self, exc: ProtocolViolation) -> None:
        logger.warning("Session %s: turn aborted: %s", self.session_id, exc)
        self._close_turn()
        self._notify(Notice(level="error", message="The assistant response failed, please try again"))
        raise exc

    def _drop(self, exc: Exception) -> None:
        logger.warning("Session %s: dropped stream event: %s", self.session_id, exc)
