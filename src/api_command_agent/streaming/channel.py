"""Response channel for incrementally arriving model output.

Chunks are forwarded to subscribers as ``data`` events until a tool marker
shows up. From the marker on, raw text is held back; on completion the tool
call is executed and its formatted result replaces the held text as a single
``data`` event. Every channel ends with exactly one ``done`` or ``error``.
"""

import logging
from collections.abc import AsyncIterable, Callable
from enum import Enum

from api_command_agent.exceptions import ChannelClosedError, UnknownToolError
from api_command_agent.tools.extractor import (
    ToolInvocation,
    extract_tool_call,
    find_marker,
    partial_marker_length,
)
from api_command_agent.tools.registry import ToolDispatcher, ToolResult

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    ACCUMULATING = "accumulating"
    EXTRACTED_TOOL_CALL = "extracted_tool_call"
    PROSE = "prose"
    ERRORED = "errored"
    DONE = "done"


TERMINAL_STATES = frozenset({StreamState.DONE, StreamState.ERRORED})

DataCallback = Callable[[str], None]
DoneCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """A consumer attached to a channel. Detach with :meth:`unsubscribe`."""

    def __init__(
        self,
        channel: "ResponseChannel",
        on_data: DataCallback | None,
        on_done: DoneCallback | None,
        on_error: ErrorCallback | None,
    ):
        self._channel = channel
        self.on_data = on_data
        self.on_done = on_done
        self.on_error = on_error
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._channel._detach(self)


class ResponseChannel:
    """Accumulates one model response and emits a single terminal outcome."""

    def __init__(self, dispatcher: ToolDispatcher):
        self.dispatcher = dispatcher
        self.state = StreamState.ACCUMULATING
        self.invocation: ToolInvocation | None = None
        self.result: ToolResult | None = None
        self._buffer = ""
        self._emitted = 0
        self._marker_at: int | None = None
        self._subscriptions: list[Subscription] = []
        self._ever_subscribed = False
        self._completing = False

    @property
    def text(self) -> str:
        """Everything received so far."""
        return self._buffer

    @property
    def closed(self) -> bool:
        return self.state in TERMINAL_STATES

    def subscribe(
        self,
        on_data: DataCallback | None = None,
        on_done: DoneCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        subscription = Subscription(self, on_data, on_done, on_error)
        self._subscriptions.append(subscription)
        self._ever_subscribed = True
        return subscription

    def feed(self, chunk: str) -> None:
        """Append a chunk, forwarding whatever is certainly prose."""
        self._ensure_accepting()
        if not chunk:
            return
        self._buffer += chunk

        if self._marker_at is None:
            marker_at = find_marker(self._buffer)
            if marker_at == -1:
                self._flush(len(self._buffer) - partial_marker_length(self._buffer))
                return
            self._marker_at = marker_at
            self._flush(marker_at)
            logger.debug("Tool marker detected at offset %d", marker_at)

        if self.state is StreamState.ACCUMULATING:
            invocation = extract_tool_call(self._buffer[self._marker_at:])
            if invocation is not None:
                self.invocation = invocation
                self._set_state(StreamState.EXTRACTED_TOOL_CALL)

    def fail(self, error: Exception) -> None:
        """Terminate the channel with an error from the chunk source."""
        self._ensure_accepting()
        self._terminate_with_error(error)

    async def complete(self) -> StreamState:
        """Finish the response: run a detected tool call or release the prose."""
        self._ensure_accepting()
        self._completing = True

        invocation = extract_tool_call(self._buffer)
        if invocation is not None and find_marker(self._buffer) < self._emitted:
            # A call whose text was already forwarded stays prose
            logger.warning("Tool call %s was already forwarded as prose; not running it", invocation.tool_name)
            invocation = None
        if invocation is None:
            self.invocation = None
            self._set_state(StreamState.PROSE)
            self._flush(len(self._buffer))
            return self._finish()

        self.invocation = invocation
        self._set_state(StreamState.EXTRACTED_TOOL_CALL)
        if self._detached:
            logger.info("All consumers detached; not running tool %s", invocation.tool_name)
            return self._finish()

        try:
            result = await self.dispatcher.execute(invocation.tool_name, invocation.parameters)
        except UnknownToolError as e:
            self._terminate_with_error(e)
            return self.state

        self.result = result
        self._emit_data(self.dispatcher.format_result(invocation.tool_name, result))
        return self._finish()

    async def pump(self, chunks: AsyncIterable[str]) -> StreamState:
        """Feed every chunk from ``chunks`` and complete the channel."""
        try:
            async for chunk in chunks:
                self.feed(chunk)
        except ChannelClosedError:
            raise
        except Exception as e:
            logger.error("Response stream failed: %s", e)
            self._terminate_with_error(e)
            return self.state
        return await self.complete()

    @property
    def _detached(self) -> bool:
        return self._ever_subscribed and not self._subscriptions

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _ensure_accepting(self) -> None:
        if self.closed or self._completing:
            raise ChannelClosedError(f"Channel no longer accepts input ({self.state.value})")

    def _set_state(self, state: StreamState) -> None:
        if state is not self.state:
            logger.debug("Channel state %s -> %s", self.state.value, state.value)
            self.state = state

    def _flush(self, end: int) -> None:
        if end > self._emitted:
            self._emit_data(self._buffer[self._emitted:end])
            self._emitted = end

    def _emit_data(self, text: str) -> None:
        for sub in list(self._subscriptions):
            if sub.on_data is not None:
                sub.on_data(text)

    def _finish(self) -> StreamState:
        self._set_state(StreamState.DONE)
        for sub in list(self._subscriptions):
            if sub.on_done is not None:
                sub.on_done()
        return self.state

    def _terminate_with_error(self, error: Exception) -> None:
        self._set_state(StreamState.ERRORED)
        for sub in list(self._subscriptions):
            if sub.on_error is not None:
                sub.on_error(error)
