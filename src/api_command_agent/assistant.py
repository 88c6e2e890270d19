"""Assistant session: streams a model reply through a response channel."""

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from api_command_agent.config import Settings, get_settings
from api_command_agent.llm import LlmClient
from api_command_agent.storage.events import CollectionEvents
from api_command_agent.storage.stores import CollectionStore
from api_command_agent.streaming.channel import ResponseChannel, StreamState
from api_command_agent.tools.endpoint import EndpointService, register_endpoint_tool
from api_command_agent.tools.registry import ToolDispatcher, ToolRegistry

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"


def create_default_registry(
    store: CollectionStore,
    events: CollectionEvents | None = None,
    settings: Settings | None = None,
) -> ToolRegistry:
    """Registry holding the built-in tools, wired to ``store``."""
    settings = settings or get_settings()
    service = EndpointService(
        store,
        events,
        base_url=settings.endpoint_base_url,
        default_collection=settings.default_collection_name,
    )
    registry = ToolRegistry()
    register_endpoint_tool(registry, service)
    logger.info("Initialized with %d tools", len(registry))
    return registry


class Assistant:
    """Sends prompts to the model and turns replies into channel events."""

    def __init__(self, registry: ToolRegistry, model: str | None = None):
        self.registry = registry
        self.dispatcher = ToolDispatcher(registry)
        self.client = LlmClient(model=model)

    def system_prompt(self) -> str:
        template = (PROMPTS_DIR / "assistant.md").read_text(encoding="utf-8")
        tool_lines = [
            f"- {name}: {self.registry.get(name).description}" for name in self.registry.names()
        ]
        return template.rstrip() + "\n" + "\n".join(tool_lines) + "\n"

    def open_channel(self) -> ResponseChannel:
        return ResponseChannel(self.dispatcher)

    async def stream_into(self, channel: ResponseChannel, prompt: str, stream: bool = True) -> StreamState:
        """Feed the model reply to ``prompt`` through ``channel``.

        With ``stream=False`` the reply is fetched with one blocking call and
        fed as a single chunk.
        """
        if stream:
            chunks = self.client.astream(system=self.system_prompt(), user=prompt)
        else:
            chunks = self._whole_reply(prompt)
        return await channel.pump(chunks)

    async def _whole_reply(self, prompt: str) -> AsyncIterator[str]:
        yield await asyncio.to_thread(self.client.call, self.system_prompt(), prompt)

    def respond(self, prompt: str) -> tuple[ResponseChannel, asyncio.Task]:
        """Start streaming a reply to ``prompt`` in the background.

        Subscribe to the returned channel before awaiting the task.
        """
        channel = self.open_channel()
        task = asyncio.ensure_future(self.stream_into(channel, prompt))
        return channel, task
