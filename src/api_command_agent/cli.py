"""CLI entry point for api-command-agent."""

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path

import click
import yaml

from api_command_agent.assistant import Assistant, create_default_registry
from api_command_agent.config import get_settings
from api_command_agent.exceptions import ApiCommandError, MalformedCommandError
from api_command_agent.logging_config import setup_logging
from api_command_agent.parser.curl import is_curl_command, parse_curl
from api_command_agent.storage.stores import YamlCollectionStore
from api_command_agent.storage.tree import iter_requests
from api_command_agent.streaming.channel import ResponseChannel, StreamState
from api_command_agent.tools.extractor import extract_tool_call
from api_command_agent.tools.registry import ToolDispatcher


async def _chunks(text: str, size: int) -> AsyncIterator[str]:
    if size <= 0:
        yield text
        return
    for start in range(0, len(text), size):
        yield text[start:start + size]


def _store(collections: Path | None) -> YamlCollectionStore:
    return YamlCollectionStore(collections or get_settings().collections_file)


def _attach_echo(channel: ResponseChannel) -> list[Exception]:
    """Print channel data to stdout; collect errors for the caller."""
    errors: list[Exception] = []
    channel.subscribe(
        on_data=lambda text: click.echo(text, nl=False),
        on_done=lambda: click.echo(),
        on_error=errors.append,
    )
    return errors


def _raise_on_error(state: StreamState, errors: list[Exception]) -> None:
    if state is StreamState.ERRORED:
        message = str(errors[0]) if errors else "response failed"
        raise click.ClickException(message)


@click.group()
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR).")
def main(log_level: str | None):
    """API Command Agent: turn cURL commands and assistant tool calls into saved requests."""
    setup_logging(log_level or get_settings().log_level)


@main.command(name="parse-curl")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "yaml"]), help="Output format.")
def parse_curl_cmd(source, fmt: str):
    """Parse a cURL command from SOURCE (a file or '-') into a request."""
    try:
        text = source.read()
        if not is_curl_command(text):
            click.echo("Warning: input does not start with 'curl'; parsing it anyway.", err=True)
        request = parse_curl(text)
    except MalformedCommandError as e:
        raise click.ClickException(str(e)) from e

    data = request.model_dump(mode="json")
    if fmt == "yaml":
        click.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), nl=False)
    else:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.pass_context
def extract(ctx: click.Context, source):
    """Find a tool call in the model output stored in SOURCE."""
    invocation = extract_tool_call(source.read())
    if invocation is None:
        click.echo("No tool call found.", err=True)
        ctx.exit(1)
    click.echo(json.dumps(invocation.model_dump(), indent=2, ensure_ascii=False))


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--collections", type=click.Path(path_type=Path), default=None, help="Collections YAML file.")
@click.option("--chunk-size", default=0, type=int, help="Replay the text in chunks of this many characters.")
def replay(source, collections: Path | None, chunk_size: int):
    """Replay a saved model response, executing any tool call it contains."""
    registry = create_default_registry(_store(collections))
    channel = ResponseChannel(ToolDispatcher(registry))
    errors = _attach_echo(channel)

    state = asyncio.run(channel.pump(_chunks(source.read(), chunk_size)))
    _raise_on_error(state, errors)


@main.command()
@click.argument("prompt")
@click.option("--model", default=None, help="LLM model to use.")
@click.option("--no-stream", is_flag=True, help="Fetch the whole reply in one call instead of streaming it.")
@click.option("--collections", type=click.Path(path_type=Path), default=None, help="Collections YAML file.")
def chat(prompt: str, model: str | None, no_stream: bool, collections: Path | None):
    """Ask the assistant; tool calls in its reply are executed."""
    registry = create_default_registry(_store(collections))
    assistant = Assistant(registry, model=model or get_settings().model)
    channel = assistant.open_channel()
    errors = _attach_echo(channel)

    state = asyncio.run(assistant.stream_into(channel, prompt, stream=not no_stream))
    _raise_on_error(state, errors)


@main.command(name="collections")
@click.option("--collections", "collections_file", type=click.Path(path_type=Path), default=None, help="Collections YAML file.")
def show_collections(collections_file: Path | None):
    """List saved requests by collection path."""
    try:
        tree = _store(collections_file).get_all_collections()
    except ApiCommandError as e:
        raise click.ClickException(str(e)) from e

    if not tree:
        click.echo("No collections saved.")
        return
    for path, leaf in iter_requests(tree):
        click.echo(f"{' > '.join(path)}: {leaf.request.method} {leaf.request.url}  ({leaf.name})")
