"""Exception hierarchy for the command pipeline.

Only the cURL parser, the dispatcher and the collection resolver raise.
The tokenizer and the tool-call extractor degrade to best effort instead.
"""


class ApiCommandError(Exception):
    """Base exception for all api-command-agent errors."""


class MalformedCommandError(ApiCommandError):
    """No URL could be located in a cURL command."""

    def __init__(self, message: str, *, command: str | None = None):
        self.command = command
        super().__init__(message)


class ToolError(ApiCommandError):
    """Errors raised while dispatching or running a tool."""


class UnknownToolError(ToolError):
    """No handler is registered under the requested tool name."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class ToolParameterValidationError(ToolError):
    """Tool parameters are missing a required field or hold a bad value."""

    def __init__(self, message: str, *, tool_name: str | None = None):
        self.tool_name = tool_name
        super().__init__(message)


class CollectionError(ApiCommandError):
    """Errors from the collection tree or its persistence."""


class EmptyPathError(CollectionError):
    """A collection path with no segments was given to the resolver."""

    def __init__(self):
        super().__init__("Collection path cannot be empty")


class ChannelClosedError(ApiCommandError):
    """A response channel was used after reaching a terminal state."""
