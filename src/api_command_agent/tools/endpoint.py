"""The ``createEndpoint`` tool.

Builds a saved request for an endpoint described by the assistant and files
it in the collection tree. The request goes through the same cURL parser the
import command uses, so assistant-created and pasted requests look alike.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from api_command_agent.exceptions import ToolParameterValidationError
from api_command_agent.parser.base import KeyValue, ParsedRequest
from api_command_agent.parser.curl import build_curl_command, parse_curl
from api_command_agent.storage.events import CollectionEvents
from api_command_agent.storage.stores import CollectionStore
from api_command_agent.storage.tree import RequestLeaf, find_path, resolve_or_create
from api_command_agent.tools.registry import SideEffects, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)

CREATE_ENDPOINT = "createEndpoint"
DEFAULT_BASE_URL = "https://api.example.com/custom"
DEFAULT_COLLECTION_NAME = "AI Generated Endpoints"

TOOL_DESCRIPTION = "Create a new API endpoint based on provided code and specification"


class CreateEndpointParams(BaseModel):
    """Parameters accepted by the createEndpoint tool."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    endpoint: str = Field(min_length=1)
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
    request_format: str | None = Field(default=None, alias="requestFormat")
    response_format: str = Field(alias="responseFormat", min_length=1)
    description: str = Field(min_length=1)
    implementation: str = Field(min_length=1)
    auth_required: bool = Field(default=False, alias="authRequired")
    collection_name: str | None = Field(default=None, alias="collectionName")
    collection_path: list[str] | None = Field(default=None, alias="collectionPath")

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("request_format", "response_format", mode="before")
    @classmethod
    def _dump_structured(cls, v: Any) -> Any:
        # Models often send the example payloads as objects instead of strings
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return v


def validate_params(parameters: dict) -> CreateEndpointParams:
    """Validate raw tool parameters, raising ToolParameterValidationError."""
    try:
        return CreateEndpointParams.model_validate(parameters)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'parameters'}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolParameterValidationError(
            f"Invalid {CREATE_ENDPOINT} parameters: {problems}",
            tool_name=CREATE_ENDPOINT,
        ) from e


def endpoint_url(endpoint: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Use full URLs as given; append relative paths to ``base_url``."""
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


def endpoint_name(params: CreateEndpointParams) -> str:
    first_sentence = params.description.split(".")[0].strip()
    return first_sentence or f"{params.method} {params.endpoint}"


def request_example(method: str, url: str, request_format: str | None) -> str:
    if method == "GET":
        return f"{method} {url}"
    return f"{method} {url}\nContent-Type: application/json\n\n{request_format or '{}'}"


class EndpointService:
    """Creates endpoint requests and places them in the collection tree."""

    def __init__(
        self,
        store: CollectionStore,
        events: CollectionEvents | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        default_collection: str = DEFAULT_COLLECTION_NAME,
    ):
        self.store = store
        self.events = events or CollectionEvents()
        self.base_url = base_url
        self.default_collection = default_collection
        self._lock = asyncio.Lock()

    async def create_endpoint(self, parameters: dict) -> ToolResult:
        """Tool handler: validate, build the request, and save it."""
        try:
            params = validate_params(parameters)
        except ToolParameterValidationError as e:
            logger.warning("%s", e)
            return ToolResult(success=False, error=str(e))

        url = endpoint_url(params.endpoint, self.base_url)
        curl = self._curl_command(params, url)
        request = parse_curl(curl).model_copy(update={"name": endpoint_name(params)})
        leaf = RequestLeaf(name=request.name, request=request, implementation=params.implementation)

        path = self._placement(params)
        async with self._lock:
            tree = self.store.get_all_collections()
            folder_id = resolve_or_create(tree, path, leaf)
            chain = find_path(tree, path) or []
            self.store.save_all_collections(tree)
        self.events.notify_collections_updated()
        logger.info("Created endpoint %s %s in %s", params.method, url, " > ".join(path))

        return ToolResult(
            success=True,
            payload={
                "url": url,
                "request_id": leaf.id,
                "collection_id": folder_id,
                "collection_name": path[-1],
                "collection_path": " > ".join(path) if params.collection_path else None,
                "request_example": request_example(params.method, url, params.request_format),
                "response_example": params.response_format,
                "curl": curl,
                "metadata": self._metadata(params, url, leaf),
            },
            side_effects=SideEffects(created_path=[folder.id for folder in chain]),
        )

    def _placement(self, params: CreateEndpointParams) -> list[str]:
        if params.collection_path:
            return list(params.collection_path)
        if params.collection_name:
            return [params.collection_name]
        return [self.default_collection]

    @staticmethod
    def _curl_command(params: CreateEndpointParams, url: str) -> str:
        headers: tuple[KeyValue, ...] = ()
        body = ""
        if params.method != "GET":
            headers = (KeyValue(name="Content-Type", value="application/json"),)
            body = params.request_format or "{}"
        draft = ParsedRequest(method=params.method, url=url, headers=headers, body=body)
        return build_curl_command(draft)

    @staticmethod
    def _metadata(params: CreateEndpointParams, url: str, leaf: RequestLeaf) -> dict:
        return {
            "request_id": leaf.id,
            "collection_path": params.collection_path,
            "url": url,
            "path": params.endpoint.lstrip("/"),
            "method": params.method,
            "description": params.description,
            "request_format": params.request_format,
            "response_format": params.response_format,
            "auth_required": params.auth_required,
            "source": "ai-assistant",
            "created_at": datetime.now(timezone.utc).isoformat(),
        }


def format_endpoint_result(result: ToolResult) -> str:
    """Markdown report shown to the user in place of the raw tool call."""
    if not result.success:
        return f"Error creating endpoint: {result.error}"

    payload = result.payload
    if payload.get("collection_path"):
        placement = f"The endpoint has been added to the collection path: **{payload['collection_path']}**"
    else:
        placement = f"The endpoint has been added to the **{payload.get('collection_name')}** collection."

    return "\n".join([
        "## Endpoint Created Successfully",
        "",
        f"Your new API endpoint is available at: **{payload.get('url')}**",
        "",
        placement,
        "",
        "### Request Example:",
        "```http",
        str(payload.get("request_example", "")),
        "```",
        "",
        "### Response Format:",
        "```json",
        str(payload.get("response_example", "")),
        "```",
        "",
        "### Test with cURL:",
        "```bash",
        str(payload.get("curl", "")),
        "```",
    ])


def register_endpoint_tool(registry: ToolRegistry, service: EndpointService) -> None:
    registry.register(
        CREATE_ENDPOINT,
        service.create_endpoint,
        description=TOOL_DESCRIPTION,
        formatter=format_endpoint_result,
    )
