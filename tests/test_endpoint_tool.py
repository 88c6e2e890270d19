import json
from unittest.mock import MagicMock

import pytest

from api_command_agent.exceptions import ToolParameterValidationError
from api_command_agent.parser.base import BodyEncoding
from api_command_agent.storage.events import CollectionEvents
from api_command_agent.storage.stores import MemoryCollectionStore
from api_command_agent.storage.tree import Folder, RequestLeaf, find_path
from api_command_agent.tools.endpoint import (
    CREATE_ENDPOINT,
    DEFAULT_COLLECTION_NAME,
    EndpointService,
    endpoint_url,
    format_endpoint_result,
    register_endpoint_tool,
    validate_params,
)
from api_command_agent.tools.registry import ToolDispatcher, ToolRegistry, ToolResult


def _params(**overrides) -> dict:
    params = {
        "endpoint": "/users",
        "method": "POST",
        "requestFormat": '{"name": "string"}',
        "responseFormat": '{"id": 1}',
        "description": "Create a user. Returns the new id.",
        "implementation": "return {id: 1}",
    }
    params.update(overrides)
    return params


@pytest.fixture
def store() -> MemoryCollectionStore:
    return MemoryCollectionStore()


@pytest.fixture
def service(store) -> EndpointService:
    return EndpointService(store)


class TestValidateParams:
    def test_camel_case_aliases(self):
        params = validate_params(_params(authRequired=True, collectionPath=["A"]))
        assert params.auth_required is True
        assert params.collection_path == ["A"]
        assert params.request_format == '{"name": "string"}'

    def test_method_is_normalized(self):
        assert validate_params(_params(method="patch")).method == "PATCH"

    def test_structured_formats_are_dumped(self):
        params = validate_params(_params(responseFormat={"id": 1}))
        assert json.loads(params.response_format) == {"id": 1}

    @pytest.mark.parametrize("missing", ["endpoint", "method", "responseFormat", "description", "implementation"])
    def test_required_fields(self, missing):
        params = _params()
        del params[missing]
        with pytest.raises(ToolParameterValidationError) as exc_info:
            validate_params(params)
        assert missing in str(exc_info.value)

    def test_rejects_unknown_method(self):
        with pytest.raises(ToolParameterValidationError):
            validate_params(_params(method="TRACE"))

    def test_rejects_empty_implementation(self):
        with pytest.raises(ToolParameterValidationError):
            validate_params(_params(implementation=""))


class TestEndpointUrl:
    def test_relative_path(self):
        assert endpoint_url("/ping") == "https://api.example.com/custom/ping"

    def test_custom_base(self):
        assert endpoint_url("v1/x", "http://localhost:8000/") == "http://localhost:8000/v1/x"

    def test_full_url_kept(self):
        assert endpoint_url("https://svc.io/a") == "https://svc.io/a"


class TestCreateEndpoint:
    @pytest.mark.asyncio
    async def test_default_collection(self, service, store):
        result = await service.create_endpoint(_params())

        assert result.success is True
        tree = store.get_all_collections()
        assert [f.name for f in tree] == [DEFAULT_COLLECTION_NAME]
        leaf = tree[0].children[0]
        assert isinstance(leaf, RequestLeaf)
        assert leaf.name == "Create a user"
        assert leaf.implementation == "return {id: 1}"
        assert leaf.request.method == "POST"
        assert leaf.request.url == "https://api.example.com/custom/users"
        assert leaf.request.body == '{"name": "string"}'
        assert leaf.request.body_encoding == BodyEncoding.JSON
        assert leaf.request.header("content-type") == "application/json"
        assert result.payload["collection_id"] == tree[0].id
        assert result.payload["collection_path"] is None
        assert result.side_effects.created_path == [tree[0].id]

    @pytest.mark.asyncio
    async def test_apostrophe_in_request_format_is_stored_intact(self, service, store):
        await service.create_endpoint(_params(requestFormat='{"name": "O\'Brien"}'))
        leaf = store.get_all_collections()[0].children[0]
        assert leaf.request.body == '{"name": "O\'Brien"}'
        assert json.loads(leaf.request.body) == {"name": "O'Brien"}
        assert leaf.request.body_encoding == BodyEncoding.JSON

    @pytest.mark.asyncio
    async def test_get_has_no_body(self, service, store):
        result = await service.create_endpoint(_params(method="GET", requestFormat=None))
        leaf = store.get_all_collections()[0].children[0]
        assert leaf.request.method == "GET"
        assert leaf.request.body == ""
        assert leaf.request.headers == ()
        assert result.payload["request_example"] == "GET https://api.example.com/custom/users"

    @pytest.mark.asyncio
    async def test_collection_name(self, service, store):
        await service.create_endpoint(_params(collectionName="Users API"))
        assert [f.name for f in store.get_all_collections()] == ["Users API"]

    @pytest.mark.asyncio
    async def test_collection_path_takes_priority(self, service, store):
        result = await service.create_endpoint(
            _params(collectionName="Ignored", collectionPath=["API", "Users", "Admin"])
        )
        tree = store.get_all_collections()
        chain = find_path(tree, ["API", "Users", "Admin"])
        assert [f.name for f in tree] == ["API"]
        assert result.payload["collection_path"] == "API > Users > Admin"
        assert result.payload["collection_name"] == "Admin"
        assert result.side_effects.created_path == [f.id for f in chain]
        assert isinstance(chain[-1].children[0], RequestLeaf)

    @pytest.mark.asyncio
    async def test_reuses_existing_folders(self, service, store):
        await service.create_endpoint(_params(collectionPath=["API", "Users"]))
        await service.create_endpoint(_params(endpoint="/teams", collectionPath=["API", "Teams"]))
        tree = store.get_all_collections()
        assert len(tree) == 1
        assert [c.name for c in tree[0].children if isinstance(c, Folder)] == ["Users", "Teams"]

    @pytest.mark.asyncio
    async def test_empty_collection_path_uses_default(self, service, store):
        await service.create_endpoint(_params(collectionPath=[]))
        assert [f.name for f in store.get_all_collections()] == [DEFAULT_COLLECTION_NAME]

    @pytest.mark.asyncio
    async def test_invalid_params_return_failure_without_saving(self, service, store):
        result = await service.create_endpoint(_params(endpoint=""))
        assert result.success is False
        assert "endpoint" in result.error
        assert store.save_count == 0

    @pytest.mark.asyncio
    async def test_notifies_listeners(self, store):
        events = CollectionEvents()
        listener = MagicMock()
        events.subscribe(listener)
        await EndpointService(store, events).create_endpoint(_params())
        listener.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_payload_contains_curl_and_examples(self, service):
        result = await service.create_endpoint(_params())
        payload = result.payload
        assert payload["curl"].startswith("curl -X POST 'https://api.example.com/custom/users'")
        assert payload["request_example"].endswith('{"name": "string"}')
        assert payload["response_example"] == '{"id": 1}'
        assert payload["metadata"]["source"] == "ai-assistant"


class TestFormatEndpointResult:
    def test_success_with_path(self):
        result = ToolResult(
            success=True,
            payload={
                "url": "https://x/a",
                "collection_name": "B",
                "collection_path": "A > B",
                "request_example": "GET https://x/a",
                "response_example": "{}",
                "curl": "curl -X GET 'https://x/a'",
            },
        )
        text = format_endpoint_result(result)
        assert "## Endpoint Created Successfully" in text
        assert "**https://x/a**" in text
        assert "collection path: **A > B**" in text
        assert "curl -X GET 'https://x/a'" in text

    def test_success_with_collection_name(self):
        result = ToolResult(success=True, payload={"url": "u", "collection_name": "Mine"})
        assert "the **Mine** collection" in format_endpoint_result(result)

    def test_failure(self):
        result = ToolResult(success=False, error="Endpoint path is required")
        assert format_endpoint_result(result) == "Error creating endpoint: Endpoint path is required"


class TestRegisterEndpointTool:
    @pytest.mark.asyncio
    async def test_dispatch_through_registry(self, service, store):
        registry = ToolRegistry()
        register_endpoint_tool(registry, service)
        dispatcher = ToolDispatcher(registry)

        result = await dispatcher.execute(CREATE_ENDPOINT, _params())
        assert result.success is True
        assert dispatcher.format_result(CREATE_ENDPOINT, result).startswith("## Endpoint Created Successfully")
        assert store.save_count == 1
