"""Unit tests for ToolRegistry."""

import json
from typing import Any

import pytest

from outlook_mcp.errors import InteractionRequired, RemoteRequestFailed
from outlook_mcp.registry import ToolRegistry
from outlook_mcp.schemas import EmptyRequest, MessageIdRequest


async def _echo(arguments: dict[str, Any]) -> dict[str, Any]:
    return {"received": arguments}


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register("echo", "Echo the arguments", MessageIdRequest, _echo)
    return registry


@pytest.mark.unit
class TestToolRegistration:
    """Tests for registering and describing tools."""

    def test_should_reject_duplicate_names(self, registry: ToolRegistry) -> None:
        with pytest.raises(ValueError, match="already registered"):
            registry.register("echo", "Again", EmptyRequest, _echo)

    def test_should_describe_tools_with_model_schema(self, registry: ToolRegistry) -> None:
        """Verify inputSchema is the request model's camelCase JSON schema."""
        (tool,) = registry.tools()

        assert tool.name == "echo"
        assert tool.description == "Echo the arguments"
        assert tool.inputSchema["type"] == "object"
        assert "messageId" in tool.inputSchema["properties"]


@pytest.mark.unit
class TestToolDispatch:
    """Tests for ToolRegistry.dispatch()."""

    @pytest.mark.asyncio
    async def test_should_return_handler_result(self, registry: ToolRegistry) -> None:
        result = await registry.dispatch("echo", {"messageId": "m1"})

        assert result.is_error is False
        assert result.payload == {"received": {"messageId": "m1"}}
        assert json.loads(result.to_json()) == result.payload

    @pytest.mark.asyncio
    async def test_should_report_unknown_tool(self, registry: ToolRegistry) -> None:
        result = await registry.dispatch("nope", {})

        assert result.is_error is True
        assert result.payload["error_type"] == "ValidationFailed"
        assert "nope" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_should_convert_domain_errors_to_payload(self, registry: ToolRegistry) -> None:
        """Verify OutlookMCPError subclasses become structured failures."""

        async def failing(arguments: dict[str, Any]) -> None:
            raise RemoteRequestFailed("Not found", status_code=404, code="ErrorItemNotFound")

        registry.register("failing", "Always fails", EmptyRequest, failing)

        result = await registry.dispatch("failing", {})

        assert result.is_error is True
        assert result.payload == {
            "error": "Not found",
            "error_type": "RemoteRequestFailed",
            "status_code": 404,
            "code": "ErrorItemNotFound",
        }

    @pytest.mark.asyncio
    async def test_should_include_sign_in_hint(self, registry: ToolRegistry) -> None:
        async def needs_sign_in(arguments: dict[str, Any]) -> None:
            raise InteractionRequired("Sign-in required", error_code="interaction_required")

        registry.register("needs_sign_in", "Needs sign-in", EmptyRequest, needs_sign_in)

        result = await registry.dispatch("needs_sign_in", {})

        assert result.payload["error_type"] == "InteractionRequired"
        assert "outlook-mcp setup" in result.payload["hint"]

    @pytest.mark.asyncio
    async def test_should_contain_unexpected_errors(self, registry: ToolRegistry) -> None:
        """Verify unexpected exceptions do not escape dispatch."""

        async def broken(arguments: dict[str, Any]) -> None:
            raise KeyError("value")

        registry.register("broken", "Broken", EmptyRequest, broken)

        result = await registry.dispatch("broken", {})

        assert result.is_error is True
        assert result.payload["error_type"] == "InternalError"


@pytest.mark.unit
class TestResources:
    """Tests for resource registration and reading."""

    @pytest.mark.asyncio
    async def test_should_read_resource_as_json(self, registry: ToolRegistry) -> None:
        async def reader() -> list[dict[str, str]]:
            return [{"id": "e1"}]

        registry.register_resource("https://example.test/events", "events", "Events", reader)

        text = await registry.read_resource("https://example.test/events")

        assert json.loads(text) == [{"id": "e1"}]
        (resource,) = registry.resources()
        assert str(resource.uri) == "https://example.test/events"
        assert resource.mimeType == "application/json"

    @pytest.mark.asyncio
    async def test_should_reject_unknown_resource(self, registry: ToolRegistry) -> None:
        with pytest.raises(ValueError, match="Unknown resource"):
            await registry.read_resource("https://example.test/other")
