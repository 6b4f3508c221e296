"""Tool and resource registry.

Maps published tool names to their request model and handler, and
resource URIs to their readers. ``dispatch`` is the single place where
handler failures become structured failure payloads.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mcp.types import Resource, Tool

from outlook_mcp.errors import OutlookMCPError, ValidationFailed
from outlook_mcp.schemas import GraphModel

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]
ResourceReader = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    request_model: type[GraphModel]
    handler: ToolHandler


@dataclass(frozen=True)
class ResourceSpec:
    uri: str
    name: str
    description: str
    reader: ResourceReader
    mime_type: str = "application/json"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool call.

    Attributes:
        payload: JSON-serializable result, or a failure payload.
        is_error: True when payload describes a failure.
    """

    payload: Any
    is_error: bool = False

    def to_json(self) -> str:
        return json.dumps(self.payload, indent=2, default=str)


class ToolRegistry:
    """Registry of published tools and resources.

    Example:
        ```python
        registry = ToolRegistry()
        registry.register(
            "get_email",
            "Get an email by ID",
            MessageIdRequest,
            mail.get_email,
        )
        result = await registry.dispatch("get_email", {"messageId": "AAMk..."})
        ```
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._resources: dict[str, ResourceSpec] = {}

    def register(
        self,
        name: str,
        description: str,
        request_model: type[GraphModel],
        handler: ToolHandler,
    ) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = ToolSpec(name, description, request_model, handler)

    def register_resource(
        self,
        uri: str,
        name: str,
        description: str,
        reader: ResourceReader,
    ) -> None:
        if uri in self._resources:
            raise ValueError(f"Resource already registered: {uri}")
        self._resources[uri] = ResourceSpec(uri, name, description, reader)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[Tool]:
        """Describe registered tools for MCP ``list_tools``."""
        return [
            Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.request_model.model_json_schema(by_alias=True),
            )
            for tool in self._tools.values()
        ]

    def resources(self) -> list[Resource]:
        """Describe registered resources for MCP ``list_resources``."""
        return [
            Resource(
                uri=resource.uri,
                name=resource.name,
                description=resource.description,
                mimeType=resource.mime_type,
            )
            for resource in self._resources.values()
        ]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Run a tool and capture its outcome.

        Never raises for tool failures: outlook-mcp errors become their
        payload, anything else is logged and reported as an internal error.

        Args:
            name: Published tool name.
            arguments: Raw tool arguments.

        Returns:
            ToolResult with the handler's result or a failure payload.
        """
        tool = self._tools.get(name)
        if tool is None:
            error = ValidationFailed(f"Unknown tool: {name}")
            return ToolResult(error.to_payload(), is_error=True)

        try:
            result = await tool.handler(arguments or {})
        except OutlookMCPError as e:
            logger.info(f"Tool {name} failed: {type(e).__name__}: {e.message}")
            return ToolResult(e.to_payload(), is_error=True)
        except Exception as e:
            logger.exception(f"Error calling tool {name}")
            return ToolResult({"error": str(e), "error_type": "InternalError"}, is_error=True)

        return ToolResult(result)

    async def read_resource(self, uri: str) -> str:
        """Read a resource as JSON text.

        Raises:
            ValueError: If the URI is not registered.
            OutlookMCPError: If the underlying Graph call fails.
        """
        resource = self._resources.get(uri)
        if resource is None:
            raise ValueError(f"Unknown resource: {uri}")
        return json.dumps(await resource.reader(), indent=2, default=str)

    def mime_type(self, uri: str) -> str:
        resource = self._resources.get(uri)
        return resource.mime_type if resource else "application/json"
