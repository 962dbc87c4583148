# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/registry.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tool registry.

A static mapping from tool name to its input model and async handler. The
registry is built once at startup (see ``mcpsheets.tools.build_registry``) and
shared read-only by every session transport.

Handlers have the signature ``async def handler(params, sheets) -> CallToolResult``
where ``params`` is an instance of the tool's pydantic input model and
``sheets`` is a ``SheetsClient`` bound to the credentials of the request that
invoked the tool.
"""

# Standard
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

# Third-Party
from mcp.types import CallToolResult, Tool
from pydantic import BaseModel, ValidationError

# First-Party
from mcpsheets.services.sheets_service import SheetsClient, SheetsService
from mcpsheets.tools.formatters import error_response, handle_error
from mcpsheets.utils.request_context import RequestContext

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, SheetsClient], Awaitable[CallToolResult]]


class ToolNotFoundError(Exception):
    """Raised when a tool name is not registered."""


class ToolRegistrationError(Exception):
    """Raised when a tool is registered twice."""


@dataclass(frozen=True)
class ToolDefinition:
    """A named tool: description, input model and handler."""

    name: str
    description: str
    input_model: Type[BaseModel]
    handler: ToolHandler

    def to_mcp_tool(self) -> Tool:
        """Describe this tool for ``tools/list``.

        Returns:
            Tool: MCP tool descriptor with the JSON schema of the input model
        """
        return Tool(name=self.name, description=self.description, inputSchema=self.input_model.model_json_schema())


class ToolRegistry:
    """Name -> ``ToolDefinition`` mapping with argument validation and dispatch."""

    def __init__(self, sheets_service: Optional[SheetsService] = None):
        """Create an empty registry.

        Args:
            sheets_service: Service used to build per-request Sheets clients
        """
        self._tools: Dict[str, ToolDefinition] = {}
        self._sheets_service = sheets_service

    def register(self, tool: ToolDefinition) -> None:
        """Add a tool.

        Args:
            tool: Tool definition

        Raises:
            ToolRegistrationError: If a tool with the same name exists
        """
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition:
        """Look up a tool.

        Args:
            name: Tool name

        Returns:
            ToolDefinition: The tool

        Raises:
            ToolNotFoundError: If no such tool exists
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f"Unknown tool: {name}") from None

    def list_tools(self) -> List[Tool]:
        """Return MCP descriptors for every tool in registration order.

        Returns:
            List[Tool]: Tool descriptors
        """
        return [tool.to_mcp_tool() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def call(self, name: str, arguments: Optional[Dict[str, Any]], context: RequestContext) -> CallToolResult:
        """Validate arguments and run a tool on behalf of the current request.

        Argument validation failures, missing credentials and exceptions
        raised by the handler are all reported as ``isError`` tool results.

        Args:
            name: Tool name
            arguments: Raw arguments from ``tools/call``
            context: Context of the request invoking the tool

        Returns:
            CallToolResult: Handler result or error result

        Raises:
            ToolNotFoundError: If the tool does not exist
        """
        tool = self.get(name)

        try:
            params = tool.input_model.model_validate(arguments or {})
        except ValidationError as exc:
            problems = "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in exc.errors())
            return error_response(f"Invalid arguments for {name}: {problems}")

        credentials = context.credentials if context is not None else None
        if credentials is None or self._sheets_service is None:
            return error_response("No service account credentials available for this request")

        sheets = self._sheets_service.client_for(credentials)
        logger.debug(f"Invoking tool {name} as {credentials.client_email}")
        try:
            return await tool.handler(params, sheets)
        except Exception as exc:
            return handle_error(exc)
