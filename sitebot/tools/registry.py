"""Tool registry: declares the callable tools and dispatches model requests."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from sitebot.tools.base import BaseTool, ToolParams, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """A tool request could not be dispatched."""


class UnknownToolError(ToolError):
    """The model asked for a tool that is not declared."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolArgumentsError(ToolError):
    """Tool arguments could not be decoded or failed validation."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid arguments for tool '{name}': {reason}")


@dataclass
class ToolDef:
    """Internal representation of a registered tool."""

    name: str
    description: str
    handler: Callable[..., Awaitable[ToolResult]]
    params_model: type[ToolParams] | None = None


class ToolRegistry:
    """Registry of the tools the model may call."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDef] = {}

    def register(self, tool_instance: BaseTool) -> None:
        """Register a tool instance."""
        self._tools[tool_instance.name] = ToolDef(
            name=tool_instance.name,
            description=tool_instance.description,
            handler=tool_instance.execute,
            params_model=tool_instance.params_model,
        )

    def get(self, name: str) -> ToolDef | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        """All registered tool names."""
        return list(self._tools.keys())

    def get_schemas(self) -> list[dict[str, Any]]:
        """Generate OpenAI-style function declarations for all registered tools."""
        return [self._tool_schema(t) for t in self._tools.values()]

    def parse_arguments(self, tool_def: ToolDef, arguments: str | dict[str, Any] | None) -> dict[str, Any]:
        """Decode and validate raw model arguments into handler kwargs.

        Raises:
            ToolArgumentsError: the arguments are not a JSON object or do not
                match the tool's params model.
        """
        if arguments is None or arguments == "":
            decoded: Any = {}
        elif isinstance(arguments, str):
            try:
                decoded = json.loads(arguments)
            except json.JSONDecodeError as exc:
                raise ToolArgumentsError(tool_def.name, f"not valid JSON ({exc.msg})") from exc
        else:
            decoded = arguments

        if not isinstance(decoded, dict):
            raise ToolArgumentsError(tool_def.name, "expected a JSON object")

        if tool_def.params_model is None:
            return dict(decoded)

        try:
            return tool_def.params_model(**decoded).model_dump()
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ToolArgumentsError(tool_def.name, problems) from exc

    async def execute(self, name: str, arguments: str | dict[str, Any] | None) -> ToolResult:
        """Execute a tool by name with the model-supplied arguments.

        Failures raised by the tool itself are logged and returned as an
        error result so the model can see them and adapt.

        Raises:
            UnknownToolError: *name* is not registered.
            ToolArgumentsError: *arguments* failed decoding or validation.
        """
        tool_def = self.get(name)
        if tool_def is None:
            raise UnknownToolError(name)

        kwargs = self.parse_arguments(tool_def, arguments)

        logger.info("Tool '%s' called with %s", name, kwargs)
        t0 = time.monotonic()

        try:
            result = await tool_def.handler(**kwargs)
        except Exception as exc:
            elapsed = time.monotonic() - t0
            logger.exception("Tool '%s' failed in %.2fs", name, elapsed)
            return ToolResult(error=str(exc) or f"Tool '{name}' failed.")

        elapsed = time.monotonic() - t0
        if result.success:
            logger.info("Tool '%s' succeeded in %.2fs", name, elapsed)
        else:
            logger.warning("Tool '%s' returned error in %.2fs: %s", name, elapsed, result.error)
        return result

    @staticmethod
    def _tool_schema(tool_def: ToolDef) -> dict[str, Any]:
        """Build a single function declaration dict."""
        if tool_def.params_model is not None:
            parameters = tool_def.params_model.model_json_schema()
            parameters.pop("title", None)
        else:
            parameters = {"type": "object", "properties": {}}

        return {
            "type": "function",
            "function": {
                "name": tool_def.name,
                "description": tool_def.description,
                "parameters": parameters,
            },
        }
