"""Base types for the tool-calling framework."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass
class ToolResult:
    """Result of a tool execution.

    Every tool returns one of these. The orchestrator serializes it
    into the content of a ``tool`` role message for the model.
    """

    data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> str:
        """Serialize for the tool message content field."""
        if self.error:
            return json.dumps({"error": self.error})
        return json.dumps(self.data or {})


class ToolParams(BaseModel):
    """Base class for tool parameter models.

    Subclass with Field() definitions. The JSON schema is auto-generated
    via model_json_schema() for the function declarations sent to the model.
    """


class BaseTool(ABC):
    """Abstract base for tool implementations.

    Tools hold the component they delegate to (URL index, page fetcher)
    and are registered as instances::

        class MyTool(BaseTool):
            name = "my_tool"
            description = "Does a thing"
            params_model = MyToolParams

            async def execute(self, **kwargs) -> ToolResult:
                return ToolResult(data={"ok": True})
    """

    name: str = ""
    description: str = ""
    params_model: type[ToolParams] | None = None

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with validated parameters."""
        ...
