from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .models import REMINDER_TYPES


ToolHandler = Callable[[Any, dict[str, Any]], dict[str, Any]]

CREATE_REMINDER = "createReminder"
CREATE_REMINDER_DESCRIPTION = "Set a reminder for the user to take medication, eat, or attend an appointment."
CREATE_REMINDER_PARAMETERS: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {
            "type": "STRING",
            "description": 'The content of the reminder (e.g., "Take Aspirin", "Lunch time").',
        },
        "time": {
            "type": "STRING",
            "description": (
                'The time for the reminder (e.g., "2023-10-27T10:00:00" or "8:00 PM"). '
                'If relative (e.g. "in 1 hour"), calculate the approximate absolute time based on current context.'
            ),
        },
        "type": {
            "type": "STRING",
            "description": 'Type of reminder: "medication", "diet", "appointment", or "general".',
            "enum": list(REMINDER_TYPES),
        },
    },
    "required": ["title", "time", "type"],
}


@dataclass
class ToolDefinition:
    name: str
    handler: ToolHandler
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "OBJECT", "properties": {}})

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    @property
    def declared_fields(self) -> list[str]:
        return list(self.parameters.get("properties", {}).keys())

    def declaration(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


class ToolRegistry:
    def __init__(self, *, enable_search: bool = True) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self.enable_search = enable_search

    def register(self, tool: ToolDefinition) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def resolve(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if not tool:
            raise KeyError(f"Tool not found: {name}")
        return tool

    def list_names(self) -> list[str]:
        return sorted(self._tools.keys())

    def declarations(self) -> list[dict[str, Any]]:
        tools: list[dict[str, Any]] = []
        if self._tools:
            tools.append({"functionDeclarations": [self._tools[name].declaration() for name in self.list_names()]})
        if self.enable_search:
            tools.append({"googleSearch": {}})
        return tools
