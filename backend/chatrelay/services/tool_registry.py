"""Tool Registry — explicit routing from tool name to definition + handler.

Invariants:
    - Every name → handler mapping is visible in one dict: no getattr magic,
      no auto-discovery
    - Handlers are bound per session to a ToolContext carrying the session's
      shared multiplexer

Design Decisions:
    - Explicit dict over decorators: adding a tool requires editing this file
    - Split handlers by tool family: one small class per family
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pydantic import BaseModel

from chatrelay.services.define_document_tools import CREATE_DOCUMENT, UPDATE_DOCUMENT
from chatrelay.services.define_suggestion_tools import REQUEST_SUGGESTIONS
from chatrelay.services.define_weather_tools import GET_WEATHER
from chatrelay.services.handle_document import DocumentHandlers
from chatrelay.services.handle_suggestions import SuggestionHandlers
from chatrelay.services.handle_weather import WeatherHandlers
from chatrelay.services.tool_context import ToolContext
from chatrelay.services.tool_definition import ToolDefinition

ToolHandler = Callable[[BaseModel], Awaitable[dict]]


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """Routes tool name → registered tool. Explicit registration."""

    def __init__(self, tools: dict[str, RegisteredTool]):
        self._tools = tools

    @classmethod
    def for_session(cls, ctx: ToolContext) -> "ToolRegistry":
        documents = DocumentHandlers(ctx)
        suggestions = SuggestionHandlers(ctx)
        weather = WeatherHandlers(ctx)

        # Every mapping explicit: adding a tool requires editing this dict
        return cls({
            CREATE_DOCUMENT.name: RegisteredTool(CREATE_DOCUMENT, documents.create_document),
            UPDATE_DOCUMENT.name: RegisteredTool(UPDATE_DOCUMENT, documents.update_document),
            REQUEST_SUGGESTIONS.name: RegisteredTool(
                REQUEST_SUGGESTIONS, suggestions.request_suggestions,
            ),
            GET_WEATHER.name: RegisteredTool(GET_WEATHER, weather.get_weather),
        })

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[dict]:
        """Anthropic tool list for the model request."""
        return [t.definition.to_anthropic() for t in self._tools.values()]
