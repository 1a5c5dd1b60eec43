"""Tool Definition — name, description and pydantic argument model of one tool.

Invariants:
    - The schema sent to the model IS the argument model's JSON schema: what the
      model is told and what is validated can never drift apart
    - validate() either returns a model instance or raises
      InvalidToolArgumentsError; the tool body never sees unvalidated input
    - Arguments arriving as a JSON string are parsed once before validation

Design Decisions:
    - pydantic over hand-written JSON schemas: one declaration drives both the
      Anthropic tool definition and runtime validation
"""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from chatrelay.core.errors import InvalidToolArgumentsError


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    args_model: type[BaseModel]

    def to_anthropic(self) -> dict:
        """Anthropic Tool Use format: name, description, input_schema."""
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": schema,
        }

    def validate(self, raw: Any) -> BaseModel:
        if isinstance(raw, str):
            try:
                raw = json.loads(raw) if raw.strip() else {}
            except ValueError as e:
                raise InvalidToolArgumentsError(
                    f"Arguments for '{self.name}' are not valid JSON: {e}",
                ) from e
        if raw is None:
            raw = {}
        try:
            return self.args_model.model_validate(raw)
        except ValidationError as e:
            details = [
                {
                    "field": ".".join(str(loc) for loc in err["loc"]),
                    "message": err["msg"],
                    "type": err["type"],
                }
                for err in e.errors()
            ]
            raise InvalidToolArgumentsError(
                f"Invalid arguments for '{self.name}'", details,
            ) from e
