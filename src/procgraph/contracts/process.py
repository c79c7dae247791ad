"""Process specification models.

A process specification describes a process the way a registry publishes it:
an id, an ordered parameter list and a return schema. The models validate the
parts the engine relies on and keep every other key (summary, examples, links,
...) untouched, because specifications are "their data" published by a back-end.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ParameterSpec(BaseModel):
    """One declared parameter of a process.

    The JSON Schema is stored under ``json_schema`` (``schema`` on the wire,
    which would otherwise shadow a BaseModel attribute).
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    description: str = ""
    json_schema: dict[str, Any] | list[dict[str, Any]] = Field(default_factory=dict, alias="schema")
    optional: bool = False
    deprecated: bool = False
    experimental: bool = False
    default: Any = None

    @property
    def has_default(self) -> bool:
        """Whether the specification declares a default (``null`` counts)."""
        return "default" in self.model_fields_set


class ReturnSpec(BaseModel):
    """Return value declaration of a process."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    description: str = ""
    json_schema: dict[str, Any] | list[dict[str, Any]] = Field(default_factory=dict, alias="schema")


class ProcessSpec(BaseModel):
    """Validated view of a process specification."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str = Field(min_length=1)
    summary: str = ""
    description: str = ""
    parameters: list[ParameterSpec] = Field(default_factory=list)
    returns: ReturnSpec = Field(default_factory=ReturnSpec)

    @field_validator("parameters")
    @classmethod
    def validate_unique_parameter_names(cls, v: list[ParameterSpec]) -> list[ParameterSpec]:
        """Parameter names must be unique within a process."""
        names = [param.name for param in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate parameter names: {duplicates}")
        return v

    def get_parameter(self, name: str) -> ParameterSpec | None:
        """Return the declared parameter with the given name, if any."""
        for param in self.parameters:
            if param.name == name:
                return param
        return None
