# src/procgraph/core/config.py
"""
Configuration schema and loading for procgraph.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction; graphs derive updated
copies when a toggle is flipped.
"""

import os
import re
from pathlib import Path
from typing import Any, Self

from dynaconf import Dynaconf
from pydantic import BaseModel, Field, model_validator


class GraphSettings(BaseModel):
    """Parser and validator behaviour for a process graph.

    Child graphs created for callbacks inherit the settings of their parent.

    Example YAML:
        allow_empty: false
        allow_undefined_parameter_refs: true
        fill_process_parameters: false
        max_concurrency: 8
    """

    model_config = {"frozen": True, "extra": "forbid"}

    allow_empty: bool = Field(
        default=False,
        description="Accept an empty process graph when the process carries other description keys",
    )
    allow_undefined_parameter_refs: bool = Field(
        default=True,
        description="Resolve unknown parameter references to UNDEFINED instead of failing",
    )
    fill_process_parameters: bool = Field(
        default=False,
        description="Declare referenced but undeclared parameters with an empty schema",
    )
    max_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Upper bound of nodes validated or executed at the same time (None = unbounded)",
    )

    @model_validator(mode="after")
    def validate_parameter_toggles(self) -> Self:
        """Filling undeclared parameters implies tolerating undefined references."""
        if self.fill_process_parameters and not self.allow_undefined_parameter_refs:
            raise ValueError("fill_process_parameters requires allow_undefined_parameter_refs")
        return self

    def with_undefined_parameters(self, allow: bool) -> "GraphSettings":
        """Return a copy with undefined parameter references allowed or forbidden.

        Forbidding undefined references also stops filling them in.
        """
        update: dict[str, Any] = {"allow_undefined_parameter_refs": allow}
        if not allow:
            update["fill_process_parameters"] = False
        return self.model_copy(update=update)

    def with_filled_parameters(self, fill: bool) -> "GraphSettings":
        """Return a copy with undeclared parameters filled in or not.

        Filling requires tolerating undefined references, so enabling it
        enables those too.
        """
        update: dict[str, Any] = {"fill_process_parameters": fill}
        if fill:
            update["allow_undefined_parameter_refs"] = True
        return self.model_copy(update=update)

    def with_empty_allowed(self, allow: bool) -> "GraphSettings":
        """Return a copy with empty process graphs allowed or not."""
        return self.model_copy(update={"allow_empty": allow})


# ${NAME} or ${NAME:-fallback}
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[A-Z_][A-Z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")

# Keys Dynaconf reports alongside the loaded values
_DYNACONF_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})


def _substitute(match: re.Match[str]) -> str:
    value = os.environ.get(match.group("name"))
    if value is not None:
        return value
    fallback = match.group("fallback")
    return fallback if fallback is not None else match.group(0)


def expand_env_vars(value: Any) -> Any:
    """Expand ``${NAME}`` and ``${NAME:-fallback}`` inside strings of a nested value.

    Unset variables without a fallback are left as written.

    Example:
        >>> os.environ["GRAPH_WORKERS"] = "4"
        >>> expand_env_vars({"max_concurrency": "${GRAPH_WORKERS:-1}"})
        {'max_concurrency': '4'}
    """
    if isinstance(value, str):
        return _PLACEHOLDER.sub(_substitute, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def load_settings(config_path: Path) -> GraphSettings:
    """Load graph settings from a YAML (or TOML/JSON) file.

    Precedence, highest first: ``PROCGRAPH_*`` environment variables, the
    file, the GraphSettings defaults. ``${NAME:-fallback}`` placeholders are
    expanded after merging.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist
        pydantic.ValidationError: If a value is invalid or a key is unknown
    """
    # Dynaconf would silently load nothing
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    loaded = Dynaconf(
        envvar_prefix="PROCGRAPH",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    ).as_dict()

    values = {key.lower(): item for key, item in loaded.items() if key not in _DYNACONF_KEYS}
    return GraphSettings.model_validate(expand_env_vars(values))
