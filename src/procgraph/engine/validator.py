# src/procgraph/engine/validator.py
"""Value validation against parameter schemas.

Wraps a jsonschema Draft 7 validator extended with the ``subtype`` keyword.
Every subtype is checked in two steps:

1. Structurally, against its schema in SUBTYPE_SCHEMAS (if registered)
2. Semantically, by the ``validate_<subtype>`` method of JsonSchemaValidator
   (dashes become underscores, e.g. ``epsg-code`` -> ``validate_epsg_code``)

Semantic checks raise ``jsonschema.ValidationError``. Synchronous checks run
inside the jsonschema pass. Coroutine checks (e.g. ``validate_process_graph``,
which parses and validates an embedded graph) are awaited between repeated
passes, see validate_value(). Subclasses add subtypes by defining further
``validate_<subtype>`` methods.
"""

from __future__ import annotations

import copy
import inspect
from collections.abc import Callable, Iterator, Mapping
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from jsonschema import Draft7Validator, ValidationError, validators

from procgraph.contracts.errors import ProcessGraphError
from procgraph.core.logging import get_logger
from procgraph.core.references import CallbackBody
from procgraph.engine.subtypes import SUBTYPE_SCHEMAS, WKT2_CODE_WORDS

if TYPE_CHECKING:
    from procgraph.core.dag.graph import ProcessGraph

logger = get_logger(__name__)

DRAFT_07_URI = "http://json-schema.org/draft-07/schema#"

# Smallest EPSG code accepted when no explicit list of codes is configured
MIN_EPSG_CODE = 2000

# Coroutine check waiting to be awaited: (subtype, id(instance)), check, instance
_PendingCheck = tuple[tuple[str, int], Callable[..., Any], Any]


@dataclass(frozen=True, slots=True)
class _SubtypeChecks:
    """Coroutine check bookkeeping of one validate_value call.

    ``outcomes`` maps settled checks to their error message (None if passed).
    """

    outcomes: dict[tuple[str, int], str | None]
    pending: list[_PendingCheck]


_subtype_checks: ContextVar[_SubtypeChecks] = ContextVar("procgraph_subtype_checks")


def _is_object(checker: Any, instance: Any) -> bool:
    """JSON objects, plus already parsed callback graphs."""
    return isinstance(instance, (Mapping, CallbackBody))


class JsonSchemaValidator:
    """Validates argument values against JSON Schemas with subtypes.

    Optional lists restrict semantic checks to what a back-end supports;
    while a list is not configured, the corresponding check accepts any value.

    Example:
        validator = JsonSchemaValidator()
        validator.set_epsg_codes([4326, 3857])
        errors = await validator.validate_value(4326, {"type": "integer", "subtype": "epsg-code"})
        assert errors == []
    """

    def __init__(self) -> None:
        self.collections: list[str] | None = None
        self.epsg_codes: list[int] | None = None
        self.file_formats: dict[str, dict[str, Any] | None] = {"input": None, "output": None}
        self.udf_runtimes: dict[str, Any] | None = None
        type_checker = Draft7Validator.TYPE_CHECKER.redefine("object", _is_object)
        self._validator_class = validators.extend(
            Draft7Validator,
            validators={"subtype": self._check_subtype},
            type_checker=type_checker,
        )

    # === Configuration ===

    def set_collections(self, collections: Any) -> None:
        """Restrict ``collection-id`` values to the given ids or collection objects."""
        if not isinstance(collections, list):
            return
        self.collections = []
        for collection in collections:
            if isinstance(collection, Mapping) and isinstance(collection.get("id"), str):
                self.collections.append(collection["id"])
            elif isinstance(collection, str):
                self.collections.append(collection)

    def set_epsg_codes(self, epsg_codes: Any) -> None:
        """Restrict ``epsg-code`` values to the given codes (entries that are not integers are skipped)."""
        if not isinstance(epsg_codes, list):
            return
        codes: list[int] = []
        for code in epsg_codes:
            try:
                codes.append(int(code))
            except (TypeError, ValueError):
                logger.debug("epsg_code_ignored", code=code)
        self.epsg_codes = codes

    def set_file_formats(self, file_formats: Any) -> None:
        """Restrict ``input-format``/``output-format`` values.

        Args:
            file_formats: ``{"input": {name: ...}, "output": {name: ...}}``;
                names are compared case-insensitively
        """
        if not isinstance(file_formats, Mapping):
            return
        for direction in ("input", "output"):
            formats = file_formats.get(direction)
            if isinstance(formats, Mapping):
                self.file_formats[direction] = {str(name).upper(): spec for name, spec in formats.items()}
            else:
                self.file_formats[direction] = {}

    def set_udf_runtimes(self, udf_runtimes: Any) -> None:
        """Restrict ``udf-runtime`` values to the keys of the given mapping."""
        if isinstance(udf_runtimes, Mapping):
            self.udf_runtimes = dict(udf_runtimes)

    # === Validation ===

    def make_schema(self, schema: Any) -> Any:
        """Return a validator-ready copy of a schema.

        Lists of schemas become an ``anyOf`` schema and the draft 7 dialect is
        declared unless the schema names one.
        """
        schema = copy.deepcopy(schema)
        if isinstance(schema, list):
            schema = {"anyOf": schema}
        if isinstance(schema, dict) and "$schema" not in schema:
            schema["$schema"] = DRAFT_07_URI
        return schema

    async def validate_value(self, value: Any, schema: Any, *, graph: ProcessGraph | None = None) -> list[str]:
        """Validate a value against a schema.

        Coroutine checks cannot run inside the synchronous jsonschema pass.
        The pass is repeated instead: unknown coroutine checks are assumed to
        succeed and queued, then awaited, and the next pass reports the known
        outcomes. ``anyOf``/``oneOf`` therefore pick their alternatives with
        every check settled, and checks of alternatives that were not
        selected do not add messages.

        Args:
            value: Value to check; may contain parsed callback graphs
            schema: Schema or list of alternative schemas
            graph: Graph the value belongs to; embedded process graphs are
                created as its children

        Returns:
            Error messages (empty if the value is valid)
        """
        validator = self._validator_class(self.make_schema(schema))
        outcomes: dict[tuple[str, int], str | None] = {}
        while True:
            pending: list[_PendingCheck] = []
            token = _subtype_checks.set(_SubtypeChecks(outcomes, pending))
            try:
                messages = [error.message for error in validator.iter_errors(value)]
            finally:
                _subtype_checks.reset(token)
            if not pending:
                return messages
            for key, check, instance in pending:
                try:
                    await check(instance, graph)
                except ValidationError as error:
                    outcomes[key] = error.message
                else:
                    outcomes[key] = None

    def _check_subtype(self, validator: Any, subtype: Any, instance: Any, schema: Mapping[str, Any]) -> Iterator[ValidationError]:
        """The ``subtype`` keyword."""
        if not isinstance(subtype, str):
            return
        subtype_schema = SUBTYPE_SCHEMAS.get(subtype)
        if subtype_schema is not None:
            errors = list(validator.descend(instance, subtype_schema))
            if errors:
                yield from errors
                return

        check = self._get_subtype_check(subtype)
        if check is None:
            return
        if inspect.iscoroutinefunction(check):
            state = _subtype_checks.get()
            # Instances are parts of the validated value, alive for the whole call
            key = (subtype, id(instance))
            if key not in state.outcomes:
                if all(pending_key != key for pending_key, _, _ in state.pending):
                    state.pending.append((key, check, instance))
                return
            message = state.outcomes[key]
            if message is not None:
                yield ValidationError(message)
            return
        try:
            check(instance)
        except ValidationError as error:
            yield error

    def _get_subtype_check(self, subtype: str) -> Callable[..., Any] | None:
        name = "validate_" + subtype.replace("-", "_")
        if name == "validate_value":
            return None
        check = getattr(self, name, None)
        return check if callable(check) else None

    # === Semantic checks ===

    def validate_collection_id(self, data: str) -> None:
        if self.collections is not None and data not in self.collections:
            raise ValidationError(f"Collection with id '{data}' doesn't exist.")

    def validate_udf_runtime(self, data: str) -> None:
        if self.udf_runtimes is not None and data not in self.udf_runtimes:
            raise ValidationError(f"UDF runtime '{data}' is not supported.")

    def validate_epsg_code(self, data: int) -> None:
        if self.epsg_codes is not None:
            if data in self.epsg_codes:
                return
        # Rough range check instead of a full EPSG registry
        elif data >= MIN_EPSG_CODE:
            return
        raise ValidationError(f"Invalid EPSG code '{data}' specified.")

    def validate_input_format(self, data: str) -> None:
        formats = self.file_formats["input"]
        if formats is not None and data.upper() not in formats:
            raise ValidationError(f"Input format '{data}' not supported.")

    def validate_output_format(self, data: str) -> None:
        formats = self.file_formats["output"]
        if formats is not None and data.upper() not in formats:
            raise ValidationError(f"Output format '{data}' not supported.")

    def validate_proj_definition(self, data: str) -> None:
        if "+proj" not in data.lower():
            raise ValidationError("Invalid PROJ string specified (doesn't contain '+proj').")

    def validate_wkt2_definition(self, data: str) -> None:
        upper = data.upper()
        if not any(word in upper for word in WKT2_CODE_WORDS):
            raise ValidationError("Invalid WKT2 string specified.")

    def validate_temporal_interval(self, data: list[str | None]) -> None:
        start, end = data
        if start is None and end is None:
            raise ValidationError("Temporal interval must not be open on both ends.")
        if start is None or end is None:
            return
        start_time = _parse_timestamp(start)
        end_time = _parse_timestamp(end)
        # Unparseable timestamps are left to the back-end
        if start_time is not None and end_time is not None and end_time < start_time:
            raise ValidationError("The second timestamp can't be before the first timestamp.")

    def validate_temporal_intervals(self, data: list[list[str | None]]) -> None:
        for interval in data:
            self.validate_temporal_interval(interval)

    async def validate_process_graph(self, data: Any, graph: ProcessGraph | None = None) -> None:
        """Parse and validate an embedded process graph.

        Any error of the embedded graph is reported as a single message.
        """
        from procgraph.core.dag.graph import ProcessGraph

        if isinstance(data, ProcessGraph):
            parser = data
        elif graph is not None:
            parser = graph.create_process_graph(data)
        else:
            parser = ProcessGraph(data, None, self)
        try:
            await parser.validate()
        except ProcessGraphError as error:
            raise ValidationError(error.message) from error


def _parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO 8601 date or date-time; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
