"""Errors raised while parsing, validating and executing process graphs.

Every error carries a stable ``code`` and a rendered human-readable ``message``
so it can be serialized as ``{"code": ..., "message": ...}``. Messages are
rendered from a catalogue keyed by ErrorCode; unknown codes are treated as
free-text messages.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from typing import Any

from procgraph.contracts.enums import ErrorCode

MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.MULTIPLE_RESULT_NODES: "Multiple result nodes specified for process graph.",
    ErrorCode.START_NODE_MISSING: "No start nodes found for process graph.",
    ErrorCode.RESULT_NODE_MISSING: "No result node found for process graph.",
    ErrorCode.CIRCULAR_REFERENCE: "Circular reference detected in process graph: {cycle}.",
    ErrorCode.PROCESS_GRAPH_MISSING: "No process graph specified.",
    ErrorCode.PROCESS_MISSING: "No process specified.",
    ErrorCode.MULTIPLE_RESULT_NODES_CALLBACK: (
        "Multiple result nodes specified for the callback in the process '{process_id}' (node: '{node_id}')."
    ),
    ErrorCode.START_NODE_MISSING_CALLBACK: "No start nodes found for the callback in the process '{process_id}' (node: '{node_id}').",
    ErrorCode.RESULT_NODE_MISSING_CALLBACK: "No result node found for the callback in the process '{process_id}' (node: '{node_id}').",
    ErrorCode.CIRCULAR_REFERENCE_CALLBACK: (
        "Circular reference detected in the callback in the process '{process_id}' (node: '{node_id}'): {cycle}."
    ),
    ErrorCode.PROCESS_GRAPH_MISSING_CALLBACK: "No process graph specified for the callback in the process '{process_id}' (node: '{node_id}').",
    ErrorCode.PROCESS_MISSING_CALLBACK: "No process specified for the callback in the process '{process_id}' (node: '{node_id}').",
    ErrorCode.REFERENCED_NODE_MISSING: "Referenced node '{node_id}' doesn't exist.",
    ErrorCode.NODE_ID_INVALID: "Invalid node id specified in process graph.",
    ErrorCode.NODE_INVALID: "Process graph node '{node_id}' is not a valid object.",
    ErrorCode.PROCESS_ID_MISSING: "Process graph node '{node_id}' doesn't contain a process id.",
    ErrorCode.PROCESS_GRAPH_PARAMETER_MISSING: "Invalid parameter '{argument}' requested in the process '{process_id}' (node: '{node_id}').",
    ErrorCode.PROCESS_UNSUPPORTED: "Process '{process}' is not supported.",
    ErrorCode.PROCESS_ARGUMENT_UNSUPPORTED: "Process '{process}' does not support the following arguments: {arguments}",
    ErrorCode.PROCESS_ARGUMENT_REQUIRED: "Process '{process}' requires argument '{argument}'.",
    ErrorCode.PROCESS_ARGUMENT_INVALID: "The argument '{argument}' in process '{process}' is invalid: {reason}",
}

_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")
_NON_WORD_PATTERN = re.compile(r"\W+")


def _format_variable(value: Any) -> str:
    """Render a placeholder value; sequences are joined with commas."""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(_format_variable(item) for item in value)
    return str(value)


def replace_placeholders(message: str, variables: Mapping[str, Any] | None = None) -> str:
    """Replace ``{name}`` placeholders with the given variables.

    Placeholders without a matching variable are left untouched.

    Example:
        >>> replace_placeholders("{multiple} {vars}: {undefined}", {"multiple": "Multiple", "vars": "Variables"})
        'Multiple Variables: {undefined}'
    """
    if not variables:
        return message

    def replacer(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return _format_variable(variables[name])
        return match.group(0)

    return _PLACEHOLDER_PATTERN.sub(replacer, message)


class ProcessGraphError(Exception):
    """Error raised by the process graph parser, validator or executor.

    Attributes:
        code: Error code (an ErrorCode value for catalogued errors)
        message: Rendered human-readable message
        variables: Placeholder values used to render the message

    Example:
        raise ProcessGraphError(ErrorCode.PROCESS_ARGUMENT_REQUIRED, {"process": "absolute", "argument": "x"})
    """

    def __init__(self, code_or_message: str, variables: Mapping[str, Any] | None = None) -> None:
        self.variables: dict[str, Any] = dict(variables or {})
        try:
            code = ErrorCode(code_or_message)
        except ValueError:
            code = None
        if code is not None and code in MESSAGES:
            self.code: str = code.value
            self.message = replace_placeholders(MESSAGES[code], self.variables)
        else:
            self.code = _NON_WORD_PATTERN.sub("", code_or_message)
            self.message = code_or_message
        super().__init__(self.message)

    def to_json(self) -> dict[str, str]:
        """Serialize to the ``{code, message}`` wire shape."""
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"ProcessGraphError(code={self.code!r}, message={self.message!r})"


class ErrorList:
    """Ordered collection of errors collected during validation.

    Holds ProcessGraphError instances, but tolerates any exception so that
    failures coming from host code can still be reported.
    """

    def __init__(self, errors: list[Exception] | None = None) -> None:
        self._errors: list[Exception] = list(errors or [])

    def first(self) -> Exception | None:
        """Return the first error, or None if the list is empty."""
        return self._errors[0] if self._errors else None

    def last(self) -> Exception | None:
        """Return the last error, or None if the list is empty."""
        return self._errors[-1] if self._errors else None

    def merge(self, other: ErrorList) -> None:
        """Append all errors of another list, keeping their order."""
        self._errors.extend(other.get_all())

    def add(self, error: Exception) -> None:
        self._errors.append(error)

    def count(self) -> int:
        return len(self._errors)

    def get_all(self) -> list[Exception]:
        """Return a copy of the errors in insertion order."""
        return list(self._errors)

    def to_json(self) -> list[dict[str, str]]:
        """Serialize every error as ``{code, message}``.

        Errors that did not come from this library are reported as
        ``InternalError`` with their string form as message.
        """
        serialized: list[dict[str, str]] = []
        for error in self._errors:
            if isinstance(error, ProcessGraphError):
                serialized.append(error.to_json())
            else:
                serialized.append({"code": ErrorCode.INTERNAL_ERROR.value, "message": str(error)})
        return serialized

    def get_message(self) -> str:
        """Render a numbered, human-readable list of all error messages."""
        lines = [f"{index}. {_error_message(error)}" for index, error in enumerate(self._errors, start=1)]
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[Exception]:
        return iter(list(self._errors))

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __repr__(self) -> str:
        return f"ErrorList({self.to_json()!r})"


def _error_message(error: Exception) -> str:
    if isinstance(error, ProcessGraphError):
        return error.message
    return str(error)


class ValidationErrors(Exception):
    """Raised by a process that reports several validation problems at once.

    The graph merges the wrapped list into its own ErrorList, flattened.

    Attributes:
        errors: The collected errors (never empty)
    """

    def __init__(self, errors: ErrorList) -> None:
        if errors.count() == 0:
            raise ValueError("ValidationErrors requires at least one error")
        self.errors = errors
        super().__init__(errors.get_message())

    def first(self) -> Exception:
        """Return the first wrapped error.

        Raises:
            RuntimeError: If ``errors`` was emptied after construction
        """
        first = self.errors.first()
        if first is None:
            raise RuntimeError("ValidationErrors holds no errors")
        return first
