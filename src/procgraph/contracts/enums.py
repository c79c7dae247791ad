"""Kinds and codes used across subsystem boundaries."""

from enum import StrEnum


class ReferenceKind(StrEnum):
    """Structural kind of an argument value inside a process graph.

    Literals keep the name of their JSON type. ``UNDEFINED`` marks an absent
    value and is distinct from ``NULL``.
    """

    NULL = "null"
    UNDEFINED = "undefined"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    RESULT = "result"
    PARAMETER = "parameter"
    CALLBACK = "callback"

    @property
    def is_reference(self) -> bool:
        """Whether values of this kind point at a node result or a parameter."""
        return self in (ReferenceKind.RESULT, ReferenceKind.PARAMETER)

    @property
    def is_container(self) -> bool:
        """Whether values of this kind hold elements that are classified independently."""
        return self in (ReferenceKind.ARRAY, ReferenceKind.OBJECT)


class ErrorCode(StrEnum):
    """Codes of the errors raised by the parser, validator and executor.

    Structural codes have a ``...Callback`` twin that is used when the failing
    graph is the body of a callback, so messages name the enclosing node.
    """

    # Structural
    PROCESS_MISSING = "ProcessMissing"
    PROCESS_GRAPH_MISSING = "ProcessGraphMissing"
    START_NODE_MISSING = "StartNodeMissing"
    RESULT_NODE_MISSING = "ResultNodeMissing"
    MULTIPLE_RESULT_NODES = "MultipleResultNodes"
    CIRCULAR_REFERENCE = "CircularReference"
    PROCESS_MISSING_CALLBACK = "ProcessMissingCallback"
    PROCESS_GRAPH_MISSING_CALLBACK = "ProcessGraphMissingCallback"
    START_NODE_MISSING_CALLBACK = "StartNodeMissingCallback"
    RESULT_NODE_MISSING_CALLBACK = "ResultNodeMissingCallback"
    MULTIPLE_RESULT_NODES_CALLBACK = "MultipleResultNodesCallback"
    CIRCULAR_REFERENCE_CALLBACK = "CircularReferenceCallback"

    # Referential
    REFERENCED_NODE_MISSING = "ReferencedNodeMissing"
    NODE_ID_INVALID = "NodeIdInvalid"
    NODE_INVALID = "NodeInvalid"
    PROCESS_ID_MISSING = "ProcessIdMissing"

    # Parameter scope
    PROCESS_GRAPH_PARAMETER_MISSING = "ProcessGraphParameterMissing"

    # Process contract
    PROCESS_UNSUPPORTED = "ProcessUnsupported"
    PROCESS_ARGUMENT_UNSUPPORTED = "ProcessArgumentUnsupported"
    PROCESS_ARGUMENT_REQUIRED = "ProcessArgumentRequired"
    PROCESS_ARGUMENT_INVALID = "ProcessArgumentInvalid"

    # Errors that did not originate from this library
    INTERNAL_ERROR = "InternalError"

    def for_callback(self) -> "ErrorCode":
        """Return the ``...Callback`` twin of a structural code.

        Raises:
            ValueError: If the code has no callback variant.
        """
        return ErrorCode(f"{self.value}Callback")
