"""Sentinel for values that are absent rather than null.

Process graphs are JSON, where ``null`` is a legitimate argument value. When a
parameter reference cannot be resolved and undefined references are tolerated,
resolution yields ``UNDEFINED`` instead of ``None`` so callers can tell the two
apart.

Example:
    value = node.get_process_graph_parameter_value("cid")
    if value is UNDEFINED:
        # No argument, no default, anywhere up the callback chain
        ...
"""

from typing import Final


class UndefinedSentinel:
    """Sentinel class marking an absent value.

    This is a singleton - use the UNDEFINED instance, not the class directly.
    Comparison should always use `is` identity, never equality.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "<UNDEFINED>"

    def __bool__(self) -> bool:
        return False


UNDEFINED: Final[UndefinedSentinel] = UndefinedSentinel()
"""Singleton sentinel indicating that no value is available.

Use identity comparison: `if value is UNDEFINED:`
"""
