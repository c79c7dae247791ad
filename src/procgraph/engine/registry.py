# src/procgraph/engine/registry.py
"""Namespaced registry of the processes a back-end offers.

Processes live in namespaces; the predefined processes of a back-end are
registered under ``backend``, user-defined processes usually under a
namespace of their own. Graphs look processes up by id and node namespace.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from procgraph.contracts.types import ProcessDescription, ProcessID
from procgraph.core.logging import get_logger
from procgraph.engine.process import BaseProcess

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "backend"


class ProcessRegistry:
    """Stores BaseProcess instances by namespace and process id.

    Args:
        processes: Processes to register in the given namespace
        namespace: Namespace for ``processes``

    Example:
        registry = ProcessRegistry.from_path(Path("processes.yaml"))
        absolute = registry.get("absolute")
    """

    def __init__(self, processes: Iterable[Any] = (), namespace: str = DEFAULT_NAMESPACE) -> None:
        self._processes: dict[str, dict[ProcessID, BaseProcess]] = {}
        self.add_all(processes, namespace)

    @classmethod
    def from_path(cls, path: Path, namespace: str = DEFAULT_NAMESPACE) -> ProcessRegistry:
        """Load a list of process specifications from a JSON or YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file doesn't contain a list
            pydantic.ValidationError: If a specification is malformed
        """
        if not path.exists():
            raise FileNotFoundError(f"Process file not found: {path}")

        with path.open(encoding="utf-8") as f:
            loaded = json.load(f) if path.suffix.lower() == ".json" else yaml.safe_load(f)
        if not isinstance(loaded, list):
            raise ValueError(f"Process file {path} must contain a list of processes, got {type(loaded).__name__}")

        registry = cls(loaded, namespace)
        logger.debug("process_registry_loaded", path=str(path), namespace=namespace, count=registry.count(namespace))
        return registry

    def create_process(self, spec: Mapping[str, Any]) -> BaseProcess:
        """Wrap a raw specification. Override to use a BaseProcess subclass."""
        return BaseProcess(spec)

    def add(self, process: Any, namespace: str | None = DEFAULT_NAMESPACE) -> BaseProcess:
        """Register a process, replacing one with the same id.

        Args:
            process: A BaseProcess, a raw specification mapping, or an object
                whose ``to_json()`` returns either
            namespace: Target namespace (None means the default namespace)

        Returns:
            The registered BaseProcess

        Raises:
            TypeError: If ``process`` is none of the accepted kinds
            pydantic.ValidationError: If the specification is malformed
        """
        if not isinstance(process, (BaseProcess, Mapping)):
            to_json = getattr(process, "to_json", None)
            if not callable(to_json):
                raise TypeError(f"Cannot register {type(process).__name__} as a process")
            process = to_json()

        if isinstance(process, BaseProcess):
            instance = process
        elif isinstance(process, Mapping):
            instance = self.create_process(process)
        else:
            raise TypeError(f"Cannot register {type(process).__name__} as a process")

        self._processes.setdefault(namespace or DEFAULT_NAMESPACE, {})[instance.id] = instance
        return instance

    def add_all(self, processes: Iterable[Any], namespace: str | None = DEFAULT_NAMESPACE) -> None:
        for process in processes:
            self.add(process, namespace)

    def count(self, namespace: str | None = None) -> int:
        """Number of processes in a namespace, or in all namespaces if None."""
        if namespace is None:
            return sum(len(processes) for processes in self._processes.values())
        return len(self._processes.get(namespace, {}))

    def has(self, process_id: str, namespace: str | None = None) -> bool:
        return self.get(process_id, namespace) is not None

    def get(self, process_id: str, namespace: str | None = None) -> BaseProcess | None:
        """Look a process up; None namespace means the default namespace."""
        return self._processes.get(namespace or DEFAULT_NAMESPACE, {}).get(ProcessID(process_id))

    def all(self, namespace: str = DEFAULT_NAMESPACE) -> list[BaseProcess]:
        return list(self._processes.get(namespace, {}).values())

    def namespaces(self) -> list[str]:
        return sorted(self._processes)

    def remove(self, process_id: str | None = None, namespace: str = DEFAULT_NAMESPACE) -> bool:
        """Remove one process, or the whole namespace if ``process_id`` is None.

        Returns:
            True if something was removed
        """
        if namespace not in self._processes:
            return False
        if process_id is None:
            del self._processes[namespace]
            return True
        removed = self._processes[namespace].pop(ProcessID(process_id), None) is not None
        if not self._processes[namespace]:
            del self._processes[namespace]
        return removed

    def to_json(self, namespace: str = DEFAULT_NAMESPACE) -> list[ProcessDescription]:
        """Specifications of all processes in a namespace."""
        return [process.to_json() for process in self.all(namespace)]
