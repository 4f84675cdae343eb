"""Derived computations re-executed on every store flush.

Recomputation is coarse-grained: every registration runs against the full
state on every flush, whether or not the keys it depends on changed.
:mod:`pyuistore.tracking` can record which keys a function reads, but it is
not consulted here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pyuistore.store.interface import Computation

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Registration:
    computation: Computation
    last_result: Any = None


class RecomputeEngine:
    """Registry of ``id -> (computation, last_result)``."""

    def __init__(self) -> None:
        self._registrations: dict[str, Registration] = {}

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, registration_id: object) -> bool:
        return registration_id in self._registrations

    def register(self, registration_id: str, computation: Computation, state: Mapping[str, bytes]) -> None:
        """Run *computation* now and store it under *registration_id*.

        Re-registering an id replaces the previous computation. Errors raised
        by the first run propagate and leave the registry unchanged.
        """
        result = computation(state)
        self._registrations[registration_id] = Registration(computation, result)

    def get_result(self, registration_id: str) -> Any | None:
        registration = self._registrations.get(registration_id)
        if registration is None:
            return None
        return registration.last_result

    def recompute(self, state: Mapping[str, bytes]) -> None:
        """Re-run every registration against *state*.

        A computation that raises keeps its previous result.
        """
        for registration_id, registration in self._registrations.items():
            try:
                registration.last_result = registration.computation(state)
            except Exception:
                _logger.exception("Computation %r failed; keeping previous result", registration_id)
