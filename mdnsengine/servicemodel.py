"""Ordered list of the services a browser currently knows about."""

from __future__ import annotations

import copy
from typing import Callable, List, Optional

from .browser import Browser
from .records import Service

RowCallback = Callable[[int], None]


class ServiceModel:
    """Keep services reported by a :class:`Browser` in discovery order.

    Callbacks in ``rows_inserted``, ``rows_removed`` and ``data_changed`` are
    called with the affected row after the change has been made.
    """

    def __init__(self, browser: Browser) -> None:
        self._services: List[Service] = []
        self.rows_inserted: List[RowCallback] = []
        self.rows_removed: List[RowCallback] = []
        self.data_changed: List[RowCallback] = []
        browser.service_added.append(self._on_service_added)
        browser.service_updated.append(self._on_service_updated)
        browser.service_removed.append(self._on_service_removed)

    def __len__(self) -> int:
        return len(self._services)

    def display(self, row: int) -> str:
        """Return the text shown for a row: "name (type)"."""
        service = self.service_at(row)
        name = service.name.decode("utf-8", errors="replace")
        service_type = service.type.decode("utf-8", errors="replace")
        return f"{name} ({service_type})"

    def service_at(self, row: int) -> Service:
        """Return a copy of the service in a row; IndexError if out of range."""
        if not 0 <= row < len(self._services):
            raise IndexError(f"row {row} out of range")
        return copy.deepcopy(self._services[row])

    def find_service(self, name: bytes) -> Optional[int]:
        """Return the row of the service with this name, or None."""
        return next(
            (row for row, service in enumerate(self._services) if service.name == name),
            None,
        )

    @staticmethod
    def _notify(callbacks: List[RowCallback], row: int) -> None:
        for callback in list(callbacks):
            callback(row)

    def _on_service_added(self, service: Service) -> None:
        self._services.append(service)
        self._notify(self.rows_inserted, len(self._services) - 1)

    def _on_service_updated(self, service: Service) -> None:
        row = self.find_service(service.name)
        if row is not None:
            self._services[row] = service
            self._notify(self.data_changed, row)

    def _on_service_removed(self, service: Service) -> None:
        row = self.find_service(service.name)
        if row is not None:
            del self._services[row]
            self._notify(self.rows_removed, row)