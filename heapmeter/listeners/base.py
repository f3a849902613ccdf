from __future__ import annotations

from typing import Any, Callable


class MeterListener:
    """Observer of a deep measurement.

    Every hook does nothing by default; subclasses override what they need.
    Listeners only observe, they cannot change what gets measured.
    """

    def started(self, root: Any) -> None:
        pass

    def field_added(self, parent: Any, name: str, child: Any) -> None:
        pass

    def array_element_added(self, array: Any, index: int, element: Any) -> None:
        pass

    def object_measured(self, obj: Any, size: int) -> None:
        pass

    def buffer_remaining_measured(self, buffer: Any, size: int) -> None:
        pass

    def failed_to_access_field(self, obj: Any, field_name: str, field_type: type) -> None:
        pass

    def done(self, total: int) -> None:
        pass


class NoopListener(MeterListener):
    pass


NOOP_LISTENER = NoopListener()

ListenerFactory = Callable[[], MeterListener]


def noop_factory() -> MeterListener:
    return NOOP_LISTENER
