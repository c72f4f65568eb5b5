from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from bto_simulator.events import Event, EventType


class EventSink(ABC):
    """
    Consumer of structured events.
    The engine must be able to run with event_sink=None (no events).
    """

    @abstractmethod
    def start_step(self) -> int: ...

    @abstractmethod
    def emit(self, event_type: EventType, tx: str | None = None, **data: Any) -> None: ...


@dataclass
class InMemoryEventSink(EventSink):
    """
    Simple sink for tests/demos.
    Owns step/seq numbering so the engine stays free of global state.
    One step corresponds to one input operation.
    """

    events: list[Event] = field(default_factory=list)
    _step: int = field(default=0, init=False)
    _seq: int = field(default=0, init=False)

    @property
    def current_step(self) -> int:
        return self._step

    def start_step(self) -> int:
        self._step += 1
        self._seq = 0
        return self._step

    def emit(self, event_type: EventType, tx: str | None = None, **data: object) -> None:
        if self._step <= 0:
            raise RuntimeError("EventSink.start_step() must be called before emitting events.")
        self._seq += 1
        self.events.append(
            Event(
                step=self._step,
                seq=self._seq,
                type=event_type,
                tx=tx,
                data=dict(data),
            )
        )

    def events_for_step(self, step: int) -> list[Event]:
        return [e for e in self.events if e.step == step]
