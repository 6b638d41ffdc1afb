"""
Study Registration Tracer

Spans around API operations. Finished spans are kept in a bounded buffer
and, when STUDYREG_DEBUG is on, appended to traces/<tracer name>.jsonl
beside the session database.
"""

import json
import time
import uuid
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from studyreg.config import get_settings

MAX_KEPT_SPANS = 1000

# Innermost open span of the current request (async-safe)
_active_span: ContextVar["Span | None"] = ContextVar("studyreg_active_span", default=None)


class SpanStatus(str, Enum):
    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass
class Span:
    """One timed operation; parent_id links a span to the one it ran inside."""

    name: str
    trace_id: str
    span_id: str = field(default_factory=_new_id)
    parent_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    status: SpanStatus = SpanStatus.UNSET
    status_message: str | None = None
    started_at: float = field(default_factory=time.time)
    duration_ms: float | None = None
    _clock: float = field(default_factory=time.perf_counter, repr=False)

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def finish(self, status: SpanStatus, message: str | None = None) -> None:
        """Stop the clock. Later calls are ignored."""
        if self.duration_ms is not None:
            return
        self.duration_ms = (time.perf_counter() - self._clock) * 1000
        if self.status is SpanStatus.UNSET:
            self.status = status
            self.status_message = message

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        del data["_clock"]
        data["status"] = self.status.value
        return data


class Tracer:
    """
    Named source of spans. All spans from one tracer share its trace_id.

    Usage:
        tracer = get_tracer("studyreg.api")

        with tracer.span("results", {"session_id": sid}) as span:
            result = estimate(criteria)
            span.set_attribute("matched", result.matched)
    """

    def __init__(self, name: str, export_path: Path | None = None) -> None:
        self.name = name
        self.trace_id = _new_id()
        self.export_path = export_path
        self._finished: deque[Span] = deque(maxlen=MAX_KEPT_SPANS)

    @contextmanager
    def span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[Span]:
        """Time the block. An exception marks the span ERROR and propagates."""
        parent = _active_span.get()
        span = Span(
            name=f"{self.name}.{name}",
            trace_id=self.trace_id,
            parent_id=parent.span_id if parent else None,
            attributes=dict(attributes or {}),
        )
        token = _active_span.set(span)
        try:
            yield span
        except Exception as e:
            span.finish(SpanStatus.ERROR, str(e))
            raise
        else:
            span.finish(SpanStatus.OK)
        finally:
            _active_span.reset(token)
            span.finish(SpanStatus.UNSET)
            self._finished.append(span)
            if self.export_path is not None:
                self._write(span)

    def _write(self, span: Span) -> None:
        self.export_path.mkdir(parents=True, exist_ok=True)
        with open(self.export_path / f"{self.name}.jsonl", "a", encoding="utf-8") as f:
            f.write(json.dumps(span.to_dict(), default=str) + "\n")

    def finished_spans(self) -> list[Span]:
        """Finished spans, oldest first."""
        return list(self._finished)


_tracers: dict[str, Tracer] = {}


def get_tracer(name: str) -> Tracer:
    """Tracer registered under `name`, created on first use."""
    tracer = _tracers.get(name)
    if tracer is None:
        settings = get_settings()
        export_path = None
        if settings.features.debug:
            export_path = settings.sessions.db_path.parent / "traces"
        tracer = _tracers[name] = Tracer(name, export_path)
    return tracer


def reset_tracers() -> None:
    _tracers.clear()
