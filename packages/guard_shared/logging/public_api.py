"""Composable instrumentation for public API methods.

``public_api_instrumented`` wraps sync or ``async`` service methods and fans
invocation/completion events out to concern hooks (logging, and OpenTelemetry
tracing/metrics when ``opentelemetry`` is importable). Result objects exposing
``ok`` and ``errors`` (such as ``Envelope``) are summarized automatically.
"""

from __future__ import annotations

import inspect
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from . import fields
from .context import log_context


@dataclass(frozen=True)
class InvocationContext:
    """Structured metadata describing one public API invocation."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Structured metadata describing one completed public API invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook contract for one public API instrumentation concern."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle invocation-start event for one method call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle completion event for one method call."""


class PublicApiLoggingConcern:
    """Logging concern implementation for invocation/completion events."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        """Emit standardized structured invocation-start log."""
        with log_context(_invocation_log_context(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        """Emit standardized structured completion log."""
        payload = _invocation_log_context(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class _CounterLike(Protocol):
    def add(self, amount: int | float, attributes: Mapping[str, str]) -> None:
        """Record one counter increment with attributes."""


class _HistogramLike(Protocol):
    def record(self, amount: float, attributes: Mapping[str, str]) -> None:
        """Record one sample with attributes."""


class _SpanLike(Protocol):
    def set_attribute(self, key: str, value: object) -> None:
        """Attach one attribute to a span."""

    def record_exception(self, exception: Exception) -> None:
        """Record one exception on a span."""

    def set_status(self, status: object) -> None:
        """Set the status of a span."""


class _SpanContextManagerLike(Protocol):
    def __enter__(self) -> _SpanLike:
        """Enter and return the active span."""

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        """Exit and close the active span."""


class _TracerLike(Protocol):
    def start_as_current_span(self, name: str) -> _SpanContextManagerLike:
        """Start one span and return a context manager."""


@dataclass(frozen=True)
class _TraceScope:
    manager: _SpanContextManagerLike
    span: _SpanLike


class PublicApiTracingConcern:
    """Tracing concern that opens one span per public API invocation."""

    def __init__(self, *, tracer: _TracerLike) -> None:
        self._tracer = tracer
        self._active_scopes: ContextVar[tuple[_TraceScope, ...]] = ContextVar(
            "guard_public_api_tracing_scopes", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        """Start one span for the current invocation and attach metadata."""
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        span.set_attribute(fields.COMPONENT_ID, context.component_id)
        span.set_attribute(fields.API_NAME, context.api_name)
        if context.trace_id is not None:
            span.set_attribute(fields.TRACE_ID, context.trace_id)
        for key, value in context.references.items():
            span.set_attribute(f"reference.{key}", value)
        self._active_scopes.set(
            (*self._active_scopes.get(), _TraceScope(manager=manager, span=span))
        )

    def on_completion(self, context: CompletionContext) -> None:
        """Finalize the innermost open span with completion metadata."""
        current = self._active_scopes.get()
        if not current:
            return
        scope = current[-1]
        self._active_scopes.set(current[:-1])

        scope.span.set_attribute(fields.SUCCESS, context.success)
        scope.span.set_attribute(fields.DURATION_MS, context.duration_ms)
        scope.span.set_attribute("errors.count", len(context.errors))
        if not context.success:
            _set_span_error_status(scope.span)
            if context.errors:
                scope.span.record_exception(RuntimeError("; ".join(context.errors[:3])))
        scope.manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Metrics concern emitting call counts, latency, and error categories."""

    def __init__(
        self,
        *,
        public_api_calls_total: _CounterLike,
        public_api_duration_ms: _HistogramLike,
        public_api_errors_total: _CounterLike,
    ) -> None:
        self._calls_total = public_api_calls_total
        self._duration_ms = public_api_duration_ms
        self._errors_total = public_api_errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        """No-op at invocation; metrics are emitted on completion."""
        del context

    def on_completion(self, context: CompletionContext) -> None:
        """Emit counters/histograms for one completed invocation."""
        attrs = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
            fields.OUTCOME: "success" if context.success else "failure",
        }
        self._calls_total.add(1, attributes=attrs)
        self._duration_ms.record(context.duration_ms, attributes=attrs)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: context.invocation.component_id,
                    fields.API_NAME: context.invocation.api_name,
                    fields.ERROR_CATEGORY: category,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate one sync or async public API method with instrumentation."""
    resolved: tuple[PublicApiInstrumentationConcern, ...] = tuple(concerns or ())
    for default in (
        _default_public_api_tracing_concern(),
        _default_public_api_metrics_concern(),
    ):
        if default is not None:
            resolved = (*resolved, default)
    if logger is not None:
        resolved = (PublicApiLoggingConcern(logger=logger), *resolved)
    if not resolved:
        raise ValueError("public_api_instrumented requires at least one concern")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        def begin(kwargs: Mapping[str, Any]) -> tuple[InvocationContext, float]:
            meta = kwargs.get("meta")
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                trace_id=_attr_or_none(meta, "trace_id"),
                envelope_id=_attr_or_none(meta, "envelope_id"),
                principal=_attr_or_none(meta, "principal"),
                references={
                    name: _reference_text(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _dispatch(resolved, "on_invocation", invocation, invocation, logger)
            return invocation, perf_counter()

        def finish(
            invocation: InvocationContext,
            started: float,
            *,
            result: object = None,
            exc: Exception | None = None,
        ) -> None:
            if exc is not None:
                success, errors, categories = (
                    False,
                    [f"{type(exc).__name__}: {exc}"],
                    ["internal"],
                )
            else:
                success, errors = _result_summary(result)
                categories = _result_error_categories(result)
            completion = CompletionContext(
                invocation=invocation,
                success=success,
                duration_ms=round((perf_counter() - started) * 1000.0, 3),
                errors=errors,
                error_categories=categories,
            )
            _dispatch(resolved, "on_completion", completion, invocation, logger)

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                invocation, started = begin(kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    finish(invocation, started, exc=exc)
                    raise
                finish(invocation, started, result=result)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            invocation, started = begin(kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                finish(invocation, started, exc=exc)
                raise
            finish(invocation, started, result=result)
            return result

        return wrapper

    return decorator


def _attr_or_none(obj: object | None, name: str) -> str | None:
    """Return string attribute value from object when present."""
    value = getattr(obj, name, None) if obj is not None else None
    if value in (None, ""):
        return None
    return str(value)


def _result_summary(result: object) -> tuple[bool, list[str]]:
    """Infer success and one-line error summaries from a result value."""
    errors = _sanitize_errors(getattr(result, "errors", []))
    ok_value = getattr(result, "ok", None)
    if isinstance(ok_value, bool):
        return ok_value, errors
    return not errors, errors


def _result_error_categories(result: object) -> list[str]:
    """Infer normalized error categories from a result-like object."""
    errors_obj = getattr(result, "errors", [])
    if not isinstance(errors_obj, list):
        return []
    categories: list[str] = []
    for item in errors_obj:
        raw = getattr(item, "category", None)
        category = getattr(raw, "value", raw)
        if category not in (None, ""):
            categories.append(str(category))
    return categories


def _sanitize_errors(errors: object) -> list[str]:
    """Return safe one-line error summaries for logs."""
    if not isinstance(errors, list):
        return []
    summaries: list[str] = []
    for item in errors:
        code = getattr(item, "code", None)
        message = getattr(item, "message", None)
        if message in (None, ""):
            continue
        summaries.append(str(message) if code in (None, "") else f"{code}: {message}")
    return summaries


def _invocation_log_context(context: InvocationContext) -> dict[str, object]:
    """Build common structured fields for one invocation event."""
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


def _dispatch(
    concerns: Sequence[PublicApiInstrumentationConcern],
    hook: str,
    context: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    """Call one hook on every concern, isolating concern failures."""
    for concern in concerns:
        try:
            getattr(concern, hook)(context)
        except Exception as exc:  # noqa: BLE001
            _log_concern_failure(
                logger=logger,
                stage=hook.removeprefix("on_"),
                concern=type(concern).__name__,
                exc=exc,
                invocation=invocation,
            )


def _log_concern_failure(
    *,
    logger: Any | None,
    stage: str,
    concern: str,
    exc: Exception,
    invocation: InvocationContext,
) -> None:
    """Best-effort warning log for instrumentation concern hook failures."""
    if logger is None:
        return
    with log_context(
        {
            fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
            fields.COMPONENT_ID: invocation.component_id,
            fields.API_NAME: invocation.api_name,
            fields.STAGE: stage,
            fields.CONCERN: concern,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        logger.warning("Public API instrumentation concern failed")
    instruments = _default_otel_instruments()
    if instruments is not None:
        instruments.instrumentation_failures_total.add(
            1,
            attributes={
                fields.COMPONENT_ID: invocation.component_id,
                fields.API_NAME: invocation.api_name,
                fields.STAGE: stage,
                fields.CONCERN: concern,
            },
        )


def _set_span_error_status(span: _SpanLike) -> None:
    """Best-effort OTel error status update when tracing API is available."""
    try:
        from opentelemetry.trace.status import Status, StatusCode
    except ImportError:
        return
    span.set_status(Status(StatusCode.ERROR))


@dataclass(frozen=True)
class _OtelInstruments:
    public_api_calls_total: _CounterLike
    public_api_duration_ms: _HistogramLike
    public_api_errors_total: _CounterLike
    instrumentation_failures_total: _CounterLike


@lru_cache(maxsize=1)
def _otel_names() -> Any:
    """Resolve configured OTel names from root settings."""
    from packages.guard_shared.config import load_settings

    return load_settings().observability.public_api.otel


@lru_cache(maxsize=1)
def _default_public_api_tracing_concern() -> PublicApiTracingConcern | None:
    """Build a default OTel-backed tracing concern when available."""
    try:
        from opentelemetry import trace as otel_trace
    except ImportError:
        return None
    return PublicApiTracingConcern(tracer=otel_trace.get_tracer(_otel_names().tracer_name))


@lru_cache(maxsize=1)
def _default_public_api_metrics_concern() -> PublicApiMetricsConcern | None:
    """Build a default OTel-backed metrics concern when available."""
    instruments = _default_otel_instruments()
    if instruments is None:
        return None
    return PublicApiMetricsConcern(
        public_api_calls_total=instruments.public_api_calls_total,
        public_api_duration_ms=instruments.public_api_duration_ms,
        public_api_errors_total=instruments.public_api_errors_total,
    )


@lru_cache(maxsize=1)
def _default_otel_instruments() -> _OtelInstruments | None:
    """Create OTel metric instruments when opentelemetry is installed."""
    try:
        from opentelemetry import metrics as otel_metrics
    except ImportError:
        return None

    names = _otel_names()
    meter = otel_metrics.get_meter(names.meter_name)
    return _OtelInstruments(
        public_api_calls_total=meter.create_counter(
            name=names.metric_public_api_calls_total,
            description="Count of public API invocations by component/method/outcome.",
            unit="1",
        ),
        public_api_duration_ms=meter.create_histogram(
            name=names.metric_public_api_duration_ms,
            description="Public API invocation latency in milliseconds.",
            unit="ms",
        ),
        public_api_errors_total=meter.create_counter(
            name=names.metric_public_api_errors_total,
            description="Count of public API failures by error category.",
            unit="1",
        ),
        instrumentation_failures_total=meter.create_counter(
            name=names.metric_instrumentation_failures_total,
            description="Count of instrumentation concern failures.",
            unit="1",
        ),
    )


def _reference_text(value: object) -> str:
    """Render one referenced id argument, using the value of enum members."""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
