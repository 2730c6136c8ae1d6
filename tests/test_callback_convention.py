import pytest

from op_instrument import ExecutionContext, InvocationContext, instrument


class Mailer:
    name = "mailer"
    version = "4.0.1"

    def __init__(self) -> None:
        self.received = []

    def send(self, recipient, body, callback, context=None):
        self.received.append((recipient, body, context))
        if recipient == "bounce@example.com":
            return callback(ValueError("boom"))
        return callback(None, f"queued:{recipient}", 202)

    def send_twice(self, recipient, callback, context):
        callback(None, "first")
        callback(None, "second")

    def explode(self, recipient, callback, context):
        raise KeyError(recipient)


def _collect():
    calls = []

    def callback(error, *result):
        calls.append((error, result))

    return calls, callback


def test_success_relays_result_and_emits_telemetry(logs, metrics, parent_span):
    mailer = Mailer()
    send = instrument(mailer, "send", logs=logs, metrics=metrics)
    calls, callback = _collect()
    context = InvocationContext(
        args=("ada@example.com", "hi"),
        args_to_log=("<redacted>", "hi"),
        metadata={"provenance": {"request": "r-1"}, "service": "api"},
        parent_span=parent_span,
        tenant_id="dGVuYW50",
    )

    assert send(context, callback) is None

    assert calls == [(None, ("queued:ada@example.com", 202))]
    assert logs.messages == [("info", "attempting send")]
    attempt = logs.events[0]
    assert attempt.details == {"target": {"args": ["<redacted>", "hi"]}}
    assert attempt.metadata == {
        "provenance": {"request": "r-1"},
        "service": "api",
        "target": {"method": "send", "module": "mailer", "version": "4.0.1"},
    }

    [(name, gauge)] = metrics.gauges
    assert name == "latency"
    assert gauge["unit"] == "ms"
    assert gauge["value"] >= 0
    assert gauge["metadata"] == attempt.metadata
    assert gauge["metadata"] is not attempt.metadata

    [child] = parent_span.children
    assert child.name == "send"
    assert child.metadata == {"module": "mailer", "version": "4.0.1"}
    assert child.calls == [("finish",)]


def test_execution_context_carries_child_span_provenance_and_tenant(parent_span):
    mailer = Mailer()
    send = instrument(mailer, "send", warn_without_sinks=False)
    context = InvocationContext(
        args=("ada@example.com", "hi"),
        metadata={"provenance": {"request": "r-1"}},
        parent_span=parent_span,
        tenant_id="dGVuYW50",
    )

    send(context, lambda error, *result: None)

    [(_, _, execution)] = mailer.received
    assert execution == ExecutionContext(
        parent_span=parent_span.children[0],
        provenance={"request": "r-1"},
        tenant_id="dGVuYW50",
    )


def test_execution_context_without_tracing_has_no_span():
    mailer = Mailer()
    send = instrument(mailer, "send", warn_without_sinks=False)

    send(InvocationContext(args=("ada@example.com", "hi")), lambda error, *result: None)

    [(_, _, execution)] = mailer.received
    assert execution == ExecutionContext(parent_span=None, provenance=None, tenant_id=None)


def test_suppressed_context_is_not_passed():
    mailer = Mailer()
    send = instrument(mailer, "send", suppress_context=True, warn_without_sinks=False)

    send(InvocationContext(args=("ada@example.com", "hi")), lambda error, *result: None)

    assert mailer.received == [("ada@example.com", "hi", None)]


def test_callback_error_tags_span_logs_stack_and_relays_same_error(logs, metrics, parent_span):
    send = instrument(Mailer(), "send", logs=logs, metrics=metrics)
    calls, callback = _collect()
    context = InvocationContext(
        args=("bounce@example.com", "hi"),
        args_to_log=("<redacted>",),
        parent_span=parent_span,
    )

    send(context, callback)

    [(error, result)] = calls
    assert isinstance(error, ValueError)
    assert str(error) == "boom"
    assert result == ()

    assert logs.messages == [("info", "attempting send"), ("error", "send failed")]
    failure = logs.events[1]
    assert failure.details["error"] is error
    assert failure.details["target"] == {"args": ["<redacted>"]}
    assert "ValueError: boom" in failure.details["stack"]

    assert len(metrics.gauges) == 1
    assert parent_span.children[0].calls == [("tag", "error", True), ("finish",)]


def test_error_trace_tag_false_finishes_without_tag_but_still_logs(logs, parent_span):
    send = instrument(Mailer(), "send", logs=logs)
    context = InvocationContext(
        args=("bounce@example.com", "hi"),
        parent_span=parent_span,
        error_trace_tag=False,
    )

    send(context, lambda error, *result: None)

    assert parent_span.children[0].calls == [("finish",)]
    assert logs.messages[-1] == ("error", "send failed")


def test_custom_error_level_is_used(logs):
    send = instrument(Mailer(), "send", logs=logs)

    send(
        InvocationContext(args=("bounce@example.com", "hi"), error_level="warn"),
        lambda error, *result: None,
    )

    assert logs.messages[-1] == ("warn", "send failed")


def test_synchronous_raise_is_delivered_through_callback(logs, metrics, parent_span):
    explode = instrument(Mailer(), "explode", logs=logs, metrics=metrics)
    calls, callback = _collect()

    explode(InvocationContext(args=("x",), parent_span=parent_span), callback)

    [(error, result)] = calls
    assert isinstance(error, KeyError)
    assert logs.messages[-1] == ("error", "explode failed")
    assert len(metrics.gauges) == 1
    assert parent_span.children[0].calls == [("tag", "error", True), ("finish",)]


def test_repeated_completion_is_ignored(metrics, parent_span, caplog):
    send_twice = instrument(Mailer(), "send_twice", metrics=metrics)
    calls, callback = _collect()

    send_twice(InvocationContext(args=("x",), parent_span=parent_span), callback)

    assert calls == [(None, ("first",))]
    assert len(metrics.gauges) == 1
    assert parent_span.children[0].calls == [("finish",)]
    assert "completed more than once" in caplog.text


def test_exception_from_callers_callback_propagates_once(metrics):
    send = instrument(Mailer(), "send", metrics=metrics)
    seen = []

    def callback(error, *result):
        seen.append(error)
        raise RuntimeError("caller bug")

    with pytest.raises(RuntimeError, match="caller bug"):
        send(InvocationContext(args=("ada@example.com", "hi")), callback)

    assert seen == [None]
    assert len(metrics.gauges) == 1


def test_callback_is_required():
    send = instrument(Mailer(), "send", warn_without_sinks=False)

    with pytest.raises(TypeError, match="callback"):
        send(InvocationContext(args=("ada@example.com", "hi")))


def test_tracing_failure_does_not_change_outcome(span_factory, logs):
    parent = span_factory(fail_on="finish")
    send = instrument(Mailer(), "send", logs=logs)
    calls, callback = _collect()

    send(InvocationContext(args=("ada@example.com", "hi"), parent_span=parent), callback)

    assert calls == [(None, ("queued:ada@example.com", 202))]
    assert parent.children[0].calls == [("finish",)]


def test_metrics_sink_failure_propagates_but_span_is_finished(parent_span):
    class BrokenMetrics:
        def gauge(self, name, data):
            raise RuntimeError("metrics down")

    send = instrument(Mailer(), "send", metrics=BrokenMetrics())

    with pytest.raises(RuntimeError, match="metrics down"):
        send(
            InvocationContext(args=("ada@example.com", "hi"), parent_span=parent_span),
            lambda error, *result: None,
        )

    assert parent_span.children[0].calls == [("finish",)]


def test_caller_metadata_is_not_mutated(logs):
    metadata = {"target": {"x": 1}, "a": 1}
    send = instrument(Mailer(), "send", logs=logs)

    send(
        InvocationContext(args=("ada@example.com", "hi"), metadata=metadata, target_metadata={"y": 2}),
        lambda error, *result: None,
    )

    assert metadata == {"target": {"x": 1}, "a": 1}
    assert logs.events[0].metadata["target"] == {"method": "send", "x": 1, "y": 2}
