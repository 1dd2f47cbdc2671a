from atlas_assistant.infrastructure.observability.logging import MetricsCollector


def test_rates_are_zero_without_requests() -> None:
    rates = MetricsCollector().chat_rates()

    assert rates == {
        "truncation_rate": 0.0,
        "continuation_rate": 0.0,
        "error_rate": 0.0,
        "empty_completion_rate": 0.0,
    }


def test_summary_combines_counters_gauges_latencies_and_rates() -> None:
    metrics = MetricsCollector()
    metrics.increment_counter("chat.requests", 4)
    metrics.increment_counter("chat.truncations")
    metrics.increment_counter("chat.continuations", 2)
    metrics.set_gauge("catalog.actions", 12)
    metrics.record_latency("completion", 10.0)
    metrics.record_latency("completion", 30.0)

    summary = metrics.get_metrics_summary()

    assert summary["chat.requests"] == 4
    assert summary["catalog.actions"] == 12
    assert summary["latency.completion"] == {"count": 2, "avg": 20.0, "min": 10.0, "max": 30.0}
    assert summary["chat.rates"]["truncation_rate"] == 0.25
    assert summary["chat.rates"]["continuation_rate"] == 0.5
    assert summary["chat.rates"]["error_rate"] == 0.0
