"""Unit tests for the in-process event publisher"""

from payment_proxy.infrastructure.observability.events import EVENTS, EventPublisher


def test_publish_delivers_payload_with_timestamp():
    events = EventPublisher()
    received = []
    events.subscribe(EVENTS.TRANSACTION_CREATED, received.append)

    events.publish(EVENTS.TRANSACTION_CREATED, {"source": "api", "transaction_id": "txn_1"})

    assert received[0]["transaction_id"] == "txn_1"
    assert "timestamp" in received[0]


def test_publish_only_reaches_matching_listeners():
    events = EventPublisher()
    received = []
    events.subscribe(EVENTS.RISK_ASSESSED, received.append)

    events.publish(EVENTS.PAYMENT_PROCESSED, {"source": "test"})

    assert received == []


def test_failing_listener_does_not_stop_others():
    events = EventPublisher()
    received = []

    def broken(data):
        raise RuntimeError("boom")

    events.subscribe(EVENTS.LLM_CALL_FAILED, broken)
    events.subscribe(EVENTS.LLM_CALL_FAILED, received.append)

    events.publish(EVENTS.LLM_CALL_FAILED, {"source": "test"})

    assert len(received) == 1


def test_publish_without_listeners_is_a_no_op():
    EventPublisher().publish(EVENTS.CIRCUIT_BREAKER_OPENED, {"name": "LLMService"})
