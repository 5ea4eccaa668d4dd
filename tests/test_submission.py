"""End-to-end tests of the submission engine with a fake transport."""

from loguru import logger

from mobile_analytics.core.payload import payload_size
from mobile_analytics.storage import StorageKeys


def _record(engine, make_event, *event_types, **kwargs):
    for event_type in event_types:
        engine.record(make_event(event_type, **kwargs))


def test_three_events_go_out_as_one_batch(make_engine, make_event, transport, storage):
    """Test that three small events are sent as one batch."""
    engine = make_engine()
    _record(engine, make_event, "first", "second", "third")

    submitted = engine.submit_events()

    assert len(submitted) == 1
    assert len(transport.submissions) == 1
    assert transport.event_types() == ["first", "second", "third"]
    assert engine.event_queue.is_empty()
    assert storage.get(StorageKeys.EVENTS) == []
    assert submitted[0] in engine.state.batches_in_flight
    assert isinstance(transport.submissions[0]["clientContext"], str)


def test_success_clears_batch_and_invokes_callback(make_engine, make_event, transport, storage):
    """Test success handling."""
    calls = []
    engine = make_engine(callback=lambda error, response, batch_id: calls.append((error, response, batch_id)))
    _record(engine, make_event, "a")
    [batch_id] = engine.submit_events()

    transport.succeed(response={"status": 202})
    assert engine.run_pending() == 1

    assert batch_id not in engine.batch_store
    assert batch_id not in storage.get(StorageKeys.BATCHES)
    assert batch_id not in storage.get(StorageKeys.BATCH_INDEX)
    assert engine.state.batches_in_flight == {}
    assert calls == [(None, {"status": 202}, batch_id)]


def test_terminal_errors_clear_batch(make_engine, make_event, transport, clock):
    """Test that invalid-request errors discard the batch."""
    engine = make_engine()

    for code, status in (("ValidationException", 400), ("SerializationException", None), ("BadRequestException", 400)):
        _record(engine, make_event, code)
        [batch_id] = engine.submit_events()
        transport.fail(code=code, status_code=status)
        engine.run_pending()

        logger.info(f"{code}/{status} -> pending batches {list(engine.batch_store.index())}")
        assert batch_id not in engine.batch_store.index(), f"{code} must discard the batch"
        assert batch_id not in engine.state.batches_in_flight
        clock.advance(1500)


def test_transient_error_retains_batch(make_engine, make_event, transport, storage, clock):
    """Test that transient errors keep the batch for retry."""
    errors = []
    engine = make_engine(callback=lambda error, response, batch_id: errors.append(error))
    _record(engine, make_event, "a")
    [batch_id] = engine.submit_events()

    transport.fail(code="InternalFailure", status_code=500)
    engine.run_pending()

    assert list(engine.batch_store.index()) == [batch_id]
    assert storage.get(StorageKeys.BATCH_INDEX) == [batch_id]
    assert engine.state.is_throttled is False
    assert errors[0].status_code == 500

    clock.advance(1500)
    assert engine.submit_events() == [batch_id], "retained batch must be retried on the next pass"
    assert len(transport.submissions) == 2


def test_unclassified_400_retains_batch(make_engine, make_event, transport):
    """Test that an unclassified 400 keeps the batch."""
    engine = make_engine()
    _record(engine, make_event, "a")
    [batch_id] = engine.submit_events()

    transport.fail(code="AccessDeniedException", status_code=400)
    engine.run_pending()

    assert batch_id in engine.batch_store
    assert engine.state.is_throttled is False


def test_gate_refuses_while_in_flight(make_engine, make_event, clock):
    """Test the in-flight gate."""
    engine = make_engine()
    _record(engine, make_event, "a")
    assert len(engine.submit_events()) == 1

    _record(engine, make_event, "b")
    clock.advance(5000)

    assert engine.submit_events() == []
    assert engine.event_queue.size() == 1, "refused pass must not batch events"


def test_gate_refuses_more_than_once_per_second(make_engine, make_event, transport, clock):
    """Test the once-per-second gate."""
    engine = make_engine()
    _record(engine, make_event, "a")
    engine.submit_events()
    transport.succeed()
    engine.run_pending()

    _record(engine, make_event, "b")
    clock.advance(999)
    assert engine.submit_events() == []

    clock.advance(1)
    assert len(engine.submit_events()) == 1


def test_gate_refuses_when_nothing_pending(make_engine, transport):
    """Test the empty gate."""
    engine = make_engine()

    assert engine.submit_events() == []
    assert transport.submissions == []
    assert engine.state.last_submit_timestamp is None


def test_throttling_then_recovery_flushes_backlog(make_engine, make_event, transport, clock):
    """Test throttling and backlog flush on recovery."""
    events = [make_event(f"e{i}", attributes={"payload": "z" * 100}) for i in range(2)]
    engine = make_engine(batch_size_limit=payload_size(events[:1]))
    for event in events:
        engine.event_queue.append(event)

    first, second = engine.submit_events()
    transport.fail(0, code="ThrottlingException", status_code=400)
    transport.fail(1, code="InternalFailure", status_code=503)
    engine.run_pending()

    assert engine.state.is_throttled is True
    assert list(engine.batch_store.index()) == [first, second], "throttled batches must be kept"

    clock.advance(60000)
    retried = engine.submit_events()
    assert retried == [first], "throttled pass sends only the oldest batch"
    assert len(transport.submissions) == 3

    transport.succeed(2)
    engine.run_pending()

    assert engine.state.is_throttled is False
    assert first not in engine.batch_store
    assert len(transport.submissions) == 4, "throttle recovery must flush remaining batches"
    assert transport.event_types(3) == ["e1"]
    assert second in engine.state.batches_in_flight


def test_recording_past_limit_triggers_submission(make_engine, make_event, transport):
    """Test early submission when the queue fills a batch."""
    events = [make_event(f"e{i}") for i in range(3)]
    engine = make_engine(batch_size_limit=payload_size(events))

    engine.record(events[0])
    engine.record(events[1])
    assert transport.submissions == []

    engine.record(events[2])
    assert len(transport.submissions) == 1
    assert transport.event_types() == ["e0", "e1", "e2"]


def test_stale_in_flight_batch_is_released(make_engine, make_event, transport, clock):
    """Test release of unanswered batches and late responses."""
    engine = make_engine(in_flight_timeout=120000)
    _record(engine, make_event, "a")
    [batch_id] = engine.submit_events()

    clock.advance(60000)
    assert engine.submit_events() == []

    clock.advance(60001)
    assert engine.submit_events() == [batch_id]
    assert len(transport.submissions) == 2

    # The late answer to the first attempt is still applied
    transport.succeed(0)
    engine.run_pending()
    assert batch_id not in engine.batch_store
    assert batch_id in engine.state.batches_in_flight, "the retry is still outstanding"

    clock.advance(1500)
    assert engine.submit_events() == []
    assert len(transport.submissions) == 2

    transport.succeed(1)
    engine.run_pending()
    assert engine.state.batches_in_flight == {}


def test_transport_exception_keeps_batch(make_engine, make_event, transport):
    """Test that a transport exception keeps the batch."""
    def broken_submit(payload):
        raise ConnectionError("offline")

    transport.submit = broken_submit
    errors = []
    engine = make_engine(callback=lambda error, response, batch_id: errors.append(error))
    _record(engine, make_event, "a")

    [batch_id] = engine.submit_events()
    engine.run_pending()

    assert batch_id in engine.batch_store
    assert errors[0].status_code is None and errors[0].code is None


def test_callback_errors_do_not_break_processing(make_engine, make_event, transport):
    """Test that callback errors are contained."""
    def failing_callback(error, response, batch_id):
        raise RuntimeError("boom")

    engine = make_engine(callback=failing_callback)
    _record(engine, make_event, "a")
    [batch_id] = engine.submit_events()

    transport.succeed()
    engine.run_pending()

    assert batch_id not in engine.batch_store
    assert engine.state.batches_in_flight == {}


def test_per_call_context_and_callback(make_engine, make_event, transport):
    """Test per-call client context and callback."""
    calls = []
    engine = make_engine()
    _record(engine, make_event, "a")

    engine.submit_events(client_context={"custom": {"k": "v"}}, submit_callback=lambda *args: calls.append(args))
    transport.succeed()
    engine.run_pending()

    assert transport.submissions[0]["clientContext"] == '{"custom":{"k":"v"}}'
    assert len(calls) == 1


def test_submit_batch_by_id_rejects_unknown_batch(make_engine, transport):
    """Test dispatch of unknown batch ids."""
    engine = make_engine()

    assert engine.submit_batch_by_id("missing") is None
    assert engine.submit_batch_by_id("") is None
    assert transport.submissions == []
