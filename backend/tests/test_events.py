from classgrid.services.events import EventPublisher


def test_handlers_receive_payloads():
    publisher = EventPublisher()
    received = []
    publisher.subscribe("room.changed", lambda name, payload: received.append((name, payload)))

    publisher.publish("room.changed", {"room": "R2"})
    publisher.publish("conflict.detected", {"room": "R1"})

    assert received == [("room.changed", {"room": "R2"})]


def test_failing_handler_does_not_stop_the_others(caplog):
    publisher = EventPublisher()
    received = []

    def broken(name, payload):
        raise RuntimeError("messaging down")

    publisher.subscribe("room.changed", broken)
    publisher.subscribe("room.changed", lambda name, payload: received.append(payload))

    publisher.publish("room.changed", {"room": "R2"})

    assert received == [{"room": "R2"}]
    assert "Event handler for room.changed failed" in caplog.text


def test_unsubscribe_and_clear():
    publisher = EventPublisher()
    received = []

    def handler(name, payload):
        received.append(payload)

    publisher.subscribe("timetable.published", handler)
    publisher.unsubscribe("timetable.published", handler)
    publisher.publish("timetable.published", {})
    publisher.subscribe("timetable.published", handler)
    publisher.clear()
    publisher.publish("timetable.published", {})

    assert received == []
