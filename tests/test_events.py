from cxslack.events import DomainEvent, EventBus, ServerEvent, ServerStarted, TurnStarted


def test_subscribers_receive_matching_events_in_order() -> None:
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe(TurnStarted, lambda event: seen.append(f"first:{event.turn_id}"))
    bus.subscribe(DomainEvent, lambda event: seen.append(f"all:{type(event).__name__}"))
    bus.subscribe(ServerEvent, lambda event: seen.append("server"))

    bus.publish(TurnStarted(thread_id="t", turn_id="1"))
    bus.publish(ServerStarted(pid=1))

    assert seen == ["first:1", "all:TurnStarted", "all:ServerStarted", "server"]


def test_unsubscribe_stops_delivery() -> None:
    bus = EventBus()
    seen: list[DomainEvent] = []
    unsubscribe = bus.subscribe(TurnStarted, seen.append)
    unsubscribe()
    unsubscribe()
    bus.publish(TurnStarted(thread_id="t", turn_id="1"))
    assert seen == []


def test_failing_handler_does_not_block_others() -> None:
    bus = EventBus()
    seen: list[DomainEvent] = []

    def _boom(event: DomainEvent) -> None:
        raise RuntimeError("handler bug")

    bus.subscribe(TurnStarted, _boom)
    bus.subscribe(TurnStarted, seen.append)
    event = TurnStarted(thread_id="t", turn_id="1")
    bus.publish(event)
    assert seen == [event]
