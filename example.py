"""Example: pattern-matched pub-sub with guards, bounded counts and flush (no broker)."""

import logging

from patsub import (
    WILDCARD,
    Hub,
    Mailbox,
    ReceiveTimeout,
    Record,
    guarded,
    lit,
    tagged,
    var,
)

logging.basicConfig(level=logging.INFO)


def main() -> None:
    hub = Hub()
    inbox = Mailbox("consumer-1")

    # Only users older than 42
    seniors = hub.subscribe(
        "users",
        guarded(tagged("User", age=var("age"), name=WILDCARD), lambda age: age > 42),
        inbox,
    )
    # First greeting only
    hub.subscribe("chat", [lit("hello"), lit("goodbye")], inbox, count=1, multi=True)

    hub.publish("users", Record("User", age=48, name="John"))
    hub.publish("users", Record("User", age=10, name="Tim"))
    hub.publish("chat", "goodbye")
    hub.publish("chat", "hello")

    print(inbox.receive(timeout=1))  # Record('User', age=48, name='John')
    print(inbox.receive(timeout=1))  # 'goodbye'

    hub.publish("users", Record("User", age=70, name="Ada"))
    flushed = hub.unsubscribe_and_flush(seniors)
    print(f"flushed {flushed} queued message(s)")
    try:
        inbox.receive(timeout=0.1)
    except ReceiveTimeout:
        print("mailbox empty")


if __name__ == "__main__":
    main()
