#!/usr/bin/env python3
"""
Demo of the command topic: append, replay and tail.

Two command topics share one data directory, the way two nodes of a cluster
share one command log. Node A writes, node B rebuilds its state and follows.
"""

import tempfile
import threading
import time

from commandlog import TOMBSTONE, Command, CommandId, CommandTopic
from commandlog.broker.service import close_all_services
from commandlog.errors import CommandTopicClosedError, WakeupError


def main():
    print("=" * 60)
    print("commandlog - Command Topic Demo")
    print("=" * 60)

    data_dir = tempfile.mkdtemp(prefix="commandlog-demo-")
    props = {"data_dir": data_dir}

    print(f"\n[1] Opening node A on {data_dir}...")
    node_a = CommandTopic.create("_command_topic", props, props)

    print("\n[2] Appending commands...")
    commands = [
        ("STREAM/orders/CREATE", Command("CREATE STREAM orders (id INT) WITH (kafka_topic='orders');")),
        ("TABLE/totals/CREATE", Command("CREATE TABLE totals AS SELECT id, COUNT(*) FROM orders GROUP BY id;")),
        ("STREAM/orders/EXECUTE", Command("INSERT INTO orders VALUES (1);", {"auto.offset.reset": "earliest"})),
    ]
    for command_id, command in commands:
        metadata = node_a.send(CommandId.from_string(command_id), command)
        print(f"  ✅ {command_id} -> offset {metadata.offset}")

    metadata = node_a.send(CommandId.from_string("TABLE/totals/DROP"), TOMBSTONE)
    print(f"  ✅ TABLE/totals/DROP (tombstone) -> offset {metadata.offset}")

    print("\n[3] Node B replays history...")
    node_b = CommandTopic.create("_command_topic", props, props)
    for queued in node_b.get_restore_commands(timeout_ms=200):
        print(f"  {queued.command_id}: {queued.command.statement}")
    print(f"  position={node_b.get_consumer_position()} end={node_b.get_end_offset()}")

    print("\n[4] Node B tails while node A appends...")

    def follow():
        try:
            while not node_b.closed:
                for record in node_b.get_new_commands(timeout_ms=5000):
                    print(f"  📨 offset={record.offset} {record.key}: {record.value}")
        except (WakeupError, CommandTopicClosedError):
            print("  Tail interrupted by close")

    follower = threading.Thread(target=follow)
    follower.start()

    node_a.send(
        CommandId.from_string("STREAM/payments/CREATE"),
        Command("CREATE STREAM payments (id INT) WITH (kafka_topic='payments');"),
    )
    time.sleep(0.5)

    print("\n[5] Closing...")
    node_b.close()
    follower.join()
    node_a.close()
    close_all_services()

    print("✅ Done")


if __name__ == '__main__':
    main()
