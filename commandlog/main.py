#!/usr/bin/env python3
"""
Command-line tool for inspecting and writing a command topic.

Usage:
    # Append a command
    commandlog --data-dir ./data append STREAM/orders/CREATE "CREATE STREAM orders ..."

    # Append a tombstone
    commandlog --data-dir ./data delete STREAM/orders/CREATE

    # Replay history, then follow new commands
    commandlog --data-dir ./data replay
    commandlog --data-dir ./data tail

    # Show consumer position and end offset
    commandlog --data-dir ./data offsets

Results are written to stdout as JSON lines; logs go to stderr.
"""

import argparse
import json
import signal
import sys
from typing import Any, Dict, List, Optional

from commandlog.command_topic import CommandTopic
from commandlog.computation.command import TOMBSTONE, Command, CommandId, Tombstone
from commandlog.errors import CommandLogError, CommandTopicClosedError, WakeupError
from commandlog.utils.config import Config
from commandlog.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="commandlog",
        description="Append, tail and replay commands on a command topic",
    )

    parser.add_argument('--config', type=str, help='YAML configuration file')
    parser.add_argument('--data-dir', type=str, help='Log data directory (overrides config)')
    parser.add_argument('--topic', type=str, help='Command topic name (overrides config)')
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (overrides config)',
    )
    parser.add_argument(
        '--log-format',
        type=str,
        choices=['json', 'console'],
        help='Log output format (overrides config)',
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    append = subparsers.add_parser('append', help='Append a command')
    append.add_argument('command_id', help='Command id as TYPE/entity/ACTION')
    append.add_argument('statement', help='Statement text')
    append.add_argument(
        '--property',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='Overwrite property to attach (repeatable)',
    )

    delete = subparsers.add_parser('delete', help='Append a tombstone for a command id')
    delete.add_argument('command_id', help='Command id as TYPE/entity/ACTION')

    tail = subparsers.add_parser('tail', help='Print new commands as they arrive')
    tail.add_argument(
        '--max-polls',
        type=int,
        default=None,
        help='Stop after this many polls (default: run until interrupted)',
    )

    subparsers.add_parser('replay', help='Print every command from the beginning')
    subparsers.add_parser('offsets', help='Print consumer position and end offset')

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply command-line overrides."""
    config = Config(args.config)

    if args.data_dir:
        config.set("consumer.data_dir", args.data_dir)
        config.set("producer.data_dir", args.data_dir)
    if args.topic:
        config.set("command_topic.name", args.topic)
    if args.log_level:
        config.set("logging.level", args.log_level)
    if args.log_format:
        config.set("logging.format", args.log_format)

    return config


def _parse_properties(pairs: List[str]) -> Dict[str, str]:
    properties = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid property, expected KEY=VALUE: {pair}")
        properties[key] = value
    return properties


def _emit(document: Dict[str, Any]) -> None:
    print(json.dumps(document, sort_keys=True), flush=True)


def _value_document(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, Tombstone):
        return None
    return value.to_dict()


def run(args: argparse.Namespace, config: Config) -> int:
    """Execute one subcommand against the configured command topic."""
    poll_timeout_ms = int(config.get("command_topic.poll_timeout_ms", 1000))

    command_topic = CommandTopic.create(
        config.get("command_topic.name"),
        config.consumer_properties(),
        config.producer_properties(),
    )

    def handle_signal(signum, frame):
        logger.info("Received signal, closing command topic", signal=signum)
        command_topic.close()

    previous_handlers = {
        sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        if args.command == 'append':
            command = Command(
                statement=args.statement,
                overwrite_properties=_parse_properties(args.property),
            )
            metadata = command_topic.send(CommandId.from_string(args.command_id), command)
            _emit({"offset": metadata.offset, "partition": metadata.partition, "topic": metadata.topic})

        elif args.command == 'delete':
            metadata = command_topic.send(CommandId.from_string(args.command_id), TOMBSTONE)
            _emit({"offset": metadata.offset, "partition": metadata.partition, "topic": metadata.topic})

        elif args.command == 'replay':
            for queued in command_topic.get_restore_commands(poll_timeout_ms):
                _emit({
                    "command_id": str(queued.command_id),
                    "command": queued.command.to_dict(),
                })

        elif args.command == 'tail':
            polls = 0
            while not command_topic.closed and (args.max_polls is None or polls < args.max_polls):
                try:
                    records = command_topic.get_new_commands(poll_timeout_ms)
                except (WakeupError, CommandTopicClosedError):
                    break
                for record in records:
                    _emit({
                        "offset": record.offset,
                        "command_id": str(record.key),
                        "command": _value_document(record.value),
                    })
                polls += 1

        elif args.command == 'offsets':
            _emit({
                "position": command_topic.get_consumer_position(),
                "end_offset": command_topic.get_end_offset(),
                "caught_up": command_topic.is_caught_up(),
            })

    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
        command_topic.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = build_config(args)

    configure_logging(
        log_level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "json"),
        log_output=config.get("logging.output", "stderr"),
    )

    try:
        return run(args, config)
    except (CommandLogError, ValueError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
