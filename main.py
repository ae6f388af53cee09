#!/usr/bin/env python3
"""logpile: tail JSON-lines log files and normalize every event."""

import argparse
import logging
import os
import signal
import sys
import time

from watchdog.observers import Observer

from logpile.config import load_config, load_yaml_config
from logpile.hosts import HostResolver
from logpile.listener import StatsListener
from logpile.source import LogSource
from logpile.tail import FileTailSource

logger = logging.getLogger("logpile.main")

_running = True


def _signal_handler(sig, frame):
    global _running
    logger.info("Shutdown signal received, stopping...")
    _running = False


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Normalize JSON-lines log events")
    parser.add_argument(
        "--log-files", nargs="+", required=True,
        help="Paths to JSON-lines files to tail",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--host", default=None,
        help="Raw host the events came from (overrides config)",
    )
    return parser


def main(argv=None):
    args = build_cli_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [LOGPILE] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    config = load_config(load_yaml_config(args.config))
    logging.getLogger().setLevel(config.log_level)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    resolver = HostResolver(timeout=config.dns_timeout) if config.resolve_hosts else None
    source = LogSource(
        "tail",
        host=args.host or config.source_host,
        resolver=resolver,
        batch_size=config.batch_size,
        flush_interval=config.flush_interval,
    )
    stats = StatsListener("tail")
    source.add_listener(stats)

    tail = FileTailSource(args.log_files, source)
    tail.startup_read()

    observer = Observer()
    for dir_path in tail.get_watched_dirs():
        os.makedirs(dir_path, exist_ok=True)
        observer.schedule(tail, dir_path, recursive=False)
        logger.info("Watching directory: %s", dir_path)
    observer.start()

    logger.info("logpile running. Press Ctrl+C to stop.")
    try:
        while _running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass

    logger.info("Shutting down...")
    observer.stop()
    observer.join(timeout=5)
    tail.close()

    summary = stats.summary()
    logger.info("Stats: %d records, %d rejected, %d bad lines",
                summary["total"], source.rejected_count, tail.bad_lines)
    return 0


if __name__ == "__main__":
    sys.exit(main())
