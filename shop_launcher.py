#!/usr/bin/env python3
"""Mechanic Shop Launcher: entry point for the shop terminal.

Wraps the terminal with:
- Command-line flags (database path, config file, log level, self-test)
- Logging setup
- Data directory verification
- Signal handling for graceful shutdown
- A single store connection, closed on every exit path

Run directly:
    python3 shop_launcher.py

Or through the installed script:
    mechanic-shop --db data/mechanic_shop.db
"""

import argparse
import logging
import signal
from pathlib import Path

logger = logging.getLogger("shop.launcher")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mechanic-shop",
        description="Mechanic Shop: customers, cars, service requests and bills",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database file (default: [database].path from config)",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to settings.toml (default: config/settings.toml or $SHOP_CONFIG)",
    )
    parser.add_argument(
        "--log-level", "-l",
        default=None,
        choices=["debug", "info", "warning", "error", "critical"],
        help="Logging level (default: [logging].level from config)",
    )
    parser.add_argument(
        "--self-test",
        action="store_true",
        help="Run the self-test suite and exit (status 1 if any probe fails)",
    )
    return parser


def setup_logging(level: str = "warning", log_file: str = ""):
    """Configure the root logger. Quiet by default for terminal use."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
        force=True,
    )


def ensure_data_dirs(config):
    """Create the database and bill directories if they don't exist."""
    db_path = config.database.path
    dirs = [config.bills.output_dir]
    if db_path != ":memory:":
        dirs.append(str(Path(db_path).parent))
    for d in dirs:
        Path(d).mkdir(parents=True, exist_ok=True)
    logger.info("Data directories verified")


def install_signal_handlers():
    """Turn SIGTERM into SystemExit so the store is closed on the way out."""
    def handle_signal(signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down", sig_name)
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, handle_signal)
    logger.info("Signal handler installed (SIGTERM)")


def main(argv: list[str] | None = None) -> int:
    """Parse flags, open the store, run the terminal. Returns the exit status."""
    args = build_parser().parse_args(argv)

    from core.config import get_config
    config = get_config(args.config)
    if args.db:
        config.set("database.path", args.db)
    if args.log_level:
        config.set("logging.level", args.log_level)

    setup_logging(config.logging.level, config.logging.file)
    logger.info("Mechanic Shop starting (config=%s)", config.path)

    if args.self_test:
        from shop.self_test import SelfTest, print_summary
        summary = SelfTest(config=config).run_all()
        print_summary(summary)
        return 0 if summary["failed"] == 0 else 1

    from core.record_store import RecordStore, StoreError
    try:
        ensure_data_dirs(config)
        store = RecordStore(
            db_path=config.database.path,
            foreign_keys=config.database.foreign_keys,
            timeout=config.database.timeout,
        )
    except (OSError, StoreError) as e:
        logger.critical("Cannot open the record store: %s", e)
        print(f"Cannot open the record store: {e}")
        return 1

    install_signal_handlers()

    from interfaces.cli.terminal import ShopTerminal
    try:
        ShopTerminal(store, config).run()
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
