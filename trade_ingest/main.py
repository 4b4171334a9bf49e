"""
Main entry point for the trade ingester

Polls the configured venue for new trades on every listing until stopped.
Cursors are re-derived from the stored trade history on every start, so a
restart resumes where the last run's saved trades end.

Usage:
    # Run until Ctrl-C
    python -m trade_ingest.main
    
    # Run for ten minutes
    python -m trade_ingest.main --duration=600
    
    # Recreate the database with the default listings, then run
    python -m trade_ingest.main --reset-db
    
    # Show stored trade counts and cursors
    python -m trade_ingest.main --status
"""

import argparse
import sys
import threading
from pathlib import Path
from typing import List, Optional

from trade_ingest.config import Config, get_config, load_config, set_config
from trade_ingest.coordination import IngestionCoordinator
from trade_ingest.cursors import recover_cursor
from trade_ingest.persistence import ListingRepository, PersistenceStore, TradeRepository
from trade_ingest.schema import InitMode, default_seed
from trade_ingest.utils.exceptions import ConfigError, TradeIngestError
from trade_ingest.utils.logging_config import close_file_logging, get_logger, setup_file_logging

logger = get_logger("main")


def reset_database(config: Config, store: PersistenceStore) -> int:
    """
    Drop and recreate the database, seeding the default listings plus every
    configured listing.
    
    Returns:
        Number of seed rows written
    """
    seed = default_seed()
    venue = config.venue.name
    listings = ListingRepository(store)
    for base, quote in config.venue.listings:
        seed.add(listings.find_or_create(venue, base, quote, mode=InitMode.SEEDING))
    return store.reset_database(seed)


def print_status(config: Config, store: PersistenceStore) -> None:
    """Print per-listing trade counts and recovered cursors."""
    store.init_schema()
    listings = ListingRepository(store)
    trades = TradeRepository(store, batch_size=config.database.query_batch_size)
    
    print(f"\n=== Trade Ingest Status ({config.venue.name}) ===")
    print(f"Database: {store.db_path}")
    print()
    
    found = listings.find_by_venue(config.venue.name)
    if not found:
        print("  (no listings)")
    for listing in found:
        cursor = recover_cursor(trades, listing)
        print(f"{listing}:")
        print(f"  Trades: {trades.count(listing)}")
        print(f"  Last Trade Time: {cursor.last_trade_time or '(none)'}")
        print(f"  Last Trade Id: {cursor.last_trade_id or '(none)'}")
    print()


def run_ingest(config: Config, duration: Optional[float] = None, stop_event: Optional[threading.Event] = None) -> dict:
    """
    Run the ingestion loop.
    
    Args:
        config: Configuration
        duration: Seconds to run, None for until interrupted
        stop_event: External stop signal
    
    Returns:
        Dict with run statistics
    """
    coordinator = IngestionCoordinator(config=config)
    return coordinator.run(duration=duration, stop_event=stop_event)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Trade Ingest - poll a market venue for new trades",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run until Ctrl-C
    python -m trade_ingest.main
    
    # Run for ten minutes with file logging
    python -m trade_ingest.main --duration=600 --log-file
    
    # Show stored trade counts and cursors
    python -m trade_ingest.main --status
        """
    )
    
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (default: bundled config)"
    )
    
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to run before stopping (default: until interrupted)"
    )
    
    parser.add_argument(
        "--reset-db",
        action="store_true",
        help="Drop and recreate the database with default listings before running"
    )
    
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show stored trade counts and cursors and exit"
    )
    
    parser.add_argument(
        "--log-file",
        action="store_true",
        help="Enable file logging to logs/trade_ingest.log"
    )
    
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI argument parsing."""
    args = build_parser().parse_args(argv)
    
    if not args.log_file:
        return run_cli(args)
    
    log_file = setup_file_logging()
    logger.info(f"Logging to {log_file}")
    try:
        return run_cli(args)
    finally:
        close_file_logging()


def run_cli(args: argparse.Namespace) -> int:
    """Run the command selected by parsed CLI arguments. Returns the exit code."""
    try:
        config = load_config(args.config) if args.config else get_config()
    except TradeIngestError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    set_config(config)
    
    store = PersistenceStore(Path(config.database.path))
    
    try:
        if args.reset_db:
            count = reset_database(config, store)
            print(f"Database reset with {count} listings")
        
        if args.status:
            print_status(config, store)
            return 0
        
        logger.info(
            f"Starting trade ingest: venue={config.venue.name}, "
            f"listings={len(config.venue.listings)}, duration={args.duration}"
        )
        
        stop_event = threading.Event()
        try:
            stats = run_ingest(config, duration=args.duration, stop_event=stop_event)
        except KeyboardInterrupt:
            stop_event.set()
            print("\n\nInterrupted by user. Stored trades will resume the next run.")
            return 130
        
        print("\n=== Ingest Stopped ===")
        for key, value in stats.items():
            if key == "tasks":
                print("\nListings:")
                for task_stats in value:
                    print(f"  {task_stats['listing']}: {task_stats}")
            else:
                print(f"  {key}: {value}")
        return 0
    
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    
    except TradeIngestError as e:
        logger.exception(f"Trade ingest failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
