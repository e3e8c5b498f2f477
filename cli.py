import argparse
import sys
from pathlib import Path

from collector import build_collector
from config import RESUME_INTERVAL_HOURS
from utils.errors import ConfigurationError, ScanError
from utils.log import logger

EXIT_COMPLETE = 0
EXIT_FAILED = 1
EXIT_PAUSED = 2


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="buyer-scan",
        description="Collect the unique addresses that called buy() on a contract",
    )
    parser.add_argument("contract", help="contract address")
    parser.add_argument("--backend", choices=["json", "sqlite"], help="checkpoint storage")
    parser.add_argument("--strict", action="store_true", help="fail instead of stopping when retries run out")
    parser.add_argument("--dump-raw", action="store_true", help="write every raw page to data/<contract>/")
    parser.add_argument("--max-batches", type=int, help="stop after this many batches")
    parser.add_argument("--export", type=Path, help="write the addresses to this file, one per line")
    parser.add_argument("--reset", action="store_true", help="drop saved progress and start from block 0")
    parser.add_argument(
        "--watch",
        nargs="?",
        type=float,
        const=RESUME_INTERVAL_HOURS,
        metavar="HOURS",
        help="keep resuming a paused scan every HOURS",
    )
    return parser.parse_args(argv)


def export_addresses(path: Path, addresses) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(addresses) + ("\n" if addresses else ""), encoding="utf-8")
    logger.info(f"Exported {len(addresses)} addresses to {path}")


def report(result, export=None) -> int:
    if export:
        export_addresses(export, result.buyer_addresses)

    if result.is_complete:
        print(f"Collection complete! Found {len(result.buyer_addresses)} unique buyers")
        return EXIT_COMPLETE

    print(
        f"Scan paused with {len(result.buyer_addresses)} unique buyers. "
        f"Run again later to resume from page {result.next_page}"
    )
    return EXIT_PAUSED


def watch(collector, args) -> int:
    from scheduler import start

    results = []
    try:
        start(args.contract, hours=args.watch, blocking=True, collector=collector, on_result=results.append)
    except KeyboardInterrupt:
        logger.info("Watch interrupted")

    if not results or results[-1] is None:
        print("Scan failed, see the log for details", file=sys.stderr)
        return EXIT_FAILED
    return report(results[-1], args.export)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        collector = build_collector(
            backend=args.backend,
            strict=args.strict or None,
            dump_raw=args.dump_raw,
            max_batches=args.max_batches,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILED

    try:
        if args.reset:
            removed = collector.store.delete(args.contract)
            logger.info(f"Removed {removed} saved checkpoint(s) for {args.contract}")

        if args.watch is not None:
            return watch(collector, args)

        result = collector.collect(args.contract)
    except ScanError as e:
        print(f"Scan failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    return report(result, args.export)


if __name__ == "__main__":
    sys.exit(main())
