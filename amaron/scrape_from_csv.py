"""
Scrape only: load a combinations CSV and scrape each combination's battery page into the output CSV.
Run this after export_combinations (or use an existing CSV). You can split the list into several
CSVs and run one scraper per file, each with its own --output.

Usage:
  python -m amaron.scrape_from_csv
  python -m amaron.scrape_from_csv combinations1.csv -o output/part1.csv
  python -m amaron.scrape_from_csv combinations2.csv -o output/part2.csv --headless false
"""
import argparse
import asyncio
import signal
import sys

from amaron.scraper import ScrapeRun, add_run_arguments, configure_logging, logger, settings_from_args


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Scrape battery data for combinations listed in a CSV")
    ap.add_argument(
        "combinations",
        nargs="?",
        default=None,
        metavar="csv_file",
        help="Combinations CSV. Default: output/combinations.csv",
    )
    return add_run_arguments(ap, combinations=False)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    settings = settings_from_args(args)

    run = ScrapeRun(settings, mode="csv")
    signal.signal(signal.SIGTERM, run.request_stop)
    signal.signal(signal.SIGINT, run.request_stop)

    try:
        summary = asyncio.run(run.run())
    except Exception:
        logger.exception("Unhandled error")
        return 1
    logger.info("Done. Saved %d records to %s", summary.records_written, settings.output_path)
    return 1 if run.fatal else 0


if __name__ == "__main__":
    sys.exit(main())
