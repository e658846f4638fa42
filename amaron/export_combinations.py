"""
Discovery only: walk the dropdown form and export every vehicle type / brand / model / fuel type
combination to the combinations CSV. Run this alone to refresh the CSV without scraping products.

Usage:
  python -m amaron.export_combinations
  python -m amaron.export_combinations --combinations output/combinations.csv
  python -m amaron.export_combinations --headless false --timeout 60000
"""
import argparse
import asyncio
import signal
import sys

from amaron.scraper import ScrapeRun, add_run_arguments, configure_logging, logger, settings_from_args


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Export dropdown combinations to a CSV")
    return add_run_arguments(ap, output=False, limit=False)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    settings = settings_from_args(args)

    run = ScrapeRun(settings, mode="discover")
    signal.signal(signal.SIGTERM, run.request_stop)
    signal.signal(signal.SIGINT, run.request_stop)

    try:
        summary = asyncio.run(run.run())
    except Exception:
        logger.exception("Unhandled error")
        return 1
    logger.info("Done. Exported %d combinations to %s", summary.succeeded, settings.combinations_path)
    return 1 if run.fatal else 0


if __name__ == "__main__":
    sys.exit(main())
