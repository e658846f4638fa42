"""
Amaron battery scraper pipeline.

  smart     discover combinations through the live dropdown form, then scrape each one
  direct    scrape the static catalog cross-product (no form interaction)
  discover  discovery only; write the combinations CSV
  csv       scrape the combinations listed in a combinations CSV

Usage:
  python -m amaron.scraper
  python -m amaron.scraper direct --limit 50 -o output/direct.csv
  python -m amaron.scraper discover --combinations output/combinations.csv
  python -m amaron.scraper csv --combinations output/combinations.csv --headless false
"""
import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from tqdm import tqdm

from amaron.browser import BrowserInitError, BrowserSession, PlaywrightSession
from amaron.catalog import generate_combinations, load_combinations_csv, write_combinations_csv
from amaron.config import RunSettings
from amaron.dedupe import Deduplicator
from amaron.discovery import CombinationDiscoverer
from amaron.export import CsvSink, SinkError
from amaron.extractor import FieldExtractor
from amaron.models import Combination, RunSummary
from amaron.urls import combination_url

logger = logging.getLogger("amaron")

MODES = ("smart", "direct", "discover", "csv")


class ScrapeRun:
    """
    One run of the pipeline: collect combinations, then for each one navigate, extract,
    dedupe and append to the CSV. Owns the browser session, the deduplicator and the sink
    for the run's lifetime. Per-combination errors are recorded in the summary; only browser
    or sink initialization failures end the run early.
    """

    def __init__(
        self,
        settings: RunSettings,
        mode: str = "smart",
        session_factory: Callable[[RunSettings], BrowserSession] = PlaywrightSession,
        extractor: FieldExtractor | None = None,
    ):
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r}; expected one of {', '.join(MODES)}")
        self.settings = settings
        self.mode = mode
        self.session_factory = session_factory
        self.extractor = extractor or FieldExtractor()
        self.deduplicator = Deduplicator()
        self.summary = RunSummary(mode=mode)
        self.sink: CsvSink | None = None
        self.session: BrowserSession | None = None
        self.fatal = False
        self._stop = False

    def request_stop(self, *_) -> None:
        """Signal handler: finish the in-flight combination, then stop."""
        if not self._stop:
            logger.info("SIGTERM/SIGINT received; finishing current combination and exiting.")
        self._stop = True

    # --------------- combination sources ---------------
    async def collect_combinations(self) -> list[Combination]:
        if self.mode in ("smart", "discover"):
            discoverer = CombinationDiscoverer(self.session, self.settings, should_stop=lambda: self._stop)
            combinations = await discoverer.discover()
            for message in discoverer.errors:
                self.summary.add_error(f"discovery: {message}")
        elif self.mode == "direct":
            combinations = generate_combinations()
            logger.info("Generated %d catalog combinations", len(combinations))
        else:
            path = self.settings.combinations_path
            combinations = load_combinations_csv(path)
            if not combinations:
                logger.warning("No combinations in %s. Run the discover mode first to generate it.", path)
            else:
                logger.info("Loaded %d combinations from %s", len(combinations), path)
        return combinations

    # --------------- processing ---------------
    async def _process_combination(self, combination: Combination) -> int:
        """Scrape one combination. Returns the number of rows written for it."""
        self.summary.attempted += 1
        url = combination_url(combination)
        try:
            status = await self.session.navigate(url)
            if status is not None and status >= 400:
                logger.debug("HTTP %s for %s", status, url)
                self.summary.empty += 1
                return 0
            if self.settings.page_delay:
                await asyncio.sleep(self.settings.page_delay)
            records = await self.extractor.extract(self.session, combination)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.summary.failed += 1
            self.summary.add_error(f"{combination.label()}: {e}")
            logger.warning("Failed %s: %s", combination.label(), e)
            return 0

        if not records:
            self.summary.empty += 1
            return 0
        unique = self.deduplicator.dedupe(records)
        self.summary.duplicates_dropped = self.deduplicator.duplicates

        written = 0
        for record in unique:
            try:
                await self.sink.append(record)
            except SinkError as e:
                self.summary.write_failures += 1
                logger.error("%s: %s", combination.label(), e)
                continue
            written += 1
        self.summary.records_written += written
        if written:
            self.summary.succeeded += 1
        else:
            self.summary.no_new_rows += 1
        return written

    async def process(self, combinations: list[Combination]) -> None:
        pbar = (
            tqdm(combinations, desc="Combinations", unit="combo", ncols=100)
            if self.settings.progress_bar else combinations
        )
        for i, combination in enumerate(pbar):
            if self._stop:
                self.summary.cancelled = True
                logger.info("Stopping after %d of %d combinations.", i, len(combinations))
                break
            n = await self._process_combination(combination)
            if self.settings.progress_bar:
                pbar.set_postfix_str(f"{combination.brand} {combination.model} ({n} rows, {self.summary.records_written} total)")
            if self.settings.request_delay and i < len(combinations) - 1:
                await asyncio.sleep(self.settings.request_delay)

    # --------------- run ---------------
    async def _run_discover_only(self) -> None:
        combinations = await self.collect_combinations()
        self.summary.cancelled = self._stop
        path = self.settings.combinations_path
        n = write_combinations_csv(combinations, path)
        self.summary.attempted = n
        self.summary.succeeded = n
        self.summary.output_path = str(path)
        self.summary.output_bytes = Path(path).stat().st_size
        logger.info("Exported %d combinations to %s", n, path)

    async def _run_pipeline(self, combinations: list[Combination] | None) -> None:
        self.sink = CsvSink(self.settings.output_path, max_field_length=self.settings.max_field_length)
        self.sink.initialize()
        try:
            if combinations is None:
                combinations = await self.collect_combinations()
            if self.settings.limit is not None:
                combinations = combinations[: self.settings.limit]
            logger.info("Processing %d combinations (%s mode)", len(combinations), self.mode)
            await self.process(combinations)
        finally:
            result = self.sink.finalize()
            self.summary.output_path = result["path"]
            self.summary.output_bytes = result["bytes"]

    async def run(self, combinations: list[Combination] | None = None) -> RunSummary:
        """
        Execute the run and return its summary. `combinations` bypasses the mode's own source.
        Fatal errors set `fatal` instead of propagating; the summary is logged in every case.
        """
        try:
            async with self.session_factory(self.settings) as session:
                self.session = session
                if self.mode == "discover":
                    await self._run_discover_only()
                else:
                    await self._run_pipeline(combinations)
                bandwidth = getattr(session, "bandwidth", None)
                if bandwidth:
                    logger.info(
                        "Total bandwidth: %.1f KB for %d pages", bandwidth["bytes"] / 1024, bandwidth["pages"]
                    )
        except (BrowserInitError, SinkError) as e:
            self.fatal = True
            self.summary.add_error(f"fatal: {e}")
            logger.error("Fatal: %s", e)
        finally:
            self.session = None
            if self._stop:
                self.summary.cancelled = True
            self.summary.finish()
            for line in self.summary.as_lines():
                logger.info(line)
        return self.summary


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from None
    if n <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return n


def add_run_arguments(
    ap: argparse.ArgumentParser, output: bool = True, combinations: bool = True, limit: bool = True
) -> argparse.ArgumentParser:
    """Flags shared by the scraper and the single-purpose scripts; read back by settings_from_args."""
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    if output:
        ap.add_argument("-o", "--output", help="Output CSV path (default: output/battery-data.csv)")
    ap.add_argument("--headless", type=_parse_bool, metavar="true|false", help="Run the browser headless")
    ap.add_argument("--timeout", type=_positive_int, metavar="MS", help="Navigation timeout in milliseconds")
    if combinations:
        ap.add_argument("--combinations", help="Combinations CSV read by csv mode and written by discover mode")
    if limit:
        ap.add_argument("--limit", type=_positive_int, metavar="N", help="Process at most N combinations")
    return ap


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Amaron battery specification scraper")
    ap.add_argument(
        "mode",
        choices=MODES,
        nargs="?",
        default="smart",
        help="smart: discover via the dropdown form then scrape; direct: scrape the static catalog; "
             "discover: only write the combinations CSV; csv: scrape combinations from a CSV",
    )
    return add_run_arguments(ap)


def settings_from_args(args: argparse.Namespace, base: RunSettings | None = None) -> RunSettings:
    overrides = {}
    if getattr(args, "output", None):
        overrides["output_path"] = Path(args.output)
    if getattr(args, "headless", None) is not None:
        overrides["headless"] = args.headless
    if getattr(args, "timeout", None):
        overrides["navigation_timeout_ms"] = args.timeout
    if getattr(args, "combinations", None):
        overrides["combinations_path"] = Path(args.combinations)
    if getattr(args, "limit", None):
        overrides["limit"] = args.limit
    return dataclasses.replace(base or RunSettings(), **overrides)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    settings = settings_from_args(args)

    run = ScrapeRun(settings, mode=args.mode)
    signal.signal(signal.SIGTERM, run.request_stop)
    signal.signal(signal.SIGINT, run.request_stop)

    try:
        asyncio.run(run.run())
    except Exception:
        logger.exception("Unhandled error")
        return 1
    return 1 if run.fatal else 0


if __name__ == "__main__":
    sys.exit(main())
