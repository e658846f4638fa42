"""Tests for the run orchestrator and the command line."""
import csv

import pytest
from conftest import FakeSession, make_card, make_page

from amaron import export_combinations, scrape_from_csv, scraper
from amaron.browser import BrowserInitError
from amaron.catalog import write_combinations_csv
from amaron.export import SinkError
from amaron.models import CSV_HEADERS, Combination, RunSummary
from amaron.scraper import ScrapeRun, build_parser, settings_from_args
from amaron.urls import combination_url

STILE = Combination("Passengers", "ASHOK LEYLAND", "Stile", "Diesel")
CITY = Combination("Passengers", "HONDA", "City", "Petrol")
PULSAR = Combination("Two Wheelers", "BAJAJ", "Pulsar 150 (ES)", "Petrol")
SPLENDOR = Combination("Two Wheelers", "HERO", "Splendor", "Petrol")


def battery_page(code, voltage="12", ah="35"):
    return (200, make_page(make_card({"Item Code": code, "Voltage (V)": voltage, "Ref. Amphere Hour (AH)": ah})))


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def factory(session):
    return lambda _settings: session


class TestScrapeRun:
    @pytest.mark.asyncio
    async def test_same_code_written_once(self, settings):
        pages = {combination_url(STILE): battery_page("AAM-FL-555"), combination_url(CITY): battery_page("AAM-FL-555")}
        run = ScrapeRun(settings, mode="direct", session_factory=factory(FakeSession(pages=pages)))
        summary = await run.run([STILE, CITY])
        rows = read_csv(settings.output_path)
        assert rows[0] == CSV_HEADERS
        assert len(rows) == 2
        assert summary.records_written == 1
        assert summary.duplicates_dropped == 1
        assert summary.succeeded == 1
        assert summary.no_new_rows == 1
        assert "Successful (new rows written): 1" in summary.as_lines()
        assert not run.fatal

    @pytest.mark.asyncio
    async def test_failed_writes_not_counted_as_success(self, settings, monkeypatch):
        async def failing_append(self, record):
            raise SinkError(f"Failed to write row to {self.path}: [Errno 28] No space left on device")

        monkeypatch.setattr(scraper.CsvSink, "append", failing_append)
        pages = {combination_url(STILE): battery_page("A"), combination_url(CITY): battery_page("B")}
        run = ScrapeRun(settings, mode="direct", session_factory=factory(FakeSession(pages=pages)))
        summary = await run.run([STILE, CITY])
        assert summary.write_failures == 2
        assert summary.succeeded == 0
        assert summary.no_new_rows == 2
        assert summary.records_written == 0
        assert not run.fatal

    @pytest.mark.asyncio
    async def test_failures_and_empties_do_not_stop_run(self, settings):
        session = FakeSession(pages={combination_url(SPLENDOR): battery_page("AAM-PR-5")})
        session.fail_navigate[combination_url(STILE)] = RuntimeError("net::ERR_CONNECTION_RESET")
        run = ScrapeRun(settings, mode="direct", session_factory=factory(session))
        summary = await run.run([STILE, CITY, SPLENDOR])
        assert summary.attempted == 3
        assert summary.failed == 1
        assert summary.empty == 1  # CITY is a 404
        assert summary.succeeded == 1
        assert summary.records_written == 1
        assert summary.errors == [
            "Passengers / ASHOK LEYLAND / Stile / Diesel: net::ERR_CONNECTION_RESET"
        ]
        assert summary.output_path == str(settings.output_path)
        assert summary.output_bytes > 0
        assert session.closed

    @pytest.mark.asyncio
    async def test_page_without_markers_is_empty(self, settings):
        pages = {combination_url(STILE): (200, make_page(make_card({"Item Code": "X"}), text="Oops"))}
        run = ScrapeRun(settings, mode="direct", session_factory=factory(FakeSession(pages=pages)))
        summary = await run.run([STILE])
        assert summary.empty == 1
        assert summary.records_written == 0
        assert len(read_csv(settings.output_path)) == 1

    @pytest.mark.asyncio
    async def test_stop_leaves_accepted_rows(self, settings):
        pages = {
            combination_url(STILE): battery_page("A"),
            combination_url(CITY): battery_page("B"),
            combination_url(PULSAR): battery_page("C"),
        }
        session = FakeSession(pages=pages)
        run = ScrapeRun(settings, mode="direct", session_factory=factory(session))
        session.on_navigate = lambda url: run.request_stop() if url == combination_url(CITY) else None
        summary = await run.run([STILE, CITY, PULSAR])
        rows = read_csv(settings.output_path)
        assert [r[CSV_HEADERS.index("Item Code")] for r in rows[1:]] == ["A", "B"]
        assert all(len(r) == len(CSV_HEADERS) for r in rows)
        assert summary.cancelled
        assert summary.attempted == 2
        assert combination_url(PULSAR) not in session.visited

    @pytest.mark.asyncio
    async def test_smart_mode_discovers_then_scrapes(self, settings, two_by_two_form):
        pages = {combination_url(CITY): battery_page("AAM-1"), combination_url(PULSAR): battery_page("AAM-2")}
        session = FakeSession(two_by_two_form, pages=pages)
        summary = await ScrapeRun(settings, mode="smart", session_factory=factory(session)).run()
        assert summary.attempted == 4
        assert summary.records_written == 2
        assert summary.empty == 2

    @pytest.mark.asyncio
    async def test_limit(self, settings):
        settings.limit = 1
        run = ScrapeRun(settings, mode="direct", session_factory=factory(FakeSession()))
        summary = await run.run([STILE, CITY])
        assert summary.attempted == 1

    @pytest.mark.asyncio
    async def test_discover_mode_writes_combinations(self, settings, two_by_two_form):
        session = FakeSession(two_by_two_form)
        summary = await ScrapeRun(settings, mode="discover", session_factory=factory(session)).run()
        rows = read_csv(settings.combinations_path)
        assert rows[0] == ["vehicle_type", "brand", "model", "fuel_type"]
        assert rows[1:] == [list(c) for c in (STILE, CITY, PULSAR, SPLENDOR)]
        assert summary.succeeded == 4
        assert not settings.output_path.exists()

    @pytest.mark.asyncio
    async def test_csv_mode(self, settings):
        write_combinations_csv([PULSAR], settings.combinations_path)
        session = FakeSession(pages={combination_url(PULSAR): battery_page("AAM-9")})
        summary = await ScrapeRun(settings, mode="csv", session_factory=factory(session)).run()
        assert summary.records_written == 1
        assert session.visited == [combination_url(PULSAR)]

    @pytest.mark.asyncio
    async def test_browser_init_failure_is_fatal(self, settings):
        def failing(_settings):
            raise BrowserInitError("Failed to initialize browser: no chromium")

        run = ScrapeRun(settings, mode="direct", session_factory=failing)
        summary = await run.run([STILE])
        assert run.fatal
        assert summary.attempted == 0
        assert summary.errors[-1].startswith("fatal:")

    @pytest.mark.asyncio
    async def test_sink_init_failure_is_fatal(self, settings, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        settings.output_path = blocker / "out.csv"
        run = ScrapeRun(settings, mode="direct", session_factory=factory(FakeSession()))
        await run.run([STILE])
        assert run.fatal

    def test_unknown_mode(self, settings):
        with pytest.raises(ValueError):
            ScrapeRun(settings, mode="turbo")


class TestCli:
    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc:
            scraper.main(["--help"])
        assert exc.value.code == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_unknown_flag_exits_nonzero(self):
        with pytest.raises(SystemExit) as exc:
            scraper.main(["--frobnicate"])
        assert exc.value.code != 0

    @pytest.mark.parametrize("argv", [["--timeout", "0"], ["--timeout", "abc"], ["--headless", "maybe"]])
    def test_invalid_values_exit_nonzero(self, argv):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(argv)
        assert exc.value.code != 0

    def test_flags_override_settings(self, settings, tmp_path):
        args = build_parser().parse_args(
            ["direct", "-o", str(tmp_path / "x.csv"), "--headless", "false", "--timeout", "45000", "--limit", "5"]
        )
        assert args.mode == "direct"
        updated = settings_from_args(args, settings)
        assert updated.output_path == tmp_path / "x.csv"
        assert updated.headless is False
        assert updated.navigation_timeout_ms == 45000
        assert updated.limit == 5
        assert updated.landing_url == settings.landing_url
        assert settings.limit is None

    def test_main_exit_codes(self, monkeypatch):
        class FakeRun:
            fatal = False

            def __init__(self, settings, mode):
                self.mode = mode

            def request_stop(self, *_):
                pass

            async def run(self):
                return None

        monkeypatch.setattr(scraper, "ScrapeRun", FakeRun)
        monkeypatch.setattr(scraper.signal, "signal", lambda *a: None)
        assert scraper.main(["direct"]) == 0
        FakeRun.fatal = True
        assert scraper.main(["direct"]) == 1


class CapturingRun:
    """Stands in for ScrapeRun in the scripts; remembers the settings and mode it was built with."""

    instances = []
    fatal = False

    def __init__(self, settings, mode):
        self.settings = settings
        self.mode = mode
        CapturingRun.instances.append(self)

    def request_stop(self, *_):
        pass

    async def run(self):
        return RunSummary(mode=self.mode)


@pytest.fixture
def capturing_run(monkeypatch):
    CapturingRun.instances = []
    for module in (export_combinations, scrape_from_csv):
        monkeypatch.setattr(module, "ScrapeRun", CapturingRun)
        monkeypatch.setattr(module.signal, "signal", lambda *a: None)
    return CapturingRun.instances


class TestScripts:
    def test_export_combinations_shared_flags(self, capturing_run, tmp_path):
        argv = ["--combinations", str(tmp_path / "c.csv"), "--headless", "false", "--timeout", "60000"]
        assert export_combinations.main(argv) == 0
        run = capturing_run[0]
        assert run.mode == "discover"
        assert run.settings.combinations_path == tmp_path / "c.csv"
        assert run.settings.headless is False
        assert run.settings.navigation_timeout_ms == 60000

    def test_scrape_from_csv_shared_flags(self, capturing_run, tmp_path):
        argv = [str(tmp_path / "part1.csv"), "-o", str(tmp_path / "out.csv"), "--headless", "no", "--timeout", "45000"]
        assert scrape_from_csv.main(argv) == 0
        run = capturing_run[0]
        assert run.mode == "csv"
        assert run.settings.combinations_path == tmp_path / "part1.csv"
        assert run.settings.output_path == tmp_path / "out.csv"
        assert run.settings.headless is False
        assert run.settings.navigation_timeout_ms == 45000

    @pytest.mark.parametrize("module", [export_combinations, scrape_from_csv])
    @pytest.mark.parametrize("argv", [["--headless", "maybe"], ["--timeout", "0"]])
    def test_invalid_values_exit_nonzero(self, module, argv, capturing_run):
        with pytest.raises(SystemExit) as exc:
            module.main(argv)
        assert exc.value.code != 0
        assert capturing_run == []

    def test_fatal_run_exits_one(self, capturing_run, monkeypatch):
        monkeypatch.setattr(CapturingRun, "fatal", True)
        assert scrape_from_csv.main([]) == 1
