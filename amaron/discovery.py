"""
Combination discovery through the dependent dropdown form.

The form has four levels (vehicle type -> brand -> model -> fuel type). Selecting a level
reloads the option lists of every level below it, so after each selection we wait for the
next list to settle before reading it. Fuel types are read, not iterated: every option shown
for a selected model is one leaf combination.

The form cannot reset a single nested level, so moving on to the next model (or brand, or
vehicle type) reloads the landing page and re-selects the levels above it. That backtracking
lives in `_restore()` so a cheaper reset can replace it without touching the traversal.
"""
import asyncio
import logging
from collections.abc import Callable

from tqdm import tqdm

from amaron.browser import BrowserSession
from amaron.config import LEVEL_NAMES, RunSettings
from amaron.models import Combination, DropdownOption

logger = logging.getLogger("amaron.discovery")

VEHICLE_TYPE, BRAND, MODEL, FUEL_TYPE = range(4)


class CombinationDiscoverer:
    def __init__(
        self,
        session: BrowserSession,
        settings: RunSettings,
        should_stop: Callable[[], bool] | None = None,
    ):
        self.session = session
        self.settings = settings
        self.selectors = tuple(settings.dropdown_selectors)
        self.should_stop = should_stop or (lambda: False)
        self.landing_loads = 0
        self.errors: list[str] = []
        # True while the landing page is loaded and nothing has been selected on it yet
        self._pristine = False

    # --------------- page state ---------------
    async def _load_landing(self) -> None:
        await self.session.navigate(self.settings.landing_url)
        self.landing_loads += 1
        self._pristine = True
        if self.settings.landing_delay:
            await asyncio.sleep(self.settings.landing_delay)

    async def _select(self, level: int, option: DropdownOption) -> bool:
        """Select option at level; failures are logged and reported as False."""
        self._pristine = False
        try:
            await self.session.select(self.selectors[level], option.value)
        except Exception as e:
            self._skip(f"Failed to select {LEVEL_NAMES[level]} {option.text!r}: {e}")
            return False
        return True

    async def _restore(self, *path: DropdownOption) -> list[DropdownOption] | None:
        """
        Bring the form to a state where the levels in `path` are selected and return the settled
        options of the level below. Reuses the current page while it is still pristine, otherwise
        reloads the landing page. None means the branch could not be re-established.
        """
        if not self._pristine:
            try:
                await self._load_landing()
            except Exception as e:
                self._skip(f"Failed to reload landing page: {e}")
                return None
        options: list[DropdownOption] = []
        for level, option in enumerate(path):
            if not await self._select(level, option):
                return None
            options = await self._settle(level + 1)
        return options

    async def _read_options(self, level: int) -> list[DropdownOption]:
        try:
            return await self.session.get_options(self.selectors[level])
        except Exception as e:
            logger.warning("Failed to read %s options: %s", LEVEL_NAMES[level], e)
            return []

    async def _settle(self, level: int) -> list[DropdownOption]:
        """
        Wait for the option list at `level` to finish reloading after a selection above it.
        Fixed settle delay first, then poll until two consecutive non-empty reads agree or the
        settle timeout passes. Returns the last read.
        """
        if self.settings.settle_delay:
            await asyncio.sleep(self.settings.settle_delay)
        options = await self._read_options(level)
        interval = self.settings.settle_poll_interval
        if interval <= 0:
            return options
        waited = 0.0
        while waited < self.settings.settle_timeout:
            await asyncio.sleep(interval)
            waited += interval
            again = await self._read_options(level)
            if again and again == options:
                break
            options = again
        return options

    def _skip(self, message: str) -> None:
        logger.warning("%s; skipping branch", message)
        self.errors.append(message)

    # --------------- traversal ---------------
    async def discover(self) -> list[Combination]:
        """Depth-first traversal; returns leaf combinations in discovery order."""
        combinations: list[Combination] = []
        self.errors = []
        await self._load_landing()
        vehicle_types = await self._read_options(VEHICLE_TYPE)
        if not vehicle_types:
            self._skip("No vehicle types found on landing page")
            return combinations
        logger.info("Found %d vehicle types", len(vehicle_types))

        iterator = (
            tqdm(vehicle_types, desc="Discovering", unit="type", ncols=100)
            if self.settings.progress_bar else vehicle_types
        )
        for vehicle_type in iterator:
            if self.should_stop():
                break
            combinations.extend(await self._discover_vehicle_type(vehicle_type))
            if self.settings.progress_bar:
                iterator.set_postfix_str(f"{vehicle_type.text} ({len(combinations)} combinations)")

        logger.info(
            "Discovery finished: %d combinations, %d landing loads, %d skipped branches",
            len(combinations), self.landing_loads, len(self.errors),
        )
        return combinations

    async def _discover_vehicle_type(self, vehicle_type: DropdownOption) -> list[Combination]:
        out: list[Combination] = []
        brands = await self._restore(vehicle_type)
        if brands is None:
            return out
        if not brands:
            self._skip(f"No brands for {vehicle_type.text!r}")
            return out
        logger.info("  %s: %d brands", vehicle_type.text, len(brands))
        for i, brand in enumerate(brands):
            if self.should_stop():
                break
            # The first brand is picked on the page the brand list was just read from.
            if i > 0 and await self._restore(vehicle_type) is None:
                continue
            if not await self._select(BRAND, brand):
                continue
            models = await self._settle(MODEL)
            if not models:
                self._skip(f"No models for {vehicle_type.text!r} / {brand.text!r}")
                continue
            out.extend(await self._discover_models(vehicle_type, brand, models))
        return out

    async def _discover_models(
        self,
        vehicle_type: DropdownOption,
        brand: DropdownOption,
        models: list[DropdownOption],
    ) -> list[Combination]:
        out: list[Combination] = []
        logger.debug("    %s: %d models", brand.text, len(models))
        for i, model in enumerate(models):
            if self.should_stop():
                break
            if i > 0 and await self._restore(vehicle_type, brand) is None:
                continue
            if not await self._select(MODEL, model):
                continue
            fuel_types = await self._settle(FUEL_TYPE)
            if not fuel_types:
                self._skip(f"No fuel types for {vehicle_type.text!r} / {brand.text!r} / {model.text!r}")
                continue
            logger.debug("      %s: fuel types %s", model.text, ", ".join(f.text for f in fuel_types))
            out.extend(
                Combination(vehicle_type.text, brand.text, model.text, fuel.text) for fuel in fuel_types
            )
        return out
