"""
Dataset session: owns the currently applied facts and view state and handles
dataset switches with last-requested-wins semantics.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import pandas as pd

from psdash.config import get_settings
from psdash.data import DatasetEntry, parse_dataset_text, read_dataset_text
from psdash.errors import DatasetError, LoadFailed
from psdash.filters import (
    BranchSelection,
    DashboardFilters,
    DateWindow,
    RangeSelection,
    normalize_branch_selection,
    toggle_region,
)
from psdash.view import DatasetView, hydrate

logger = logging.getLogger(__name__)

Reader = Callable[[DatasetEntry], Any]


class DatasetSession:
    """Current dataset + filter state for one dashboard user."""

    def __init__(self, reader: Optional[Reader] = None, data_dir: Optional[Path] = None) -> None:
        self.entry: Optional[DatasetEntry] = None
        self.facts: Optional[pd.DataFrame] = None
        self.view: Optional[DatasetView] = None
        self.error: str = ""
        self.metric: str = "value"
        self.range_selection = RangeSelection()
        self._data_dir = Path(data_dir) if data_dir is not None else None
        self._reader = reader or self._read_file
        self._generation = 0
        self._pending: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _read_file(self, entry: DatasetEntry) -> str:
        root = self._data_dir if self._data_dir is not None else get_settings().data_dir
        return read_dataset_text(root / entry.file)

    async def _fetch(self, entry: DatasetEntry) -> pd.DataFrame:
        try:
            if inspect.iscoroutinefunction(self._reader):
                text = await self._reader(entry)
            else:
                text = await asyncio.to_thread(self._reader, entry)
        except DatasetError:
            raise
        except Exception as exc:
            raise LoadFailed(f"Failed to load {entry.file}: {exc}") from exc
        return parse_dataset_text(text)

    def apply(self, facts: pd.DataFrame, entry: Optional[DatasetEntry] = None) -> DatasetView:
        """Replace the facts wholesale and rebuild the view, keeping a touched range."""
        previous = self.view
        view = hydrate(
            facts,
            self.range_selection,
            previous_categories=previous.selected_categories if previous else (),
            previous_branches=previous.selected_branches if previous else None,
            default_category=entry.default_category if entry else None,
        )
        self.facts = facts
        self.entry = entry
        self.view = view
        self.error = ""
        logger.info("Applied %s: %d facts", entry.id if entry else "upload", len(facts))
        return view

    def _fail(self, exc: DatasetError) -> None:
        # Previous facts and view stay authoritative.
        self.error = str(exc)
        logger.warning("Dataset load failed: %s", exc)

    def _supersede(self) -> int:
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        return self._generation

    def load_text(self, text: str, entry: Optional[DatasetEntry] = None) -> bool:
        """Apply an uploaded CSV synchronously. Returns False (and sets `error`) on failure."""
        self._supersede()
        try:
            facts = parse_dataset_text(text)
        except DatasetError as exc:
            self._fail(exc)
            return False
        self.apply(facts, entry)
        return True

    async def switch(self, entry: DatasetEntry) -> bool:
        """Load `entry`, cancelling any pending load.

        Returns True when this request's facts were applied. A request
        superseded by a newer one returns False and changes nothing.
        """
        generation = self._supersede()
        task = asyncio.ensure_future(self._fetch(entry))
        self._pending = task
        try:
            facts = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("Load of %s superseded", entry.id)
                return False
            raise
        except DatasetError as exc:
            if generation != self._generation:
                return False
            self._fail(exc)
            return False
        finally:
            if self._pending is task:
                self._pending = None
        if generation != self._generation:
            logger.debug("Dropping stale result for %s", entry.id)
            return False
        self.apply(facts, entry)
        return True

    # ------------------------------------------------------------------
    # Filter state
    # ------------------------------------------------------------------

    def set_range(self, window: DateWindow, selection: RangeSelection) -> None:
        if self.view is None:
            return
        self.view = replace(self.view, window=window)
        self.range_selection = selection

    def auto_fit(self, window: Optional[DateWindow]) -> None:
        """Adopt a fitted window without marking the range as user-picked."""
        if self.view is not None and window is not None and not self.range_selection.touched:
            self.view = replace(self.view, window=window)

    def select_categories(self, categories: Iterable[str]) -> None:
        if self.view is None:
            return
        picked = [c for c in categories if c in self.view.categories]
        self.view = replace(self.view, selected_categories=picked)

    def toggle_category(self, category: str) -> None:
        if self.view is None:
            return
        current = list(self.view.selected_categories)
        if category in current:
            current.remove(category)
        else:
            current.append(category)
        self.select_categories(current)

    def select_branches(self, branches: Optional[Iterable[object]]) -> None:
        if self.view is None:
            return
        self.view = replace(self.view, selected_branches=normalize_branch_selection(branches))

    def toggle_region(self, region_branches: Iterable[str]) -> BranchSelection:
        if self.view is None:
            return normalize_branch_selection(None)
        selection = toggle_region(self.view.selected_branches, list(region_branches))
        self.view = replace(self.view, selected_branches=selection)
        return selection

    def filters(self) -> DashboardFilters:
        view = self.view
        return DashboardFilters(
            dataset=self.entry.id if self.entry else None,
            metric=self.metric,
            selected_categories=list(view.selected_categories) if view else [],
            selected_branches=view.selected_branches if view else normalize_branch_selection(None),
            window=view.window if view else DateWindow(),
            range_selection=self.range_selection,
        )
