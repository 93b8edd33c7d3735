"""
Time-step structure of a flux record.

The step size is taken from the first row's start/end timestamps, the
number of steps from the row count. The record is then partitioned into
calendar years so that quality statistics can be aggregated per whole year.
Timestamps are treated as naive local standard time; no timezone conversion
is performed.
"""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import FrozenSet, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from fluxlsm.exceptions import TimingError
from fluxlsm.utils import logger_check


TIMESTAMP_FORMAT = "%Y%m%d%H%M"
MIN_STEP_SECONDS = 300
MAX_STEP_SECONDS = 3600
MIN_STEP_COUNT = 12
MAX_STEP_COUNT = int(1e9)
SECONDS_PER_DAY = 86400


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


@dataclass(frozen=True)
class TimeGrid:
    """
    Regular time axis of one input file.

    Attributes
    ----------
    step_seconds : int
        Time step size in seconds.
    start_instant : datetime
        Start of the first time step.
    step_count : int
        Number of time steps (rows).
    days_per_year : Mapping[int, int]
        Calendar length (365 or 366) of every year touched by the record.
    steps_per_year : Mapping[int, int]
        Number of steps starting within each year.
    whole_years : frozenset of int
        Years fully covered by the record.
    """

    step_seconds: int
    start_instant: datetime
    step_count: int
    days_per_year: Mapping[int, int]
    steps_per_year: Mapping[int, int]
    whole_years: FrozenSet[int]

    @property
    def end_instant(self) -> datetime:
        return self.start_instant + timedelta(seconds=self.step_count * self.step_seconds)

    @property
    def steps_per_day(self) -> int:
        return SECONDS_PER_DAY // self.step_seconds

    @property
    def ndays(self) -> float:
        return self.step_count / self.steps_per_day

    @property
    def years(self) -> Tuple[int, ...]:
        return tuple(sorted(self.days_per_year))

    def instant(self, index: int) -> datetime:
        """Start instant of step ``index``."""
        return self.start_instant + timedelta(seconds=index * self.step_seconds)

    def year_slice(self, year: int) -> slice:
        """Row slice of the steps starting within calendar ``year``."""
        lo = int((datetime(year, 1, 1) - self.start_instant).total_seconds())
        hi = int((datetime(year + 1, 1, 1) - self.start_instant).total_seconds())
        first = min(max(_ceil_div(lo, self.step_seconds), 0), self.step_count)
        last = min(max(_ceil_div(hi, self.step_seconds), 0), self.step_count)
        return slice(first, last)

    def years_slice(self, first_year: int, last_year: int) -> slice:
        """Row slice spanning ``first_year`` to ``last_year`` inclusive."""
        return slice(self.year_slice(first_year).start, self.year_slice(last_year).stop)

    def time_units(self, offset: int = 0) -> str:
        """CF time units relative to the start of step ``offset``."""
        return self.instant(offset).strftime("seconds since %Y-%m-%d %H:%M:%S")

    def time_values(self, window: slice) -> np.ndarray:
        """Seconds elapsed since the start of ``window`` for every step in it."""
        start, stop, _ = window.indices(self.step_count)
        return np.arange(stop - start, dtype="f8") * self.step_seconds


class TimeGridDeriver:
    """
    Derive a :class:`TimeGrid` from raw start/end timestamp columns.

    Parameters
    ----------
    time_vars : sequence of str, optional
        Names of the start and end timestamp columns.
    logger : logging.Logger, optional
        Logger for timing details.
    """

    def __init__(
        self,
        time_vars: Sequence[str] = ("TIMESTAMP_START", "TIMESTAMP_END"),
        logger: logging.Logger | None = None,
    ):
        self.start_col, self.end_col = time_vars
        self.logger = logger_check(logger)

    def derive(self, time_frame: pd.DataFrame) -> TimeGrid:
        """
        Build the time grid for a record.

        Parameters
        ----------
        time_frame : pd.DataFrame
            Frame with the start and end timestamp columns (``%Y%m%d%H%M``).

        Returns
        -------
        TimeGrid

        Raises
        ------
        TimingError
            If the step count or step size is out of bounds, timestamps
            cannot be parsed, or steps are not evenly spaced.
        """
        ntsteps = len(time_frame)
        if not (MIN_STEP_COUNT <= ntsteps < MAX_STEP_COUNT):
            raise TimingError(
                f"Unable to determine number of time steps: {ntsteps} found, "
                f"at least {MIN_STEP_COUNT} required"
            )

        start = self._parse(time_frame[self.start_col])
        end = self._parse(time_frame[self.end_col])

        step = int((end.iloc[0] - start.iloc[0]).total_seconds())
        if not (MIN_STEP_SECONDS <= step <= MAX_STEP_SECONDS):
            raise TimingError(
                f"Time step size must be between {MIN_STEP_SECONDS} and "
                f"{MAX_STEP_SECONDS} seconds. Time step size {step} found in file"
            )
        if SECONDS_PER_DAY % step != 0:
            raise TimingError(f"Time step size {step} does not divide a day evenly")

        expected = pd.Timedelta(seconds=step)
        if (start.diff().iloc[1:] != expected).any() or ((end - start) != expected).any():
            raise TimingError(
                f"Time steps are not regular; expected every step to be {step} seconds"
            )

        start_instant = start.iloc[0].to_pydatetime()
        grid = self._partition(start_instant, step, ntsteps)
        self.logger.debug(
            f"Time grid: {ntsteps} steps of {step}s from {start_instant}, "
            f"whole years {sorted(grid.whole_years)}"
        )
        return grid

    def _parse(self, column: pd.Series) -> pd.Series:
        text = column.astype(str).str.strip().str.replace(r"\.0$", "", regex=True)
        parsed = pd.to_datetime(text, format=TIMESTAMP_FORMAT, errors="coerce")
        if parsed.isna().any():
            bad = text[parsed.isna()].iloc[0]
            raise TimingError(f"Could not parse timestamp '{bad}' in {column.name}")
        return parsed.reset_index(drop=True)

    @staticmethod
    def _partition(start_instant: datetime, step: int, ntsteps: int) -> TimeGrid:
        last_instant = start_instant + timedelta(seconds=(ntsteps - 1) * step)
        days_per_year = {
            year: 366 if calendar.isleap(year) else 365
            for year in range(start_instant.year, last_instant.year + 1)
        }
        partial = TimeGrid(
            step_seconds=step,
            start_instant=start_instant,
            step_count=ntsteps,
            days_per_year=MappingProxyType(days_per_year),
            steps_per_year=MappingProxyType({}),
            whole_years=frozenset(),
        )
        steps_per_year = {}
        for year in days_per_year:
            sl = partial.year_slice(year)
            steps_per_year[year] = sl.stop - sl.start

        steps_per_day = SECONDS_PER_DAY // step
        whole = frozenset(
            year
            for year, ndays in days_per_year.items()
            if steps_per_year[year] == ndays * steps_per_day
            and partial.instant(partial.year_slice(year).start) == datetime(year, 1, 1)
        )
        return TimeGrid(
            step_seconds=step,
            start_instant=start_instant,
            step_count=ntsteps,
            days_per_year=MappingProxyType(days_per_year),
            steps_per_year=MappingProxyType(steps_per_year),
            whole_years=whole,
        )


__all__ = [
    "TIMESTAMP_FORMAT",
    "MIN_STEP_SECONDS",
    "MAX_STEP_SECONDS",
    "MIN_STEP_COUNT",
    "MAX_STEP_COUNT",
    "TimeGrid",
    "TimeGridDeriver",
]
