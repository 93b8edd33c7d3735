"""
Gap-filling of meteorological variables from a reanalysis (ERA-Interim) record.

The reanalysis CSV shares the FLUXNET time columns; the rows covering the
observation period are extracted and used to replace missing samples of any
meteorological variable whose catalog entry names a reanalysis counterpart.
Filled samples are flagged with :attr:`QCTier.REANALYSIS`.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Sequence, Union

import numpy as np
import pandas as pd

from fluxlsm.catalog import MISSING_VALUE, Category
from fluxlsm.exceptions import TimingError
from fluxlsm.format.resolver import ResolvedColumn
from fluxlsm.qaqc.quality import QCTier
from fluxlsm.utils import logger_check


def read_reanalysis(
    path: Union[str, Path],
    time_frame: pd.DataFrame,
    start_col: str = "TIMESTAMP_START",
) -> pd.DataFrame:
    """
    Read a reanalysis CSV and extract the rows matching the observations.

    Parameters
    ----------
    path : str or Path
        Reanalysis file with ``TIMESTAMP_START``/``TIMESTAMP_END`` columns.
    time_frame : pd.DataFrame
        Time columns of the observation record.
    start_col : str, optional
        Name of the start timestamp column.

    Returns
    -------
    pd.DataFrame
        Reanalysis rows aligned one-to-one with the observation rows.

    Raises
    ------
    TimingError
        If the reanalysis record does not cover the observation period.
    """
    era = pd.read_csv(
        path,
        dtype={start_col: str, "TIMESTAMP_END": str},
        na_values=["-9999", "NA", "NaN", "nan"],
    )
    obs_start = time_frame[start_col].astype(str).str.strip()
    era_start = era[start_col].astype(str).str.strip()

    first = np.flatnonzero(era_start.to_numpy() == obs_start.iloc[0])
    last = np.flatnonzero(era_start.to_numpy() == obs_start.iloc[-1])
    if len(first) == 0 or len(last) == 0:
        raise TimingError(
            f"Reanalysis file {Path(path).name} does not cover the observation "
            f"period {obs_start.iloc[0]}-{obs_start.iloc[-1]}"
        )

    era = era.iloc[first[0]: last[0] + 1].reset_index(drop=True)
    if len(era) != len(time_frame):
        raise TimingError(
            f"Reanalysis record has {len(era)} steps for {len(time_frame)} observed steps"
        )
    return era


def gapfill_with_reanalysis(
    columns: Sequence[ResolvedColumn],
    reanalysis: pd.DataFrame,
    logger: logging.Logger | None = None,
) -> List[ResolvedColumn]:
    """
    Replace missing meteorological samples with reanalysis values.

    Parameters
    ----------
    columns : sequence of ResolvedColumn
        Materialized columns.
    reanalysis : pd.DataFrame
        Output of :func:`read_reanalysis`.
    logger : logging.Logger, optional
        Logger for fill counts.

    Returns
    -------
    list[ResolvedColumn]
        New column list; filled columns carry updated values and flags, and
        their companion QC columns carry the updated flag values.
    """
    logger = logger_check(logger)
    filled: List[ResolvedColumn] = list(columns)
    new_flags: Dict[str, np.ndarray] = {}

    for i, col in enumerate(filled):
        spec = col.spec
        if spec.category is not Category.MET or spec.is_qc_flag:
            continue
        if not spec.reanalysis_name or spec.reanalysis_name not in reanalysis.columns:
            continue

        era_values = pd.to_numeric(
            reanalysis[spec.reanalysis_name], errors="coerce"
        ).to_numpy(dtype=float, copy=True)
        era_values[era_values == MISSING_VALUE] = np.nan
        gaps = np.isnan(col.values) & ~np.isnan(era_values)
        if not gaps.any():
            continue

        values = col.values.copy()
        values[gaps] = era_values[gaps]
        flags = (
            col.flags.copy()
            if col.flags is not None
            else np.full(values.shape, float(QCTier.MEASURED))
        )
        flags[gaps] = float(QCTier.REANALYSIS)
        filled[i] = replace(col, values=values, flags=flags)
        new_flags.setdefault(spec.qc_source_name, flags)
        logger.info(
            f"Gap-filled {int(gaps.sum())} steps of {spec.output_name} "
            f"from {spec.reanalysis_name}"
        )

    for i, col in enumerate(filled):
        if col.spec.is_qc_flag and col.spec.source_name in new_flags:
            filled[i] = replace(col, values=new_flags[col.spec.source_name].copy())

    return filled


__all__ = ["read_reanalysis", "gapfill_with_reanalysis"]
