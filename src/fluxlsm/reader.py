"""
This module provides the FluxnetDataReader class for reading FLUXNET2015-style
half-hourly or hourly CSV files into pandas DataFrames.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from fluxlsm.exceptions import SchemaMismatch
from fluxlsm.format.gapfill import read_reanalysis
from fluxlsm.utils import logger_check


class FluxnetDataReader:
    """
    Read FLUXNET2015 CSV files, restricted to the columns that are needed.

    Parameters
    ----------
    logger : logging.Logger
        Logger to use.
    """

    _HEADER_PREFIX = "TIMESTAMP"
    NA_VALUES = ["-9999", "-9999.0", "NAN", "NaN", "nan", "NA", np.nan, -9999.0]

    def __init__(
        self,
        logger: logging.Logger = None,  # type: ignore
    ):
        self.logger = logger_check(logger)

    def read_header(self, file: Union[str, Path]) -> List[str]:
        """
        Return the column names of ``file`` without reading any data.

        Raises
        ------
        SchemaMismatch
            If the first line is not a FLUXNET header row.
        """
        file = Path(file)
        with file.open("r") as fp:
            first_line = fp.readline().strip().replace('"', "").split(",")
        if not first_line[0].startswith(self._HEADER_PREFIX):
            raise SchemaMismatch(
                f"Header line not recognized: {first_line[:3]}", file=file.name
            )
        self.logger.debug(f"Header row detected with {len(first_line)} columns")
        return first_line

    def to_dataframe(
        self,
        file: Union[str, Path],
        usecols: Optional[Sequence[str]] = None,
        dtypes: Optional[Dict[str, str]] = None,
    ) -> pd.DataFrame:
        """
        Return the parsed CSV as a pandas DataFrame.

        Parameters
        ----------
        file : str or Path
            FLUXNET CSV file.
        usecols : sequence of str, optional
            Only read these columns.
        dtypes : dict, optional
            Column read types; timestamps should be read as ``str``.
        """
        self.logger.debug(f"Reading {file}")
        return pd.read_csv(
            file,
            usecols=list(usecols) if usecols is not None else None,
            dtype=dtypes,
            na_values=self.NA_VALUES,
        )

    def read_reanalysis(
        self, file: Union[str, Path], time_frame: pd.DataFrame
    ) -> pd.DataFrame:
        """Read the reanalysis rows covering the observation period."""
        self.logger.debug(f"Reading reanalysis {file}")
        return read_reanalysis(file, time_frame)


__all__ = ["FluxnetDataReader"]
