"""
Write :class:`OutputSchema` objects to NetCDF4 files.

Each file is written to a temporary sibling and moved into place only after
the dataset has been closed successfully, so a failed write never leaves a
partial output file behind.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Union

import numpy as np
from netCDF4 import Dataset

from fluxlsm.catalog import MISSING_VALUE
from fluxlsm.exceptions import EncodingError
from fluxlsm.report.schema import OutputSchema
from fluxlsm.utils import logger_check


_TMP_SUFFIX = ".tmp"


class FileEmitter:
    """
    NetCDF4 writer for output schemas.

    Parameters
    ----------
    fmt : str, optional
        netCDF4 file format. Defaults to ``"NETCDF4"``.
    logger : logging.Logger, optional
        Logger for written files.
    """

    def __init__(self, fmt: str = "NETCDF4", logger: logging.Logger | None = None):
        self.fmt = fmt
        self.logger = logger_check(logger)

    def write(self, schema: OutputSchema, path: Union[str, Path]) -> Path:
        """
        Write one schema to ``path``.

        Raises
        ------
        EncodingError
            If the file could not be written; no file is left at ``path``.
        """
        return self.write_many({path: schema})[0]

    def write_many(self, outputs: Mapping[Union[str, Path], OutputSchema]) -> List[Path]:
        """
        Write several schemas, all or nothing.

        Every file is first written to a temporary sibling. Only when all of
        them succeed are they moved into place.

        Parameters
        ----------
        outputs : mapping of path to OutputSchema
            Destination files and their contents.

        Returns
        -------
        list[Path]
            The written files.

        Raises
        ------
        EncodingError
            If any file could not be written. All temporaries are removed.
        """
        staged: Dict[Path, Path] = {}
        moved: List[Path] = []
        current = None
        try:
            for path, schema in outputs.items():
                path = Path(path)
                current = path
                tmp = path.with_name(path.name + _TMP_SUFFIX)
                staged[path] = tmp
                schema.validate()
                self._write_dataset(schema, tmp)
            for path, tmp in staged.items():
                current = path
                os.replace(tmp, path)
                moved.append(path)
        except Exception as e:
            for path in moved:
                path.unlink(missing_ok=True)
            for tmp in staged.values():
                tmp.unlink(missing_ok=True)
            raise EncodingError(
                f"Failed to write NetCDF output: {e}", file=str(current)
            ) from e

        for path in staged:
            self.logger.info(f"Wrote {path}")
        return list(staged)

    def _write_dataset(self, schema: OutputSchema, path: Path) -> None:
        nc = Dataset(str(path), "w", format=self.fmt)
        try:
            for dim, size in schema.dimensions.items():
                nc.createDimension(dim, size)

            for var in schema.variables:
                if var.dtype == "str":
                    ncvar = nc.createVariable(var.name, str, var.dimensions)
                    ncvar[:] = np.asarray(var.data, dtype=object)
                else:
                    ncvar = nc.createVariable(
                        var.name,
                        var.dtype,
                        var.dimensions,
                        fill_value=var.fill_value,
                    )
                    data = np.asarray(var.data, dtype=var.dtype)
                    if var.fill_value is not None:
                        data = np.where(np.isnan(data), MISSING_VALUE, data)
                    ncvar[:] = data
                for key, value in var.attributes.items():
                    ncvar.setncattr(key, value)

            for key, value in schema.global_attributes.items():
                nc.setncattr(key, value)
        finally:
            nc.close()


__all__ = ["FileEmitter"]
