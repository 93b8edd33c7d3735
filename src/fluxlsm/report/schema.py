"""
Assemble the in-memory description of an output NetCDF file.

:class:`SchemaBuilder` turns resolved, assessed columns into an
:class:`OutputSchema`: dimensions, variables with their converted data and
attributes, and global attributes. Building is pure; the production
timestamp and software revision are passed in through :class:`RunInfo`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from fluxlsm.catalog import MISSING_VALUE, Category, SiteMetadata
from fluxlsm.exceptions import SchemaMismatch
from fluxlsm.format.resolver import ResolvedColumn
from fluxlsm.format.timegrid import TimeGrid
from fluxlsm.format.units import (
    CONTEXT_AIR_PRESSURE_PA,
    CONTEXT_AIR_TEMPERATURE_K,
    convert_units,
)
from fluxlsm.qaqc.quality import QualityAssessment, Thresholds, qc_flag_descriptions
from fluxlsm.utils import logger_check


SERIES_DIMS: Tuple[str, ...] = ("time", "z", "y", "x")
SCALAR_DIMS: Tuple[str, ...] = ("y", "x")

# time is unlimited
DIMENSIONS: Mapping[str, Optional[int]] = MappingProxyType(
    {"x": 1, "y": 1, "z": 1, "time": None}
)

FILE_LABELS = {Category.MET: "Met", Category.EVAL: "Flux"}

_TEMPERATURE_STANDARD_NAME = "air_temperature"
_PRESSURE_STANDARD_NAME = "surface_air_pressure"


@dataclass(frozen=True)
class SchemaVariable:
    """One variable of an output file, data included."""

    name: str
    dimensions: Tuple[str, ...]
    dtype: str
    data: np.ndarray = field(repr=False)
    fill_value: Optional[float] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def units(self) -> Optional[str]:
        return self.attributes.get("units")

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(np.shape(self.data))


@dataclass(frozen=True)
class OutputSchema:
    """
    Complete description of one output file.

    Attributes
    ----------
    dimensions : Mapping[str, int | None]
        Dimension sizes; None marks the unlimited ``time`` dimension.
    variables : tuple of SchemaVariable
        Variables in file order.
    global_attributes : Mapping[str, Any]
        File-level attributes.
    category : Category, optional
        Category of the series variables, or None for a combined file.
    """

    dimensions: Mapping[str, Optional[int]]
    variables: Tuple[SchemaVariable, ...]
    global_attributes: Mapping[str, Any]
    category: Optional[Category] = None

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(v.name for v in self.variables)

    @property
    def label(self) -> str:
        return FILE_LABELS.get(self.category, "All")

    def variable(self, name: str) -> SchemaVariable:
        for var in self.variables:
            if var.name == name:
                return var
        raise KeyError(name)

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def validate(self) -> None:
        """
        Check the schema is consistent before it is written.

        Raises
        ------
        SchemaMismatch
            On duplicate variable names, undeclared dimensions or data whose
            shape does not match the variable's dimensions.
        """
        names = self.names
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise SchemaMismatch(f"Duplicate variable names in output: {dupes}")

        ntime = len(self.variable("time").data) if "time" in self else None
        for var in self.variables:
            undeclared = [d for d in var.dimensions if d not in self.dimensions]
            if undeclared:
                raise SchemaMismatch(
                    f"Undeclared dimensions {undeclared}", variable=var.name
                )
            expected = tuple(
                ntime if self.dimensions[d] is None else self.dimensions[d]
                for d in var.dimensions
            )
            if var.shape != expected:
                raise SchemaMismatch(
                    f"Data shape {var.shape} does not match dimensions "
                    f"{var.dimensions} {expected}",
                    variable=var.name,
                )


@dataclass(frozen=True)
class RunInfo:
    """Provenance of one conversion run."""

    input_file: str
    thresholds: Thresholds
    production_time: str
    software_revision: str = "unknown"
    reanalysis_gapfill: bool = False
    package_contact: Optional[str] = None
    pals_contact: Optional[str] = None


class SchemaBuilder:
    """
    Build :class:`OutputSchema` objects from assessed columns.

    Parameters
    ----------
    logger : logging.Logger, optional
        Logger for conversion details.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger_check(logger)

    def build(
        self,
        columns: Sequence[ResolvedColumn],
        assessment: QualityAssessment,
        grid: TimeGrid,
        site: SiteMetadata,
        run: RunInfo,
        category: Optional[Category] = None,
    ) -> OutputSchema:
        """
        Assemble the schema of one output file.

        Parameters
        ----------
        columns : sequence of ResolvedColumn
            All materialized columns; those excluded by the assessment are
            skipped, but still supply context for humidity conversion.
        assessment : QualityAssessment
            Quality statistics and the evaluated window.
        grid : TimeGrid
            Time grid of the input file.
        site : SiteMetadata
            Site information for scalar variables and global attributes.
        run : RunInfo
            Provenance written to global attributes.
        category : Category, optional
            Only include series variables of this category.

        Returns
        -------
        OutputSchema

        Raises
        ------
        SchemaMismatch
            If a unit conversion is unknown or the result is inconsistent.
        """
        window = assessment.window
        context = self._conversion_context(columns, grid.step_seconds, window)

        variables: List[SchemaVariable] = [self._time_variable(grid, window)]
        for col in columns:
            if col.name in assessment.excluded:
                continue
            if category is not None and col.spec.category is not category:
                continue
            variables.append(
                self._series_variable(col, assessment, grid.step_seconds, window, context, run)
            )
        variables.extend(self._site_variables(site, category))

        schema = OutputSchema(
            dimensions=DIMENSIONS,
            variables=tuple(variables),
            global_attributes=MappingProxyType(self._global_attributes(site, run)),
            category=category,
        )
        schema.validate()
        self.logger.debug(
            f"Built {schema.label} schema with {len(schema.variables)} variables"
        )
        return schema

    @staticmethod
    def _time_variable(grid: TimeGrid, window: slice) -> SchemaVariable:
        start = window.indices(grid.step_count)[0]
        return SchemaVariable(
            name="time",
            dimensions=("time",),
            dtype="f8",
            data=grid.time_values(window),
            attributes={
                "units": grid.time_units(start),
                "standard_name": "time",
                "long_name": "Time",
                "calendar": "standard",
            },
        )

    def _series_variable(
        self,
        col: ResolvedColumn,
        assessment: QualityAssessment,
        step_seconds: int,
        window: slice,
        context: Mapping[str, np.ndarray],
        run: RunInfo,
    ) -> SchemaVariable:
        spec = col.spec
        values, units = convert_units(
            col.values[window],
            spec.unit_source,
            spec.unit_target,
            step_seconds,
            context=context,
            variable=spec.output_name,
            logger=self.logger,
        )

        attrs: Dict[str, Any] = {"units": units, "long_name": spec.long_name}
        if spec.standard_name:
            attrs["Standard_name"] = spec.standard_name
        attrs["Fluxnet_name"] = spec.source_name

        report = assessment.reports.get(col.name)
        if report is not None:
            attrs["Missing_%"] = round(report.missing_pct, 1)
            attrs["Gap-filled_%"] = round(report.total_gapfilled_pct, 1)
            if report.excluded_by_policy:
                attrs["QC_status"] = f"excluded: {report.reason}"

        if run.reanalysis_gapfill and spec.reanalysis_name and spec.category is Category.MET:
            attrs["ERA-Interim variable used in gapfilling"] = spec.reanalysis_name

        return SchemaVariable(
            name=spec.output_name,
            dimensions=SERIES_DIMS,
            dtype="f8",
            data=values.reshape(-1, 1, 1, 1),
            fill_value=float(MISSING_VALUE),
            attributes=attrs,
        )

    def _conversion_context(
        self, columns: Sequence[ResolvedColumn], step_seconds: int, window: slice
    ) -> Dict[str, np.ndarray]:
        """Air temperature (K) and pressure (Pa) for humidity conversion."""
        context: Dict[str, np.ndarray] = {}
        targets = (
            (_TEMPERATURE_STANDARD_NAME, "K", CONTEXT_AIR_TEMPERATURE_K),
            (_PRESSURE_STANDARD_NAME, "Pa", CONTEXT_AIR_PRESSURE_PA),
        )
        for standard_name, unit, key in targets:
            col = next(
                (c for c in columns if c.spec.standard_name == standard_name and not c.spec.is_qc_flag),
                None,
            )
            if col is None:
                continue
            context[key], _ = convert_units(
                col.values[window],
                col.spec.unit_source,
                unit,
                step_seconds,
                variable=col.name,
            )
        return context

    @staticmethod
    def _site_variables(
        site: SiteMetadata, category: Optional[Category]
    ) -> List[SchemaVariable]:
        def scalar(name, value, attrs):
            return SchemaVariable(
                name=name,
                dimensions=SCALAR_DIMS,
                dtype="f8",
                data=np.full((1, 1), float(value)),
                fill_value=float(MISSING_VALUE),
                attributes=attrs,
            )

        def text(name, value, long_name):
            return SchemaVariable(
                name=name,
                dimensions=SCALAR_DIMS,
                dtype="str",
                data=np.array([[value]], dtype=object),
                attributes={"units": "-", "long_name": long_name},
            )

        variables = [
            scalar(
                "latitude",
                site.latitude,
                {"units": "degrees_north", "standard_name": "latitude", "long_name": "Latitude"},
            ),
            scalar(
                "longitude",
                site.longitude,
                {"units": "degrees_east", "standard_name": "longitude", "long_name": "Longitude"},
            ),
        ]
        if site.elevation is not None:
            variables.append(
                scalar("elevation", site.elevation, {"units": "m", "long_name": "Site elevation above sea level"})
            )
        if site.tower_height is not None:
            variables.append(
                scalar("tower_height", site.tower_height, {"units": "m", "long_name": "Height of flux tower"})
            )
        if site.canopy_height is not None:
            variables.append(
                scalar("canopy_height", site.canopy_height, {"units": "m", "long_name": "Canopy height"})
            )
        if site.short_veg_type is not None:
            variables.append(
                text("IGBP_veg_short", site.short_veg_type, "IGBP vegetation type (short)")
            )
        if site.long_veg_type is not None:
            variables.append(
                text("IGBP_veg_long", site.long_veg_type, "IGBP vegetation type (long)")
            )
        if site.mean_annual_precip is not None and category in (None, Category.MET):
            variables.append(
                scalar(
                    "avPrecip",
                    site.mean_annual_precip,
                    {"units": "mm yr-1", "long_name": "Average annual precipitation"},
                )
            )
        return variables

    @staticmethod
    def _global_attributes(site: SiteMetadata, run: RunInfo) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {
            "Production_time": run.production_time,
            "Github_revision": run.software_revision,
            "site_code": site.site_code,
            "site_name": site.long_sitename,
            "Fluxnet_dataset_version": site.dataset_version,
            "Input_file": run.input_file,
            "Processing_thresholds(%)": run.thresholds.describe(),
            "QC_flag_descriptions": qc_flag_descriptions(),
        }
        if run.package_contact:
            attrs["Package contact"] = run.package_contact
        if run.pals_contact:
            attrs["PALS contact"] = run.pals_contact
        if site.tier is not None:
            attrs["Fluxnet site tier"] = site.tier
        return attrs


__all__ = [
    "SERIES_DIMS",
    "SCALAR_DIMS",
    "DIMENSIONS",
    "SchemaVariable",
    "OutputSchema",
    "RunInfo",
    "SchemaBuilder",
]
