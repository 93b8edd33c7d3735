"""
Input-side transformations for the conversion pipeline.

- resolver: match catalog variables to file columns
- timegrid: derive and validate the time-step structure
- units: unit conversion rules
- gapfill: reanalysis gap-filling of meteorological variables
"""

from fluxlsm.catalog import MISSING_VALUE

from .resolver import TIME_VARS, ColumnResolver, ResolutionPlan, ResolvedColumn
from .timegrid import TimeGrid, TimeGridDeriver
from .units import convert_units, render_unit, timestep_label
from .gapfill import gapfill_with_reanalysis, read_reanalysis

__all__ = [
    "MISSING_VALUE",
    "TIME_VARS",
    "ColumnResolver",
    "ResolutionPlan",
    "ResolvedColumn",
    "TimeGrid",
    "TimeGridDeriver",
    "convert_units",
    "render_unit",
    "timestep_label",
    "gapfill_with_reanalysis",
    "read_reanalysis",
]
