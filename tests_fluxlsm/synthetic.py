"""Builders for synthetic catalogs and FLUXNET-style records used across tests."""
import numpy as np
import pandas as pd

from fluxlsm.catalog import CATALOG_COLUMNS, VariableCatalog
from fluxlsm.format.resolver import ColumnResolver
from fluxlsm.format.timegrid import TimeGridDeriver

ROW_DEFAULTS = {
    "source_type": "numeric",
    "standard_name": "",
    "long_name": "",
    "category": "Met",
    "unit_source": "-",
    "unit_target": "-",
    "valid_min": "NA",
    "valid_max": "NA",
    "essential": False,
    "preferred": False,
    "reanalysis_name": "",
}


def make_catalog(rows):
    records = []
    for row in rows:
        record = {**ROW_DEFAULTS, **row}
        record["long_name"] = record["long_name"] or record["output_name"]
        records.append(record)
    return VariableCatalog.from_dataframe(pd.DataFrame(records, columns=CATALOG_COLUMNS))


def basic_catalog(tair_unit="degC", tair_target="K"):
    return make_catalog([
        dict(source_name="TA_F", output_name="Tair", standard_name="air_temperature",
             category="Met", unit_source=tair_unit, unit_target=tair_target,
             valid_min=-500, valid_max=500, essential=True, reanalysis_name="TA_ERA"),
        dict(source_name="TA_F_QC", output_name="Tair_qc", source_type="integer",
             category="Met", valid_min=0, valid_max=4),
        dict(source_name="VPD_F", output_name="VPD",
             standard_name="water_vapor_saturation_deficit_in_air",
             category="Met", unit_source="hPa", unit_target="hPa", valid_min=0, valid_max=150),
        dict(source_name="LE_F_MDS", output_name="Qle",
             standard_name="surface_upward_latent_heat_flux", category="Eval",
             unit_source="W/m2", unit_target="W/m2", valid_min=-500, valid_max=1000,
             preferred=True),
        dict(source_name="LE_F_MDS_QC", output_name="Qle_qc", source_type="integer",
             category="Eval", valid_min=0, valid_max=4),
    ])


def timestamps(start, periods, minutes):
    starts = pd.date_range(start, periods=periods, freq=f"{minutes}min")
    ends = starts + pd.Timedelta(minutes=minutes)
    return starts.strftime("%Y%m%d%H%M"), ends.strftime("%Y%m%d%H%M")


def flux_frame(start, periods, minutes, **columns):
    """DataFrame with FLUXNET time columns followed by ``columns``."""
    ts_start, ts_end = timestamps(start, periods, minutes)
    data = {"TIMESTAMP_START": list(ts_start), "TIMESTAMP_END": list(ts_end)}
    for name, values in columns.items():
        data[name] = np.broadcast_to(np.asarray(values, dtype=float), (periods,)).copy()
    return pd.DataFrame(data)


def standard_frame(start="2013-01-01", periods=17520, minutes=60):
    """Complete record for :func:`basic_catalog`, all samples measured."""
    t = np.arange(periods)
    return flux_frame(
        start, periods, minutes,
        TA_F=20 + 5 * np.sin(2 * np.pi * t / 24),
        TA_F_QC=0,
        VPD_F=10.0,
        LE_F_MDS=100 + 50 * np.cos(2 * np.pi * t / 24),
        LE_F_MDS_QC=0,
    )


def materialize(catalog, frame):
    """Resolve and materialize ``frame``, returning columns and time grid."""
    resolver = ColumnResolver(catalog)
    plan = resolver.resolve(list(frame.columns))
    columns, time_frame = resolver.materialize(plan, frame[plan.usecols])
    grid = TimeGridDeriver().derive(time_frame)
    return columns, grid
