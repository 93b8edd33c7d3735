"""
Unit conversion rules applied when reconciling source and target units.

Each rule is keyed by the ``(unit_source, unit_target)`` pair found in the
variable catalog. Rules that depend on the time step (rate <-> accumulation)
receive ``step_seconds``; the relative-to-specific humidity rule reads air
temperature and pressure from a context mapping.
"""

import logging
from typing import Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from fluxlsm.exceptions import SchemaMismatch


KELVIN_OFFSET = 273.15
STANDARD_PRESSURE_PA = 101325.0

# Keys of the context mapping used by humidity conversion
CONTEXT_AIR_TEMPERATURE_K = "air_temperature_K"
CONTEXT_AIR_PRESSURE_PA = "air_pressure_Pa"

TIMESTEP_TOKEN = "timestep"

Converter = Callable[[np.ndarray, int, Mapping[str, np.ndarray]], np.ndarray]


def timestep_label(step_seconds: int) -> str:
    """
    Render a step size as used in accumulated units.

    >>> timestep_label(1800)
    '30min'
    >>> timestep_label(3600)
    '60min'
    """
    if step_seconds % 60 == 0:
        return f"{step_seconds // 60}min"
    return f"{step_seconds}s"


def render_unit(unit: str, step_seconds: int) -> str:
    """Replace the ``timestep`` placeholder with the actual step label."""
    return unit.replace(TIMESTEP_TOKEN, timestep_label(step_seconds))


def rel_to_spec_humidity(
    rel_hum: np.ndarray, air_temp_k: np.ndarray, pressure_pa: np.ndarray
) -> np.ndarray:
    """
    Convert relative humidity (%) to specific humidity (kg/kg).

    Saturation vapour pressure follows the Tetens formula; the mixing ratio
    at saturation is scaled by relative humidity.

    Parameters
    ----------
    rel_hum : np.ndarray
        Relative humidity in percent.
    air_temp_k : np.ndarray
        Air temperature in Kelvin.
    pressure_pa : np.ndarray
        Surface air pressure in Pa.

    Returns
    -------
    np.ndarray
        Specific humidity in kg/kg.
    """
    temp_c = air_temp_k - KELVIN_OFFSET
    esat = 610.78 * np.exp(17.27 * temp_c / (temp_c + 237.3))
    ws = 0.622 * esat / (pressure_pa - esat)
    return (rel_hum / 100.0) * ws


def _humidity(values, step_seconds, context):
    if CONTEXT_AIR_TEMPERATURE_K not in context:
        raise SchemaMismatch(
            "Air temperature is required to convert relative to specific humidity"
        )
    pressure = context.get(CONTEXT_AIR_PRESSURE_PA, STANDARD_PRESSURE_PA)
    return rel_to_spec_humidity(values, context[CONTEXT_AIR_TEMPERATURE_K], pressure)


def _identity(values, step_seconds, context):
    return values.copy()


def _scale(factor: float) -> Converter:
    def convert(values, step_seconds, context):
        return values * factor
    return convert


def _offset(offset: float) -> Converter:
    def convert(values, step_seconds, context):
        return values + offset
    return convert


def _per_step(values, step_seconds, context):
    return values * step_seconds


def _per_second(values, step_seconds, context):
    return values / step_seconds


CONVERSIONS: Dict[Tuple[str, str], Converter] = {
    # temperature
    ("K", "degC"): _offset(-KELVIN_OFFSET),
    ("degC", "K"): _offset(KELVIN_OFFSET),
    # pressure
    ("kPa", "Pa"): _scale(1000.0),
    ("hPa", "Pa"): _scale(100.0),
    ("Pa", "kPa"): _scale(0.001),
    ("hPa", "kPa"): _scale(0.1),
    ("kPa", "hPa"): _scale(10.0),
    # precipitation: rate <-> accumulation over one step
    ("mm/s", "mm/timestep"): _per_step,
    ("kg/m2/s", "mm/timestep"): _per_step,
    ("mm", "kg/m2/s"): _per_second,
    ("mm/timestep", "kg/m2/s"): _per_second,
    ("mm", "mm/s"): _per_second,
    ("mm/timestep", "mm/s"): _per_second,
    # humidity
    ("%", "kg/kg"): _humidity,
    # naming aliases
    ("umol/mol", "ppm"): _identity,
    ("umolCO2/mol", "ppm"): _identity,
    ("umolCO2/m2/s", "umol/m2/s"): _identity,
    ("W m-2", "W/m2"): _identity,
    ("m s-1", "m/s"): _identity,
}


def convert_units(
    values: np.ndarray,
    unit_source: str,
    unit_target: str,
    step_seconds: int,
    context: Optional[Mapping[str, np.ndarray]] = None,
    variable: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[np.ndarray, str]:
    """
    Convert ``values`` from ``unit_source`` to ``unit_target``.

    Missing samples (NaN) stay missing.

    Parameters
    ----------
    values : np.ndarray
        Source values.
    unit_source, unit_target : str
        Units as written in the variable catalog.
    step_seconds : int
        Time step of the record, used for rate/accumulation rules.
    context : mapping, optional
        Auxiliary arrays for multi-variable rules (humidity).
    variable : str, optional
        Output variable name, for error messages.
    logger : logging.Logger, optional
        Logger for conversion details.

    Returns
    -------
    tuple[np.ndarray, str]
        Converted values and the rendered target unit string.

    Raises
    ------
    SchemaMismatch
        If no rule exists for the unit pair.
    """
    values = np.asarray(values, dtype=float)
    target = render_unit(unit_target, step_seconds)
    if unit_source == unit_target:
        return values.copy(), target

    rule = CONVERSIONS.get((unit_source, unit_target))
    if rule is None:
        raise SchemaMismatch(
            f"No unit conversion from '{unit_source}' to '{unit_target}'",
            variable=variable,
        )
    if logger is not None:
        logger.debug(f"Converting {variable}: {unit_source} -> {target}")
    return rule(values, step_seconds, context or {}), target


__all__ = [
    "KELVIN_OFFSET",
    "STANDARD_PRESSURE_PA",
    "CONTEXT_AIR_TEMPERATURE_K",
    "CONTEXT_AIR_PRESSURE_PA",
    "CONVERSIONS",
    "timestep_label",
    "render_unit",
    "rel_to_spec_humidity",
    "convert_units",
]
