"""
Variable catalog: the static metadata table that drives the conversion.

Each row of the catalog CSV maps one source (FLUXNET) column name to an
output variable, its CF standard name, category, unit conversion rule,
physical range and essential/preferred flags. The table is loaded once into
an immutable, ordered :class:`VariableCatalog`; every later stage looks
variables up explicitly through it.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

import numpy as np
import pandas as pd


DEFAULT_CATALOG_CSV = Path(__file__).parent / "data" / "Fluxnet2015_variables.csv"

CATALOG_COLUMNS = [
    "source_name",
    "source_type",
    "output_name",
    "standard_name",
    "long_name",
    "category",
    "unit_source",
    "unit_target",
    "valid_min",
    "valid_max",
    "essential",
    "preferred",
    "reanalysis_name",
]

QC_SUFFIX = "_QC"

MISSING_VALUE: int = -9999

_TRUE_VALUES = {"true", "t", "yes", "y", "1"}


class Category(str, enum.Enum):
    """Whether a variable is a model forcing or an evaluation target."""

    MET = "meteorological"
    EVAL = "evaluation"

    @classmethod
    def parse(cls, value: str) -> "Category":
        key = str(value).strip().lower()
        if key in ("met", "meteorological"):
            return cls.MET
        if key in ("eval", "evaluation", "flux"):
            return cls.EVAL
        raise ValueError(f"Unknown variable category: {value!r}")


@dataclass(frozen=True)
class VariableSpec:
    """One row of the variable catalog."""

    source_name: str
    source_type: str
    output_name: str
    standard_name: str
    long_name: str
    category: Category
    unit_source: str
    unit_target: str
    valid_min: float
    valid_max: float
    essential: bool = False
    preferred: bool = False
    reanalysis_name: Optional[str] = None

    @property
    def is_qc_flag(self) -> bool:
        return self.source_name.endswith(QC_SUFFIX)

    @property
    def qc_source_name(self) -> str:
        """Name of the companion QC-flag column in the source file."""
        return f"{self.source_name}{QC_SUFFIX}"


@dataclass(frozen=True)
class SiteMetadata:
    """
    Site-level information written as scalar variables and global attributes.

    Optional fields left as None are omitted from the output entirely.
    """

    latitude: float
    longitude: float
    site_code: str
    long_sitename: str
    dataset_version: str
    tier: Optional[str] = None
    elevation: Optional[float] = None
    tower_height: Optional[float] = None
    canopy_height: Optional[float] = None
    short_veg_type: Optional[str] = None
    long_veg_type: Optional[str] = None
    mean_annual_precip: Optional[float] = None


def _as_bool(value) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def _as_optional_str(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    value = str(value).strip()
    return value or None


def _as_float(value, default: float) -> float:
    text = _as_optional_str(value)
    if text is None or text.upper() == "NA":
        return default
    return float(text)


class VariableCatalog:
    """
    Immutable ordered collection of :class:`VariableSpec`.

    Parameters
    ----------
    specs : iterable of VariableSpec
        Catalog rows in their canonical order.
    """

    def __init__(self, specs):
        self._specs: Tuple[VariableSpec, ...] = tuple(specs)
        outputs = [s.output_name for s in self._specs]
        dupes = sorted({o for o in outputs if outputs.count(o) > 1})
        if dupes:
            raise ValueError(f"Duplicate output variable names in catalog: {dupes}")

        by_source: Dict[str, list] = {}
        for spec in self._specs:
            by_source.setdefault(spec.source_name, []).append(spec)
        self._by_source = {k: tuple(v) for k, v in by_source.items()}
        self._by_output = {s.output_name: s for s in self._specs}

    @classmethod
    def from_csv(cls, path: Union[str, Path, None] = None) -> "VariableCatalog":
        """
        Load a catalog from CSV.

        Parameters
        ----------
        path : str or Path, optional
            Catalog file. Defaults to the FLUXNET2015 catalog shipped with
            the package.

        Returns
        -------
        VariableCatalog
        """
        path = Path(path) if path is not None else DEFAULT_CATALOG_CSV
        df = pd.read_csv(path, dtype=str, keep_default_na=False, comment="#")
        return cls.from_dataframe(df)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "VariableCatalog":
        missing = [c for c in CATALOG_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Catalog is missing required columns: {missing}")

        specs = []
        for row in df.itertuples(index=False):
            specs.append(
                VariableSpec(
                    source_name=str(row.source_name).strip(),
                    source_type=_as_optional_str(row.source_type) or "numeric",
                    output_name=str(row.output_name).strip(),
                    standard_name=_as_optional_str(row.standard_name) or "",
                    long_name=_as_optional_str(row.long_name) or "",
                    category=Category.parse(row.category),
                    unit_source=str(row.unit_source).strip(),
                    unit_target=str(row.unit_target).strip(),
                    valid_min=_as_float(row.valid_min, -np.inf),
                    valid_max=_as_float(row.valid_max, np.inf),
                    essential=_as_bool(row.essential),
                    preferred=_as_bool(row.preferred),
                    reanalysis_name=_as_optional_str(row.reanalysis_name),
                )
            )
        return cls(specs)

    def __iter__(self) -> Iterator[VariableSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, source_name: str) -> bool:
        return source_name in self._by_source

    @property
    def specs(self) -> Tuple[VariableSpec, ...]:
        return self._specs

    @property
    def source_names(self) -> Tuple[str, ...]:
        """Unique source names in catalog order."""
        return tuple(self._by_source)

    def by_source(self, source_name: str) -> Tuple[VariableSpec, ...]:
        """All specs fed by ``source_name`` (more than one when duplicated)."""
        return self._by_source.get(source_name, ())

    def by_output(self, output_name: str) -> VariableSpec:
        return self._by_output[output_name]

    def essential(self) -> Tuple[VariableSpec, ...]:
        return tuple(s for s in self._specs if s.essential)

    def preferred(self) -> Tuple[VariableSpec, ...]:
        return tuple(s for s in self._specs if s.preferred)

    def qc_spec_for(self, spec: VariableSpec) -> Optional[VariableSpec]:
        """Return the catalog entry of ``spec``'s QC-flag column, if any."""
        candidates = self._by_source.get(spec.qc_source_name, ())
        return candidates[0] if candidates else None

    def parent_of(self, qc_spec: VariableSpec) -> Optional[VariableSpec]:
        """Inverse of :meth:`qc_spec_for`."""
        if not qc_spec.is_qc_flag:
            return None
        parents = self._by_source.get(qc_spec.source_name[: -len(QC_SUFFIX)], ())
        return parents[0] if parents else None


__all__ = [
    "Category",
    "VariableSpec",
    "SiteMetadata",
    "VariableCatalog",
    "DEFAULT_CATALOG_CSV",
    "CATALOG_COLUMNS",
    "MISSING_VALUE",
]
