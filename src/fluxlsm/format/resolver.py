"""
Column resolution: match catalog entries against the columns of a file.

Resolution happens in two steps. :meth:`ColumnResolver.resolve` looks only
at the header row and decides which catalog variables are present, in
catalog order, failing fast on structural mismatches. Once the reader has
loaded the selected columns, :meth:`ColumnResolver.materialize` splits the
time columns off and gives every resolved variable its own copy of the
column values, duplicating one source column into several outputs where the
catalog asks for it (e.g. ``RH`` feeding both ``RH`` and ``Qair``).
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from fluxlsm.catalog import MISSING_VALUE, Category, VariableCatalog, VariableSpec
from fluxlsm.exceptions import SchemaMismatch
from fluxlsm.utils import logger_check


TIME_VARS: Tuple[str, str] = ("TIMESTAMP_START", "TIMESTAMP_END")

_READ_TYPES = {"numeric": "float64", "integer": "float64", "character": "str"}


@dataclass(frozen=True, eq=False)
class ResolvedColumn:
    """
    A catalog variable found in the input file.

    Attributes
    ----------
    spec : VariableSpec
        The catalog entry.
    column_index : int
        Position of the source column in the file header.
    duplicate_of : ResolvedColumn, optional
        Back-reference to the column that first claimed the same source
        column. Both hold independent copies of the values.
    values : np.ndarray, optional
        Column values (NaN for missing), set by :meth:`ColumnResolver.materialize`.
    flags : np.ndarray, optional
        Per-sample QC flags from the companion ``_QC`` column, if present.
    """

    spec: VariableSpec
    column_index: int
    duplicate_of: Optional["ResolvedColumn"] = None
    values: Optional[np.ndarray] = field(default=None, repr=False)
    flags: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.spec.output_name

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_of is not None


@dataclass(frozen=True)
class ResolutionPlan:
    """Result of resolving a header row against the catalog."""

    time_columns: Tuple[str, ...]
    columns: Tuple[ResolvedColumn, ...]

    @property
    def source_names(self) -> Tuple[str, ...]:
        """Unique data source columns, in the order they were resolved."""
        seen: Dict[str, None] = {}
        for col in self.columns:
            seen.setdefault(col.spec.source_name, None)
        return tuple(seen)

    @property
    def usecols(self) -> List[str]:
        return list(self.time_columns) + list(self.source_names)

    @property
    def dtypes(self) -> Dict[str, str]:
        """Column read types derived from the catalog ``source_type``."""
        types = {name: "str" for name in self.time_columns}
        for col in self.columns:
            types.setdefault(
                col.spec.source_name,
                _READ_TYPES.get(col.spec.source_type.lower(), "float64"),
            )
        return types


class ColumnResolver:
    """
    Resolve input columns against a :class:`VariableCatalog`.

    Parameters
    ----------
    catalog : VariableCatalog
        Variable metadata table.
    time_vars : sequence of str, optional
        Names of the start/end timestamp columns.
    logger : logging.Logger, optional
        Logger for resolution details.
    """

    def __init__(
        self,
        catalog: VariableCatalog,
        time_vars: Sequence[str] = TIME_VARS,
        logger: logging.Logger | None = None,
    ):
        self.catalog = catalog
        self.time_vars = tuple(time_vars)
        self.logger = logger_check(logger)

    def resolve(self, header: Sequence[str]) -> ResolutionPlan:
        """
        Decide which catalog variables are present in ``header``.

        Parameters
        ----------
        header : sequence of str
            Column names in file order.

        Returns
        -------
        ResolutionPlan
            Time columns and resolved variables, in catalog order.

        Raises
        ------
        SchemaMismatch
            If a time column or an essential variable is absent, or either
            appears more than once in the header. A repeated non-essential
            column only logs a warning and its first occurrence is used.
        """
        header = [str(h).strip() for h in header]
        positions: Dict[str, List[int]] = defaultdict(list)
        for idx, name in enumerate(header):
            positions[name].append(idx)

        missing_time = [t for t in self.time_vars if t not in positions]
        if missing_time:
            raise SchemaMismatch(f"Time columns not found in file: {missing_time}")

        missing_essential = [
            s.source_name for s in self.catalog.essential() if s.source_name not in positions
        ]
        if missing_essential:
            raise SchemaMismatch(
                "Essential meteorological variables missing from file: "
                + ", ".join(dict.fromkeys(missing_essential)),
                variable=missing_essential[0],
            )

        essential = {s.source_name for s in self.catalog.essential()}
        repeated = [
            name
            for name in dict.fromkeys(list(self.catalog.source_names) + list(self.time_vars))
            if len(positions.get(name, ())) > 1
        ]
        fatal = [name for name in repeated if name in essential or name in self.time_vars]
        if fatal:
            raise SchemaMismatch(
                f"Columns appear more than once in file header: {fatal}",
                variable=fatal[0],
            )
        for name in repeated:
            self.logger.warning(
                f"Column {name} appears {len(positions[name])} times in file header; "
                "using the first"
            )

        owners: Dict[str, ResolvedColumn] = {}
        resolved: List[ResolvedColumn] = []
        for spec in self.catalog:
            if spec.source_name not in positions:
                continue
            owner = owners.get(spec.source_name)
            col = ResolvedColumn(
                spec=spec,
                column_index=positions[spec.source_name][0],
                duplicate_of=owner,
            )
            if owner is None:
                owners[spec.source_name] = col
            else:
                self.logger.debug(
                    f"Duplicating column {spec.source_name} for {spec.output_name}"
                )
            resolved.append(col)

        if not any(c.spec.preferred and c.spec.category is Category.EVAL for c in resolved):
            self.logger.warning("No preferred evaluation variables found in file")

        self.logger.debug(
            f"Resolved {len(resolved)} variables from {len(owners)} source columns"
        )
        return ResolutionPlan(time_columns=self.time_vars, columns=tuple(resolved))

    def materialize(
        self, plan: ResolutionPlan, frame: pd.DataFrame
    ) -> Tuple[List[ResolvedColumn], pd.DataFrame]:
        """
        Attach column values to the resolved variables.

        Parameters
        ----------
        plan : ResolutionPlan
            Output of :meth:`resolve`.
        frame : pd.DataFrame
            Data read from the file, restricted to ``plan.usecols``.

        Returns
        -------
        tuple[list[ResolvedColumn], pd.DataFrame]
            Resolved variables carrying independent value arrays, and the
            time columns.

        Raises
        ------
        SchemaMismatch
            If the data columns left after removing the time columns do not
            match the resolved source columns.
        """
        missing_time = [t for t in plan.time_columns if t not in frame.columns]
        if missing_time:
            raise SchemaMismatch(f"Time columns not found in data: {missing_time}")

        time_frame = frame[list(plan.time_columns)].copy()
        data = frame.drop(columns=list(plan.time_columns))
        data = data.loc[:, ~data.columns.duplicated()]

        expected = plan.source_names
        if data.shape[1] != len(expected) or set(data.columns) != set(expected):
            raise SchemaMismatch(
                "Check variable ordering, variables don't match data retrieved "
                f"from file (expected {len(expected)} columns, found {data.shape[1]})"
            )

        columns = []
        for col in plan.columns:
            values = self._column_values(data, col.spec.source_name)
            flags = None
            if not col.spec.is_qc_flag and col.spec.qc_source_name in data.columns:
                flags = self._column_values(data, col.spec.qc_source_name)
            columns.append(replace(col, values=values, flags=flags))

        # relink duplicates to the materialized owners
        by_source: Dict[str, ResolvedColumn] = {}
        linked = []
        for col in columns:
            owner = by_source.get(col.spec.source_name)
            if owner is None:
                by_source[col.spec.source_name] = col
            else:
                col = replace(col, duplicate_of=owner)
            linked.append(col)

        if len(linked) != len(plan.columns):
            raise SchemaMismatch(
                "Duplicate variable names exist but columns could not be duplicated correctly"
            )
        return linked, time_frame

    @staticmethod
    def _column_values(data: pd.DataFrame, name: str) -> np.ndarray:
        values = pd.to_numeric(data[name], errors="coerce").to_numpy(dtype=float, copy=True)
        values[values == MISSING_VALUE] = np.nan
        return values


__all__ = ["TIME_VARS", "ResolvedColumn", "ResolutionPlan", "ColumnResolver"]
