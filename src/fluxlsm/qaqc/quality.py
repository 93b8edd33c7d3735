"""
Completeness and gap-fill statistics for resolved variables.

Every sample of a variable is classified as missing or into exactly one QC
tier using its companion QC-flag column. Percentages per tier are compared
against the caller's thresholds, first per whole calendar year to find the
evaluated window (the longest run of consecutive years acceptable for every
essential variable), then over that window to decide which variables pass.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from fluxlsm.catalog import MISSING_VALUE, QC_SUFFIX, Category
from fluxlsm.exceptions import ThresholdFailure
from fluxlsm.utils import logger_check

if TYPE_CHECKING:
    from fluxlsm.format.resolver import ResolvedColumn
    from fluxlsm.format.timegrid import TimeGrid


class QCTier(enum.IntEnum):
    """Quality tiers, in order of decreasing confidence."""

    MEASURED = 0
    GOOD = 1
    MEDIUM = 2
    POOR = 3
    REANALYSIS = 4


GAPFILL_TIERS: Tuple[QCTier, ...] = (
    QCTier.GOOD,
    QCTier.MEDIUM,
    QCTier.POOR,
    QCTier.REANALYSIS,
)

FLAG_TO_TIER: Dict[int, QCTier] = {int(t): t for t in QCTier}

QC_TIER_LABELS: Dict[QCTier, str] = {
    QCTier.MEASURED: "Measured",
    QCTier.GOOD: "Good-quality gapfilled",
    QCTier.MEDIUM: "Medium-quality gapfilled",
    QCTier.POOR: "Poor-quality gapfilled",
    QCTier.REANALYSIS: "ERA-Interim gapfilled",
}

# sample code for missing values
MISSING_CODE = -1


def qc_flag_descriptions() -> str:
    """
    Render the tier-to-label mapping written as a global attribute.

    >>> qc_flag_descriptions().split(", ")[0]
    'Measured: 0'
    """
    return ", ".join(f"{QC_TIER_LABELS[t]}: {int(t)}" for t in QCTier)


@dataclass(frozen=True)
class Thresholds:
    """
    Maximum percentages of missing and gap-filled samples.

    ``missing_pct_max`` is always checked. If ``gapfill_all_max`` is set it
    is the only gap-fill check; otherwise each per-tier threshold that is set
    is checked independently.
    """

    missing_pct_max: float
    gapfill_all_max: Optional[float] = None
    gapfill_good_max: Optional[float] = None
    gapfill_med_max: Optional[float] = None
    gapfill_poor_max: Optional[float] = None
    min_whole_years: int = 1

    def __post_init__(self):
        for name in (
            "missing_pct_max",
            "gapfill_all_max",
            "gapfill_good_max",
            "gapfill_med_max",
            "gapfill_poor_max",
        ):
            value = getattr(self, name)
            if value is None:
                if name == "missing_pct_max":
                    raise ValueError("missing_pct_max must be set")
                continue
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        if self.min_whole_years < 0:
            raise ValueError(f"min_whole_years must be >= 0, got {self.min_whole_years}")

    @classmethod
    def from_dict(cls, d: Mapping) -> "Thresholds":
        """
        Build thresholds from a mapping.

        Accepts the field names or the short names used in processing
        attributes (``missing``, ``gapfill_all``, ``gapfill_good``,
        ``gapfill_med``, ``gapfill_poor``, ``min_yrs``).
        """
        aliases = {
            "missing": "missing_pct_max",
            "gapfill_all": "gapfill_all_max",
            "gapfill_good": "gapfill_good_max",
            "gapfill_med": "gapfill_med_max",
            "gapfill_poor": "gapfill_poor_max",
            "min_yrs": "min_whole_years",
        }
        kwargs = {}
        for key, value in d.items():
            name = aliases.get(key, key)
            if name not in cls.__dataclass_fields__:
                raise KeyError(f"Unknown threshold: {key}")
            kwargs[name] = value
        if "min_whole_years" in kwargs:
            kwargs["min_whole_years"] = int(kwargs["min_whole_years"])
        return cls(**kwargs)

    def describe(self) -> str:
        """Render the thresholds as written in the ``Processing_thresholds(%)`` attribute."""

        def fmt(v):
            return "NA" if v is None else f"{v:g}"

        return (
            f"missing: {fmt(self.missing_pct_max)}, "
            f"gapfill_all: {fmt(self.gapfill_all_max)}, "
            f"gapfill_good: {fmt(self.gapfill_good_max)}, "
            f"gapfill_med: {fmt(self.gapfill_med_max)}, "
            f"gapfill_poor: {fmt(self.gapfill_poor_max)}, "
            f"min_yrs: {self.min_whole_years}"
        )


@dataclass
class QualityReport:
    """
    Quality statistics of one resolved variable.

    ``missing_pct``, ``gapfill_pct_by_tier`` and ``total_gapfilled_pct`` are
    computed over the evaluated window; ``total_missing_pct`` covers the whole
    record.
    """

    variable: str
    missing_pct: float
    gapfill_pct_by_tier: Dict[QCTier, float]
    total_missing_pct: float
    total_gapfilled_pct: float
    passes_thresholds: bool
    reason: Optional[str] = None
    years_ok: int = 0
    excluded_by_policy: bool = False


@dataclass
class QualityAssessment:
    """Outcome of assessing all columns of one file."""

    reports: Dict[str, QualityReport]
    window: slice
    window_years: Tuple[int, ...]
    retained: List["ResolvedColumn"]
    excluded: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def classify_samples(
    values: np.ndarray,
    flags: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, int]:
    """
    Assign each sample a tier code, or ``MISSING_CODE`` when missing.

    Parameters
    ----------
    values : np.ndarray
        Sample values; NaN and the -9999 sentinel count as missing.
    flags : np.ndarray, optional
        Per-sample QC flags. Without flags every present sample is measured.

    Returns
    -------
    tuple[np.ndarray, int]
        Integer codes per sample, and the number of present samples whose
        flag was missing or not a known tier (these count as measured).
    """
    values = np.asarray(values, dtype=float)
    missing = np.isnan(values) | (values == MISSING_VALUE)
    codes = np.full(values.shape, int(QCTier.MEASURED), dtype=np.int8)
    n_invalid = 0

    if flags is not None:
        flags = np.asarray(flags, dtype=float)
        known = np.isin(flags, list(FLAG_TO_TIER))
        codes[known] = flags[known].astype(np.int8)
        n_invalid = int((~known & ~missing).sum())

    codes[missing] = MISSING_CODE
    return codes, n_invalid


def tier_percentages(codes: np.ndarray) -> Tuple[float, Dict[QCTier, float]]:
    """
    Percentage of missing samples and of each gap-fill tier.

    Returns
    -------
    tuple[float, dict]
        Missing percentage and a mapping from gap-fill tier to percentage.
    """
    n = len(codes)
    if n == 0:
        return 0.0, {t: 0.0 for t in GAPFILL_TIERS}
    missing = np.count_nonzero(codes == MISSING_CODE) / n * 100
    by_tier = {t: np.count_nonzero(codes == int(t)) / n * 100 for t in GAPFILL_TIERS}
    return float(missing), {t: float(p) for t, p in by_tier.items()}


def evaluate_thresholds(
    missing_pct: float,
    gapfill_pct_by_tier: Mapping[QCTier, float],
    thresholds: Thresholds,
) -> Tuple[bool, Optional[str]]:
    """
    Compare percentages against thresholds.

    The aggregate ``gapfill_all_max`` threshold, when supplied, replaces the
    per-tier thresholds entirely. A check fails when the percentage exceeds
    the threshold.

    Returns
    -------
    tuple[bool, str | None]
        Pass/fail and a description of every failed check.
    """
    failures = []
    if missing_pct > thresholds.missing_pct_max:
        failures.append(
            f"missing_pct {missing_pct:.1f} > missing {thresholds.missing_pct_max:g}"
        )

    if thresholds.gapfill_all_max is not None:
        total = sum(gapfill_pct_by_tier.values())
        if total > thresholds.gapfill_all_max:
            failures.append(
                f"total_gapfilled_pct {total:.1f} > gapfill_all {thresholds.gapfill_all_max:g}"
            )
    else:
        per_tier = (
            (QCTier.GOOD, thresholds.gapfill_good_max, "gapfill_good"),
            (QCTier.MEDIUM, thresholds.gapfill_med_max, "gapfill_med"),
            (QCTier.POOR, thresholds.gapfill_poor_max, "gapfill_poor"),
        )
        for tier, limit, label in per_tier:
            if limit is None:
                continue
            pct = gapfill_pct_by_tier.get(tier, 0.0)
            if pct > limit:
                failures.append(f"{label}_pct {pct:.1f} > {label} {limit:g}")

    if failures:
        return False, "; ".join(failures)
    return True, None


def longest_consecutive_run(years: Sequence[int]) -> Tuple[int, ...]:
    """
    Longest run of consecutive years; ties go to the most recent run.

    >>> longest_consecutive_run([2001, 2002, 2004, 2005])
    (2004, 2005)
    """
    best: List[int] = []
    current: List[int] = []
    for year in sorted(years):
        if current and year == current[-1] + 1:
            current.append(year)
        else:
            current = [year]
        if len(current) >= len(best):
            best = list(current)
    return tuple(best)


def range_violations(values: np.ndarray, valid_min: float, valid_max: float) -> int:
    """Number of present samples outside ``[valid_min, valid_max]``."""
    values = np.asarray(values, dtype=float)
    present = ~np.isnan(values)
    return int(((values < valid_min) | (values > valid_max))[present].sum())


class QualityAssessor:
    """
    Compute quality statistics and decide which variables are kept.

    Parameters
    ----------
    thresholds : Thresholds
        Missing and gap-fill thresholds.
    include_all_eval : bool, optional
        Keep evaluation variables that fail the thresholds, flagging them as
        excluded by policy instead of dropping them. Defaults to False.
    logger : logging.Logger, optional
        Logger for policy decisions.
    """

    def __init__(
        self,
        thresholds: Thresholds,
        include_all_eval: bool = False,
        logger: logging.Logger | None = None,
    ):
        self.thresholds = thresholds
        self.include_all_eval = include_all_eval
        self.logger = logger_check(logger)

    def assess(
        self, columns: Sequence["ResolvedColumn"], grid: "TimeGrid"
    ) -> QualityAssessment:
        """
        Assess every resolved column of one file.

        Parameters
        ----------
        columns : sequence of ResolvedColumn
            Materialized columns (values attached).
        grid : TimeGrid
            Time grid of the file.

        Returns
        -------
        QualityAssessment

        Raises
        ------
        ThresholdFailure
            If any essential variable fails the thresholds or not enough
            whole years of acceptable data exist.
        """
        warnings: List[str] = []
        codes: Dict[str, np.ndarray] = {}
        for col in columns:
            codes[col.name], n_invalid = classify_samples(col.values, col.flags)
            if n_invalid:
                msg = (
                    f"{col.name}: {n_invalid} samples have missing or unknown QC "
                    "flags and were treated as measured"
                )
                self.logger.warning(msg)
                warnings.append(msg)

        data_cols = [c for c in columns if not c.spec.is_qc_flag]
        ok_years = self._yearly_status(data_cols, codes, grid)
        window, window_years = self._select_window(data_cols, ok_years, grid)
        self.logger.info(
            f"Evaluated window: steps {window.start}-{window.stop}, years {list(window_years)}"
        )

        reports: Dict[str, QualityReport] = {}
        failed_essential = []
        for col in data_cols:
            report = self._report(col.name, codes[col.name], window)
            years_ok = sum(1 for y in window_years if y in ok_years[col.name])
            report.years_ok = years_ok
            if report.passes_thresholds and years_ok < self.thresholds.min_whole_years:
                report.passes_thresholds = False
                report.reason = (
                    f"{years_ok} acceptable whole years < min_yrs "
                    f"{self.thresholds.min_whole_years}"
                )
            reports[col.name] = report
            if col.spec.essential and not report.passes_thresholds:
                failed_essential.append(col.name)

        if failed_essential:
            reason = "; ".join(f"{n}: {reports[n].reason}" for n in failed_essential)
            raise ThresholdFailure(
                f"Essential variables failed quality thresholds ({reason})",
                variable=failed_essential[0],
            )

        excluded: Dict[str, str] = {}
        for col in data_cols:
            report = reports[col.name]
            if report.passes_thresholds:
                continue
            if self.include_all_eval and col.spec.category is Category.EVAL:
                report.excluded_by_policy = True
                msg = f"{col.name} kept despite failing thresholds: {report.reason}"
            else:
                excluded[col.name] = report.reason or "failed thresholds"
                msg = f"{col.name} excluded: {report.reason}"
            self.logger.warning(msg)
            warnings.append(msg)

        parents = {c.spec.source_name: c.name for c in data_cols if not c.is_duplicate}
        for col in columns:
            if not col.spec.is_qc_flag:
                continue
            report = self._report(col.name, codes[col.name], window)
            parent = parents.get(col.spec.source_name[: -len(QC_SUFFIX)])
            if parent is not None:
                report.passes_thresholds = reports[parent].passes_thresholds
                report.reason = reports[parent].reason
                report.years_ok = reports[parent].years_ok
                report.excluded_by_policy = reports[parent].excluded_by_policy
                if parent in excluded:
                    excluded[col.name] = f"QC flag of excluded variable {parent}"
            reports[col.name] = report

        retained = [c for c in columns if c.name not in excluded]
        return QualityAssessment(
            reports=reports,
            window=window,
            window_years=window_years,
            retained=retained,
            excluded=excluded,
            warnings=warnings,
        )

    def _report(self, name: str, codes: np.ndarray, window: slice) -> QualityReport:
        missing_pct, by_tier = tier_percentages(codes[window])
        total_missing_pct, _ = tier_percentages(codes)
        passes, reason = evaluate_thresholds(missing_pct, by_tier, self.thresholds)
        return QualityReport(
            variable=name,
            missing_pct=missing_pct,
            gapfill_pct_by_tier=by_tier,
            total_missing_pct=total_missing_pct,
            total_gapfilled_pct=float(sum(by_tier.values())),
            passes_thresholds=passes,
            reason=reason,
        )

    def _yearly_status(self, data_cols, codes, grid) -> Dict[str, set]:
        """Whole years in which each variable passes the thresholds."""
        ok_years: Dict[str, set] = {c.name: set() for c in data_cols}
        for year in sorted(grid.whole_years):
            sl = grid.year_slice(year)
            for col in data_cols:
                missing_pct, by_tier = tier_percentages(codes[col.name][sl])
                passes, reason = evaluate_thresholds(missing_pct, by_tier, self.thresholds)
                if passes:
                    ok_years[col.name].add(year)
                else:
                    self.logger.debug(f"{col.name} {year}: {reason}")
        return ok_years

    def _select_window(self, data_cols, ok_years, grid) -> Tuple[slice, Tuple[int, ...]]:
        min_yrs = self.thresholds.min_whole_years
        essential = [c for c in data_cols if c.spec.essential]

        file_years = set(grid.whole_years)
        for col in essential:
            file_years &= ok_years[col.name]
        run = longest_consecutive_run(file_years)

        if run and len(run) >= min_yrs:
            return grid.years_slice(run[0], run[-1]), run
        if min_yrs == 0:
            return slice(0, grid.step_count), tuple(sorted(grid.whole_years))

        short = [c.name for c in essential if len(ok_years[c.name]) < min_yrs]
        if short:
            reason = "; ".join(
                f"{n}: {len(ok_years[n])} acceptable whole years < min_yrs {min_yrs}"
                for n in short
            )
        else:
            short = [c.name for c in essential] or [None]
            reason = (
                f"longest run of whole years acceptable for all essential variables "
                f"is {len(run)} < min_yrs {min_yrs}"
            )
        raise ThresholdFailure(
            f"Not enough years of acceptable data ({reason})", variable=short[0]
        )


__all__ = [
    "QCTier",
    "GAPFILL_TIERS",
    "FLAG_TO_TIER",
    "QC_TIER_LABELS",
    "MISSING_CODE",
    "Thresholds",
    "QualityReport",
    "QualityAssessment",
    "QualityAssessor",
    "qc_flag_descriptions",
    "classify_samples",
    "tier_percentages",
    "evaluate_thresholds",
    "longest_consecutive_run",
    "range_violations",
]
