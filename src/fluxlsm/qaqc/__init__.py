"""
Quality assessment of resolved variables.

- quality: QC tiers, thresholds, per-variable statistics and the
  evaluated-window selection
"""

from .quality import (
    QCTier,
    Thresholds,
    QualityReport,
    QualityAssessment,
    QualityAssessor,
    evaluate_thresholds,
    qc_flag_descriptions,
    range_violations,
)

__all__ = [
    "QCTier",
    "Thresholds",
    "QualityReport",
    "QualityAssessment",
    "QualityAssessor",
    "evaluate_thresholds",
    "qc_flag_descriptions",
    "range_violations",
]
