"""
Error taxonomy for the conversion engine.

Every fatal error raised while converting one file derives from
:class:`ConversionError`, so that an orchestration layer can catch a single
type and carry on with the next site.
"""
from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """
    Base class for per-file conversion failures.

    Parameters
    ----------
    reason : str
        Human-readable description of what went wrong.
    variable : str, optional
        Name of the offending variable, if any.
    file : str, optional
        Input file being converted when the error occurred.
    """

    def __init__(
        self,
        reason: str,
        variable: Optional[str] = None,
        file: Optional[str] = None,
    ):
        self.reason = reason
        self.variable = variable
        self.file = file
        super().__init__(self._compose())

    def _compose(self) -> str:
        context = []
        if self.variable:
            context.append(f"variable: {self.variable}")
        if self.file:
            context.append(f"file: {self.file}")
        if not context:
            return self.reason
        return f"{self.reason} [{', '.join(context)}]"

    def with_file(self, file: str) -> "ConversionError":
        """Return the same error annotated with the input file name."""
        self.file = file
        self.args = (self._compose(),)
        return self


class SchemaMismatch(ConversionError):
    """Input columns do not match what the variable catalog expects."""


class TimingError(ConversionError):
    """Time step size or record length is out of bounds, or steps are irregular."""


class ThresholdFailure(ConversionError):
    """An essential variable failed the missing/gap-fill thresholds."""


class ReanalysisError(ConversionError):
    """No reanalysis record belonging to the converted site was found."""


class EncodingError(ConversionError):
    """The NetCDF writer failed; no output file was left behind."""


__all__ = [
    "ConversionError",
    "SchemaMismatch",
    "TimingError",
    "ThresholdFailure",
    "ReanalysisError",
    "EncodingError",
]
