"""
fluxlsm: convert flux-tower observations into model-ready NetCDF files.

This package reads FLUXNET2015-style half-hourly or hourly CSV files,
reconciles them against a variable catalog, checks the time-step structure,
computes completeness and gap-fill statistics, and writes self-describing
NetCDF files for forcing (Met) and evaluating (Flux) land surface models.

The main components of the package are:
- `VariableCatalog`: The variable metadata table that drives the conversion.
- `ColumnResolver`: For matching catalog variables to file columns.
- `TimeGridDeriver`: For deriving and validating the time-step structure.
- `QualityAssessor`: For missing/gap-fill statistics and thresholds.
- `SchemaBuilder`: For assembling output file descriptions.
- `FileEmitter`: For writing NetCDF4 files.
- `Pipeline`: For end-to-end conversion of one or many files.
"""
from .catalog import Category, SiteMetadata, VariableCatalog, VariableSpec, MISSING_VALUE
from .exceptions import (
    ConversionError,
    SchemaMismatch,
    TimingError,
    ThresholdFailure,
    ReanalysisError,
    EncodingError,
)
from .format import ColumnResolver, ResolvedColumn, TimeGrid, TimeGridDeriver
from .qaqc import QCTier, Thresholds, QualityAssessor, QualityReport
from .report import FileEmitter, OutputSchema, SchemaBuilder
from .reader import FluxnetDataReader
from .pipeline import Pipeline, PipelineConfig, ProcessingResult

__version__ = "0.1.0"

__all__ = [
    "Category",
    "SiteMetadata",
    "VariableCatalog",
    "VariableSpec",
    "MISSING_VALUE",
    "ConversionError",
    "SchemaMismatch",
    "TimingError",
    "ThresholdFailure",
    "ReanalysisError",
    "EncodingError",
    "ColumnResolver",
    "ResolvedColumn",
    "TimeGrid",
    "TimeGridDeriver",
    "QCTier",
    "Thresholds",
    "QualityAssessor",
    "QualityReport",
    "FileEmitter",
    "OutputSchema",
    "SchemaBuilder",
    "FluxnetDataReader",
    "Pipeline",
    "PipelineConfig",
    "ProcessingResult",
]
