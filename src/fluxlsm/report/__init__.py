"""
Output-side stages of the conversion pipeline.

- schema: assemble the description of each output file
- emitter: write output schemas as NetCDF4
"""

from .schema import OutputSchema, RunInfo, SchemaBuilder, SchemaVariable
from .emitter import FileEmitter

__all__ = [
    "OutputSchema",
    "RunInfo",
    "SchemaBuilder",
    "SchemaVariable",
    "FileEmitter",
]
