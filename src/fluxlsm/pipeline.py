"""
Complete pipeline for converting FLUXNET observation files with fluxlsm.

This module provides high-level orchestration of the conversion workflow,
from a FLUXNET2015 CSV file to the self-describing NetCDF files used to
force and evaluate land surface models.

Classes
-------
Pipeline : Main orchestration class for file conversion
PipelineConfig : Configuration container for pipeline settings
ProcessingResult : Container for processing results and metadata
ConversionOutput : Schemas built for one input file, before writing

Functions
---------
process_file : Convert a single file
batch_process : Convert every matching file in a directory

Examples
--------
Basic usage:

    >>> from fluxlsm.pipeline import Pipeline
    >>>
    >>> # Convert a single file
    >>> pipeline = Pipeline()
    >>> result = pipeline.process_file(
    ...     'data/FLX_AU-How_FLUXNET2015_FULLSET_HH_2001-2014_1-3.csv',
    ...     output_dir='nc/'
    ... )
    >>>
    >>> # Batch process a directory
    >>> results = pipeline.batch_process(
    ...     input_dir='./fluxnet',
    ...     output_dir='./nc'
    ... )

Command-line usage:

    $ python -m fluxlsm.pipeline --input FLX_AU-How_..._1-3.csv --output nc/
    $ python -m fluxlsm.pipeline --batch --input fluxnet/ --output nc/
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from fluxlsm.catalog import Category, SiteMetadata, VariableCatalog
from fluxlsm.exceptions import ConversionError, ReanalysisError
from fluxlsm.format.gapfill import gapfill_with_reanalysis
from fluxlsm.format.resolver import ColumnResolver
from fluxlsm.format.timegrid import TimeGrid, TimeGridDeriver
from fluxlsm.qaqc.quality import (
    QualityAssessment,
    QualityAssessor,
    Thresholds,
    range_violations,
)
from fluxlsm.reader import FluxnetDataReader
from fluxlsm.report.emitter import FileEmitter
from fluxlsm.report.schema import OutputSchema, RunInfo, SchemaBuilder
from fluxlsm.utils import (
    DEFAULT_CONFIG_DIR,
    get_fluxnet_erai_files,
    get_fluxnet_site_code,
    get_fluxnet_version_no,
    load_yaml,
    logger_check,
    read_site_config,
)


DEFAULT_THRESHOLDS = Thresholds(
    missing_pct_max=15.0,
    gapfill_all_max=20.0,
    min_whole_years=2,
)

_PATH_FIELDS = ("reanalysis_file", "reanalysis_dir", "catalog_csv", "site_config_dir")


# =============================================================================
# Configuration and Result Containers
# =============================================================================

@dataclass
class PipelineConfig:
    """
    Configuration settings for the conversion pipeline.

    Attributes
    ----------
    thresholds : Thresholds
        Missing and gap-fill thresholds.
    include_all_eval : bool
        Keep evaluation variables that fail the thresholds, marking them
        with a ``QC_status`` attribute.
    reanalysis_gapfill : bool
        Fill missing meteorological samples from the site's ERA-Interim file.
    reanalysis_file : Path or None
        ERA-Interim CSV aligned to FLUXNET time stamps. Its name must carry
        the code of the converted site.
    reanalysis_dir : Path or None
        Directory searched for ``FLX_<site>_<datasetname>_ERAI_*.csv`` when
        no ``reanalysis_file`` is given; defaults to the input file's
        directory.
    datasetname : str
        Dataset label used in output file names.
    catalog_csv : Path or None
        Custom variable catalog; defaults to the packaged FLUXNET2015 one.
    site_config_dir : Path or None
        Directory of ``<site>.ini`` files; defaults to the packaged ones.
    software_revision : str
        Written to the ``Github_revision`` global attribute.
    package_contact, pals_contact : str or None
        Written to the ``Package contact`` and ``PALS contact`` global
        attributes when set.
    """

    thresholds: Thresholds = DEFAULT_THRESHOLDS
    include_all_eval: bool = False
    reanalysis_gapfill: bool = False
    reanalysis_file: Optional[Path] = None
    reanalysis_dir: Optional[Path] = None
    datasetname: str = "FLUXNET2015"
    catalog_csv: Optional[Path] = None
    site_config_dir: Optional[Path] = None
    software_revision: str = "unknown"
    package_contact: Optional[str] = None
    pals_contact: Optional[str] = None

    def __post_init__(self):
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))
        if self.reanalysis_file is not None and self.reanalysis_dir is not None:
            raise ValueError("Set either reanalysis_file or reanalysis_dir, not both")

    @classmethod
    def from_dict(cls, d: dict) -> "PipelineConfig":
        """
        Build a configuration from a mapping.

        Threshold keys sit under ``thresholds:`` and override the defaults.
        If any gap-fill threshold is given, the default gap-fill thresholds
        are dropped, so per-tier limits apply unless ``gapfill_all`` is set
        explicitly.
        """
        d = dict(d)
        unknown = set(d) - set(cls.__dataclass_fields__)
        if unknown:
            raise KeyError(f"Unknown pipeline config keys: {sorted(unknown)}")
        overrides = d.pop("thresholds", None) or {}
        base = asdict(DEFAULT_THRESHOLDS)
        if any(str(key).startswith("gapfill") for key in overrides):
            base = {
                "missing_pct_max": base["missing_pct_max"],
                "min_whole_years": base["min_whole_years"],
            }
        d["thresholds"] = Thresholds.from_dict({**base, **overrides})
        return cls(**d)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load a configuration from a YAML file."""
        return cls.from_dict(load_yaml(path))

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        d = asdict(self)
        # Convert Path objects to strings
        for key in _PATH_FIELDS:
            if d[key] is not None:
                d[key] = str(d[key])
        return d


@dataclass
class ProcessingResult:
    """
    Container for processing results and metadata.

    Attributes
    ----------
    site_id : str
        Site code.
    success : bool
        Whether conversion completed successfully.
    input_file : Path
        Path to input file.
    output_files : list of Path
        Written NetCDF files.
    n_steps : int
        Number of time steps written.
    years : tuple of int
        First and last year of the evaluated window.
    excluded : dict
        Excluded variables and the reason for each.
    warnings : list of str
        Recoverable problems met while converting.
    processing_time : float
        Processing time in seconds.
    error_type : str or None
        Exception class name if conversion failed.
    error_message : str or None
        Error message if conversion failed.
    """

    site_id: str
    success: bool
    input_file: Path
    output_files: List[Path] = field(default_factory=list)
    n_steps: int = 0
    years: Tuple[int, ...] = ()
    excluded: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    processing_time: float = 0.0
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert result to dictionary."""
        d = asdict(self)
        # Convert Path objects to strings
        d["input_file"] = str(d["input_file"])
        d["output_files"] = [str(p) for p in d["output_files"]]
        d["years"] = list(d["years"])
        return d

    def summary(self) -> str:
        """Generate a human-readable summary."""
        status = "SUCCESS" if self.success else "FAILED"
        lines = [
            f"Processing Result: {status}",
            f"Site: {self.site_id}",
            f"Input: {self.input_file}",
            f"Time steps: {self.n_steps}",
            f"Time: {self.processing_time:.2f}s",
        ]
        if self.years:
            lines.append(f"Years: {self.years[0]}-{self.years[-1]}")
        for path in self.output_files:
            lines.append(f"Output: {path}")
        if self.excluded:
            lines.append(f"Excluded variables: {', '.join(self.excluded)}")
        if self.warnings:
            lines.append(f"Warnings: {len(self.warnings)}")
        if self.error_message:
            lines.append(f"Error ({self.error_type}): {self.error_message}")
        return "\n".join(lines)


@dataclass
class ConversionOutput:
    """Validated schemas of one input file, keyed by file label."""

    schemas: Dict[str, OutputSchema]
    assessment: QualityAssessment
    grid: TimeGrid
    warnings: List[str] = field(default_factory=list)

    @property
    def years(self) -> Tuple[int, int]:
        """First and last calendar year of the evaluated window."""
        start, stop, _ = self.assessment.window.indices(self.grid.step_count)
        return self.grid.instant(start).year, self.grid.instant(stop - 1).year

    @property
    def n_steps(self) -> int:
        start, stop, _ = self.assessment.window.indices(self.grid.step_count)
        return stop - start


# =============================================================================
# Main Pipeline Class
# =============================================================================

class Pipeline:
    """
    Main orchestration class for FLUXNET to NetCDF conversion.

    Every stage after reading is deterministic and holds no state between
    files, so one instance can convert many files in sequence.

    Parameters
    ----------
    config : PipelineConfig, optional
        Configuration settings for the pipeline.
    catalog : VariableCatalog, optional
        Variable catalog; loaded from ``config.catalog_csv`` if omitted.
    logger : logging.Logger, optional
        Logger instance for tracking progress.

    Attributes
    ----------
    config : PipelineConfig
        Pipeline configuration.
    catalog : VariableCatalog
        Variable catalog driving the conversion.
    reader : FluxnetDataReader
        Data reader instance.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        catalog: Optional[VariableCatalog] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or PipelineConfig()
        self.logger = logger_check(logger)
        self.catalog = catalog or VariableCatalog.from_csv(self.config.catalog_csv)

        self.reader = FluxnetDataReader(logger=self.logger)
        self.resolver = ColumnResolver(self.catalog, logger=self.logger)
        self.deriver = TimeGridDeriver(self.resolver.time_vars, logger=self.logger)
        self.assessor = QualityAssessor(
            self.config.thresholds,
            include_all_eval=self.config.include_all_eval,
            logger=self.logger,
        )
        self.builder = SchemaBuilder(logger=self.logger)
        self.emitter = FileEmitter(logger=self.logger)

        self.logger.info("Pipeline initialized")
        self.logger.debug(f"Configuration: {self.config.to_dict()}")

    def build_schemas(
        self,
        input_file: Union[str, Path],
        site: SiteMetadata,
        production_time: Optional[str] = None,
    ) -> ConversionOutput:
        """
        Run every stage up to the validated output schemas.

        Nothing is written to disk.

        Parameters
        ----------
        input_file : str or Path
            FLUXNET CSV file.
        site : SiteMetadata
            Site information.
        production_time : str, optional
            Value of the ``Production_time`` attribute; defaults to now.

        Returns
        -------
        ConversionOutput

        Raises
        ------
        ConversionError
            Any fatal conversion error, annotated with the input file name.
        """
        input_file = Path(input_file)
        try:
            return self._build_schemas(input_file, site, production_time)
        except ConversionError as e:
            raise e.with_file(input_file.name)

    def _build_schemas(
        self, input_file: Path, site: SiteMetadata, production_time: Optional[str]
    ) -> ConversionOutput:
        self.logger.info(f"Step 1/5: Resolving columns of {input_file.name}")
        header = self.reader.read_header(input_file)
        plan = self.resolver.resolve(header)
        frame = self.reader.to_dataframe(input_file, plan.usecols, plan.dtypes)
        columns, time_frame = self.resolver.materialize(plan, frame)

        self.logger.info("Step 2/5: Deriving time grid")
        grid = self.deriver.derive(time_frame)

        if self.config.reanalysis_gapfill:
            self.logger.info("Step 3/5: Gap-filling from reanalysis")
            era_file = self._reanalysis_file(input_file, site.site_code)
            era = self.reader.read_reanalysis(era_file, time_frame)
            columns = gapfill_with_reanalysis(columns, era, logger=self.logger)
        else:
            self.logger.info("Step 3/5: Reanalysis gap-filling disabled")

        self.logger.info("Step 4/5: Assessing quality")
        assessment = self.assessor.assess(columns, grid)

        self.logger.info("Step 5/5: Building output schemas")
        run = RunInfo(
            input_file=input_file.name,
            thresholds=self.config.thresholds,
            production_time=production_time or datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            software_revision=self.config.software_revision,
            reanalysis_gapfill=self.config.reanalysis_gapfill,
            package_contact=self.config.package_contact,
            pals_contact=self.config.pals_contact,
        )
        schemas = {
            "Met": self.builder.build(columns, assessment, grid, site, run, Category.MET)
        }
        has_eval = any(
            c.spec.category is Category.EVAL and not c.spec.is_qc_flag
            for c in assessment.retained
        )
        if has_eval:
            schemas["Flux"] = self.builder.build(
                columns, assessment, grid, site, run, Category.EVAL
            )
        else:
            self.logger.warning("No evaluation variables retained; skipping Flux file")

        warnings = list(assessment.warnings)
        for schema in schemas.values():
            warnings.extend(self._check_ranges(schema))
        return ConversionOutput(
            schemas=schemas, assessment=assessment, grid=grid, warnings=warnings
        )

    def _reanalysis_file(self, input_file: Path, site_code: str) -> Path:
        """
        Locate the ERA-Interim file of ``site_code``.

        Raises
        ------
        ReanalysisError
            If the configured file belongs to another site, or no file is
            found for the site.
        """
        if self.config.reanalysis_file is not None:
            era_file = self.config.reanalysis_file
            era_site = get_fluxnet_site_code(era_file)
            if era_site != site_code:
                raise ReanalysisError(
                    f"Reanalysis file {era_file.name} belongs to site {era_site}, "
                    f"not {site_code}"
                )
            return era_file

        search_dir = self.config.reanalysis_dir or input_file.parent
        candidates = get_fluxnet_erai_files(search_dir, site_code, self.config.datasetname)
        if not candidates:
            raise ReanalysisError(
                f"No ERA-Interim file for site {site_code} in {search_dir}"
            )
        if len(candidates) > 1:
            self.logger.warning(
                f"Several ERA-Interim files for {site_code}; using {candidates[-1].name}"
            )
        self.logger.debug(f"Using reanalysis file {candidates[-1]}")
        return candidates[-1]

    def process_file(
        self,
        input_file: Union[str, Path],
        site: Union[SiteMetadata, str, None] = None,
        output_dir: Optional[Union[str, Path]] = None,
    ) -> ProcessingResult:
        """
        Convert a single file and write its NetCDF outputs.

        Parameters
        ----------
        input_file : str or Path
            FLUXNET CSV file.
        site : SiteMetadata or str, optional
            Site information, or a site code whose ``.ini`` file is read.
            Extracted from the file name if not provided.
        output_dir : str or Path, optional
            Output directory. Defaults to the input file's directory.

        Returns
        -------
        ProcessingResult
            Processing results and metadata. Never raises; failures are
            reported through ``success``, ``error_type`` and ``error_message``.
        """
        start_time = time.time()
        input_file = Path(input_file)
        site_id = site.site_code if isinstance(site, SiteMetadata) else site
        site_id = site_id or get_fluxnet_site_code(input_file) or "UNKNOWN"

        self.logger.info(f"Processing {input_file.name} for site {site_id}")

        try:
            if not isinstance(site, SiteMetadata):
                site = read_site_config(
                    site_id,
                    self.config.site_config_dir or DEFAULT_CONFIG_DIR,
                    dataset_version=get_fluxnet_version_no(input_file),
                )

            output = self.build_schemas(input_file, site)

            output_dir = Path(output_dir) if output_dir is not None else input_file.parent
            output_dir.mkdir(parents=True, exist_ok=True)
            y0, y1 = output.years
            targets = {
                output_dir / f"{site.site_code}_{y0}-{y1}_{self.config.datasetname}_{label}.nc": schema
                for label, schema in output.schemas.items()
            }
            try:
                written = self.emitter.write_many(targets)
            except ConversionError as e:
                raise e.with_file(input_file.name)

            processing_time = time.time() - start_time
            self.logger.info(f"Processing complete in {processing_time:.2f}s")
            return ProcessingResult(
                site_id=site_id,
                success=True,
                input_file=input_file,
                output_files=written,
                n_steps=output.n_steps,
                years=(y0, y1),
                excluded=dict(output.assessment.excluded),
                warnings=output.warnings,
                processing_time=processing_time,
            )

        except ConversionError as e:
            self.logger.error(f"Conversion failed: {e}")
            return ProcessingResult(
                site_id=site_id,
                success=False,
                input_file=input_file,
                processing_time=time.time() - start_time,
                error_type=type(e).__name__,
                error_message=str(e),
            )
        except Exception as e:
            self.logger.error(f"Processing failed: {e}", exc_info=True)
            return ProcessingResult(
                site_id=site_id,
                success=False,
                input_file=input_file,
                processing_time=time.time() - start_time,
                error_type=type(e).__name__,
                error_message=str(e),
            )

    def batch_process(
        self,
        input_dir: Union[str, Path],
        output_dir: Union[str, Path],
        pattern: str = "FLX_*FULLSET*.csv",
    ) -> List[ProcessingResult]:
        """
        Convert every file in a directory that matches ``pattern``.

        Parameters
        ----------
        input_dir : str or Path
            Directory containing input files.
        output_dir : str or Path
            Directory for output files.
        pattern : str, optional
            Glob pattern for finding input files.

        Returns
        -------
        list of ProcessingResult
            Results for all processed files.
        """
        input_dir = Path(input_dir)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        files = sorted(input_dir.rglob(pattern))

        if not files:
            self.logger.warning(f"No files found matching '{pattern}' in {input_dir}")
            return []

        self.logger.info(f"Found {len(files)} files to process")

        results = []
        for i, file in enumerate(files, 1):
            self.logger.info(f"File {i}/{len(files)}: {file.name}")
            results.append(self.process_file(input_file=file, output_dir=output_dir))

        self._log_batch_summary(results)
        self._save_batch_summary(results, output_dir)

        return results

    def _check_ranges(self, schema: OutputSchema) -> List[str]:
        """Warn about values outside the catalog's physical range."""
        warnings = []
        for var in schema.variables:
            try:
                spec = self.catalog.by_output(var.name)
            except KeyError:
                continue
            n = range_violations(var.data, spec.valid_min, spec.valid_max)
            if n:
                msg = (
                    f"{var.name}: {n} values outside valid range "
                    f"[{spec.valid_min:g}, {spec.valid_max:g}] {var.units}"
                )
                self.logger.warning(msg)
                warnings.append(msg)
        return warnings

    def _log_batch_summary(self, results: List[ProcessingResult]) -> None:
        """Log summary statistics for batch processing."""
        n_total = len(results)
        n_success = sum(1 for r in results if r.success)
        n_failed = n_total - n_success
        total_time = sum(r.processing_time for r in results)

        self.logger.info("BATCH PROCESSING SUMMARY")
        self.logger.info(f"Total files:    {n_total}")
        self.logger.info(f"Successful:     {n_success} ({n_success/n_total*100:.1f}%)")
        self.logger.info(f"Failed:         {n_failed}")
        self.logger.info(f"Total time:     {total_time:.2f}s")

        if n_failed > 0:
            self.logger.warning("Failed files:")
            for r in results:
                if not r.success:
                    self.logger.warning(f"  {r.site_id}: {r.error_type}: {r.error_message}")

    def _save_batch_summary(
        self,
        results: List[ProcessingResult],
        output_dir: Path
    ) -> None:
        """Save batch processing summary to JSON file."""
        summary_file = output_dir / "batch_summary.json"

        summary = {
            "timestamp": datetime.now().isoformat(),
            "config": self.config.to_dict(),
            "n_total": len(results),
            "n_success": sum(1 for r in results if r.success),
            "n_failed": sum(1 for r in results if not r.success),
            "results": [r.to_dict() for r in results],
        }

        with open(summary_file, "w") as f:
            json.dump(summary, f, indent=2)

        self.logger.info(f"Batch summary saved to {summary_file}")


# =============================================================================
# Convenience Functions
# =============================================================================

def process_file(
    input_file: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    site: Union[SiteMetadata, str, None] = None,
    **kwargs
) -> ProcessingResult:
    """
    Convenience function to convert a single file.

    Parameters
    ----------
    input_file : str or Path
        FLUXNET CSV file.
    output_dir : str or Path, optional
        Output directory.
    site : SiteMetadata or str, optional
        Site information or site code.
    **kwargs
        Additional arguments passed to Pipeline constructor.
    """
    pipeline = Pipeline(**kwargs)
    return pipeline.process_file(input_file, site=site, output_dir=output_dir)


def batch_process(
    input_dir: Union[str, Path],
    output_dir: Union[str, Path],
    **kwargs
) -> List[ProcessingResult]:
    """
    Convenience function for batch processing.

    Parameters
    ----------
    input_dir : str or Path
        Input directory.
    output_dir : str or Path
        Output directory.
    **kwargs
        Additional arguments passed to Pipeline constructor.

    Returns
    -------
    list of ProcessingResult
        Results for all processed files.
    """
    pipeline = Pipeline(**kwargs)
    return pipeline.batch_process(input_dir, output_dir)


# =============================================================================
# Command-Line Interface
# =============================================================================

def main():
    """Command-line interface for the pipeline."""
    parser = argparse.ArgumentParser(
        description="Convert FLUXNET2015 site data to NetCDF with fluxlsm",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert a single file
  python -m fluxlsm.pipeline --input FLX_AU-How_FLUXNET2015_FULLSET_HH_2001-2014_1-3.csv --output nc/

  # Batch convert all files in a directory
  python -m fluxlsm.pipeline --batch --input fluxnet/ --output nc/

  # With a YAML configuration and reanalysis gap-filling
  python -m fluxlsm.pipeline --input FLX_...csv --output nc/ \\
      --config run.yml --era FLX_AU-How_FLUXNET2015_ERAI_HH_1989-2014_1-3.csv
        """
    )

    # Input/output
    parser.add_argument("--input", "-i", required=True,
                        help="Input file or directory")
    parser.add_argument("--output", "-o", required=True,
                        help="Output directory")

    # Processing mode
    parser.add_argument("--site", "-s",
                        help="Site code (default: parsed from file name)")
    parser.add_argument("--batch", "-b", action="store_true",
                        help="Batch process all files in directory")
    parser.add_argument("--pattern", default="FLX_*FULLSET*.csv",
                        help="Glob pattern for batch mode")

    # Configuration options
    parser.add_argument("--config", "-c",
                        help="YAML pipeline configuration")
    parser.add_argument("--site-config-dir",
                        help="Directory of <site>.ini metadata files")
    parser.add_argument("--era",
                        help="Reanalysis CSV, or directory of FLX_<site>_<dataset>_ERAI_*.csv "
                             "files, used to gap-fill meteorological variables")
    parser.add_argument("--include-all-eval", action="store_true",
                        help="Keep evaluation variables that fail thresholds")

    # Logging
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Verbose output (DEBUG level)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Quiet output (WARNING level only)")

    args = parser.parse_args()

    # Set up logging
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s [%(asctime)s] %(name)s – %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Create pipeline configuration
    settings = load_yaml(args.config) if args.config else {}
    if args.site_config_dir:
        settings["site_config_dir"] = args.site_config_dir
    if args.era:
        settings["reanalysis_gapfill"] = True
        if Path(args.era).is_dir():
            settings["reanalysis_dir"] = args.era
        else:
            settings["reanalysis_file"] = args.era
    if args.include_all_eval:
        settings["include_all_eval"] = True
    config = PipelineConfig.from_dict(settings)

    pipeline = Pipeline(config=config, logger=logging.getLogger("fluxlsm"))

    input_path = Path(args.input)
    output_path = Path(args.output)

    if args.batch or input_path.is_dir():
        results = pipeline.batch_process(
            input_dir=input_path,
            output_dir=output_path,
            pattern=args.pattern,
        )
        n_success = sum(1 for r in results if r.success)
        print(f"\nConverted {n_success}/{len(results)} files")
    else:
        result = pipeline.process_file(
            input_file=input_path,
            site=args.site,
            output_dir=output_path,
        )
        print("\n" + result.summary())


if __name__ == "__main__":
    main()
