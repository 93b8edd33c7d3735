"""
Utility functions for the fluxlsm package.
"""
import logging
import configparser
import math
from pathlib import Path
from typing import Dict, List, Optional
import yaml

from fluxlsm.catalog import SiteMetadata


DEFAULT_CONFIG_DIR = Path(__file__).parent / "data"


def load_yaml(path: Path | str) -> Dict:
    """
    Load a YAML file and return its contents as a dictionary.

    Parameters
    ----------
    path : Path or str
        The path to the YAML file.

    Returns
    -------
    dict
        The contents of the YAML file as a dictionary.

    Raises
    ------
    FileNotFoundError
        If the specified file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open() as fp:
        return yaml.safe_load(fp) or {}


def logger_check(logger: logging.Logger | None) -> logging.Logger:
    """
    Initialize and return a logger instance if none is provided.

    Parameters
    ----------
    logger : logging.Logger or None
        An existing logger instance.

    Returns
    -------
    logging.Logger
        A configured logger instance.
    """
    if logger is None:
        logger = logging.getLogger(__name__)
        logger.setLevel(logging.WARNING)
        if not logger.handlers:
            ch = logging.StreamHandler()
            ch.setFormatter(
                logging.Formatter(
                    fmt="%(levelname)s [%(asctime)s] %(name)s – %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            logger.addHandler(ch)
    return logger


def is_unset(value) -> bool:
    """Return True for None, NaN, empty strings and the -9999 sentinel."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() in ("", "NA", "NaN", "nan", "-9999")
    try:
        return math.isnan(value) or value == -9999
    except TypeError:
        return False


# ============================================================================
# Site Configuration Functions
# ============================================================================


def _optional_float(section: configparser.SectionProxy, key: str) -> Optional[float]:
    raw = section.get(key)
    if is_unset(raw):
        return None
    return float(raw)


def _optional_str(section: configparser.SectionProxy, key: str) -> Optional[str]:
    raw = section.get(key)
    if is_unset(raw):
        return None
    return raw.strip()


def read_site_config(
    site_id: str,
    config_dir: Path | str = DEFAULT_CONFIG_DIR,
    dataset_version: Optional[str] = None,
) -> SiteMetadata:
    """
    Read site metadata from an .ini file.

    The file ``<config_dir>/<site_id>.ini`` must contain a ``[METADATA]``
    section with at least ``station_latitude``, ``station_longitude`` and
    ``site_name``. Optional keys are ``dataset_version``, ``tier``,
    ``station_elevation``, ``tower_height``, ``canopy_height``,
    ``igbp_short``, ``igbp_long`` and ``mean_annual_precip``; a blank value
    or -9999 marks them as unset.

    Parameters
    ----------
    site_id : str
        The site identifier (e.g., 'AU-How').
    config_dir : Path or str, optional
        Directory containing the .ini files.
    dataset_version : str, optional
        Overrides the ``dataset_version`` key, typically parsed from the
        input file name.

    Returns
    -------
    SiteMetadata

    Raises
    ------
    FileNotFoundError
        If the .ini file for the site is not found.
    KeyError
        If required metadata fields are missing.

    Examples
    --------
    >>> site = read_site_config('AU-How')
    >>> site.latitude
    -12.4943
    """
    config_dir = Path(config_dir)
    ini_file = config_dir / f"{site_id}.ini"

    if not ini_file.exists():
        available_sites = [f.stem for f in config_dir.glob("*.ini")]
        raise FileNotFoundError(
            f"Configuration file not found: {ini_file}\n"
            f"Available sites: {', '.join(sorted(available_sites))}"
        )

    parser = configparser.ConfigParser()
    parser.read(ini_file)

    try:
        metadata = parser["METADATA"]
        return SiteMetadata(
            latitude=float(metadata["station_latitude"]),
            longitude=float(metadata["station_longitude"]),
            site_code=site_id,
            long_sitename=metadata["site_name"],
            dataset_version=dataset_version or metadata.get("dataset_version", "NA"),
            tier=_optional_str(metadata, "tier"),
            elevation=_optional_float(metadata, "station_elevation"),
            tower_height=_optional_float(metadata, "tower_height"),
            canopy_height=_optional_float(metadata, "canopy_height"),
            short_veg_type=_optional_str(metadata, "igbp_short"),
            long_veg_type=_optional_str(metadata, "igbp_long"),
            mean_annual_precip=_optional_float(metadata, "mean_annual_precip"),
        )
    except KeyError as e:
        raise KeyError(
            f"Missing required metadata field in {ini_file}: {e}"
        ) from e
    except ValueError as e:
        raise ValueError(
            f"Invalid numeric value in {ini_file}: {e}"
        ) from e


# ============================================================================
# File Name Helpers
# ============================================================================


def get_fluxnet_site_code(filepath: Path | str) -> Optional[str]:
    """
    Extract the site code from a FLUXNET2015 file name.

    >>> get_fluxnet_site_code('FLX_AU-How_FLUXNET2015_FULLSET_HH_2001-2014_1-3.csv')
    'AU-How'
    """
    parts = Path(filepath).stem.split("_")
    for part in parts:
        if len(part) == 6 and part[2] == "-":
            return part
    return None


def get_fluxnet_version_no(filepath: Path | str) -> Optional[str]:
    """
    Extract the dataset version from a FLUXNET2015 file name.

    >>> get_fluxnet_version_no('FLX_AU-How_FLUXNET2015_FULLSET_HH_2001-2014_1-3.csv')
    '1-3'
    """
    parts = Path(filepath).stem.split("_")
    if len(parts) >= 7 and parts[0] == "FLX":
        return parts[-1]
    return None


def get_fluxnet_erai_files(
    search_dir: Path | str, site_code: str, datasetname: str = "FLUXNET2015"
) -> List[Path]:
    """
    Find the ERA-Interim files of one site in ``search_dir``.

    >>> get_fluxnet_erai_files('fluxnet/', 'AU-How')  # doctest: +SKIP
    [PosixPath('fluxnet/FLX_AU-How_FLUXNET2015_ERAI_HH_1989-2014_1-3.csv')]
    """
    return sorted(Path(search_dir).glob(f"FLX_{site_code}_{datasetname}_ERAI_*.csv"))


__all__ = [
    "load_yaml",
    "logger_check",
    "is_unset",
    "read_site_config",
    "get_fluxnet_site_code",
    "get_fluxnet_version_no",
    "get_fluxnet_erai_files",
]
