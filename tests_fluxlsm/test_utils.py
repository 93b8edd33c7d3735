import logging
import tempfile
import unittest
from pathlib import Path
import numpy as np
from fluxlsm.utils import (
    get_fluxnet_erai_files,
    get_fluxnet_site_code,
    get_fluxnet_version_no,
    is_unset,
    load_yaml,
    logger_check,
    read_site_config,
)

FLUXNET_FILE = "FLX_AU-How_FLUXNET2015_FULLSET_HH_2001-2014_1-3.csv"


class TestSiteConfig(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write_ini(self, site_id, body):
        (self.dir / f"{site_id}.ini").write_text("[METADATA]\n" + body)

    def test_packaged_site(self):
        site = read_site_config("AU-How")
        self.assertEqual(site.site_code, "AU-How")
        self.assertEqual(site.long_sitename, "Howard Springs")
        self.assertAlmostEqual(site.latitude, -12.4943)
        self.assertAlmostEqual(site.longitude, 131.1523)
        self.assertEqual(site.canopy_height, 15.0)
        self.assertEqual(site.short_veg_type, "WSA")
        self.assertEqual(site.tier, "1")
        self.assertEqual(site.dataset_version, "1-3")

    def test_dataset_version_override(self):
        site = read_site_config("AU-How", dataset_version="2-1")
        self.assertEqual(site.dataset_version, "2-1")

    def test_unset_optional_fields(self):
        self.write_ini(
            "XX-Tst",
            "site_name = Test site\nstation_latitude = 40.0\nstation_longitude = -111.0\n"
            "canopy_height = -9999\ntower_height =\n",
        )
        site = read_site_config("XX-Tst", self.dir)
        self.assertIsNone(site.canopy_height)
        self.assertIsNone(site.tower_height)
        self.assertIsNone(site.tier)
        self.assertEqual(site.dataset_version, "NA")

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            read_site_config("XX-Nop", self.dir)

    def test_missing_required_key(self):
        self.write_ini("XX-Tst", "site_name = Test site\nstation_latitude = 40.0\n")
        with self.assertRaises(KeyError):
            read_site_config("XX-Tst", self.dir)

    def test_invalid_number(self):
        self.write_ini(
            "XX-Tst",
            "site_name = Test site\nstation_latitude = north\nstation_longitude = -111.0\n",
        )
        with self.assertRaises(ValueError):
            read_site_config("XX-Tst", self.dir)


class TestFileNameHelpers(unittest.TestCase):
    def test_site_code(self):
        self.assertEqual(get_fluxnet_site_code(FLUXNET_FILE), "AU-How")
        self.assertEqual(get_fluxnet_site_code(Path("/data") / FLUXNET_FILE), "AU-How")
        self.assertIsNone(get_fluxnet_site_code("met_data.csv"))

    def test_version(self):
        self.assertEqual(get_fluxnet_version_no(FLUXNET_FILE), "1-3")
        self.assertIsNone(get_fluxnet_version_no("AU-How_met.csv"))

    def test_erai_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            for name in (
                "FLX_AU-How_FLUXNET2015_ERAI_HH_1989-2014_1-3.csv",
                "FLX_AU-Dry_FLUXNET2015_ERAI_HH_1989-2014_1-3.csv",
                FLUXNET_FILE,
            ):
                (tmp / name).write_text("")
            found = get_fluxnet_erai_files(tmp, "AU-How")
            self.assertEqual([p.name for p in found],
                             ["FLX_AU-How_FLUXNET2015_ERAI_HH_1989-2014_1-3.csv"])
            self.assertEqual(get_fluxnet_erai_files(tmp, "AU-How", datasetname="LaThuile"), [])


class TestHelpers(unittest.TestCase):
    def test_is_unset(self):
        for value in (None, np.nan, "", "NA", " -9999 ", -9999, -9999.0):
            self.assertTrue(is_unset(value), value)
        for value in (0, 15.0, "WSA", "0"):
            self.assertFalse(is_unset(value), value)

    def test_logger_check(self):
        logger = logging.getLogger("custom")
        self.assertIs(logger_check(logger), logger)
        default = logger_check(None)
        self.assertIsInstance(default, logging.Logger)
        n_handlers = len(default.handlers)
        logger_check(None)
        self.assertEqual(len(default.handlers), n_handlers)

    def test_load_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "run.yml"
            path.write_text("datasetname: TEST\nthresholds:\n  missing: 10\n")
            self.assertEqual(load_yaml(path), {"datasetname": "TEST", "thresholds": {"missing": 10}})
            empty = Path(tmp) / "empty.yml"
            empty.write_text("")
            self.assertEqual(load_yaml(empty), {})
            with self.assertRaises(FileNotFoundError):
                load_yaml(Path(tmp) / "missing.yml")


if __name__ == '__main__':
    unittest.main()
