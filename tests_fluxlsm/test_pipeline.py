import json
import tempfile
import unittest
from pathlib import Path
import numpy as np
from netCDF4 import Dataset
from fluxlsm.catalog import SiteMetadata
from fluxlsm.exceptions import ReanalysisError
from fluxlsm.pipeline import Pipeline, PipelineConfig, ProcessingResult
from fluxlsm.qaqc.quality import Thresholds
from synthetic import flux_frame, make_catalog

SITE = SiteMetadata(
    latitude=40.0,
    longitude=-111.0,
    site_code="XX-Tst",
    long_sitename="Test site",
    dataset_version="1-3",
)


def kelvin_catalog():
    return make_catalog([
        dict(source_name="TA", output_name="Tair", standard_name="air_temperature",
             category="Met", unit_source="K", unit_target="degC",
             valid_min=-60, valid_max=60, essential=True, reanalysis_name="TA_ERA"),
        dict(source_name="TA_QC", output_name="Tair_qc", source_type="integer",
             category="Met", valid_min=0, valid_max=4),
        dict(source_name="LE", output_name="Qle", standard_name="surface_upward_latent_heat_flux",
             category="Eval", unit_source="W/m2", unit_target="W/m2",
             valid_min=-500, valid_max=1000, preferred=True),
        dict(source_name="LE_QC", output_name="Qle_qc", source_type="integer",
             category="Eval", valid_min=0, valid_max=4),
    ])


def write_record(path, start="2013-01-01", periods=8760, minutes=60, eval_vars=True, **overrides):
    t = np.arange(periods)
    columns = {
        "TA": 290.0 + 5 * np.sin(2 * np.pi * t / 48),
        "TA_QC": 0.0,
    }
    if eval_vars:
        columns.update(LE=100.0 + 20 * np.cos(2 * np.pi * t / 48), LE_QC=0.0)
    columns.update(overrides)
    frame = flux_frame(start, periods, minutes, **columns)
    frame.fillna(-9999).to_csv(path, index=False)
    return frame


class TestEndToEnd(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.tmp = tempfile.TemporaryDirectory()
        cls.dir = Path(cls.tmp.name)
        cls.input_file = cls.dir / "XX-Tst_2013-2014.csv"
        # two whole years of half-hourly data
        cls.frame = write_record(cls.input_file, periods=35040, minutes=30)
        cls.config = PipelineConfig(
            thresholds=Thresholds(missing_pct_max=15, min_whole_years=2)
        )
        cls.pipeline = Pipeline(config=cls.config, catalog=kelvin_catalog())

    @classmethod
    def tearDownClass(cls):
        cls.tmp.cleanup()

    def test_build_schemas(self):
        output = self.pipeline.build_schemas(
            self.input_file, SITE, production_time="2024-01-01 00:00:00"
        )
        self.assertEqual(set(output.schemas), {"Met", "Flux"})
        self.assertEqual(output.years, (2013, 2014))
        self.assertEqual(output.n_steps, 35040)
        report = output.assessment.reports["Tair"]
        self.assertEqual(report.total_missing_pct, 0)
        self.assertEqual(report.total_gapfilled_pct, 0)
        tair = output.schemas["Met"].variable("Tair")
        self.assertEqual(tair.units, "degC")
        np.testing.assert_allclose(tair.data[:, 0, 0, 0], self.frame["TA"].to_numpy() - 273.15)
        self.assertNotIn("canopy_height", output.schemas["Met"])
        self.assertEqual(output.warnings, [])

    def test_process_file_writes_met_and_flux(self):
        out = self.dir / "nc"
        result = self.pipeline.process_file(self.input_file, site=SITE, output_dir=out)
        self.assertTrue(result.success, result.error_message)
        self.assertEqual(
            [p.name for p in result.output_files],
            ["XX-Tst_2013-2014_FLUXNET2015_Met.nc", "XX-Tst_2013-2014_FLUXNET2015_Flux.nc"],
        )
        self.assertEqual(result.years, (2013, 2014))
        self.assertEqual(result.n_steps, 35040)

        with Dataset(str(out / "XX-Tst_2013-2014_FLUXNET2015_Met.nc")) as nc:
            tair = nc.variables["Tair"]
            self.assertEqual(tair.units, "degC")
            self.assertAlmostEqual(float(tair.getncattr("Missing_%")), 0.0)
            np.testing.assert_allclose(
                np.asarray(tair[:, 0, 0, 0]), self.frame["TA"].to_numpy() - 273.15
            )
            self.assertNotIn("canopy_height", nc.variables)
            self.assertNotIn("Qle", nc.variables)
            self.assertEqual(nc.getncattr("Input_file"), self.input_file.name)
        with Dataset(str(out / "XX-Tst_2013-2014_FLUXNET2015_Flux.nc")) as nc:
            self.assertIn("Qle", nc.variables)
            self.assertIn("Qle_qc", nc.variables)


class TestPipelineFailures(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.out = self.dir / "nc"
        self.pipeline = Pipeline(
            config=PipelineConfig(thresholds=Thresholds(missing_pct_max=15, min_whole_years=1)),
            catalog=kelvin_catalog(),
        )

    def tearDown(self):
        self.tmp.cleanup()

    def assertNoOutput(self):
        self.assertEqual(list(self.dir.rglob("*.nc")), [])
        self.assertEqual(list(self.dir.rglob("*.tmp")), [])

    def test_missing_essential_column(self):
        path = self.dir / "record.csv"
        flux_frame("2013-01-01", 48, 30, LE=100.0, LE_QC=0.0).to_csv(path, index=False)
        result = self.pipeline.process_file(path, site=SITE, output_dir=self.out)
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "SchemaMismatch")
        self.assertIn("TA", result.error_message)
        self.assertIn("record.csv", result.error_message)
        self.assertNoOutput()

    def test_step_out_of_bounds(self):
        path = self.dir / "record.csv"
        write_record(path, periods=48, minutes=120)
        result = self.pipeline.process_file(path, site=SITE, output_dir=self.out)
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "TimingError")
        self.assertNoOutput()

    def test_essential_threshold_failure(self):
        path = self.dir / "record.csv"
        write_record(path, TA=np.nan)
        result = self.pipeline.process_file(path, site=SITE, output_dir=self.out)
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "ThresholdFailure")
        self.assertNoOutput()

    def test_missing_site_config(self):
        path = self.dir / "FLX_XX-Nop_FLUXNET2015_FULLSET_HH_2013-2013_1-3.csv"
        write_record(path)
        pipeline = Pipeline(
            config=PipelineConfig(site_config_dir=self.dir), catalog=kelvin_catalog()
        )
        result = pipeline.process_file(path, output_dir=self.out)
        self.assertFalse(result.success)
        self.assertEqual(result.site_id, "XX-Nop")
        self.assertEqual(result.error_type, "FileNotFoundError")

    def test_met_only_without_eval(self):
        path = self.dir / "record.csv"
        write_record(path, eval_vars=False)
        result = self.pipeline.process_file(path, site=SITE, output_dir=self.out)
        self.assertTrue(result.success, result.error_message)
        self.assertEqual(
            [p.name for p in result.output_files], ["XX-Tst_2013-2013_FLUXNET2015_Met.nc"]
        )

    def test_excluded_eval_reported(self):
        path = self.dir / "record.csv"
        le = np.full(8760, 100.0)
        le[::2] = np.nan
        write_record(path, LE=le)
        result = self.pipeline.process_file(path, site=SITE, output_dir=self.out)
        self.assertTrue(result.success, result.error_message)
        self.assertEqual(set(result.excluded), {"Qle", "Qle_qc"})
        self.assertTrue(result.warnings)
        self.assertEqual(len(result.output_files), 1)


GAPFILL_THRESHOLDS = Thresholds(missing_pct_max=15, gapfill_all_max=20, min_whole_years=1)


def era_name(site_code):
    return f"FLX_{site_code}_FLUXNET2015_ERAI_HH_2013-2013_1-3.csv"


def write_era(path, ta_era):
    flux_frame("2013-01-01", 8760, 60, TA_ERA=ta_era).to_csv(path, index=False)


def gappy_tair():
    ta = 290.0 + np.zeros(8760)
    ta[:438] = np.nan
    return ta


def write_site_ini(config_dir, site_code):
    (config_dir / f"{site_code}.ini").write_text(
        f"[METADATA]\nsite_name = Site {site_code}\nstation_latitude = 40.0\n"
        "station_longitude = -111.0\n"
    )


class TestReanalysisGapfill(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.path = self.dir / "record.csv"
        write_record(self.path, TA=gappy_tair())

    def tearDown(self):
        self.tmp.cleanup()

    def test_gaps_filled_from_reanalysis(self):
        era_file = self.dir / era_name("XX-Tst")
        write_era(era_file, 280.0)
        config = PipelineConfig(
            thresholds=GAPFILL_THRESHOLDS,
            reanalysis_gapfill=True,
            reanalysis_file=era_file,
        )
        output = Pipeline(config=config, catalog=kelvin_catalog()).build_schemas(self.path, SITE)
        tair = output.schemas["Met"].variable("Tair")
        self.assertAlmostEqual(tair.data[0, 0, 0, 0], 280.0 - 273.15)
        self.assertEqual(tair.attributes["Missing_%"], 0.0)
        self.assertEqual(tair.attributes["Gap-filled_%"], 5.0)
        self.assertEqual(tair.attributes["ERA-Interim variable used in gapfilling"], "TA_ERA")
        tair_qc = output.schemas["Met"].variable("Tair_qc")
        self.assertEqual(tair_qc.data[0, 0, 0, 0], 4.0)

    def test_site_file_found_next_to_input(self):
        write_era(self.dir / era_name("XX-Tst"), 275.0)
        write_era(self.dir / era_name("XX-Oth"), 300.0)
        config = PipelineConfig(thresholds=GAPFILL_THRESHOLDS, reanalysis_gapfill=True)
        output = Pipeline(config=config, catalog=kelvin_catalog()).build_schemas(self.path, SITE)
        tair = output.schemas["Met"].variable("Tair")
        self.assertAlmostEqual(tair.data[0, 0, 0, 0], 275.0 - 273.15)

    def test_site_file_found_in_reanalysis_dir(self):
        era_dir = self.dir / "era"
        era_dir.mkdir()
        write_era(era_dir / era_name("XX-Tst"), 285.0)
        config = PipelineConfig(
            thresholds=GAPFILL_THRESHOLDS, reanalysis_gapfill=True, reanalysis_dir=era_dir
        )
        output = Pipeline(config=config, catalog=kelvin_catalog()).build_schemas(self.path, SITE)
        self.assertAlmostEqual(
            output.schemas["Met"].variable("Tair").data[0, 0, 0, 0], 285.0 - 273.15
        )

    def test_file_of_other_site_rejected(self):
        era_file = self.dir / era_name("XX-Oth")
        write_era(era_file, 300.0)
        config = PipelineConfig(
            thresholds=GAPFILL_THRESHOLDS, reanalysis_gapfill=True, reanalysis_file=era_file
        )
        result = Pipeline(config=config, catalog=kelvin_catalog()).process_file(
            self.path, site=SITE, output_dir=self.dir / "nc"
        )
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "ReanalysisError")
        self.assertIn("XX-Oth", result.error_message)
        self.assertEqual(list(self.dir.rglob("*.nc")), [])

    def test_missing_site_file(self):
        config = PipelineConfig(thresholds=GAPFILL_THRESHOLDS, reanalysis_gapfill=True)
        with self.assertRaises(ReanalysisError):
            Pipeline(config=config, catalog=kelvin_catalog()).build_schemas(self.path, SITE)


class TestBatchProcess(unittest.TestCase):
    def test_batch_summary(self):
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            (tmp / "XX-Tst.ini").write_text(
                "[METADATA]\nsite_name = Test site\nstation_latitude = 40.0\n"
                "station_longitude = -111.0\ncanopy_height = 2.5\n"
            )
            data_dir = tmp / "data"
            data_dir.mkdir()
            write_record(data_dir / "FLX_XX-Tst_FLUXNET2015_FULLSET_HH_2013-2013_1-3.csv")
            write_record(data_dir / "FLX_XX-Tst_FLUXNET2015_FULLSET_HH_2014-2014_1-3.csv",
                         start="2014-01-01", periods=48, minutes=120)

            config = PipelineConfig(
                thresholds=Thresholds(missing_pct_max=15, min_whole_years=1),
                site_config_dir=tmp,
                datasetname="TEST",
            )
            pipeline = Pipeline(config=config, catalog=kelvin_catalog())
            results = pipeline.batch_process(data_dir, tmp / "out", pattern="FLX_*.csv")

            self.assertEqual([r.success for r in results], [True, False])
            summary = json.loads((tmp / "out" / "batch_summary.json").read_text())
            self.assertEqual(summary["n_total"], 2)
            self.assertEqual(summary["n_success"], 1)
            self.assertEqual(summary["results"][1]["error_type"], "TimingError")

            met = tmp / "out" / "XX-Tst_2013-2013_TEST_Met.nc"
            with Dataset(str(met)) as nc:
                self.assertEqual(nc.getncattr("Fluxnet_dataset_version"), "1-3")
                self.assertEqual(float(nc.variables["canopy_height"][0, 0]), 2.5)


class TestBatchReanalysis(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.data_dir = self.dir / "data"
        self.data_dir.mkdir()
        self.out = self.dir / "out"
        for site_code, ta_era in (("XX-Aaa", 250.0), ("XX-Bbb", 300.0)):
            write_site_ini(self.dir, site_code)
            write_record(
                self.data_dir / f"FLX_{site_code}_FLUXNET2015_FULLSET_HH_2013-2013_1-3.csv",
                TA=gappy_tair(),
            )
            write_era(self.data_dir / era_name(site_code), ta_era)

    def tearDown(self):
        self.tmp.cleanup()

    def first_tair(self, site_code):
        with Dataset(str(self.out / f"{site_code}_2013-2013_FLUXNET2015_Met.nc")) as nc:
            return float(nc.variables["Tair"][0, 0, 0, 0])

    def test_each_site_uses_own_reanalysis(self):
        config = PipelineConfig(
            thresholds=GAPFILL_THRESHOLDS,
            reanalysis_gapfill=True,
            site_config_dir=self.dir,
        )
        results = Pipeline(config=config, catalog=kelvin_catalog()).batch_process(
            self.data_dir, self.out
        )
        self.assertEqual([(r.site_id, r.success) for r in results],
                         [("XX-Aaa", True), ("XX-Bbb", True)])
        self.assertAlmostEqual(self.first_tair("XX-Aaa"), 250.0 - 273.15, places=4)
        self.assertAlmostEqual(self.first_tair("XX-Bbb"), 300.0 - 273.15, places=4)

    def test_fixed_reanalysis_file_only_fills_its_site(self):
        config = PipelineConfig(
            thresholds=GAPFILL_THRESHOLDS,
            reanalysis_gapfill=True,
            reanalysis_file=self.data_dir / era_name("XX-Aaa"),
            site_config_dir=self.dir,
        )
        results = Pipeline(config=config, catalog=kelvin_catalog()).batch_process(
            self.data_dir, self.out
        )
        self.assertEqual([r.success for r in results], [True, False])
        self.assertEqual(results[1].error_type, "ReanalysisError")
        self.assertFalse((self.out / "XX-Bbb_2013-2013_FLUXNET2015_Met.nc").exists())

    def test_per_tier_thresholds_from_yaml(self):
        le_qc = np.zeros(8760)
        le_qc[:876] = 1.0
        for path in self.data_dir.glob("FLX_*FULLSET*.csv"):
            write_record(path, LE_QC=le_qc)
        yaml_file = self.dir / "run.yml"
        yaml_file.write_text(
            f"site_config_dir: {self.dir}\n"
            "thresholds:\n"
            "  missing: 15\n"
            "  gapfill_good: 5\n"
            "  min_yrs: 1\n"
        )
        config = PipelineConfig.from_yaml(yaml_file)
        results = Pipeline(config=config, catalog=kelvin_catalog()).batch_process(
            self.data_dir, self.out
        )
        self.assertTrue(all(r.success for r in results))
        for result in results:
            self.assertIn("Qle", result.excluded)
            self.assertIn("gapfill_good", result.excluded["Qle"])
            self.assertEqual(len(result.output_files), 1)
        summary = json.loads((self.out / "batch_summary.json").read_text())
        self.assertIsNone(summary["config"]["thresholds"]["gapfill_all_max"])


class TestPipelineConfig(unittest.TestCase):
    def test_defaults(self):
        config = PipelineConfig()
        self.assertEqual(config.thresholds.missing_pct_max, 15)
        self.assertEqual(config.thresholds.gapfill_all_max, 20)
        self.assertEqual(config.thresholds.min_whole_years, 2)
        self.assertEqual(config.datasetname, "FLUXNET2015")

    def test_from_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "run.yml"
            path.write_text(
                "datasetname: TEST\n"
                "include_all_eval: true\n"
                "catalog_csv: catalog.csv\n"
                "thresholds:\n"
                "  missing: 10\n"
                "  gapfill_all: null\n"
                "  gapfill_good: 5\n"
                "  min_yrs: 1\n"
            )
            config = PipelineConfig.from_yaml(path)
        self.assertEqual(config.datasetname, "TEST")
        self.assertTrue(config.include_all_eval)
        self.assertEqual(config.catalog_csv, Path("catalog.csv"))
        self.assertEqual(config.thresholds.missing_pct_max, 10)
        self.assertIsNone(config.thresholds.gapfill_all_max)
        self.assertEqual(config.thresholds.gapfill_good_max, 5)
        self.assertEqual(config.thresholds.min_whole_years, 1)

    def test_per_tier_thresholds_drop_default_aggregate(self):
        config = PipelineConfig.from_dict(
            {"thresholds": {"missing": 15, "gapfill_good": 5, "min_yrs": 1}}
        )
        self.assertIsNone(config.thresholds.gapfill_all_max)
        self.assertEqual(config.thresholds.gapfill_good_max, 5)
        self.assertEqual(config.thresholds.min_whole_years, 1)
        partial = PipelineConfig.from_dict({"thresholds": {"missing": 10}})
        self.assertEqual(partial.thresholds.gapfill_all_max, 20)
        self.assertEqual(partial.thresholds.min_whole_years, 2)

    def test_invalid_config(self):
        with self.assertRaises(KeyError):
            PipelineConfig.from_dict({"check_timestamps": False})
        with self.assertRaises(ValueError):
            PipelineConfig(reanalysis_file="era.csv", reanalysis_dir="era/")
        with self.assertRaises(ValueError):
            PipelineConfig.from_dict({"thresholds": {"missing": 120}})

    def test_to_dict_is_json_serializable(self):
        config = PipelineConfig(reanalysis_gapfill=True, reanalysis_file="era.csv")
        d = config.to_dict()
        self.assertEqual(d["reanalysis_file"], "era.csv")
        self.assertIsNone(d["reanalysis_dir"])
        json.dumps(d)

    def test_result_summary(self):
        result = ProcessingResult(
            site_id="XX-Tst",
            success=False,
            input_file=Path("record.csv"),
            error_type="TimingError",
            error_message="bad step",
        )
        self.assertIn("FAILED", result.summary())
        self.assertIn("TimingError", result.summary())
        json.dumps(result.to_dict())


if __name__ == '__main__':
    unittest.main()
