import unittest
import numpy as np
from fluxlsm.exceptions import SchemaMismatch
from fluxlsm.format.units import (
    CONTEXT_AIR_PRESSURE_PA,
    CONTEXT_AIR_TEMPERATURE_K,
    convert_units,
    rel_to_spec_humidity,
    render_unit,
    timestep_label,
)


class TestConvertUnits(unittest.TestCase):
    def test_rate_to_accumulation(self):
        source = np.array([0.0, 0.001, 0.0025])
        values, units = convert_units(source, "mm/s", "mm/timestep", 1800)
        np.testing.assert_allclose(values, source * 1800)
        self.assertEqual(units, "mm/30min")

    def test_accumulation_to_rate(self):
        values, units = convert_units(np.array([1.8]), "mm", "kg/m2/s", 1800)
        np.testing.assert_allclose(values, [0.001])
        self.assertEqual(units, "kg/m2/s")

    def test_kelvin_to_celsius(self):
        values, units = convert_units(np.array([273.15, 300.0]), "K", "degC", 1800)
        np.testing.assert_allclose(values, [0.0, 26.85])
        self.assertEqual(units, "degC")

    def test_celsius_to_kelvin(self):
        values, _ = convert_units(np.array([0.0, -10.0]), "degC", "K", 3600)
        np.testing.assert_allclose(values, [273.15, 263.15])

    def test_pressure(self):
        values, _ = convert_units(np.array([101.325]), "kPa", "Pa", 1800)
        np.testing.assert_allclose(values, [101325.0])
        values, _ = convert_units(np.array([1013.25]), "hPa", "Pa", 1800)
        np.testing.assert_allclose(values, [101325.0])

    def test_alias_is_identity(self):
        source = np.array([400.0, 410.0])
        values, units = convert_units(source, "umolCO2/mol", "ppm", 1800)
        np.testing.assert_array_equal(values, source)
        self.assertEqual(units, "ppm")

    def test_same_unit_copies(self):
        source = np.array([1.0, 2.0])
        values, units = convert_units(source, "W/m2", "W/m2", 1800)
        np.testing.assert_array_equal(values, source)
        self.assertIsNot(values, source)
        self.assertEqual(units, "W/m2")

    def test_missing_stays_missing(self):
        values, _ = convert_units(np.array([np.nan, 10.0]), "degC", "K", 1800)
        self.assertTrue(np.isnan(values[0]))

    def test_unknown_pair(self):
        with self.assertRaises(SchemaMismatch) as ctx:
            convert_units(np.array([1.0]), "furlong", "m", 1800, variable="Wind")
        self.assertEqual(ctx.exception.variable, "Wind")

    def test_humidity_requires_temperature(self):
        with self.assertRaises(SchemaMismatch):
            convert_units(np.array([50.0]), "%", "kg/kg", 1800)

    def test_humidity_conversion(self):
        context = {
            CONTEXT_AIR_TEMPERATURE_K: np.array([293.15]),
            CONTEXT_AIR_PRESSURE_PA: np.array([101325.0]),
        }
        values, units = convert_units(np.array([100.0]), "%", "kg/kg", 1800, context=context)
        self.assertEqual(units, "kg/kg")
        self.assertAlmostEqual(values[0], 0.0147, places=3)

    def test_humidity_defaults_to_standard_pressure(self):
        temp = np.array([293.15])
        with_default, _ = convert_units(
            np.array([50.0]), "%", "kg/kg", 1800, context={CONTEXT_AIR_TEMPERATURE_K: temp}
        )
        explicit = rel_to_spec_humidity(np.array([50.0]), temp, 101325.0)
        np.testing.assert_allclose(with_default, explicit)


class TestUnitLabels(unittest.TestCase):
    def test_timestep_label(self):
        self.assertEqual(timestep_label(1800), "30min")
        self.assertEqual(timestep_label(3600), "60min")
        self.assertEqual(timestep_label(90), "90s")

    def test_render_unit(self):
        self.assertEqual(render_unit("mm/timestep", 3600), "mm/60min")
        self.assertEqual(render_unit("W/m2", 3600), "W/m2")


if __name__ == '__main__':
    unittest.main()
