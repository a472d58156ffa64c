"""Integration tests for RaceGuard on the lowered sample program."""

import unittest

from raceguard import AnalysisConfig, FunctionRef, VarKey, analyze_program, load_program
from raceguard.detector import derive_roots
from raceguard.errors import ConfigurationError
from tests.test_utils import PKG, SAMPLE_PROGRAM


class TestSampleProgram(unittest.TestCase):
    """The sample locks inside the goroutine but not in main after the spawn."""

    @classmethod
    def setUpClass(cls):
        cls.program = load_program(SAMPLE_PROGRAM)

    def test_default_roots_are_main_and_its_closure(self):
        roots = derive_roots(self.program, AnalysisConfig())

        self.assertEqual(roots, [FunctionRef(PKG, "main"), FunctionRef(PKG, "main$1")])

    def test_races_on_shared_counter(self):
        result = analyze_program(self.program, source=str(SAMPLE_PROGRAM))

        self.assertEqual(len(result.races), 6)
        self.assertEqual(
            {race.variable for race in result.races}, {VarKey(PKG, "main", 0, "i")}
        )
        for race in result.races:
            self.assertEqual(race.access.function, FunctionRef(PKG, "main$1"))
            self.assertEqual(race.conflicting_access.function, FunctionRef(PKG, "main"))
            self.assertNotEqual(race.conflicting_access.position, 140)

    def test_metrics(self):
        result = analyze_program(self.program)

        self.assertEqual(result.metrics["functions_scanned"], 2)
        self.assertEqual(result.metrics["accesses_recorded"], 6)
        self.assertEqual(result.metrics["shared_variables"], 1)
        self.assertEqual(result.metrics["lock_operations"], 2)
        self.assertEqual(result.metrics["concurrent_units"], 1)
        self.assertEqual(result.diagnostics, [])

    def test_race_rendering(self):
        result = analyze_program(self.program)
        race = result.races[0]

        self.assertEqual(race.access.location, f"{PKG}.main$1.0.213")
        self.assertEqual(race.access.instruction, "t1 = *i")
        self.assertEqual(
            race.as_dict()["variable"], "command-line-arguments.main.0.i"
        )

    def test_explicit_root_subset(self):
        config = AnalysisConfig(roots=(FunctionRef(PKG, "main$1"),))
        result = analyze_program(self.program, config)

        self.assertEqual(result.races, [])

    def test_unknown_explicit_root(self):
        config = AnalysisConfig(roots=(FunctionRef(PKG, "main$7"),))

        with self.assertRaises(ConfigurationError):
            analyze_program(self.program, config)


if __name__ == "__main__":
    unittest.main()
