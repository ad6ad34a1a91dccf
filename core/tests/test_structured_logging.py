"""Tests for import-correlated structured logging."""

import logging
import unittest

from core.structured_logging import (
    _ImportContextFilter,
    get_import_id,
    get_stage,
    get_stage_durations,
    set_import_id,
    stage_scope,
)


class TestStructuredLogging(unittest.TestCase):
    def test_set_import_id_generates_uuid(self) -> None:
        value = set_import_id()
        self.assertEqual(len(value), 36)
        self.assertEqual(get_import_id(), value)

    def test_set_import_id_explicit(self) -> None:
        self.assertEqual(set_import_id("import-7"), "import-7")
        self.assertEqual(get_import_id(), "import-7")

    def test_stage_scope_sets_and_restores(self) -> None:
        self.assertEqual(get_stage(), "-")
        with stage_scope("stage1_document"):
            self.assertEqual(get_stage(), "stage1_document")
            with stage_scope("inner"):
                self.assertEqual(get_stage(), "inner")
            self.assertEqual(get_stage(), "stage1_document")
        self.assertEqual(get_stage(), "-")

    def test_stage_scope_restores_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with stage_scope("stage2_analyze"):
                raise RuntimeError("boom")
        self.assertEqual(get_stage(), "-")

    def test_filter_injects_context(self) -> None:
        set_import_id("import-9")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        with stage_scope("stage3_materialize"):
            _ImportContextFilter().filter(record)
        self.assertEqual(record.import_id, "import-9")
        self.assertEqual(record.stage, "stage3_materialize")

    def test_stage_durations_recorded_per_import(self) -> None:
        set_import_id("import-timings")
        self.assertEqual(get_stage_durations(), {})
        with stage_scope("stage1_document"):
            pass
        with self.assertRaises(RuntimeError):
            with stage_scope("stage2_analyze"):
                raise RuntimeError("boom")

        durations = get_stage_durations()
        self.assertEqual(list(durations), ["stage1_document", "stage2_analyze"])
        self.assertTrue(all(value >= 0.0 for value in durations.values()))

    def test_new_import_discards_previous_durations(self) -> None:
        set_import_id("import-a")
        with stage_scope("stage1_document"):
            pass
        set_import_id("import-b")
        self.assertEqual(get_stage_durations(), {})

    def test_stage_durations_returns_copy(self) -> None:
        set_import_id("import-c")
        get_stage_durations()["injected"] = 1.0
        self.assertNotIn("injected", get_stage_durations())


if __name__ == "__main__":
    unittest.main()
