"""Contract tests for the import orchestrator."""

from __future__ import annotations

import os
import tempfile
import unittest
from unittest.mock import patch

from graphstore.neo4j_loader import MaterializationStats
from run_import import main, parse_args

WEB_DB_TF = '''
resource "aws_db_instance" "db" {
  engine = "postgres"
}

resource "aws_instance" "web" {
  ami   = "ami-123"
  db_ip = aws_db_instance.db.address
}
'''


class _FakeDriver:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class TestImportPipelineContracts(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.input_dir = os.path.join(self.tmp.name, "infra")
        os.makedirs(self.input_dir)
        with open(os.path.join(self.input_dir, "main.tf"), "w", encoding="utf-8") as f:
            f.write(WEB_DB_TF)
        self.reports = []
        env_patch = patch.dict(os.environ, {}, clear=False)
        env_patch.start()
        self.addCleanup(env_patch.stop)
        report_patch = patch("run_import.write_import_report", side_effect=self._capture_report)
        report_patch.start()
        self.addCleanup(report_patch.stop)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _capture_report(self, report, import_id):
        self.reports.append(dict(report))
        return f"output/import_reports/{import_id}.json"

    def test_parse_args_defaults(self) -> None:
        args = parse_args(["--input", "infra"])
        self.assertFalse(args.incremental)
        self.assertFalse(args.document_only)
        self.assertIsNone(args.max_length)

    def test_document_only_writes_document_and_report(self) -> None:
        out = os.path.join(self.tmp.name, "doc.txt")
        main(["--input", self.input_dir, "--document-only", "--document-out", out])

        with open(out, encoding="utf-8") as f:
            text = f.read()
        self.assertIn("aws_instance.web depends on: aws_db_instance.db", text)
        self.assertEqual(len(self.reports), 1)
        report = self.reports[0]
        self.assertEqual(report["status"], "success")
        self.assertEqual(report["document"]["files"], 1)
        self.assertEqual(report["document"]["total_resources"], 2)
        self.assertEqual(report["document_path"], out)
        self.assertEqual(list(report["stage_durations_s"]), ["stage1_document"])

    @patch("run_import.validate_startup_config")
    @patch("graphstore.query.get_graph_statistics")
    @patch("graphstore.neo4j_loader.materialize_graph")
    @patch("graphstore.neo4j_loader.get_neo4j_driver")
    def test_mock_analyzer_replace_import(
        self,
        mock_get_driver,
        mock_materialize,
        mock_graph_stats,
        mock_validate,
    ) -> None:
        driver = _FakeDriver()
        mock_get_driver.return_value = driver
        mock_materialize.return_value = MaterializationStats(nodes_written=2, edges_written=1)
        mock_graph_stats.return_value = {"total_nodes": 2, "total_relationships": 1}

        main(["--input", self.input_dir, "--mock-analyzer"])

        mock_validate.assert_called_once()
        analysis = mock_materialize.call_args.args[0]
        self.assertEqual(len(analysis.resources), 2)
        self.assertTrue(driver.closed)
        report = self.reports[-1]
        self.assertEqual(report["status"], "success")
        self.assertEqual(report["mode"], "replace")
        self.assertEqual(report["materialization"]["nodes_written"], 2)
        self.assertEqual(report["graph"]["total_relationships"], 1)
        self.assertEqual(
            list(report["stage_durations_s"]),
            ["stage1_document", "stage2_analyze", "stage3_materialize"],
        )

    @patch("run_import.validate_startup_config")
    @patch("graphstore.query.get_graph_statistics", return_value={})
    @patch("graphstore.neo4j_loader.merge_graph")
    @patch("graphstore.neo4j_loader.materialize_graph")
    @patch("graphstore.neo4j_loader.get_neo4j_driver")
    def test_incremental_uses_merge(
        self,
        mock_get_driver,
        mock_materialize,
        mock_merge,
        _mock_graph_stats,
        _mock_validate,
    ) -> None:
        mock_get_driver.return_value = _FakeDriver()
        mock_merge.return_value = MaterializationStats(mode="incremental")

        main(["--input", self.input_dir, "--mock-analyzer", "--incremental"])

        mock_merge.assert_called_once()
        mock_materialize.assert_not_called()
        self.assertEqual(self.reports[-1]["mode"], "incremental")

    @patch("run_import.validate_startup_config")
    def test_missing_input_exits_with_failed_report(self, _mock_validate) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["--input", os.path.join(self.tmp.name, "missing"), "--mock-analyzer"])

        self.assertEqual(ctx.exception.code, 1)
        report = self.reports[-1]
        self.assertEqual(report["status"], "failed")
        self.assertIn("missing", report["error"])

    @patch("run_import.validate_startup_config")
    @patch("graphstore.neo4j_loader.get_neo4j_driver", side_effect=ConnectionError("neo4j down"))
    def test_connection_error_exits(self, _mock_driver, _mock_validate) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["--input", self.input_dir, "--mock-analyzer"])

        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(self.reports[-1]["error"], "neo4j down")


if __name__ == "__main__":
    unittest.main()
