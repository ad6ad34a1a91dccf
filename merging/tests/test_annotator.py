"""Tests for overview, banners, comments and hints."""

import unittest

from extraction.models import DependencyMap, SourceFile
from merging.annotator import (
    annotate,
    build_cross_reference_comments,
    build_overview,
    build_relationship_hints,
    resource_matches_file,
    wrap_file,
)
from merging.grouping import group_resources


def _dependency_map(**tables) -> DependencyMap:
    return DependencyMap.from_tables(
        resource_dependencies=tables.get("resource", {}),
        module_references=tables.get("module", {}),
        variable_usage=tables.get("variable", {}),
        output_references=tables.get("output", {}),
        implicit_dependencies=tables.get("implicit", {}),
    )


class TestOverview(unittest.TestCase):
    def test_summary_groups_and_relationships(self) -> None:
        groups = group_resources({
            "aws_instance.web": "aws_instance",
            "aws_db_instance.db": "aws_db_instance",
        })
        deps = _dependency_map(resource={"aws_instance.web": ["aws_db_instance.db"]})

        overview = build_overview(groups, deps)

        self.assertTrue(overview.startswith("# TERRAFORM INFRASTRUCTURE OVERVIEW"))
        self.assertIn("- Total Resource Groups: 2", overview)
        self.assertIn("- Total Resources: 2", overview)
        self.assertIn("- Total Dependencies: 1", overview)
        self.assertIn("### AWS Infrastructure - Compute", overview)
        self.assertIn("- aws_instance.web depends on: aws_db_instance.db", overview)
        self.assertIn("## Analysis Guidelines", overview)

    def test_group_preview_limited_to_five(self) -> None:
        types = {f"aws_s3_bucket.b{i}": "aws_s3_bucket" for i in range(7)}
        overview = build_overview(group_resources(types), DependencyMap())
        self.assertIn("  ... and 2 more", overview)
        self.assertNotIn("aws_s3_bucket.b5", overview)

    def test_relationships_show_three_deps_at_most(self) -> None:
        deps = _dependency_map(resource={"a.x": ["b.1", "b.2", "b.3", "b.4"]})
        overview = build_overview(group_resources({}), deps)
        self.assertIn("- a.x depends on: b.1, b.2, b.3\n", overview)


class TestWrapFile(unittest.TestCase):
    def test_banner_lines(self) -> None:
        wrapped = wrap_file(SourceFile("main.tf", "env/main.tf", "locals {}"))
        lines = wrapped.splitlines()
        self.assertEqual(lines[0], "# FILE: main.tf")
        self.assertEqual(lines[1], "=" * 80)
        self.assertIn("# Path: env/main.tf", lines)
        self.assertIn("# Size: 9 characters", lines)
        self.assertIn("locals {}", lines)
        self.assertEqual(lines[-2], "# END FILE: main.tf")


class TestComments(unittest.TestCase):
    def test_dependency_and_module_comments(self) -> None:
        deps = _dependency_map(
            resource={"aws_instance.web": ["aws_db_instance.db"]},
            module={"aws_instance.web": ["module.vpc"]},
        )
        comments = build_cross_reference_comments(deps)
        blocks = comments["aws_instance.web"]
        self.assertEqual(
            blocks[0],
            "# DEPENDENCIES: aws_instance.web depends on 1 resources\n#   -> aws_db_instance.db",
        )
        self.assertTrue(blocks[1].startswith("# MODULE_REFS: aws_instance.web references 1"))

    def test_variable_comment_only_above_threshold(self) -> None:
        few = _dependency_map(variable={"a.x": ["var.a", "var.b", "local.c"]})
        many = _dependency_map(variable={"a.x": ["var.a", "var.b", "local.c", "var.d"]})
        self.assertEqual(build_cross_reference_comments(few), {})
        self.assertEqual(
            build_cross_reference_comments(many)["a.x"],
            ["# VARIABLES: a.x uses 4 variables/locals"],
        )


class TestHints(unittest.TestCase):
    def test_group_hint_on_first_member_with_expected_relationships(self) -> None:
        groups = group_resources({
            "aws_vpc.main": "aws_vpc",
            "aws_subnet.a": "aws_subnet",
        })
        hints = build_relationship_hints(groups, DependencyMap())
        self.assertIn("aws_vpc.main", hints)
        self.assertNotIn("aws_subnet.a", hints)
        block = hints["aws_vpc.main"][0]
        self.assertIn("# GROUP_HINT: Resources in 'AWS Infrastructure - Network'", block)
        self.assertIn("VPC -> Subnets -> Security Groups -> Route Tables", block)

    def test_single_member_group_gets_no_hint(self) -> None:
        groups = group_resources({"aws_instance.web": "aws_instance"})
        self.assertEqual(build_relationship_hints(groups, DependencyMap()), {})

    def test_dependency_and_implicit_hints(self) -> None:
        deps = _dependency_map(
            resource={"aws_instance.web": ["a.1", "a.2", "a.3"], "aws_instance.db": ["a.1"]},
            implicit={"aws_instance.web": ["aws_security_group.sg"]},
        )
        hints = build_relationship_hints(group_resources({}), deps)
        joined = "\n".join(hints["aws_instance.web"])
        self.assertIn("# DEPENDENCY_HINT: aws_instance.web has 3 dependencies", joined)
        self.assertIn("# IMPLICIT_HINT: aws_instance.web may have implicit relationships with 1", joined)
        self.assertNotIn("aws_instance.db", hints)


class TestFileAssociation(unittest.TestCase):
    def test_matches_on_file_stem(self) -> None:
        self.assertTrue(resource_matches_file("aws_instance.network_web", "network.tf"))

    def test_matches_on_type_in_file_name(self) -> None:
        self.assertTrue(resource_matches_file("aws_instance.web", "aws_instance_web.tf"))

    def test_no_match(self) -> None:
        self.assertFalse(resource_matches_file("aws_instance.web", "main.tf"))

    def test_annotate_associates_comments_with_files(self) -> None:
        files = [
            SourceFile("main.tf", "main.tf", ""),
            SourceFile("web.tf", "web.tf", 'resource "aws_instance" "web" {}'),
        ]
        deps = _dependency_map(resource={"aws_instance.web": ["aws_db_instance.db"]})
        document = annotate(files, group_resources({"aws_instance.web": "aws_instance"}), deps)
        self.assertEqual(document.file_comments["main.tf"], [])
        self.assertEqual(len(document.file_comments["web.tf"]), 1)
        self.assertEqual(document.metadata["total_files"], 2)
        self.assertIn("annotation_timestamp", document.metadata)

    def test_files_keyed_by_path_and_matched_by_name(self) -> None:
        files = [
            SourceFile("web.tf", "web.tf", 'resource "aws_instance" "web" {}'),
            SourceFile("web.tf", "envs/prod/web.tf", 'resource "aws_instance" "web" {}'),
        ]
        deps = _dependency_map(resource={"aws_instance.web": ["aws_db_instance.db"]})
        document = annotate(files, group_resources({"aws_instance.web": "aws_instance"}), deps)

        self.assertEqual(list(document.annotated_files), ["web.tf", "envs/prod/web.tf"])
        self.assertIn("# Path: envs/prod/web.tf", document.annotated_files["envs/prod/web.tf"])
        self.assertEqual(
            document.file_names_by_path,
            {"web.tf": "web.tf", "envs/prod/web.tf": "web.tf"},
        )
        self.assertEqual(len(document.file_comments["web.tf"]), 1)
        self.assertEqual(len(document.file_comments["envs/prod/web.tf"]), 1)
        self.assertEqual(document.metadata["total_files"], 2)


if __name__ == "__main__":
    unittest.main()
