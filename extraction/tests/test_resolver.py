"""
Unit tests for resolver.py

Tests the two-pass registry build and per-block reference resolution.
"""

import unittest

from extraction.models import DeclarationRegistry, SourceFile
from extraction.resolver import (
    build_dependency_map,
    resolve_dependencies,
    segment_resource_blocks,
)
from extraction.scanner import scan_files


NETWORK_TF = '''
variable "cidr" {
  default = "10.0.0.0/16"
}

locals {
  environment = "prod"
}

resource "aws_vpc" "main" {
  cidr_block = var.cidr
  tags = {
    Environment = local.environment
  }
}

resource "aws_subnet" "public" {
  vpc_id     = aws_vpc.main.id
  cidr_block = "10.0.1.0/24"
}
'''

COMPUTE_TF = '''
data "aws_ami" "ubuntu" {
  most_recent = true
}

module "monitoring" {
  source = "./monitoring"
}

resource "aws_instance" "web" {
  ami           = data.aws_ami.ubuntu.id
  subnet_id     = aws_subnet.public.id
  monitoring_id = module.monitoring.dashboard_id
  undeclared    = aws_lb.missing.arn
}

resource "aws_db_instance" "db" {
  engine = "postgres"
  allowed_from = aws_instance.web.private_ip
  also_web     = aws_instance.web.id
}
'''

FILES = [
    SourceFile("network.tf", "network.tf", NETWORK_TF),
    SourceFile("compute.tf", "compute.tf", COMPUTE_TF),
]


class TestSegmentResourceBlocks(unittest.TestCase):
    """Test brace-depth block segmentation."""

    def test_blocks_include_nested_braces(self):
        blocks = segment_resource_blocks(NETWORK_TF)
        self.assertEqual([b.label for b in blocks], [("aws_vpc", "main"), ("aws_subnet", "public")])
        self.assertIn("local.environment", blocks[0].text)
        self.assertTrue(blocks[0].text.rstrip().endswith("}"))
        self.assertNotIn("aws_subnet", blocks[0].text)

    def test_unterminated_block_runs_to_end(self):
        content = 'resource "aws_vpc" "main" {\n  cidr_block = "10.0.0.0/16"\n'
        blocks = segment_resource_blocks(content)
        self.assertEqual(len(blocks), 1)
        self.assertEqual(blocks[0].end, len(content))


class TestResolveDependencies(unittest.TestCase):
    """Test dependency resolution across files."""

    def setUp(self):
        self.registry, self.deps = resolve_dependencies(FILES)

    def test_registry_spans_all_files(self):
        self.assertEqual(
            list(self.registry.resources),
            ["aws_vpc.main", "aws_subnet.public", "aws_instance.web", "aws_db_instance.db"],
        )
        self.assertIn("monitoring", self.registry.modules)
        self.assertIn("cidr", self.registry.variables)
        self.assertIn("environment", self.registry.locals)
        self.assertIn("data.aws_ami.ubuntu", self.registry.data_sources)

    def test_cross_file_explicit_reference(self):
        self.assertEqual(
            self.deps.resource_dependencies["aws_instance.web"],
            ("aws_subnet.public", "data.aws_ami.ubuntu"),
        )

    def test_unregistered_reference_dropped(self):
        self.assertNotIn("aws_lb.missing", self.deps.all_targets())

    def test_duplicate_references_recorded_once(self):
        self.assertEqual(
            self.deps.resource_dependencies["aws_db_instance.db"],
            ("aws_instance.web",),
        )

    def test_variable_and_local_usage(self):
        self.assertEqual(
            self.deps.variable_usage["aws_vpc.main"],
            ("var.cidr", "local.environment"),
        )

    def test_module_reference(self):
        self.assertEqual(
            self.deps.module_references["aws_instance.web"],
            ("module.monitoring",),
        )

    def test_implicit_keyword_dependencies(self):
        # The subnet block mentions "vpc" and its own type mentions "subnet".
        self.assertEqual(
            self.deps.implicit_dependencies["aws_subnet.public"],
            ("aws_vpc.main",),
        )
        self.assertEqual(
            self.deps.implicit_dependencies["aws_instance.web"],
            ("aws_subnet.public",),
        )

    def test_no_self_dependency(self):
        for table in self.deps.categories().values():
            for resource_id, targets in table.items():
                self.assertNotIn(resource_id, targets)

    def test_every_target_is_registered(self):
        for target in self.deps.all_targets():
            self.assertTrue(self.registry.contains(target), target)

    def test_resource_without_references_absent(self):
        self.assertNotIn("aws_vpc.main", self.deps.resource_dependencies)

    def test_all_dependencies_for_combines_categories(self):
        combined = self.deps.all_dependencies_for("aws_instance.web")
        self.assertEqual(
            combined,
            ("aws_subnet.public", "data.aws_ami.ubuntu", "module.monitoring"),
        )


class TestOutputReferences(unittest.TestCase):
    """``output.name`` references are kept only for declared outputs."""

    OUTPUTS_TF = '''
output "endpoint" {
  value = "api.internal"
}

resource "aws_route53_record" "api" {
  name    = "api"
  records = [output.endpoint]
  alias   = output.missing
}
'''

    def setUp(self):
        files = [SourceFile("outputs.tf", "outputs.tf", self.OUTPUTS_TF)]
        self.registry, self.deps = resolve_dependencies(files)

    def test_declared_output_recorded(self):
        self.assertEqual(
            self.deps.output_references["aws_route53_record.api"],
            ("output.endpoint",),
        )
        self.assertTrue(self.registry.contains("output.endpoint"))

    def test_undeclared_output_dropped(self):
        self.assertNotIn("output.missing", self.deps.all_targets())
        self.assertFalse(self.registry.contains("output.missing"))

    def test_output_only_in_output_category(self):
        self.assertNotIn("aws_route53_record.api", self.deps.resource_dependencies)
        self.assertEqual(self.deps.counts_by_category()["output"], 1)


class TestBuildDependencyMap(unittest.TestCase):
    """Test pass 2 against an explicit registry."""

    def test_empty_registry_records_nothing(self):
        deps = build_dependency_map(FILES, DeclarationRegistry())
        self.assertEqual(deps.total_dependencies, 0)
        self.assertEqual(deps.all_targets(), [])

    def test_uses_given_structure(self):
        structure = scan_files(FILES[:1])
        registry, deps = resolve_dependencies(FILES[:1], structure)
        self.assertEqual(list(registry.resources), ["aws_vpc.main", "aws_subnet.public"])
        self.assertEqual(deps.resource_dependencies["aws_subnet.public"], ("aws_vpc.main",))

    def test_non_text_file_skipped(self):
        files = FILES + [SourceFile("broken.tf", "broken.tf", None)]
        registry, deps = resolve_dependencies(files)
        self.assertEqual(len(registry.resources), 4)
        self.assertIn("aws_instance.web", deps.resource_dependencies)


if __name__ == "__main__":
    unittest.main()
