"""
Unit tests for scanner.py

Tests line-anchored declaration detection, locals and provider discovery.
"""

import unittest

from extraction.models import DATA, LOCAL, MODULE, OUTPUT, RESOURCE, VARIABLE, SourceFile
from extraction.scanner import scan_file, scan_files, scan_providers


MAIN_TF = '''
provider "aws" {
  region = var.region
}

terraform {
  required_providers {
    aws = {
      source = "hashicorp/aws"
    }
    random = {
      source = "hashicorp/random"
    }
  }
}

resource "aws_vpc" "main" {
  cidr_block = "10.0.0.0/16"
}

resource "aws_instance" "web" {
  ami = data.aws_ami.ubuntu.id
}

data "aws_ami" "ubuntu" {
  most_recent = true
}

module "network" {
  source = "./network"
}
'''

VARIABLES_TF = '''
variable "region" {
  default = "us-east-1"
}

output "vpc_id" {
  value = aws_vpc.main.id
}

locals {
  environment = "prod"
  tags = {
    Owner = "platform"
  }
}
'''


class TestScanFile(unittest.TestCase):
    """Test scanning a single file."""

    def test_resources_in_match_order(self):
        decls = scan_file(SourceFile("main.tf", "main.tf", MAIN_TF))
        resources = [d.composite_id for d in decls if d.kind == RESOURCE]
        self.assertEqual(resources, ["aws_vpc.main", "aws_instance.web"])

    def test_every_kind_detected(self):
        decls = scan_file(SourceFile("main.tf", "main.tf", MAIN_TF))
        kinds = {d.kind for d in decls}
        self.assertIn(DATA, kinds)
        self.assertIn(MODULE, kinds)

        data = [d for d in decls if d.kind == DATA][0]
        self.assertEqual(data.composite_id, "data.aws_ami.ubuntu")
        module = [d for d in decls if d.kind == MODULE][0]
        self.assertEqual(module.name, "network")

    def test_variables_outputs_and_locals(self):
        decls = scan_file(SourceFile("variables.tf", "variables.tf", VARIABLES_TF))
        by_kind = {}
        for decl in decls:
            by_kind.setdefault(decl.kind, []).append(decl.name)

        self.assertEqual(by_kind[VARIABLE], ["region"])
        self.assertEqual(by_kind[OUTPUT], ["vpc_id"])
        # Nested map keys are not local names.
        self.assertEqual(by_kind[LOCAL], ["environment", "tags"])

    def test_indented_declaration_detected(self):
        content = '    resource "aws_s3_bucket" "logs" {\n    }\n'
        decls = scan_file(SourceFile("s3.tf", "s3.tf", content))
        self.assertEqual([d.composite_id for d in decls], ["aws_s3_bucket.logs"])

    def test_commented_out_text_after_code_not_detected(self):
        content = 'foo = 1 # resource "aws_vpc" "ghost" {}\n'
        self.assertEqual(scan_file(SourceFile("x.tf", "x.tf", content)), [])


class TestScanProviders(unittest.TestCase):
    """Test provider discovery."""

    def test_provider_blocks_and_required_providers(self):
        self.assertEqual(scan_providers(MAIN_TF), ["aws", "random"])

    def test_no_providers(self):
        self.assertEqual(scan_providers('resource "aws_vpc" "main" {}\n'), [])

    def test_only_first_required_providers_block(self):
        content = '''
terraform {
  required_providers {
    google = {
      source = "hashicorp/google"
    }
  }
}

terraform {
  required_providers {
    azurerm = {
      source = "hashicorp/azurerm"
    }
  }
}
'''
        self.assertEqual(scan_providers(content), ["google"])


class TestScanFiles(unittest.TestCase):
    """Test scanning a batch of files."""

    def test_per_file_inventory(self):
        structure = scan_files([
            SourceFile("main.tf", "main.tf", MAIN_TF),
            SourceFile("variables.tf", "variables.tf", VARIABLES_TF),
        ])

        self.assertEqual(
            structure.resources_by_file["main.tf"],
            ["aws_vpc.main", "aws_instance.web"],
        )
        self.assertEqual(structure.resources_by_file["variables.tf"], [])
        self.assertEqual(structure.variables_by_file["variables.tf"], ["region"])
        self.assertEqual(structure.outputs_by_file["variables.tf"], ["vpc_id"])
        self.assertEqual(structure.providers, ["aws", "random"])
        self.assertEqual(structure.total_files, 2)
        self.assertEqual(structure.total_resources, 2)

    def test_resource_types(self):
        structure = scan_files([SourceFile("main.tf", "main.tf", MAIN_TF)])
        self.assertEqual(
            structure.resource_types(),
            {"aws_vpc.main": "aws_vpc", "aws_instance.web": "aws_instance"},
        )

    def test_failed_file_recorded_and_batch_continues(self):
        structure = scan_files([
            SourceFile("broken.tf", "broken.tf", None),
            SourceFile("main.tf", "main.tf", MAIN_TF),
        ])

        self.assertEqual(structure.failed_files, ["broken.tf"])
        self.assertNotIn("broken.tf", structure.resources_by_file)
        self.assertEqual(structure.total_resources, 2)
        self.assertEqual(structure.to_dict()["files_failed"], 1)

    def test_files_sharing_a_name_tracked_by_path(self):
        structure = scan_files([
            SourceFile("main.tf", "main.tf", MAIN_TF),
            SourceFile("main.tf", "modules/vpc/main.tf", 'resource "aws_vpc" "core" {\n}\n'),
        ])

        self.assertEqual(structure.total_files, 2)
        self.assertEqual(structure.resources_by_file["modules/vpc/main.tf"], ["aws_vpc.core"])
        self.assertEqual(
            structure.resources_by_file["main.tf"],
            ["aws_vpc.main", "aws_instance.web"],
        )

    def test_empty_batch(self):
        structure = scan_files([])
        self.assertEqual(structure.total_files, 0)
        self.assertEqual(structure.providers, [])
        self.assertIn("files=0", str(structure))


if __name__ == "__main__":
    unittest.main()
