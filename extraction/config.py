"""
Configuration constants for Terraform declaration scanning.

Defines the line-anchored declaration patterns, the reference patterns
applied inside resource blocks, and the keyword table behind implicit
dependency detection.
"""

import re
from typing import Pattern

# Terraform file extensions accepted by the loader
TERRAFORM_EXTENSIONS: set[str] = {".tf"}

# Directories never descended into when discovering files
SKIPPED_DIRECTORIES: set[str] = {
    ".terraform",
    ".git",
    "node_modules",
    "__pycache__",
}

_IDENT = r"[A-Za-z_][A-Za-z0-9_-]*"

# ---------------------------------------------------------------------------
# Declaration patterns (line-anchored; detection only, no brace balancing)
# ---------------------------------------------------------------------------
RESOURCE_PATTERN: Pattern[str] = re.compile(
    r'^\s*resource\s+"([^"]+)"\s+"([^"]+)"', re.MULTILINE
)
MODULE_PATTERN: Pattern[str] = re.compile(r'^\s*module\s+"([^"]+)"', re.MULTILINE)
VARIABLE_PATTERN: Pattern[str] = re.compile(r'^\s*variable\s+"([^"]+)"', re.MULTILINE)
OUTPUT_PATTERN: Pattern[str] = re.compile(r'^\s*output\s+"([^"]+)"', re.MULTILINE)
DATA_PATTERN: Pattern[str] = re.compile(
    r'^\s*data\s+"([^"]+)"\s+"([^"]+)"', re.MULTILINE
)
PROVIDER_PATTERN: Pattern[str] = re.compile(r'^\s*provider\s+"([^"]+)"', re.MULTILINE)
LOCALS_PATTERN: Pattern[str] = re.compile(r"^\s*locals\s*\{", re.MULTILINE)

# Only the first required_providers block is inspected.
REQUIRED_PROVIDERS_PATTERN: Pattern[str] = re.compile(r"required_providers\s*\{")
REQUIRED_PROVIDER_ENTRY_PATTERN: Pattern[str] = re.compile(
    rf"^\s*({_IDENT})\s*=\s*\{{", re.MULTILINE
)
LOCAL_ENTRY_PATTERN: Pattern[str] = re.compile(rf"^\s*({_IDENT})\s*=", re.MULTILINE)

# ---------------------------------------------------------------------------
# Reference patterns (applied inside a single resource block)
# ---------------------------------------------------------------------------
EXPLICIT_REFERENCE_PATTERN: Pattern[str] = re.compile(
    r"\b([a-zA-Z_][a-zA-Z0-9_]*)\.([a-zA-Z_][a-zA-Z0-9_]*)\.([a-zA-Z_][a-zA-Z0-9_]*)\b"
)
DATA_REFERENCE_PATTERN: Pattern[str] = re.compile(
    r"\bdata\.([a-zA-Z_][a-zA-Z0-9_]*)\.([a-zA-Z_][a-zA-Z0-9_]*)\b"
)
MODULE_REFERENCE_PATTERN: Pattern[str] = re.compile(
    r"\bmodule\.([a-zA-Z_][a-zA-Z0-9_]*)\.([a-zA-Z_][a-zA-Z0-9_]*)\b"
)
VARIABLE_REFERENCE_PATTERN: Pattern[str] = re.compile(
    r"\b(var|local)\.([a-zA-Z_][a-zA-Z0-9_]*)\b"
)
OUTPUT_REFERENCE_PATTERN: Pattern[str] = re.compile(
    r"\boutput\.([a-zA-Z_][a-zA-Z0-9_]*)\b"
)

# ---------------------------------------------------------------------------
# Implicit dependency heuristic
# ---------------------------------------------------------------------------
# A resource block whose lower-cased text contains the keyword is linked to
# every declared resource of the listed types (self excluded). Coarse by
# contract: any block mentioning "subnet" links to all subnets.
IMPLICIT_DEPENDENCY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("security_group", ("aws_security_group", "aws_vpc_security_group_ingress_rule")),
    ("subnet", ("aws_subnet", "aws_db_subnet_group")),
    ("vpc", ("aws_vpc", "aws_default_vpc")),
    ("key_pair", ("aws_key_pair",)),
    ("iam_role", ("aws_iam_role", "aws_iam_instance_profile")),
)

# Block segmentation requires the opening brace on the declaration line.
RESOURCE_BLOCK_PATTERN: Pattern[str] = re.compile(
    r'^\s*resource\s+"([^"]+)"\s+"([^"]+)"\s*\{', re.MULTILINE
)
DATA_BLOCK_PATTERN: Pattern[str] = re.compile(
    r'^\s*data\s+"([^"]+)"\s+"([^"]+)"\s*\{', re.MULTILINE
)
