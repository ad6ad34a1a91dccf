"""
Configuration constants for logical grouping and document assembly.

Tables here are ordered tuples so iteration order (and therefore the
generated document) is deterministic.
"""

import os

from core.startup_config import env_int

# ---------------------------------------------------------------------------
# Logical grouping
# ---------------------------------------------------------------------------
PRIORITY_PROVIDERS: tuple[str, ...] = ("aws", "kubernetes")

# Checked in this order; first category whose pattern equals the type or is
# a "pattern_" prefix of it wins.
RESOURCE_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Network", (
        "aws_vpc", "aws_subnet", "aws_internet_gateway", "aws_nat_gateway",
        "aws_route_table", "aws_security_group",
    )),
    ("Security", ("aws_iam_role", "aws_iam_policy", "aws_kms_key", "aws_acm_certificate")),
    ("Compute", (
        "aws_instance", "aws_launch_template", "aws_autoscaling_group",
        "aws_ecs_service", "aws_ecs_task_definition", "aws_lambda_function",
    )),
    ("Container", (
        "aws_eks_cluster", "aws_eks_node_group", "aws_ecs_cluster",
        "helm_release", "kubernetes_deployment",
    )),
    ("Database", ("aws_db_instance", "aws_rds_cluster", "aws_dynamodb_table", "aws_elasticache_cluster")),
    ("Storage", ("aws_s3_bucket", "aws_ebs_volume", "aws_efs_file_system", "aws_fsx_file_system")),
    ("Load_Balancing", ("aws_lb", "aws_alb", "aws_elb", "aws_lb_target_group", "aws_lb_listener")),
    ("Monitoring", ("aws_cloudwatch_log_group", "aws_cloudwatch_metric_alarm", "aws_sns_topic")),
)

CATEGORY_ORDER: tuple[str, ...] = (
    "Network", "Security", "Compute", "Container",
    "Database", "Storage", "Load_Balancing", "Monitoring", "Other",
)
OTHER_CATEGORY = "Other"

CATEGORY_DESCRIPTIONS: dict[str, str] = {
    "Compute": "compute resources (instances, functions, containers)",
    "Storage": "storage resources (buckets, volumes, file systems)",
    "Network": "networking resources (VPCs, subnets, gateways)",
    "Database": "database resources (RDS, DynamoDB, caches)",
    "Container": "container orchestration resources (EKS, Kubernetes, Helm)",
    "Security": "security and identity resources (IAM, KMS, certificates)",
    "Monitoring": "monitoring and logging resources (CloudWatch, SNS)",
    "Load_Balancing": "load balancing resources (ALB, ELB, target groups)",
}
DEFAULT_CATEGORY_DESCRIPTION = "miscellaneous resources"

PROVIDER_DISPLAY_NAMES: dict[str, str] = {
    "aws": "AWS Infrastructure",
    "kubernetes": "Kubernetes Resources",
    "helm": "Helm Applications",
    "azurerm": "Azure Resources",
    "google": "Google Cloud Resources",
    "local": "Local Resources",
    "random": "Random Resources",
    "tls": "TLS Resources",
}

MISC_GROUP_NAME = "Miscellaneous"

# Group names containing these words float to the front, in this order.
LEADING_GROUP_KEYWORDS: tuple[str, ...] = ("network", "security")

# ---------------------------------------------------------------------------
# Annotation
# ---------------------------------------------------------------------------
OVERVIEW_GROUP_PREVIEW: int = 5
OVERVIEW_MAX_RELATIONSHIPS: int = 10
OVERVIEW_DEPS_PER_RELATIONSHIP: int = 3
VARIABLE_COMMENT_THRESHOLD: int = 3
DEPENDENCY_HINT_THRESHOLD: int = 3

GROUP_EXPECTED_RELATIONSHIPS: tuple[tuple[str, str], ...] = (
    ("network", "VPC -> Subnets -> Security Groups -> Route Tables"),
    ("compute", "Launch Templates -> Auto Scaling Groups -> Load Balancers"),
    ("container", "EKS Cluster -> Node Groups -> Helm Releases"),
    ("storage", "Storage -> Mount Targets -> Compute Resources"),
)

FILE_BOUNDARY_SEPARATOR: str = "=" * 80
FILE_SECTION_SEPARATOR: str = "-" * 40

# ---------------------------------------------------------------------------
# Document formatting
# ---------------------------------------------------------------------------
MAIN_SEPARATOR: str = "=" * 100
SECTION_SEPARATOR: str = "-" * 80

PRIMARY_FILE_NAME: str = os.getenv("PRIMARY_FILE_NAME", "main.tf")
DEFAULT_MAX_DOCUMENT_LENGTH: int = 500_000
MIN_DOCUMENT_LENGTH: int = 1_024
MAX_DOCUMENT_LENGTH: int = env_int(
    "MAX_DOCUMENT_LENGTH", DEFAULT_MAX_DOCUMENT_LENGTH, minimum=MIN_DOCUMENT_LENGTH
)
SUMMARY_MAX_RESOURCES: int = 15
SUMMARY_MAX_MODULE_ENTRIES: int = 10

# Documents above this size are flagged as likely to exceed model limits.
LARGE_DOCUMENT_WARNING: int = 1_000_000
