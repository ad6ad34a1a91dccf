"""Tests for graph materialization against an in-memory fake store."""

import re
import unittest

from analysis.models import AnalysisResult, RelationshipDescriptor, ResourceDescriptor
from extraction.parser import HclList, HclPrimitive, HclReference
from graphstore.endpoint_resolver import InMemoryNodeCatalog
from graphstore.neo4j_loader import (
    ImportFailedError,
    MaterializationStats,
    build_graph_edges,
    build_graph_node,
    build_graph_nodes,
    categorize_resource,
    materialize_graph,
    merge_graph,
    sanitize_relationship_type,
    serialize_properties,
)

_REL_TYPE_RE = re.compile(r"\[r:`([^`]+)`\]")


class _FakeResult:
    def __init__(self, records: list[dict]):
        self._records = records

    def __iter__(self):
        return iter(self._records)

    def single(self):
        if not self._records:
            return None
        return self._records[0]


class _FakeStore:
    """Just enough Cypher emulation for the loader's statements."""

    def __init__(self):
        self.nodes: dict[str, dict] = {}
        self.edges: dict[tuple[str, str, str], dict] = {}
        self.indexes: list[str] = []
        self.fail_clear = False
        self.fail_node_ids: set[str] = set()
        self.fail_indexes = False

    def run(self, query, **params):
        text = getattr(query, "text", str(query))
        if "DETACH DELETE" in text:
            if self.fail_clear:
                raise RuntimeError("store unavailable")
            deleted = len(self.nodes)
            self.nodes.clear()
            self.edges.clear()
            return _FakeResult([{"deleted_count": deleted}])
        if "CREATE INDEX" in text:
            if self.fail_indexes:
                raise RuntimeError("index not supported")
            self.indexes.append(text.split()[2])
            return _FakeResult([])
        if "MERGE (r:Resource" in text:
            if params["id"] in self.fail_node_ids:
                raise RuntimeError("write failed")
            self.nodes[params["id"]] = dict(params)
            return _FakeResult([{"id": params["id"]}])
        if "MERGE (s)-" in text:
            rel_type = _REL_TYPE_RE.search(text).group(1)
            src, tgt = params["source_id"], params["target_id"]
            if src not in self.nodes or tgt not in self.nodes:
                return _FakeResult([{"count": 0}])
            self.edges[(src, tgt, rel_type)] = dict(params)
            return _FakeResult([{"count": 1}])
        if "ORDER BY r.id" in text:
            return _FakeResult(self._catalog_lookup(text, params))
        raise AssertionError(f"Unexpected query: {text}")

    def _catalog_lookup(self, text: str, params: dict) -> list[dict]:
        matches = []
        for node in self.nodes.values():
            if "r.terraformId = $value" in text:
                hit = node["terraform_id"] == params["value"]
            elif "r.id = $value" in text:
                hit = node["id"] == params["value"]
            elif "r.type = $type" in text:
                hit = node["type"] == params["type"] and node["name"] == params["name"]
            else:
                hit = params["value"] in node["type"] or params["value"] in node["name"]
            if hit:
                matches.append(node["id"])
        return [{"id": node_id} for node_id in sorted(matches)[:1]]


class _FakeSession:
    def __init__(self, store: _FakeStore):
        self._store = store

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def run(self, query, **params):
        return self._store.run(query, **params)


class _FakeDriver:
    def __init__(self, store: _FakeStore | None = None):
        self.store = store or _FakeStore()

    def session(self):
        return _FakeSession(self.store)


def _resource(rid, rtype, name, provider="aws", properties=None):
    return ResourceDescriptor(id=rid, type=rtype, name=name, provider=provider,
                              properties=properties or {})


def _web_sg_analysis() -> AnalysisResult:
    return AnalysisResult(
        resources=[
            _resource("aws_instance.web", "aws_instance", "web"),
            _resource("aws_security_group.web_sg", "aws_security_group", "web_sg"),
        ],
        relationships=[
            RelationshipDescriptor(
                "aws_instance.web", "aws_security_group.web_sg", "depends on", "", 0.9
            ),
        ],
    )


class TestNodePreparation(unittest.TestCase):
    def test_stable_id_prefers_descriptor_id(self) -> None:
        node = build_graph_node(_resource("  custom-id ", "aws_instance", "web"))
        self.assertEqual(node.stable_id, "custom-id")
        self.assertEqual(node.terraform_id, "custom-id")

    def test_terraform_id_is_descriptor_id(self) -> None:
        node = build_graph_node(_resource("module.app.aws_instance.web", "aws_instance", "web"))
        self.assertEqual(node.terraform_id, "module.app.aws_instance.web")

    def test_stable_id_falls_back_to_type_and_name(self) -> None:
        node = build_graph_node(_resource("", "aws_instance", "web"))
        self.assertEqual(node.stable_id, "aws_instance.web")
        self.assertEqual(node.terraform_id, "aws_instance.web")

    def test_synthetic_id_is_deterministic(self) -> None:
        first = build_graph_node(_resource("", "aws_instance", "", properties={"a": 1}))
        second = build_graph_node(_resource("", "aws_instance", "", properties={"a": 1}))
        self.assertTrue(first.stable_id.startswith("resource_"))
        self.assertEqual(first.stable_id, second.stable_id)

    def test_provider_normalized(self) -> None:
        self.assertEqual(build_graph_node(_resource("a.b", "a", "b", provider=" AWS ")).provider, "aws")
        self.assertEqual(build_graph_node(_resource("a.b", "a", "b", provider="")).provider, "unknown")

    def test_category_keywords_in_order(self) -> None:
        self.assertEqual(categorize_resource("aws_instance"), "compute")
        self.assertEqual(categorize_resource("aws_db_instance"), "compute")
        self.assertEqual(categorize_resource("aws_s3_bucket"), "storage")
        self.assertEqual(categorize_resource("aws_rds_proxy"), "database")
        self.assertEqual(categorize_resource("aws_vpc"), "network")
        self.assertEqual(categorize_resource("aws_iam_role"), "identity")
        self.assertEqual(categorize_resource("helm_release"), "application")
        self.assertEqual(categorize_resource("random_pet"), "other")

    def test_properties_serialize_typed_values(self) -> None:
        props = {
            "ami": HclPrimitive("ami-1"),
            "subnets": HclList((HclReference("aws_subnet.a.id"),)),
        }
        self.assertEqual(
            serialize_properties(props),
            '{"ami": "ami-1", "subnets": ["${aws_subnet.a.id}"]}',
        )

    def test_unserializable_properties_become_empty(self) -> None:
        self.assertEqual(serialize_properties({"bad": {1, 2}}), "{}")

    def test_repeated_ids_collapse(self) -> None:
        stats = MaterializationStats()
        nodes = build_graph_nodes(
            [_resource("a.x", "a", "x"), _resource("a.x", "a", "x", provider="gcp")], stats
        )
        self.assertEqual(len(nodes), 1)
        self.assertEqual(nodes[0].provider, "gcp")
        self.assertEqual(stats.nodes_prepared, 2)


class TestRelationshipTypes(unittest.TestCase):
    def test_sanitize(self) -> None:
        self.assertEqual(sanitize_relationship_type("depends on"), "DEPENDS_ON")
        self.assertEqual(sanitize_relationship_type("  routes-to!! "), "ROUTES_TO")
        self.assertEqual(sanitize_relationship_type(""), "RELATED_TO")
        self.assertEqual(sanitize_relationship_type(None), "RELATED_TO")
        self.assertEqual(sanitize_relationship_type("!!!"), "RELATED_TO")


class TestEdgePreparation(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = InMemoryNodeCatalog(build_graph_nodes(_web_sg_analysis().resources))

    def test_duplicates_collapse_first_wins(self) -> None:
        stats = MaterializationStats()
        edges = build_graph_edges(
            [
                RelationshipDescriptor("aws_instance.web", "aws_security_group.web_sg", "DEPENDS_ON", "first", 0.9),
                RelationshipDescriptor("aws_instance.web", "aws_security_group.web_sg", "depends-on", "second", 0.1),
            ],
            self.catalog,
            stats,
        )
        self.assertEqual(len(edges), 1)
        self.assertEqual(edges[0].description, "first")
        self.assertEqual(stats.dropped_edges_by_reason, {"duplicate": 1})

    def test_unresolved_target_dropped_and_counted(self) -> None:
        stats = MaterializationStats()
        with self.assertLogs("graphstore.neo4j_loader", level="WARNING") as logs:
            edges = build_graph_edges(
                [RelationshipDescriptor("aws_instance.web", "aws_lb.missing", "ROUTES_TO")],
                self.catalog,
                stats,
            )
        self.assertEqual(edges, [])
        self.assertEqual(stats.dropped_edges_by_reason, {"unresolved_target": 1})
        self.assertEqual(len(logs.records), 1)


class TestMaterializeGraph(unittest.TestCase):
    def test_depends_on_produces_single_edge(self) -> None:
        driver = _FakeDriver()
        stats = materialize_graph(_web_sg_analysis(), driver)

        self.assertEqual(stats.nodes_written, 2)
        self.assertEqual(stats.edges_written, 1)
        self.assertEqual(
            list(driver.store.edges),
            [("aws_instance.web", "aws_security_group.web_sg", "DEPENDS_ON")],
        )
        edge = driver.store.edges[("aws_instance.web", "aws_security_group.web_sg", "DEPENDS_ON")]
        self.assertEqual(edge["original_type"], "depends on")
        self.assertEqual(edge["confidence"], 0.9)
        self.assertEqual(stats.indexes_created, 6)

    def test_replace_runs_are_idempotent(self) -> None:
        driver = _FakeDriver()
        first = materialize_graph(_web_sg_analysis(), driver)
        counts = (len(driver.store.nodes), len(driver.store.edges))
        second = materialize_graph(_web_sg_analysis(), driver)

        self.assertEqual((len(driver.store.nodes), len(driver.store.edges)), counts)
        self.assertEqual(first.nodes_written, second.nodes_written)
        self.assertEqual(first.edges_written, second.edges_written)
        self.assertEqual(second.nodes_cleared, 2)

    def test_replace_removes_stale_nodes(self) -> None:
        driver = _FakeDriver()
        driver.store.nodes["stale"] = {"id": "stale", "terraform_id": "x.stale", "type": "x", "name": "stale"}
        materialize_graph(_web_sg_analysis(), driver)
        self.assertNotIn("stale", driver.store.nodes)

    def test_clear_failure_aborts(self) -> None:
        driver = _FakeDriver()
        driver.store.fail_clear = True
        with self.assertRaises(ImportFailedError):
            materialize_graph(_web_sg_analysis(), driver)
        self.assertEqual(driver.store.nodes, {})

    def test_node_failure_is_counted_and_edge_dropped(self) -> None:
        driver = _FakeDriver()
        driver.store.fail_node_ids.add("aws_security_group.web_sg")
        stats = materialize_graph(_web_sg_analysis(), driver)
        self.assertEqual(stats.nodes_written, 1)
        self.assertEqual(stats.nodes_failed, 1)
        self.assertEqual(stats.edges_written, 0)
        self.assertEqual(stats.dropped_edges_by_reason, {"unresolved_target": 1})

    def test_index_failure_is_only_a_warning(self) -> None:
        driver = _FakeDriver()
        driver.store.fail_indexes = True
        stats = materialize_graph(_web_sg_analysis(), driver)
        self.assertEqual(stats.index_failures, 6)
        self.assertEqual(stats.edges_written, 1)

    def test_report_shape(self) -> None:
        report = materialize_graph(_web_sg_analysis(), _FakeDriver()).to_report()
        self.assertEqual(report["mode"], "replace")
        self.assertEqual(report["edge_write_success_rate"], 1.0)


class TestMergeGraph(unittest.TestCase):
    def test_incremental_resolves_against_existing_nodes(self) -> None:
        driver = _FakeDriver()
        materialize_graph(_web_sg_analysis(), driver)

        update = AnalysisResult(
            resources=[_resource("aws_lb.front", "aws_lb", "front")],
            relationships=[RelationshipDescriptor("aws_lb.front", "aws_instance.web", "ROUTES_TO")],
        )
        stats = merge_graph(update, driver)

        self.assertEqual(stats.mode, "incremental")
        self.assertEqual(len(driver.store.nodes), 3)
        self.assertIn(("aws_lb.front", "aws_instance.web", "ROUTES_TO"), driver.store.edges)
        self.assertEqual(stats.nodes_cleared, 0)


if __name__ == "__main__":
    unittest.main()
