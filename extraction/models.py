"""
Data models for scanned Terraform declarations and resolved dependencies.

``DeclarationRegistry`` and ``DependencyMap`` are immutable snapshots: they
are built once per import and handed by value to later stages.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.identifiers import (
    make_data_source_id,
    make_module_id,
    make_resource_id,
)

RESOURCE = "resource"
MODULE = "module"
VARIABLE = "variable"
OUTPUT = "output"
DATA = "data"
LOCAL = "local"

DECLARATION_KINDS: Tuple[str, ...] = (RESOURCE, MODULE, VARIABLE, OUTPUT, DATA, LOCAL)


@dataclass(frozen=True)
class SourceFile:
    """One input configuration file.

    Attributes:
        name: Base file name (e.g. ``main.tf``).
        path: Path relative to the input root (or the archive entry name).
        content: Raw text, never modified by the pipeline.
    """

    name: str
    path: str
    content: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Declaration:
    """A named entity declared in configuration text.

    ``type`` is the Terraform type for resources and data sources and the
    kind itself for everything else.
    """

    kind: str
    type: str
    name: str
    file_name: str

    @property
    def composite_id(self) -> str:
        if self.kind == RESOURCE:
            return make_resource_id(self.type, self.name)
        if self.kind == DATA:
            return make_data_source_id(self.type, self.name)
        return self.name


@dataclass
class FileStructure:
    """Per-file structural inventory produced by the scanner.

    The ``*_by_file`` tables and ``failed_files`` use the relative path.
    """

    declarations: List[Declaration] = field(default_factory=list)
    resources_by_file: Dict[str, List[str]] = field(default_factory=dict)
    variables_by_file: Dict[str, List[str]] = field(default_factory=dict)
    outputs_by_file: Dict[str, List[str]] = field(default_factory=dict)
    providers_by_file: Dict[str, List[str]] = field(default_factory=dict)
    providers: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.resources_by_file)

    @property
    def total_resources(self) -> int:
        return sum(len(ids) for ids in self.resources_by_file.values())

    @property
    def total_variables(self) -> int:
        return sum(len(names) for names in self.variables_by_file.values())

    @property
    def total_outputs(self) -> int:
        return sum(len(names) for names in self.outputs_by_file.values())

    def resource_types(self) -> Dict[str, str]:
        """Resource id -> type, in declaration order (latest type wins)."""
        types: Dict[str, str] = {}
        for decl in self.declarations:
            if decl.kind == RESOURCE:
                types[decl.composite_id] = decl.type
        return types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_scanned": self.total_files,
            "files_failed": len(self.failed_files),
            "resources": self.total_resources,
            "variables": self.total_variables,
            "outputs": self.total_outputs,
            "providers": list(self.providers),
        }

    def __str__(self) -> str:
        return (
            f"FileStructure(files={self.total_files}, resources={self.total_resources}, "
            f"variables={self.total_variables}, outputs={self.total_outputs}, "
            f"providers={len(self.providers)}, failed={len(self.failed_files)})"
        )


@dataclass(frozen=True)
class DeclarationRegistry:
    """Global declaration registry for one import.

    Attributes:
        resources: Resource composite id -> type, in first-declaration order.
        modules: Declared module names.
        variables: Declared variable names.
        outputs: Declared output names.
        locals: Declared local value names.
        data_sources: Declared data source ids (``data.type.name``).
    """

    resources: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    modules: frozenset = frozenset()
    variables: frozenset = frozenset()
    outputs: frozenset = frozenset()
    locals: frozenset = frozenset()
    data_sources: frozenset = frozenset()

    @classmethod
    def from_declarations(cls, declarations: Iterable[Declaration]) -> "DeclarationRegistry":
        resources: Dict[str, str] = {}
        by_kind: Dict[str, set] = {kind: set() for kind in DECLARATION_KINDS}
        for decl in declarations:
            if decl.kind == RESOURCE:
                # Duplicate ids overwrite; dict keeps the first position.
                resources[decl.composite_id] = decl.type
            elif decl.kind in by_kind:
                by_kind[decl.kind].add(decl.composite_id)
        return cls(
            resources=MappingProxyType(resources),
            modules=frozenset(by_kind[MODULE]),
            variables=frozenset(by_kind[VARIABLE]),
            outputs=frozenset(by_kind[OUTPUT]),
            locals=frozenset(by_kind[LOCAL]),
            data_sources=frozenset(by_kind[DATA]),
        )

    def has_resource(self, resource_id: str) -> bool:
        return resource_id in self.resources

    def resource_type(self, resource_id: str) -> Optional[str]:
        return self.resources.get(resource_id)

    def resources_of_types(self, types: Iterable[str]) -> List[str]:
        wanted = set(types)
        return [rid for rid, rtype in self.resources.items() if rtype in wanted]

    def contains(self, reference_id: str) -> bool:
        """Whether a recorded dependency target names a registered declaration."""
        if reference_id in self.resources or reference_id in self.data_sources:
            return True
        prefix, _, name = reference_id.partition(".")
        if prefix == "module":
            return name in self.modules
        if prefix == "var":
            return name in self.variables
        if prefix == "local":
            return name in self.locals
        if prefix == "output":
            return name in self.outputs
        return False

    def __len__(self) -> int:
        return (
            len(self.resources)
            + len(self.modules)
            + len(self.variables)
            + len(self.outputs)
            + len(self.locals)
            + len(self.data_sources)
        )


DependencyTable = Mapping[str, Tuple[str, ...]]


def _freeze(table: Dict[str, List[str]]) -> DependencyTable:
    return MappingProxyType({key: tuple(values) for key, values in table.items() if values})


@dataclass(frozen=True)
class DependencyMap:
    """Per-resource referenced ids, partitioned by reference category.

    Each value is an ordered tuple of unique ids in first-encounter order.
    ``resource_dependencies`` holds explicit resource and data source
    references; ``variable_usage`` holds both ``var.*`` and ``local.*``.
    """

    resource_dependencies: DependencyTable = field(default_factory=lambda: MappingProxyType({}))
    module_references: DependencyTable = field(default_factory=lambda: MappingProxyType({}))
    variable_usage: DependencyTable = field(default_factory=lambda: MappingProxyType({}))
    output_references: DependencyTable = field(default_factory=lambda: MappingProxyType({}))
    implicit_dependencies: DependencyTable = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_tables(
        cls,
        resource_dependencies: Dict[str, List[str]],
        module_references: Dict[str, List[str]],
        variable_usage: Dict[str, List[str]],
        output_references: Dict[str, List[str]],
        implicit_dependencies: Dict[str, List[str]],
    ) -> "DependencyMap":
        return cls(
            resource_dependencies=_freeze(resource_dependencies),
            module_references=_freeze(module_references),
            variable_usage=_freeze(variable_usage),
            output_references=_freeze(output_references),
            implicit_dependencies=_freeze(implicit_dependencies),
        )

    def categories(self) -> Dict[str, DependencyTable]:
        return {
            "resource": self.resource_dependencies,
            "module": self.module_references,
            "variable": self.variable_usage,
            "output": self.output_references,
            "implicit": self.implicit_dependencies,
        }

    def all_dependencies_for(self, resource_id: str) -> Tuple[str, ...]:
        """Combined view over every category, de-duplicated, category order."""
        combined: Dict[str, None] = {}
        for table in self.categories().values():
            for dep in table.get(resource_id, ()):
                combined.setdefault(dep, None)
        return tuple(combined)

    @property
    def total_dependencies(self) -> int:
        """Sum of per-category set sizes (diagnostic only)."""
        return sum(
            len(deps) for table in self.categories().values() for deps in table.values()
        )

    def counts_by_category(self) -> Dict[str, int]:
        return {
            name: sum(len(deps) for deps in table.values())
            for name, table in self.categories().items()
        }

    def all_targets(self) -> List[str]:
        seen: Dict[str, None] = {}
        for table in self.categories().values():
            for deps in table.values():
                for dep in deps:
                    seen.setdefault(dep, None)
        return list(seen)
