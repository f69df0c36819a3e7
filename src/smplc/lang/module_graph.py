"""
Module Graph Builder
====================

This module assembles the per-file ModuleNodes of one compilation into a
single cross-file namespace.

Every module's top-level items are addressable by qualified path
(`geo::Point`). Inside a module, a bare name resolves in this order:

1. the module's own items
2. items of the modules it `use`s (a name offered by two of them is
   ambiguous and must be qualified)
3. items of the prelude

Module names and item names live in separate namespaces: `geo::Point`
always starts with a module, whatever items are called `geo`.

Usage
-----
>>> from smplc.lang.module_graph import build_module_graph
>>> graph = build_module_graph([geo_module, main_module], prelude=load_prelude())
>>> graph.resolve("main", "Point", location)
('geo', StructDeclaration(...))
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from smplc.errors import SourceLocation
from smplc.lang.ast import Item, ModuleNode, ModulePath, UseDeclaration
from smplc.lang.errors import (
    AmbiguousReferenceError,
    DuplicateDeclarationError,
    DuplicateModuleError,
    UndefinedSymbolError,
    UnresolvedImportError,
)
from smplc.lang.types import PRIMITIVE_TYPES

logger = logging.getLogger(__name__)

# Name given to a file without a `mod` declaration
DEFAULT_MODULE_NAME = "main"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ModuleInfo:
    """
    One module of the compilation.

    Attributes:
        name: Module name (declared, or DEFAULT_MODULE_NAME)
        node: The parsed ModuleNode
        items: Item name -> declaration, excluding `use` declarations
        imports: Names of `use`d modules, in source order
        is_prelude: True for the implicit builtin prelude
    """
    name: str
    node: ModuleNode
    items: dict[str, Item] = field(default_factory=dict)
    imports: list[str] = field(default_factory=list)
    is_prelude: bool = False


@dataclass
class ModuleGraph:
    """
    Cross-file module namespace, read-only once built.

    Attributes:
        modules: Module name -> ModuleInfo (prelude first, then input order)
        prelude: Name of the prelude module, or None when compiled without it
    """
    modules: dict[str, ModuleInfo] = field(default_factory=dict)
    prelude: Optional[str] = None

    @property
    def user_modules(self) -> list[ModuleInfo]:
        """Modules that came from input files, in input order."""
        return [m for m in self.modules.values() if not m.is_prelude]

    def resolve(
        self,
        module_name: str,
        name: str,
        location: Optional[SourceLocation] = None,
    ) -> Optional[tuple[str, Item]]:
        """
        Resolve a bare item name as seen from inside module_name.

        Returns:
            (declaring module name, item), or None if no visible item has
            that name

        Raises:
            AmbiguousReferenceError: If two `use`d modules both provide it
        """
        module = self.modules[module_name]
        if name in module.items:
            return module_name, module.items[name]

        providers = [m for m in module.imports if name in self.modules[m].items]
        if len(providers) > 1:
            raise AmbiguousReferenceError(name, providers, location)
        if providers:
            return providers[0], self.modules[providers[0]].items[name]

        if self.prelude is not None and self.prelude != module_name:
            prelude = self.modules[self.prelude]
            if name in prelude.items:
                return self.prelude, prelude.items[name]

        return None

    def resolve_path(
        self,
        module_name: str,
        path: ModulePath,
        location: Optional[SourceLocation] = None,
    ) -> Optional[tuple[str, Item]]:
        """
        Resolve a bare or `module::item` path from inside module_name.

        Raises:
            UndefinedSymbolError: If a qualified path names an unknown module
        """
        if not path.is_qualified:
            return self.resolve(module_name, path.name, location)

        if len(path.segments) > 2:
            raise UndefinedSymbolError(str(path), location, kind="path")

        target = self.modules.get(path.segments[0])
        if target is None:
            raise UndefinedSymbolError(path.segments[0], location, kind="module")
        if path.name not in target.items:
            return None
        return target.name, target.items[path.name]

    def visible_names(self, module_name: str) -> list[str]:
        """Every bare item name visible from module_name (for suggestions)."""
        module = self.modules[module_name]
        names = set(module.items)
        for imported in module.imports:
            names.update(self.modules[imported].items)
        if self.prelude is not None:
            names.update(self.modules[self.prelude].items)
        return sorted(names)


# =============================================================================
# Graph Construction
# =============================================================================

def build_module_graph(
    modules: list[ModuleNode],
    prelude: Optional[ModuleNode] = None,
) -> ModuleGraph:
    """
    Build the module graph for one compilation.

    Args:
        modules: One parsed ModuleNode per input file, in input order
        prelude: Parsed prelude module, or None to compile without one

    Returns:
        The ModuleGraph

    Raises:
        DuplicateModuleError: If two files declare the same module name
        DuplicateDeclarationError: If a module declares a name twice
        UnresolvedImportError: If a `use` names a module not in the set
    """
    graph = ModuleGraph()

    if prelude is not None:
        info = _collect_module(prelude, is_prelude=True)
        graph.modules[info.name] = info
        graph.prelude = info.name

    for node in modules:
        info = _collect_module(node)
        existing = graph.modules.get(info.name)
        if existing is not None:
            raise DuplicateModuleError(
                info.name,
                location=node.location,
                original_location=existing.node.location,
            )
        graph.modules[info.name] = info

    for info in graph.modules.values():
        _check_imports(graph, info)

    logger.debug(
        f"module graph: {len(graph.modules)} modules "
        f"({', '.join(graph.modules)})"
    )
    return graph


def _collect_module(node: ModuleNode, is_prelude: bool = False) -> ModuleInfo:
    """Collect a module's item table and its `use` list."""
    info = ModuleInfo(
        name=node.name or DEFAULT_MODULE_NAME,
        node=node,
        is_prelude=is_prelude,
    )
    seen_uses: dict[str, UseDeclaration] = {}

    for item in node.items:
        if isinstance(item, UseDeclaration):
            if item.name in seen_uses:
                raise DuplicateDeclarationError(
                    f"use {item.name}",
                    location=item.location,
                    original_location=seen_uses[item.name].location,
                )
            seen_uses[item.name] = item
            info.imports.append(item.name)
            continue

        if item.name in PRIMITIVE_TYPES:
            raise DuplicateDeclarationError(
                item.name,
                location=item.location,
                hint=f"'{item.name}' is a builtin type",
            )
        if item.name in info.items:
            raise DuplicateDeclarationError(
                item.name,
                location=item.location,
                original_location=info.items[item.name].location,
            )
        info.items[item.name] = item

    return info


def _check_imports(graph: ModuleGraph, info: ModuleInfo) -> None:
    for use in info.node.uses:
        if use.name == info.name:
            raise UnresolvedImportError(
                use.name,
                info.name,
                location=use.location,
                reason=f"module '{info.name}' cannot use itself",
            )
        if use.name not in graph.modules:
            raise UnresolvedImportError(
                use.name,
                info.name,
                location=use.location,
                available=[m.name for m in graph.user_modules],
            )
