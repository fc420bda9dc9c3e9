"""
移除影响分析

基于注册表的依赖图计算直接和间接依赖者。间接依赖者只向外走一步，
不是完整的传递闭包。
"""

from dataclasses import dataclass, field
from typing import List, Set, Tuple, Union

from loguru import logger

from modkeeper.models import InstalledMod, ModDeclaration
from modkeeper.services.registry import ModRegistry


@dataclass
class RemovalImpact:
    """移除某个模组会影响到的模组"""

    mod: ModDeclaration
    direct: List[ModDeclaration] = field(default_factory=list)
    indirect: List[ModDeclaration] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.direct) + len(self.indirect)

    @property
    def safe_to_remove(self) -> bool:
        return self.total == 0


@dataclass
class DependencyChain:
    """沿 depends_on 递归展开的依赖链，以及遍历中发现的循环"""

    mod: ModDeclaration
    dependencies: List[ModDeclaration] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
    cycles: List[Tuple[str, ...]] = field(default_factory=list)

    @property
    def has_cycle(self) -> bool:
        return bool(self.cycles)


@dataclass
class PlatformSummary:
    """平台模组使用情况"""

    active: List[Tuple[ModDeclaration, List[ModDeclaration]]] = field(
        default_factory=list
    )
    removal_candidates: List[ModDeclaration] = field(default_factory=list)


def _declaration(mod: Union[ModDeclaration, InstalledMod]) -> ModDeclaration:
    return mod.declaration if isinstance(mod, InstalledMod) else mod


class ImpactAnalyzer:
    """依赖影响分析器"""

    def __init__(self, registry: ModRegistry):
        self.registry = registry

    def direct_dependents(
        self, mod: Union[ModDeclaration, InstalledMod]
    ) -> List[ModDeclaration]:
        return self.registry.dependents_of(_declaration(mod))

    def indirect_dependents(
        self, mod: Union[ModDeclaration, InstalledMod]
    ) -> List[ModDeclaration]:
        """直接依赖者的直接依赖者，按 project_id 去重并排除直接依赖者本身"""
        direct = self.direct_dependents(mod)
        direct_ids = {decl.project_id for decl in direct}

        seen: Set[str] = set()
        indirect: List[ModDeclaration] = []
        for dependent in direct:
            for candidate in self.registry.declared_dependents(dependent.project_id):
                if candidate.project_id in direct_ids or candidate.project_id in seen:
                    continue
                seen.add(candidate.project_id)
                indirect.append(candidate)
        return indirect

    def removal_impact(
        self, mod: Union[ModDeclaration, InstalledMod]
    ) -> RemovalImpact:
        declaration = _declaration(mod)
        return RemovalImpact(
            mod=declaration,
            direct=self.direct_dependents(declaration),
            indirect=self.indirect_dependents(declaration),
        )

    def total_impact(self, mod: Union[ModDeclaration, InstalledMod]) -> int:
        return self.removal_impact(mod).total

    def dependency_chain(
        self, mod: Union[ModDeclaration, InstalledMod]
    ) -> DependencyChain:
        """
        递归展开 depends_on

        遍历携带 visited 集合，声明之间存在循环时记录为数据异常而不是无限递归。
        """
        root = _declaration(mod)
        chain = DependencyChain(mod=root)
        visited: Set[str] = set()
        collected: Set[str] = set()

        def walk(decl: ModDeclaration, path: Tuple[str, ...]):
            visited.add(decl.project_id)
            for dep_id in decl.depends_on:
                if dep_id in path:
                    cycle = path[path.index(dep_id):] + (dep_id,)
                    chain.cycles.append(cycle)
                    logger.warning(f"[依赖] 检测到循环依赖: {' -> '.join(cycle)}")
                    continue
                dep = self.registry.get(dep_id)
                if dep is None:
                    if dep_id not in chain.unresolved:
                        chain.unresolved.append(dep_id)
                    continue
                if dep_id not in collected:
                    collected.add(dep_id)
                    chain.dependencies.append(dep)
                if dep_id not in visited:
                    walk(dep, path + (dep_id,))

        walk(root, (root.project_id,))
        return chain

    def platform_summary(self) -> PlatformSummary:
        """平台模组按依赖者数量降序排列；没有依赖者的平台模组列为可移除候选"""
        summary = PlatformSummary()
        for decl in self.registry.declarations:
            if not decl.is_platform:
                continue
            dependents = self.direct_dependents(decl)
            if dependents:
                summary.active.append((decl, dependents))
            else:
                summary.removal_candidates.append(decl)
        summary.active.sort(key=lambda item: -len(item[1]))
        return summary
