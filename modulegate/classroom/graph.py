"""
Prerequisite graph helpers.

Builds a networkx DiGraph over modules (edge: prerequisite -> dependent) and
derives from it:
- Cycles, reported as MalformedPrerequisiteGraph
- Evaluation order: strongly connected components grouped in topological
  generations, so every prerequisite is evaluated before its dependents
"""

import logging
from typing import Iterable

import networkx as nx

from modulegate.exceptions import MalformedPrerequisiteGraph
from modulegate.schemas import Module

logger = logging.getLogger(__name__)


def build_prerequisite_graph(modules: Iterable[Module]) -> nx.DiGraph:
    """
    Build the prerequisite graph for a set of modules.

    Prerequisite ids that do not name one of the given modules are skipped
    with a warning.
    """
    modules = list(modules)
    known = {module.id for module in modules}

    G = nx.DiGraph()
    for module in modules:
        G.add_node(module.id, position=module.position)
    for module in modules:
        for prereq_id in module.prerequisite_module_ids:
            if prereq_id not in known:
                logger.warning(f"Module {module.id} lists unknown prerequisite {prereq_id}, skipping")
                continue
            G.add_edge(prereq_id, module.id)
    return G


def find_prerequisite_cycles(modules: Iterable[Module]) -> list[MalformedPrerequisiteGraph]:
    """Every elementary cycle, each reported as prerequisite -> ... -> prerequisite."""
    G = build_prerequisite_graph(modules)
    cycles = []
    for cycle in nx.simple_cycles(G):
        # start each cycle at its smallest id
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
    cycles.sort(key=lambda c: (len(c), c))
    return [MalformedPrerequisiteGraph(cycle + [cycle[0]]) for cycle in cycles]


def is_cyclic_component(G: nx.DiGraph, component: list[str]) -> bool:
    return len(component) > 1 or G.has_edge(component[0], component[0])


def component_cycle(G: nx.DiGraph, component: list[str]) -> MalformedPrerequisiteGraph:
    """One cycle through a cyclic component, starting at its smallest id."""
    edges = nx.find_cycle(G.subgraph(component), source=component[0])
    cycle = [u for u, _ in edges]
    start = cycle.index(min(cycle))
    cycle = cycle[start:] + cycle[:start]
    return MalformedPrerequisiteGraph(cycle + [cycle[0]])


def evaluation_generations(G: nx.DiGraph) -> list[list[list[str]]]:
    """
    Group modules for evaluation.

    Returns a list of generations; each generation is a list of components
    (lists of module ids). Components within one generation do not depend on
    each other. A component holds more than one module only when those
    modules form a prerequisite cycle.
    """
    condensed = nx.condensation(G)
    generations = []
    for generation in nx.topological_generations(condensed):
        components = [
            sorted(condensed.nodes[node]["members"], key=lambda m: (G.nodes[m].get("position", 0), m))
            for node in generation
        ]
        components.sort(key=lambda c: (G.nodes[c[0]].get("position", 0), c[0]))
        generations.append(components)
    return generations
