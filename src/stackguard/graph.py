"""Resource dependency graph and cycle detection."""

from typing import Any

from stackguard.nodes import PSEUDO_PARAMETERS, iter_references, parse_value


def _depends_on(resource: dict[str, Any]) -> list[str]:
    depends_on = resource.get("DependsOn")
    if isinstance(depends_on, str):
        return [depends_on]
    if isinstance(depends_on, list):
        return [dep for dep in depends_on if isinstance(dep, str)]
    return []


def build_dependency_graph(resources: dict[str, Any]) -> dict[str, list[str]]:
    """Map each logical id to the ids it depends on.

    Edges are the explicit ``DependsOn`` entries followed by every target
    referenced from the resource's ``Properties``. Pseudo parameters are not
    graph nodes and are left out.
    """
    graph: dict[str, list[str]] = {}
    for logical_id, resource in resources.items():
        deps: dict[str, None] = {}
        if isinstance(resource, dict):
            for dep in _depends_on(resource):
                deps[dep] = None
            properties = parse_value(resource.get("Properties", {}))
            for _, ref in iter_references(properties, "Properties"):
                if ref.target in PSEUDO_PARAMETERS or ref.target.startswith("AWS::"):
                    continue
                deps[ref.target] = None
        graph[logical_id] = list(deps)
    return graph


def _canonical(cycle: list[str]) -> tuple[str, ...]:
    # cycle is [A, B, ..., A]; rotate the open form to start at its smallest id
    nodes = cycle[:-1]
    start = min(range(len(nodes)), key=lambda i: (nodes[i], i))
    rotated = nodes[start:] + nodes[:start]
    return tuple(rotated)


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Return every distinct dependency cycle as ``[A, B, ..., A]``.

    Depth-first traversal from each unvisited node with an explicit stack of
    ``(node, next edge index)`` frames. A back edge to a node on the current
    path yields the path slice from that node through the back edge. Cycles
    reached from several starting points are reported once, in order of first
    discovery.
    """
    visited: set[str] = set()
    found: dict[tuple[str, ...], list[str]] = {}

    for root in graph:
        if root in visited:
            continue

        path: list[str] = [root]
        on_path: set[str] = {root}
        stack: list[list] = [[root, 0]]
        visited.add(root)

        while stack:
            frame = stack[-1]
            node, index = frame
            deps = graph.get(node, [])

            if index >= len(deps):
                stack.pop()
                path.pop()
                on_path.discard(node)
                continue

            frame[1] = index + 1
            dep = deps[index]

            if dep in on_path:
                cycle = path[path.index(dep):] + [dep]
                found.setdefault(_canonical(cycle), cycle)
            elif dep not in visited:
                visited.add(dep)
                on_path.add(dep)
                path.append(dep)
                stack.append([dep, 0])

    return list(found.values())
