"""Pure forest construction and traversal combinators.

All functions in this module are pure - no I/O, no side effects.
They take a forest (a list of root ``Task`` nodes with nested children)
and return a new forest; inputs are never modified.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .models import Task


def _by_position(nodes: Iterable[Task]) -> list[Task]:
    # sorted() is stable, so ties keep insertion order
    return sorted(nodes, key=lambda node: node.position)


def _assemble(
    root_ids: list[str],
    records: dict[str, Task],
    child_ids: dict[str, list[str]],
) -> list[Task]:
    def attach(task_id: str) -> Task:
        record = records[task_id]
        children = _by_position(attach(child) for child in child_ids.get(task_id, []))
        return record.model_copy(update={"children": children})

    return _by_position(attach(task_id) for task_id in root_ids)


# =============================================================================
# Building
# =============================================================================


def build_tree(items: Iterable[Task], scope_parent_id: str | None) -> list[Task]:
    """Turn a flat list of records into a nested forest.

    Items whose ``parent_id`` equals ``scope_parent_id`` become roots.
    Items whose parent is present in ``items`` are linked under it.
    Everything else is an orphan outside the current scope and is
    silently left out.

    Args:
        items: Flat task records (nested children, if any, are ignored)
        scope_parent_id: Parent id whose direct children form the roots

    Returns:
        Roots sorted by position, each with position-sorted children
    """
    records: dict[str, Task] = {}
    for item in items:
        records[item.id] = item

    root_ids: list[str] = []
    child_ids: dict[str, list[str]] = defaultdict(list)
    for record in records.values():
        if record.parent_id == scope_parent_id:
            root_ids.append(record.id)
        elif record.parent_id in records:
            child_ids[record.parent_id].append(record.id)

    return _assemble(root_ids, records, child_ids)


def flatten_tree(nodes: list[Task]) -> list[Task]:
    """Flatten a forest depth-first into records without children."""
    result: list[Task] = []

    def visit(level: list[Task]) -> None:
        for node in level:
            result.append(node.record())
            visit(node.children)

    visit(nodes)
    return result


# =============================================================================
# Fundamental Operations
# =============================================================================


def find_node(nodes: list[Task], task_id: str) -> Task | None:
    """Find a node by id anywhere in the forest (depth-first)."""
    for node in nodes:
        if node.id == task_id:
            return node
        found = find_node(node.children, task_id)
        if found is not None:
            return found
    return None


def map_nodes(nodes: list[Task], f: Callable[[Task], Task]) -> list[Task]:
    """Transform all nodes in the forest.

    Children are transformed first; ``f`` receives the node with its new
    children already attached.
    """
    return [f(node.model_copy(update={"children": map_nodes(node.children, f)})) for node in nodes]


def descendants(node: Task) -> list[Task]:
    """Return all descendants of a node, depth-first, without the node."""
    return flatten_tree(node.children)


def update_task_in_tree(nodes: list[Task], task_id: str, **changes: object) -> list[Task]:
    """Copy one node with changed fields.

    The sibling list holding the node is re-sorted when ``position``
    changes. Nodes outside the path to ``task_id`` are shared, not copied.
    """

    def update_level(level: list[Task]) -> tuple[list[Task], bool]:
        updated: list[Task] = []
        hit = False
        for node in level:
            if hit:
                updated.append(node)
            elif node.id == task_id:
                updated.append(node.model_copy(update=changes))
                hit = True
            else:
                children, found = update_level(node.children)
                if found:
                    node = node.model_copy(update={"children": children})
                    hit = True
                updated.append(node)
        if hit and "position" in changes and any(n.id == task_id for n in level):
            updated = _by_position(updated)
        return updated, hit

    result, _ = update_level(nodes)
    return result


def remove_subtree(nodes: list[Task], task_id: str) -> list[Task]:
    """Drop a node and all of its descendants from the forest."""
    result: list[Task] = []
    for node in nodes:
        if node.id == task_id:
            continue
        children = remove_subtree(node.children, task_id)
        if len(children) != len(node.children) or any(
            new is not old for new, old in zip(children, node.children)
        ):
            node = node.model_copy(update={"children": children})
        result.append(node)
    return result


def insert_node(nodes: list[Task], node: Task, parent_id: str | None) -> list[Task]:
    """Place ``node`` under ``parent_id`` (or among the roots) in order.

    ``parent_id`` names the roots' list when it is ``None`` or equals the
    roots' own parent. A missing parent leaves the forest unchanged.
    """
    if parent_id is None or any(root.parent_id == parent_id for root in nodes):
        return _by_position([*nodes, node])

    def visit(level: list[Task]) -> list[Task]:
        updated = []
        for current in level:
            if current.id == parent_id:
                current = current.model_copy(
                    update={"children": _by_position([*current.children, node])}
                )
            elif current.children:
                children = visit(current.children)
                if children is not current.children:
                    current = current.model_copy(update={"children": children})
            updated.append(current)
        if all(new is old for new, old in zip(updated, level)):
            return level
        return updated

    return visit(nodes)


def reposition(nodes: list[Task], positions: dict[str, float]) -> list[Task]:
    """Apply new positions to many nodes and re-sort affected siblings."""
    if not positions:
        return nodes

    def visit(level: list[Task]) -> list[Task]:
        updated = []
        touched = False
        for node in level:
            children = visit(node.children) if node.children else node.children
            changes: dict[str, object] = {}
            if children is not node.children:
                changes["children"] = children
            if node.id in positions and positions[node.id] != node.position:
                changes["position"] = positions[node.id]
                touched = True
            updated.append(node.model_copy(update=changes) if changes else node)
        if touched:
            return _by_position(updated)
        if all(new is old for new, old in zip(updated, level)):
            return level
        return updated

    return visit(nodes)


# =============================================================================
# Merging
# =============================================================================


def merge_task_updates(
    current_roots: list[Task],
    fresh: Iterable[Task],
    scope_parent_id: str | None = None,
) -> list[Task]:
    """Fold a freshly fetched flat batch into an existing forest.

    For every incoming record that already exists anywhere in the forest,
    server-owned fields are overwritten while the node keeps its children
    and ``is_expanded``. New records start collapsed with no children and
    are attached under their parent when it is present, or as roots when
    ``parent_id == scope_parent_id``. Nodes missing from the batch are
    kept: the merge only ever adds or refreshes. A record whose parent
    changed is relocated.

    Args:
        current_roots: The forest currently on screen
        fresh: Flat records from a fetch or a pagination page
        scope_parent_id: Parent id whose children are the forest's roots

    Returns:
        New forest with the batch merged in
    """
    existing = {record.id: record for record in flatten_tree(current_roots)}
    current_root_ids = {node.id for node in current_roots}

    records = dict(existing)
    for incoming in fresh:
        previous = existing.get(incoming.id)
        records[incoming.id] = incoming.model_copy(
            update={
                "children": [],
                "is_expanded": previous.is_expanded if previous is not None else False,
            }
        )

    root_ids: list[str] = []
    child_ids: dict[str, list[str]] = defaultdict(list)
    for record in records.values():
        if record.parent_id in records and record.parent_id != record.id:
            child_ids[record.parent_id].append(record.id)
        elif record.parent_id == scope_parent_id:
            root_ids.append(record.id)
        elif record.id in current_root_ids and record.parent_id == existing[record.id].parent_id:
            # Root of a scoped subtree whose parent was never loaded
            root_ids.append(record.id)

    return _assemble(root_ids, records, child_ids)


def merge_children_into_tree(
    nodes: list[Task],
    parent_id: str,
    children: list[Task],
) -> list[Task]:
    """Replace the children of one node with an already-built subtree list."""

    def replace(node: Task) -> Task:
        if node.id == parent_id:
            return node.model_copy(update={"children": _by_position(children)})
        return node

    return map_nodes(nodes, replace)


def update_tree_expansion(nodes: list[Task], expanded_ids: set[str] | frozenset[str]) -> list[Task]:
    """Set ``is_expanded`` on every node from a single set of open ids."""
    return [
        node.model_copy(
            update={
                "is_expanded": node.id in expanded_ids,
                "children": update_tree_expansion(node.children, expanded_ids),
            }
        )
        for node in nodes
    ]


# =============================================================================
# Arena View
# =============================================================================


@dataclass(frozen=True)
class ForestIndex:
    """Flat, id-keyed view of a forest.

    Attributes:
        nodes: Node by id (with nested children, as in the forest)
        parents: Parent id by node id
        levels: Level by node id, relative to the forest roots' level
        child_ids: Ordered child ids by parent id; the roots are keyed by
            ``scope_parent_id``
        scope_parent_id: Parent id shared by the forest roots
    """

    nodes: dict[str, Task] = field(default_factory=dict)
    parents: dict[str, str | None] = field(default_factory=dict)
    levels: dict[str, int] = field(default_factory=dict)
    child_ids: dict[str | None, list[str]] = field(default_factory=dict)
    scope_parent_id: str | None = None

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.nodes

    def get(self, task_id: str) -> Task | None:
        return self.nodes.get(task_id)

    def siblings(self, parent_id: str | None) -> list[Task]:
        """Children of ``parent_id`` in position order."""
        return [self.nodes[child] for child in self.child_ids.get(parent_id, [])]

    def ancestors(self, task_id: str) -> list[str]:
        """Ids of the ancestors held in the forest, nearest first."""
        chain: list[str] = []
        parent = self.parents.get(task_id)
        while parent in self.nodes and parent not in chain:
            chain.append(parent)
            parent = self.parents.get(parent)
        return chain

    def is_same_or_descendant(self, candidate: str, ancestor: str) -> bool:
        """Check whether ``candidate`` is ``ancestor`` or lies beneath it."""
        return candidate == ancestor or ancestor in self.ancestors(candidate)

    def height(self, task_id: str) -> int:
        """Number of levels below a node (0 for a leaf)."""
        children = self.child_ids.get(task_id, [])
        if not children:
            return 0
        return 1 + max(self.height(child) for child in children)


def index_forest(nodes: list[Task], root_level: int = 0) -> ForestIndex:
    """Build the arena view of a forest.

    Args:
        nodes: The forest to index
        root_level: Level assigned to the forest roots (0 for projects)

    Returns:
        ForestIndex over every node in the forest
    """
    index = ForestIndex(scope_parent_id=nodes[0].parent_id if nodes else None)

    def visit(level: list[Task], parent_id: str | None, depth: int) -> None:
        index.child_ids[parent_id] = [node.id for node in level]
        for node in level:
            index.nodes[node.id] = node
            index.parents[node.id] = parent_id
            index.levels[node.id] = depth
            visit(node.children, node.id, depth + 1)

    visit(nodes, index.scope_parent_id, root_level)
    return index
