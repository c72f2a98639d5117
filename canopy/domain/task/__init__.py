"""Task domain - forest construction, positioning, moves and clones.

This module provides the domain layer for canopy's task hierarchy.
All exports are pure (no I/O, no side effects).

Key Types:
    Task - A node of the hierarchy (project down to subtask)
    TaskStatus - Task state enumeration
    TaskOrigin - Instance/template partition
    Resource - Attachment cloned with its task
    ForestIndex - Flat id-keyed view of a forest

Forest Functions:
    build_tree - Flat records to nested forest
    flatten_tree - Nested forest to flat records
    merge_task_updates - Fold a fresh batch into a forest
    update_tree_expansion - Apply the expanded-ids set
    merge_children_into_tree - Replace one node's children
    remove_subtree - Drop a node with its descendants
    index_forest - Build the arena view

Positioning:
    allocate_position - Position between two neighbours
    plan_insert - Position (or renumbering) for an insert at an index
    renormalize - Evenly spaced positions

Moves:
    plan_move - Validate a drop and stage its changes
    apply_move / revert_move - Optimistic apply and rollback

Cloning:
    prepare_deep_clone - Remapped records for a subtree copy

Domain Events:
    TaskMoved, MoveRolledBack, TaskStatusChanged, TaskDeleted, SubtreeCloned
"""

from .cloning import ClonePlan, collect_subtree, generate_id_map, prepare_deep_clone
from .events import (
    MoveRolledBack,
    SubtreeCloned,
    TaskDeleted,
    TaskMoved,
    TaskStatusChanged,
)
from .models import (
    MAX_LEVEL,
    CloneOverrides,
    CloneResult,
    PositionUpdate,
    Resource,
    RootsPage,
    Task,
    TaskOrigin,
    TaskStatus,
)
from .moves import DropTarget, MoveKind, MovePlan, apply_move, plan_move, revert_move
from .positioning import (
    MIN_GAP,
    POSITION_STEP,
    PositionPlan,
    allocate_position,
    plan_insert,
    renormalize,
)
from .traversal import (
    ForestIndex,
    build_tree,
    descendants,
    find_node,
    flatten_tree,
    index_forest,
    insert_node,
    map_nodes,
    merge_children_into_tree,
    merge_task_updates,
    remove_subtree,
    reposition,
    update_task_in_tree,
    update_tree_expansion,
)

__all__ = [
    # Models
    "MAX_LEVEL",
    "Task",
    "TaskStatus",
    "TaskOrigin",
    "Resource",
    "PositionUpdate",
    "RootsPage",
    "CloneOverrides",
    "CloneResult",
    # Forest
    "ForestIndex",
    "build_tree",
    "flatten_tree",
    "find_node",
    "map_nodes",
    "descendants",
    "insert_node",
    "reposition",
    "update_task_in_tree",
    "remove_subtree",
    "merge_task_updates",
    "merge_children_into_tree",
    "update_tree_expansion",
    "index_forest",
    # Positioning
    "POSITION_STEP",
    "MIN_GAP",
    "PositionPlan",
    "allocate_position",
    "plan_insert",
    "renormalize",
    # Moves
    "DropTarget",
    "MoveKind",
    "MovePlan",
    "plan_move",
    "apply_move",
    "revert_move",
    # Cloning
    "ClonePlan",
    "collect_subtree",
    "generate_id_map",
    "prepare_deep_clone",
    # Events
    "TaskMoved",
    "MoveRolledBack",
    "TaskStatusChanged",
    "TaskDeleted",
    "SubtreeCloned",
]
