"""Bounding Volume Hierarchy construction.

The hierarchy is built once on the host over a flat list of item boxes and
stored as a list of ``BvhNode``s. Child references are plain integers:
non-negative values index ``nodes``, negative values encode an item as
``-1 - item_index`` (see ``leaf_ref`` / ``leaf_index``).

Items whose box is ``None`` (no finite bounds) cannot be placed in the tree;
they are returned in ``BvhLayout.unbounded`` and must be tested against every
ray by the traversal.

Build rule, applied recursively over the bounded items:
    * one item: a leaf reference, no node;
    * two items: one node holding both;
    * more: sort by box minimum along the current axis, split at the middle,
      and recurse on each half with axis ``(axis + len(half)) % 3``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from pathtracer.geometry.aabb import Aabb

logger = logging.getLogger(__name__)


def leaf_ref(item_index: int) -> int:
    """Encode an item index as a child reference."""
    return -1 - item_index


def leaf_index(ref: int) -> int:
    """Decode a leaf child reference back into an item index."""
    return -1 - ref


def is_leaf_ref(ref: int) -> bool:
    return ref < 0


@dataclass(frozen=True)
class BvhNode:
    """An internal node of the hierarchy.

    Attributes:
        aabb: Union of both children's boxes.
        axis: Axis the children were sorted along; traversal visits the
            child nearer along this axis first.
        left: Child reference for the lower half.
        right: Child reference for the upper half.
    """

    aabb: Aabb
    axis: int
    left: int
    right: int


@dataclass
class BvhLayout:
    """Result of a hierarchy build.

    Attributes:
        nodes: Internal nodes; the root, when it is a node, comes first.
        root: Reference to the root (node or leaf), or None when no item is
            bounded.
        unbounded: Indices of items with no finite box.
    """

    nodes: list[BvhNode] = field(default_factory=list)
    root: int | None = None
    unbounded: list[int] = field(default_factory=list)

    def bounding_box(self, boxes: Sequence[Aabb | None]) -> Aabb | None:
        """Box of the whole hierarchy; None if any item is unbounded."""
        if self.unbounded or self.root is None:
            return None
        if is_leaf_ref(self.root):
            return boxes[leaf_index(self.root)]
        return self.nodes[self.root].aabb

    def depth(self) -> int:
        """Number of node levels on the longest root-to-leaf path."""

        def _depth(ref: int) -> int:
            if is_leaf_ref(ref):
                return 0
            node = self.nodes[ref]
            return 1 + max(_depth(node.left), _depth(node.right))

        return 0 if self.root is None else _depth(self.root)


def build_hierarchy(boxes: Sequence[Aabb | None]) -> BvhLayout:
    """Build a BVH over item boxes.

    Args:
        boxes: One entry per item; None marks an unbounded item.

    Returns:
        The hierarchy layout referencing items by their index in ``boxes``.

    Raises:
        ValueError: If ``boxes`` is empty.
    """
    if len(boxes) == 0:
        raise ValueError("Cannot build a BVH over an empty item list")

    layout = BvhLayout()
    bounded: list[tuple[int, Aabb]] = []
    for index, box in enumerate(boxes):
        if box is None:
            layout.unbounded.append(index)
        else:
            bounded.append((index, box))

    if bounded:
        layout.root, _ = _build(layout.nodes, bounded, axis=0)

    logger.debug(
        "Built BVH: %d bounded items, %d unbounded, %d nodes, depth %d",
        len(bounded),
        len(layout.unbounded),
        len(layout.nodes),
        layout.depth(),
    )
    return layout


def _build(
    nodes: list[BvhNode], items: list[tuple[int, Aabb]], axis: int
) -> tuple[int, Aabb]:
    """Recursively build the subtree over ``items``; returns (ref, box)."""
    if len(items) == 1:
        index, box = items[0]
        return leaf_ref(index), box

    items = sorted(items, key=lambda item: item[1].min[axis])

    # Reserve the slot first so parents precede their children
    slot = len(nodes)
    nodes.append(None)  # type: ignore[arg-type]

    if len(items) == 2:
        (left_index, left_box), (right_index, right_box) = items
        left, right = leaf_ref(left_index), leaf_ref(right_index)
    else:
        mid = len(items) // 2
        lower, upper = items[:mid], items[mid:]
        left, left_box = _build(nodes, lower, (axis + len(lower)) % 3)
        right, right_box = _build(nodes, upper, (axis + len(upper)) % 3)

    box = left_box.union(right_box)
    nodes[slot] = BvhNode(aabb=box, axis=axis, left=left, right=right)
    return slot, box
