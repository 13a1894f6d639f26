from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from pitch_classifier.domain.evaluation import TreeNode, TreeStructure
from pitch_classifier.exceptions import UnsupportedOperationError
from pitch_classifier.models.registry import get_family

if TYPE_CHECKING:
    from pitch_classifier.models.protocols import TrainedModel

_LEAF = -1

TreeSelectionPolicy = Callable[[Sequence[Any]], int]


def fewest_nodes(trees: Sequence[Any]) -> int:
    """Index of the tree with the fewest nodes, lowest index on ties."""
    return min(range(len(trees)), key=lambda i: (trees[i].tree_.node_count, i))


def shallowest(trees: Sequence[Any]) -> int:
    """Index of the tree with the smallest depth, then fewest nodes, then lowest index."""
    return min(range(len(trees)), key=lambda i: (trees[i].tree_.max_depth, trees[i].tree_.node_count, i))


def constituent_trees(model: TrainedModel) -> list[Any]:
    """Fitted decision trees of the model; a single tree for ``cart``."""
    if not get_family(model.family).has_trees:
        raise UnsupportedOperationError(f"Family '{model.family}' has no decision trees to inspect")
    estimator = model.final_estimator()
    trees = getattr(estimator, "estimators_", None)
    if trees is None:
        trees = [estimator]
    return list(trees)


def extract_tree(
    model: TrainedModel,
    tree_index: int | None = None,
    policy: TreeSelectionPolicy = fewest_nodes,
) -> TreeStructure:
    """Split structure of one decision tree in the model.

    When ``tree_index`` is omitted, ``policy`` chooses the tree.

    Raises:
        UnsupportedOperationError: the model's family has no trees.
        IndexError: ``tree_index`` is outside ``0..n_trees - 1``.
    """
    trees = constituent_trees(model)
    if tree_index is None:
        tree_index = policy(trees)
    if not 0 <= tree_index < len(trees):
        raise IndexError(f"Tree index {tree_index} out of range for {len(trees)} tree(s)")

    tree = trees[tree_index].tree_
    nodes: list[TreeNode] = []
    for node_id in range(tree.node_count):
        left = int(tree.children_left[node_id])
        right = int(tree.children_right[node_id])
        n_samples = int(tree.n_node_samples[node_id])
        impurity = float(tree.impurity[node_id])
        if left == _LEAF:
            # Class columns follow the model's class order for both trees and forests.
            label = model.classes[int(np.argmax(tree.value[node_id][0]))]
            nodes.append(TreeNode(node_id=node_id, n_samples=n_samples, impurity=impurity, label=label))
        else:
            nodes.append(
                TreeNode(
                    node_id=node_id,
                    n_samples=n_samples,
                    impurity=impurity,
                    feature=model.feature_names[int(tree.feature[node_id])],
                    threshold=float(tree.threshold[node_id]),
                    left=left,
                    right=right,
                )
            )
    return TreeStructure(spec_name=model.spec.name, tree_index=tree_index, nodes=tuple(nodes))
