"""Variance-reduction decision tree regressor with a scikit-learn style API.

The estimator wraps :mod:`vartree.tree`: ``fit`` validates the table and grows
a new tree, ``predict`` walks it.  The remaining public methods inspect or
export a fitted tree (rules, pretty printing, Graphviz).
"""
from __future__ import annotations
from numbers import Integral
from typing import Dict, List, Optional, Tuple, Union
import time

import numpy as np
from loguru import logger
from sklearn.base import BaseEstimator, RegressorMixin

from .exceptions import InvalidInputError, NotFittedError
from .tree import Internal, Leaf, Node, TreeBuilder, check_features, check_table, iter_preorder, leaf_for
from .tree import predict as predict_rows

# ----------------------------- Regressor -----------------------------

class VarianceTreeRegressor(RegressorMixin, BaseEstimator):
    r"""
    VarianceTreeRegressor(max_depth=5, min_samples_split=2)

    A binary regression tree grown by exhaustive variance-reduction search.

    **Core behavior**

    - **Split criterion**: at each node every distinct value ``t`` of every
      feature ``f`` is tried as the split ``x[f] <= t``; the split minimizing
      ``(|L|*var(y_L) + |R|*var(y_R)) / n`` (population variances) wins.  Ties
      keep the lowest feature index, then the lowest threshold.
    - **Stopping**: a node becomes a leaf predicting the mean of its targets
      when it sits at ``max_depth``, holds fewer than ``min_samples_split``
      samples, has exactly equal targets, or admits no split with both sides
      non-empty.  Target equality is exact; nearly equal floats still split.
    - **Determinism**: no randomness anywhere; refitting on the same data
      yields the same tree.

    Parameters
    ----------
    max_depth : int, default=5
        Maximum number of edges from the root to any leaf.  ``0`` fits a
        single leaf.
    min_samples_split : int, default=2
        Minimum number of samples a node needs to be split.

    Attributes
    ----------
    tree_ : Leaf or Internal
        Root of the fitted tree.
    n_features_in_ : int
        Number of features seen during ``fit``.
    """

    def __init__(self, max_depth: int = 5, min_samples_split: int = 2):
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split

    # ----------------------------- Public API -----------------------------

    def fit(self, X, y):
        self._validate_hyperparameters()
        X, y = check_table(X, y)
        t0 = time.perf_counter()
        tree = TreeBuilder(int(self.max_depth), int(self.min_samples_split)).build(X, y)
        self.tree_: Node = tree
        self.n_features_in_: int = X.shape[1]
        logger.info(
            "fitted tree",
            n_samples=X.shape[0],
            n_features=X.shape[1],
            depth=tree.depth,
            n_leaves=tree.n_leaves,
            seconds=round(time.perf_counter() - t0, 4),
        )
        return self

    def predict(self, X) -> np.ndarray:
        tree = self._fitted_tree()
        return predict_rows(check_features(X, self.n_features_in_), tree)

    def apply(self, X) -> np.ndarray:
        """Pre-order index of the leaf each row of ``X`` reaches (root is 0)."""
        tree = self._fitted_tree()
        X = check_features(X, self.n_features_in_)
        index = {id(node): i for i, node in enumerate(iter_preorder(tree))}
        return np.array([index[id(leaf_for(x, tree))] for x in X], dtype=int)

    def get_depth(self) -> int:
        return self._fitted_tree().depth

    def get_n_leaves(self) -> int:
        return self._fitted_tree().n_leaves

    # ----------------------------- Pretty / Rules / Graphviz -----------------------------

    def print_tree(self, feature_names: Optional[List[str]] = None) -> None:
        """
        Pretty-print the fitted tree to ``stdout``.

        Parameters
        ----------
        feature_names : list[str], optional
            Names for the features; ``X[j]`` is used when omitted.

        Raises
        ------
        NotFittedError
            If the estimator has not been fitted.
        """
        tree = self._fitted_tree()
        fn = self._check_feature_names(feature_names)
        self._print_node(tree, "", fn)

    def _print_node(self, root: Node, indent: str, fn: Optional[List[str]]):
        # Stack items are nodes to print or ready-made "else:" lines.
        stack: List[Tuple[Union[Node, str], str]] = [(root, indent)]
        while stack:
            node, indent = stack.pop()
            if isinstance(node, str):
                print(node)
            elif isinstance(node, Leaf):
                print(f"{indent}Predict {node.value:.4f} (N={node.n_samples})")
            else:
                name = self._name(node.feature_index, fn)
                print(f"{indent}if {name} <= {node.threshold:.6g}:")
                stack.append((node.right, indent + "  "))
                stack.append((f"{indent}else:", indent))
                stack.append((node.left, indent + "  "))

    def export_rules(self, feature_names: Optional[List[str]] = None) -> List[str]:
        """
        Export one decision rule per leaf of the fitted tree.

        Parameters
        ----------
        feature_names : list[str], optional
            Names for the input features.

        Returns
        -------
        list[str]
            Rules of the form ``"<antecedent> => value=<prediction> (N=<samples>)"``,
            leaves ordered left to right.  A single-leaf tree yields the
            antecedent ``"<root>"``.

        Raises
        ------
        NotFittedError
            If the model has not been fitted.
        """
        tree = self._fitted_tree()
        fn = self._check_feature_names(feature_names)
        rules: List[str] = []
        self._collect_rules(tree, [], rules, fn)
        return rules

    def _collect_rules(self, root: Node, parts: List[str], rules: List[str], fn):
        stack = [(root, parts)]
        while stack:
            node, parts = stack.pop()
            if isinstance(node, Leaf):
                antecedent = " AND ".join(parts) if parts else "<root>"
                rules.append(f"{antecedent} => value={node.value:.6g} (N={node.n_samples})")
                continue
            name = self._name(node.feature_index, fn)
            stack.append((node.right, parts + [f"{name} > {node.threshold:.6g}"]))
            stack.append((node.left, parts + [f"{name} <= {node.threshold:.6g}"]))

    def predict_rule(self, X, feature_names: Optional[List[str]] = None) -> List[str]:
        """
        Return the antecedent of the rule each row of ``X`` satisfies.

        Raises
        ------
        NotFittedError
            If the model has not been fitted.
        InvalidInputError
            If ``X`` does not have ``n_features_in_`` columns.
        """
        tree = self._fitted_tree()
        X = check_features(X, self.n_features_in_)
        fn = self._check_feature_names(feature_names)
        return [self._trace_rule(x, tree, fn) for x in X]

    def _trace_rule(self, x: np.ndarray, node: Node, fn) -> str:
        parts: List[str] = []
        while isinstance(node, Internal):
            name = self._name(node.feature_index, fn)
            if x[node.feature_index] <= node.threshold:
                parts.append(f"{name} <= {node.threshold:.6g}")
                node = node.left
            else:
                parts.append(f"{name} > {node.threshold:.6g}")
                node = node.right
        return " AND ".join(parts) if parts else "<root>"

    def export_graphviz(self, filename: str = "vartree", feature_names: Optional[List[str]] = None,
                        format: str = "png") -> str:
        """
        Export the fitted tree with Graphviz.

        ``format='dot'`` writes the DOT source without invoking the external
        ``dot`` binary.  For other formats rendering is attempted and, if the
        binary is unavailable, the DOT source is written instead.

        Parameters
        ----------
        filename : str, default="vartree"
            Basename of the output file.
        feature_names : list[str], optional
            Names for the input features.
        format : str, default="png"
            Graphviz output format.

        Returns
        -------
        str
            Path of the written file.

        Raises
        ------
        NotFittedError
            If the model has not been fitted.
        RuntimeError
            If the ``graphviz`` Python package is not installed.
        """
        tree = self._fitted_tree()
        fn = self._check_feature_names(feature_names)
        try:
            from graphviz import Digraph
        except ImportError as e:
            raise RuntimeError("Please install the 'graphviz' Python package.") from e
        dot = Digraph(comment="VarianceTreeRegressor", format=format)
        self._add_graph_nodes(dot, tree, "root", fn)
        if format.lower() == "dot":
            path = f"{filename}.dot"
            dot.save(path)
            return path
        try:
            return dot.render(filename, cleanup=True)
        except Exception as e:
            logger.warning("graphviz render failed, writing DOT source instead", error=str(e))
            fallback_path = f"{filename}.dot"
            dot.save(fallback_path)
            return fallback_path

    def _add_graph_nodes(self, dot, root: Node, root_id: str, fn):
        # Node ids are root_id plus the node's pre-order index.
        ids = {id(node): f"{root_id}{i}" for i, node in enumerate(iter_preorder(root))}
        for node in iter_preorder(root):
            node_id = ids[id(node)]
            if isinstance(node, Leaf):
                dot.node(node_id, f"Leaf\nvalue={node.value:.6g}\nN={node.n_samples}")
                continue
            name = self._name(node.feature_index, fn)
            dot.node(node_id, f"{name} <= {node.threshold:.6g}\nN={node.n_samples}")
            dot.edge(node_id, ids[id(node.left)], label="True")
            dot.edge(node_id, ids[id(node.right)], label="False")

    # ----------------------------- Helpers -----------------------------

    def _validate_hyperparameters(self) -> None:
        checks: Dict[str, int] = {"max_depth": 0, "min_samples_split": 1}
        for name, lower in checks.items():
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, Integral):
                raise InvalidInputError(f"{name} must be an integer, got {value!r}")
            if value < lower:
                raise InvalidInputError(f"{name} must be >= {lower}, got {value}")

    def _fitted_tree(self) -> Node:
        tree = getattr(self, "tree_", None)
        if tree is None:
            raise NotFittedError()
        return tree

    def _check_feature_names(self, feature_names) -> Optional[List[str]]:
        if feature_names is None:
            return None
        fn = list(feature_names)
        if len(fn) != self.n_features_in_:
            raise InvalidInputError(
                f"feature_names has {len(fn)} entries but the tree was fitted with {self.n_features_in_} features"
            )
        return fn

    @staticmethod
    def _name(j: int, fn: Optional[List[str]]) -> str:
        return fn[j] if fn is not None else f"X[{j}]"
