import importlib.util

import numpy as np
import pytest
from sklearn.base import clone
from vartree import InvalidInputError, NotFittedError, VarianceTreeRegressor, predict


def _step_dataset():
    """Return the four-point step function used across these tests."""
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([0.0, 0.0, 10.0, 10.0])
    return X, y


def test_regressor_predictions_shape():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    pred = regr.predict(X)
    assert pred.shape == y.shape
    assert list(pred) == [0.0, 0.0, 10.0, 10.0]


def test_predict_is_idempotent_and_refit_is_deterministic():
    rng = np.random.default_rng(7)
    X = rng.normal(size=(40, 3))
    y = X[:, 0] ** 2 + rng.normal(scale=0.1, size=40)
    Xq = rng.normal(size=(10, 3))
    regr = VarianceTreeRegressor(max_depth=4).fit(X, y)
    first = regr.predict(Xq)
    assert np.array_equal(first, regr.predict(Xq))
    assert np.array_equal(first, VarianceTreeRegressor(max_depth=4).fit(X, y).predict(Xq))


def test_refit_replaces_tree():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    regr.fit([[0.0, 1.0], [1.0, 0.0]], [3.0, 3.0])
    assert regr.n_features_in_ == 2
    assert regr.get_n_leaves() == 1
    assert list(regr.predict([[9.0, 9.0]])) == [3.0]


def test_depth_and_leaves():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    assert regr.get_depth() == 1
    assert regr.get_n_leaves() == 2
    stump = VarianceTreeRegressor(max_depth=0).fit(X, y)
    assert stump.get_depth() == 0
    assert list(stump.predict([[-1.0], [7.0]])) == [5.0, 5.0]


def test_apply_returns_preorder_leaf_index():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    assert list(regr.apply([[0.0], [3.0], [1.0]])) == [1, 2, 1]


def test_score_is_r2():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    assert regr.score(X, y) == pytest.approx(1.0)


def test_rule_and_export():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    assert regr.export_rules() == ["X[0] <= 1 => value=0 (N=2)", "X[0] > 1 => value=10 (N=2)"]
    assert regr.export_rules(feature_names=["x"])[1] == "x > 1 => value=10 (N=2)"
    assert regr.predict_rule([[0.5], [2.5]]) == ["X[0] <= 1", "X[0] > 1"]


def test_single_leaf_rules_use_root_antecedent():
    regr = VarianceTreeRegressor().fit([[0.0], [1.0]], [2.0, 2.0])
    assert regr.export_rules() == ["<root> => value=2 (N=2)"]
    assert regr.predict_rule([[5.0]]) == ["<root>"]


def test_print_tree(capsys):
    X, y = _step_dataset()
    VarianceTreeRegressor().fit(X, y).print_tree(feature_names=["x"])
    out = capsys.readouterr().out
    assert out == "if x <= 1:\n  Predict 0.0000 (N=2)\nelse:\n  Predict 10.0000 (N=2)\n"


def test_feature_names_length_is_checked():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    with pytest.raises(InvalidInputError):
        regr.export_rules(feature_names=["a", "b"])


def test_regressor_graphviz_export(tmp_path):
    pytest.importorskip("graphviz")
    X, y = _step_dataset()
    reg = VarianceTreeRegressor().fit(X, y)
    path = reg.export_graphviz(str(tmp_path / "step_tree"), format="dot")
    assert path.endswith(".dot")
    source = open(path).read()
    assert "X[0] <= 1" in source


def test_regressor_not_fitted():
    regr = VarianceTreeRegressor()
    with pytest.raises(NotFittedError):
        regr.predict([[1.0]])
    with pytest.raises(ValueError):
        regr.export_rules()
    with pytest.raises(ValueError):
        regr.get_depth()


def test_predict_rejects_wrong_feature_count():
    X, y = _step_dataset()
    regr = VarianceTreeRegressor().fit(X, y)
    with pytest.raises(InvalidInputError, match="fitted with 1"):
        regr.predict([[1.0, 2.0]])
    with pytest.raises(InvalidInputError):
        regr.predict([[np.nan]])


@pytest.mark.parametrize("params", [
    {"max_depth": -1},
    {"min_samples_split": 0},
    {"max_depth": 2.5},
    {"max_depth": True},
    {"min_samples_split": "2"},
])
def test_invalid_hyperparameters(params):
    X, y = _step_dataset()
    with pytest.raises(InvalidInputError):
        VarianceTreeRegressor(**params).fit(X, y)


def test_mismatched_lengths_fail_without_fitting():
    regr = VarianceTreeRegressor()
    with pytest.raises(InvalidInputError):
        regr.fit([[0.0], [1.0], [2.0]], [0.0, 1.0])
    assert getattr(regr, "tree_", None) is None


def test_params_and_clone():
    regr = VarianceTreeRegressor(max_depth=3, min_samples_split=4)
    assert regr.get_params() == {"max_depth": 3, "min_samples_split": 4}
    X, y = _step_dataset()
    regr.fit(X, y)
    copy = clone(regr)
    assert copy.get_params() == regr.get_params()
    assert getattr(copy, "tree_", None) is None


def test_deep_tree_inspection_and_exports(shallow_recursion_limit, one_hot_chain, capsys, tmp_path):
    X, y = one_hot_chain
    n = len(y)
    regr = VarianceTreeRegressor(max_depth=5000).fit(X, y)
    assert regr.get_depth() == n - 1
    assert regr.get_n_leaves() == n
    assert np.array_equal(regr.predict(X), y)
    assert len(regr.export_rules()) == n
    assert len(regr.predict_rule(X[:3])) == 3
    regr.print_tree()
    assert len(capsys.readouterr().out.splitlines()) == 2 * (n - 1) + n
    if importlib.util.find_spec("graphviz") is not None:
        path = regr.export_graphviz(str(tmp_path / "chain"), format="dot")
        assert path.endswith(".dot")


def test_predict_matches_tree_walk():
    rng = np.random.default_rng(11)
    X = rng.normal(size=(30, 2))
    y = X[:, 1] - X[:, 0]
    regr = VarianceTreeRegressor(max_depth=3).fit(X, y)
    assert np.array_equal(regr.predict(X), predict(X, regr.tree_))
