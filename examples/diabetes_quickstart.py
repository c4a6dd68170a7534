import numpy as np
from time import perf_counter
from sklearn.datasets import load_diabetes
from sklearn.model_selection import train_test_split
from vartree import VarianceTreeRegressor, enable_logging

data = load_diabetes()
X_train, X_test, y_train, y_test = train_test_split(data.data, data.target, random_state=42)
feats = list(data.feature_names)

reg = VarianceTreeRegressor(max_depth=4, min_samples_split=30)

with enable_logging(level="INFO"):
    t0 = perf_counter(); reg.fit(X_train, y_train); print(f"fit: {perf_counter()-t0:.3f} s")

print(f"test R^2: {reg.score(X_test, y_test):.3f}")
print(f"depth={reg.get_depth()} leaves={reg.get_n_leaves()}")
try:
    reg.export_graphviz("diabetes_tree", feature_names=feats, format="dot")
except RuntimeError as e:
    print(f"Skipping Graphviz export: {e}")
reg.print_tree(feature_names=feats)
for rule in reg.export_rules(feature_names=feats)[:3]:
    print(rule)
print(np.round(reg.predict(X_test[:5]), 1))
