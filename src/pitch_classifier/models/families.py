"""Built-in classifier families.

Each builder receives the spec's merged parameters and its seed and returns
an unfitted scikit-learn estimator. Families sensitive to feature scale are
wrapped in a pipeline with a ``StandardScaler``.
"""

from typing import Any

from sklearn.discriminant_analysis import LinearDiscriminantAnalysis
from sklearn.ensemble import RandomForestClassifier
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier

from pitch_classifier.models.registry import register


@register(
    "lda",
    description="Linear discriminant analysis",
    defaults={"solver": "svd", "tol": 1e-4},
    min_samples=3,
)
def build_lda(params: dict[str, Any], seed: int) -> LinearDiscriminantAnalysis:
    return LinearDiscriminantAnalysis(**params)


@register(
    "cart",
    description="Single decision tree (CART)",
    defaults={"criterion": "gini", "max_depth": None, "min_samples_leaf": 1, "ccp_alpha": 0.0},
    exposes_importance=True,
    has_trees=True,
)
def build_cart(params: dict[str, Any], seed: int) -> DecisionTreeClassifier:
    return DecisionTreeClassifier(random_state=seed, **params)


@register(
    "knn",
    description="k-nearest neighbours on standardized features",
    defaults={"n_neighbors": 5, "weights": "uniform"},
    min_samples=lambda params: int(params.get("n_neighbors", 5)),
)
def build_knn(params: dict[str, Any], seed: int) -> Pipeline:
    return Pipeline([("scale", StandardScaler()), ("knn", KNeighborsClassifier(**params))])


@register(
    "svm",
    description="Radial-kernel support vector machine on standardized features",
    defaults={"kernel": "rbf", "C": 1.0, "gamma": "scale"},
)
def build_svm(params: dict[str, Any], seed: int) -> Pipeline:
    return Pipeline([("scale", StandardScaler()), ("svm", SVC(random_state=seed, **params))])


@register(
    "random_forest",
    description="Random forest (ensemble of decision trees)",
    defaults={
        "n_estimators": 100,
        "max_depth": None,
        "max_features": "sqrt",
        "min_samples_leaf": 1,
        "bootstrap": True,
    },
    exposes_importance=True,
    has_trees=True,
)
def build_random_forest(params: dict[str, Any], seed: int) -> RandomForestClassifier:
    return RandomForestClassifier(random_state=seed, n_jobs=1, **params)
