"""
Объектная обёртка над API в духе scikit-learn.

    clf = SupportVectorMachine(kernel_type=KernelType.RBF, C=10.0, probability=True)
    clf.fit(X, y)
    proba = clf.predict_proba(X_test)
    clf.export("model.xml")

Признаки в плотных массивах нумеруются с 1 (столбец c -> индекс c + 1),
как в формате LIBSVM.
"""

from typing import Optional

import numpy as np

from .errors import NotFittedError
from .model import ModelKind, SVMModel
from .parameter import SVMParameter, make_parameter
from .predictor import decision_matrix, labels_from_decision, probability_matrix
from .problem import SVMProblem, make_problem, to_feature_matrix
from .serialization import deserialize, load_model, save_model, serialize
from .svm import cross_validation, train


class SupportVectorMachine:
    """
    SVM-классификатор, регрессор или one-class детектор.

    Args:
        param: Готовые параметры; иначе собираются из **fields
        **fields: Поля SVMParameter (переопределяют поля param)
    """

    def __init__(self, param: Optional[SVMParameter] = None, **fields):
        if param is None:
            param = make_parameter(**fields)
        elif fields:
            param = param.replace(**fields)
        self.param = param
        self.model: Optional[SVMModel] = None

    @classmethod
    def from_model(cls, model: SVMModel) -> "SupportVectorMachine":
        est = cls(model.param)
        est.model = model
        return est

    def _require_model(self) -> SVMModel:
        if self.model is None:
            raise NotFittedError("No trained svm model")
        return self.model

    # --- обучение ---

    def fit(self, X, y=None, cancel=None) -> "SupportVectorMachine":
        """
        Обучение на X (плотный 2-D массив, scipy.sparse, список разреженных
        строк или готовый SVMProblem).
        """
        problem = X if isinstance(X, SVMProblem) else make_problem(X, y)
        self.model = train(problem, self.param, cancel)
        if self.param.verbose:
            model = self.model
            print(f"Trained {model.kind.value} model: {model.total_sv} support vectors, "
                  f"{model.total_iterations} iterations, converged={model.converged}")
        return self

    def cross_validate(self, X, y=None, n_fold: int = 5) -> np.ndarray:
        problem = X if isinstance(X, SVMProblem) else make_problem(X, y)
        return cross_validation(problem, self.param, n_fold)

    # --- предсказание ---

    def decision_function(self, X) -> np.ndarray:
        """
        Решающие значения.

        Returns:
            (n, n_pairs) для нескольких пар классов, иначе (n,)
        """
        dec = decision_matrix(self._require_model(), to_feature_matrix(X))
        return dec[:, 0] if dec.shape[1] == 1 else dec

    def predict(self, X) -> np.ndarray:
        model = self._require_model()
        return labels_from_decision(model, decision_matrix(model, to_feature_matrix(X)))

    def predict_proba(self, X) -> np.ndarray:
        """Вероятности (n, n_class), столбцы в порядке classes_."""
        model = self._require_model()
        return probability_matrix(model, decision_matrix(model, to_feature_matrix(X)))

    def score(self, X, y) -> float:
        """Точность для классификации, -MSE для регрессии."""
        predicted = self.predict(X)
        y = np.asarray(y, dtype=np.float64)
        if self._require_model().kind == ModelKind.REGRESSION:
            return -float(np.mean((predicted - y) ** 2))
        return float(np.mean(predicted == y))

    @property
    def classes_(self) -> np.ndarray:
        return self._require_model().labels

    @property
    def support_(self) -> np.ndarray:
        """Номера опорных векторов в обучающей выборке (с 0)."""
        return self._require_model().sv_indices - 1

    # --- экспорт / импорт ---

    def to_xml(self) -> str:
        return serialize(self._require_model()).decode("utf-8")

    def load_xml(self, xml: str) -> "SupportVectorMachine":
        """
        Загружает обученную модель. Параметры обучения оценщика не меняются:
        параметры загруженной модели доступны как model.param.
        """
        self.model = deserialize(xml.encode("utf-8"))
        return self

    def export(self, path: str) -> None:
        save_model(self._require_model(), path)

    def import_model(self, path: str) -> "SupportVectorMachine":
        self.model = load_model(path)
        return self
