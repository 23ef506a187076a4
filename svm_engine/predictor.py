"""
Предсказание по обученной модели.

decision(x) = Σ coef_i K(sv_i, x) - rho

Пакетные функции принимают CSR-матрицу во внутренней нумерации признаков
(столбец == индекс) и используются обучением (кросс-валидация) и
estimator'ом; функции для одного вектора принимают любой формат запроса.
"""

from typing import Dict

import numpy as np

from .calibration import multiclass_probability, sigmoid_predict
from .errors import ProbabilityModelError
from .kernel import kernel_matrix
from .model import ModelKind, SVMModel
from .multiclass import class_pairs, vote
from .problem import to_sparse_vector

# Нижняя граница попарной вероятности
MIN_PROB = 1e-7


def decision_matrix(model: SVMModel, x) -> np.ndarray:
    """
    Решающие значения для строк x.

    Returns:
        (n, n_pairs) для классификации, (n, 1) для one-class и регрессии
    """
    n = x.shape[0]
    if model.total_sv == 0:
        # Нет опорных векторов: решение определяется только смещением
        return np.tile(-model.rho, (n, 1))

    K = kernel_matrix(x, model.support_vectors, model.param)
    if model.kind in (ModelKind.ONE_CLASS, ModelKind.REGRESSION):
        return (K @ model.sv_coef[0] - model.rho[0]).reshape(n, 1)

    start, count = model.sv_start, model.n_sv
    pairs = class_pairs(model.n_class)
    dec = np.empty((n, len(pairs)))
    for p, (i, j) in enumerate(pairs):
        si, ci = start[i], count[i]
        sj, cj = start[j], count[j]
        dec[:, p] = (K[:, si:si + ci] @ model.sv_coef[j - 1, si:si + ci]
                     + K[:, sj:sj + cj] @ model.sv_coef[i, sj:sj + cj]
                     - model.rho[p])
    return dec


def labels_from_decision(model: SVMModel, dec: np.ndarray) -> np.ndarray:
    kind = model.kind
    if kind == ModelKind.ONE_CLASS:
        return np.where(dec[:, 0] > 0, 1.0, -1.0)
    if kind == ModelKind.REGRESSION:
        return dec[:, 0].copy()
    winners = [vote(row, model.n_class) for row in dec]
    return model.labels[winners].astype(np.float64)


def _check_probability(model: SVMModel):
    if model.kind not in (ModelKind.BINARY, ModelKind.MULTICLASS) or not model.has_probability:
        raise ProbabilityModelError(
            "model has no probability information; train with probability=True"
        )


def probability_matrix(model: SVMModel, dec: np.ndarray) -> np.ndarray:
    """Вероятности классов (в порядке model.labels) по решающим значениям."""
    _check_probability(model)
    k = model.n_class
    n = dec.shape[0]
    if k == 1:
        return np.ones((n, 1))

    pairs = class_pairs(k)
    probs = np.empty((n, k))
    for row in range(n):
        pairwise = np.zeros((k, k))
        for p, (i, j) in enumerate(pairs):
            r = sigmoid_predict(dec[row, p], model.prob_a[p], model.prob_b[p])
            r = min(max(r, MIN_PROB), 1.0 - MIN_PROB)
            pairwise[i, j] = r
            pairwise[j, i] = 1.0 - r
        if k == 2:
            probs[row] = [pairwise[0, 1], pairwise[1, 0]]
        else:
            probs[row] = multiclass_probability(pairwise)
    return probs


# =============================================================================
# Один вектор запроса
# =============================================================================

def predict_values(model: SVMModel, x) -> np.ndarray:
    """Решающие значения для одного вектора: по одному на пару классов."""
    return decision_matrix(model, to_sparse_vector(x))[0]


def predict(model: SVMModel, x) -> float:
    """Метка класса, знак ±1 (one-class) или значение регрессии."""
    dec = decision_matrix(model, to_sparse_vector(x))
    return float(labels_from_decision(model, dec)[0])


def predict_probability(model: SVMModel, x) -> Dict[int, float]:
    """Распределение вероятностей {метка: вероятность}, сумма равна 1."""
    _check_probability(model)
    dec = decision_matrix(model, to_sparse_vector(x))
    probs = probability_matrix(model, dec)[0]
    return {int(label): float(p) for label, p in zip(model.labels, probs)}
