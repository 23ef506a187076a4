"""
Обученная модель SVM.

Раскладка коэффициентов совпадает с LIBSVM: опорные векторы сгруппированы
по классам (в порядке возрастания меток), sv_coef имеет форму
(n_class - 1, n_sv). Для пары классов (i, j), i < j, коэффициенты векторов
класса i лежат в строке j - 1, а векторы класса j - в строке i.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from scipy import sparse

from .parameter import SVMParameter, SvmType
from .solver import SolverReport


class ModelKind(str, Enum):
    BINARY = "binary"
    MULTICLASS = "multiclass"
    ONE_CLASS = "one_class"
    REGRESSION = "regression"


def _frozen(array, dtype):
    array = np.array(array, dtype=dtype)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SVMModel:
    """
    Неизменяемая обученная модель.

    Attributes:
        param: Параметры обучения (gamma уже разрешена)
        n_class: Число классов (2 для one-class и регрессии)
        labels: Метки классов по возрастанию (пусто для one-class и регрессии)
        support_vectors: Опорные векторы, CSR (n_sv, width)
        sv_coef: Коэффициенты α_i y_i, (n_class - 1, n_sv)
        rho: Смещения решающих функций, по одному на пару классов
        n_sv: Число опорных векторов каждого класса
        sv_indices: Номера опорных векторов в обучающей выборке (с 1)
        prob_a, prob_b: Параметры сигмоид по парам; для SVR prob_a[0] -
            масштаб распределения Лапласа
        reports: Отчёты солвера по каждой подзадаче
    """
    param: SVMParameter
    n_class: int
    labels: np.ndarray
    support_vectors: sparse.csr_matrix
    sv_coef: np.ndarray
    rho: np.ndarray
    n_sv: np.ndarray
    sv_indices: np.ndarray
    prob_a: Optional[np.ndarray] = None
    prob_b: Optional[np.ndarray] = None
    reports: Tuple[SolverReport, ...] = ()

    def __post_init__(self):
        sv = sparse.csr_matrix(self.support_vectors, dtype=np.float64, copy=True)
        sv.sort_indices()
        for arr in (sv.data, sv.indices, sv.indptr):
            arr.setflags(write=False)

        sv_coef = _frozen(self.sv_coef, np.float64)
        if sv_coef.ndim == 1:
            sv_coef = _frozen(sv_coef.reshape(1, -1), np.float64)

        object.__setattr__(self, "n_class", int(self.n_class))
        object.__setattr__(self, "support_vectors", sv)
        object.__setattr__(self, "labels", _frozen(self.labels, np.int64))
        object.__setattr__(self, "sv_coef", sv_coef)
        object.__setattr__(self, "rho", _frozen(self.rho, np.float64))
        object.__setattr__(self, "n_sv", _frozen(self.n_sv, np.int64))
        object.__setattr__(self, "sv_indices", _frozen(self.sv_indices, np.int64))
        if self.prob_a is not None:
            object.__setattr__(self, "prob_a", _frozen(self.prob_a, np.float64))
        if self.prob_b is not None:
            object.__setattr__(self, "prob_b", _frozen(self.prob_b, np.float64))
        object.__setattr__(self, "reports", tuple(self.reports))

    @property
    def svm_type(self) -> SvmType:
        return SvmType(self.param.svm_type)

    @property
    def kind(self) -> ModelKind:
        svm_type = self.svm_type
        if svm_type == SvmType.ONE_CLASS:
            return ModelKind.ONE_CLASS
        if svm_type in (SvmType.EPSILON_SVR, SvmType.NU_SVR):
            return ModelKind.REGRESSION
        return ModelKind.MULTICLASS if self.n_class > 2 else ModelKind.BINARY

    @property
    def total_sv(self) -> int:
        return self.support_vectors.shape[0]

    @property
    def sv_start(self) -> np.ndarray:
        """Начало блока опорных векторов каждого класса."""
        return np.concatenate([[0], np.cumsum(self.n_sv)[:-1]]).astype(np.int64)

    @property
    def has_probability(self) -> bool:
        if self.kind == ModelKind.REGRESSION:
            return self.prob_a is not None
        if self.kind == ModelKind.ONE_CLASS:
            return False
        return self.prob_a is not None and self.prob_b is not None

    @property
    def converged(self) -> bool:
        return all(report.converged for report in self.reports)

    @property
    def total_iterations(self) -> int:
        return sum(report.n_iterations for report in self.reports)
