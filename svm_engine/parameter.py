"""
Параметры обучения SVM и их проверка.

Вместо набора перегруженных конструкторов используется одна неизменяемая
запись SVMParameter с именованными полями и несколько фабричных функций.
Значения по умолчанию совпадают с LIBSVM.
"""

import dataclasses
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

import numpy as np

from .errors import (
    EmptyProblemError,
    InfeasibleNuError,
    InvalidCacheSizeError,
    InvalidCostError,
    InvalidDegreeError,
    InvalidEpsilonError,
    InvalidKernelTypeError,
    InvalidLabelError,
    InvalidNuError,
    InvalidParameterError,
    InvalidSvmTypeError,
    InvalidToleranceError,
    NegativeGammaError,
    SingleClassError,
    UnsupportedProbabilityError,
    WeightLengthMismatchError,
)


class SvmType(IntEnum):
    C_SVC = 0
    NU_SVC = 1
    ONE_CLASS = 2
    EPSILON_SVR = 3
    NU_SVR = 4


class KernelType(IntEnum):
    LINEAR = 0
    POLY = 1
    RBF = 2
    SIGMOID = 3


CLASSIFICATION_TYPES = (SvmType.C_SVC, SvmType.NU_SVC)
REGRESSION_TYPES = (SvmType.EPSILON_SVR, SvmType.NU_SVR)


@dataclass(frozen=True)
class KernelSpec:
    """Ядро как самостоятельный объект: тип плюс его коэффициенты."""
    kernel_type: int = KernelType.RBF
    degree: int = 3
    gamma: Optional[float] = None
    coef0: float = 0.0


@dataclass(frozen=True)
class SVMParameter:
    """
    Конфигурация обучения.

    Args:
        svm_type: Формулировка задачи (SvmType)
        kernel_type: Семейство ядра (KernelType)
        degree: Степень полиномиального ядра
        gamma: Коэффициент ядра; None -> 1/число признаков при обучении
        coef0: Свободный член poly/sigmoid ядер
        C: Параметр регуляризации (C-SVC, epsilon-SVR, nu-SVR)
        nu: Параметр nu (nu-SVC, one-class, nu-SVR)
        p: Ширина epsilon-трубки epsilon-SVR
        eps: Допуск критерия остановки SMO
        cache_size: Бюджет кэша строк ядра, МБ
        shrinking: Использовать shrinking
        probability: Обучать калибровку вероятностей
        weight_label, weight: Множители C для отдельных классов
        max_iter_factor: Лимит итераций = max(10^7, max_iter_factor * число переменных)
        n_jobs: Число потоков для обучения пар классов
        seed: Seed перемешивания во внутренней кросс-валидации
        verbose: Выводить ход обучения
    """
    svm_type: int = SvmType.C_SVC
    kernel_type: int = KernelType.RBF
    degree: int = 3
    gamma: Optional[float] = None
    coef0: float = 0.0
    C: float = 1.0
    nu: float = 0.5
    p: float = 0.1
    eps: float = 1e-3
    cache_size: float = 100.0
    shrinking: bool = True
    probability: bool = False
    weight_label: Tuple[int, ...] = ()
    weight: Tuple[float, ...] = ()
    max_iter_factor: int = 100
    n_jobs: int = 1
    seed: int = 0
    verbose: bool = False

    def __post_init__(self):
        # списки приводим к кортежам, чтобы запись оставалась неизменяемой
        object.__setattr__(self, "weight_label", tuple(self.weight_label))
        object.__setattr__(self, "weight", tuple(float(w) for w in self.weight))

    @property
    def nr_weight(self) -> int:
        return len(self.weight_label)

    @property
    def kernel(self) -> KernelSpec:
        return KernelSpec(self.kernel_type, self.degree, self.gamma, self.coef0)

    @property
    def is_classification(self) -> bool:
        return self.svm_type in CLASSIFICATION_TYPES

    @property
    def is_regression(self) -> bool:
        return self.svm_type in REGRESSION_TYPES

    @property
    def cache_bytes(self) -> int:
        return int(self.cache_size * 1024 * 1024)

    def replace(self, **changes) -> "SVMParameter":
        return dataclasses.replace(self, **changes)

    def resolve_gamma(self, n_features: int) -> "SVMParameter":
        """Подставляет gamma = 1/n_features, если gamma не задана."""
        if self.gamma is not None:
            return self
        return self.replace(gamma=1.0 / n_features if n_features > 0 else 1.0)


def make_parameter(svm_type=SvmType.C_SVC, kernel_type=KernelType.RBF, **fields) -> SVMParameter:
    """Параметры из явного набора полей."""
    return SVMParameter(svm_type=svm_type, kernel_type=kernel_type, **fields)


def parameter_from_kernel(svm_type, kernel: KernelSpec, **fields) -> SVMParameter:
    """Параметры из готового описания ядра."""
    return SVMParameter(
        svm_type=svm_type,
        kernel_type=kernel.kernel_type,
        degree=kernel.degree,
        gamma=kernel.gamma,
        coef0=kernel.coef0,
        **fields,
    )


def check_parameter(problem, param: SVMParameter) -> None:
    """
    Проверяет параметры и данные до запуска солвера.

    Каждое нарушение поднимает своё исключение (подкласс ValidationError).
    """
    try:
        svm_type = SvmType(param.svm_type)
    except ValueError:
        raise InvalidSvmTypeError(f"неизвестный тип SVM: {param.svm_type}") from None

    try:
        kernel_type = KernelType(param.kernel_type)
    except ValueError:
        raise InvalidKernelTypeError(f"неизвестный тип ядра: {param.kernel_type}") from None

    if kernel_type != KernelType.LINEAR and param.gamma is not None and param.gamma < 0:
        raise NegativeGammaError(f"gamma должно быть >= 0, получено {param.gamma}")
    if kernel_type == KernelType.POLY and param.degree < 0:
        raise InvalidDegreeError(f"degree должно быть >= 0, получено {param.degree}")

    if param.cache_size <= 0:
        raise InvalidCacheSizeError(f"cache_size должно быть > 0, получено {param.cache_size}")
    if param.eps <= 0:
        raise InvalidToleranceError(f"eps должно быть > 0, получено {param.eps}")

    if svm_type in (SvmType.C_SVC, SvmType.EPSILON_SVR, SvmType.NU_SVR) and param.C <= 0:
        raise InvalidCostError(f"C должно быть > 0, получено {param.C}")
    if svm_type in (SvmType.NU_SVC, SvmType.ONE_CLASS, SvmType.NU_SVR):
        if not 0 < param.nu <= 1:
            raise InvalidNuError(f"nu должно лежать в (0, 1], получено {param.nu}")
    if svm_type == SvmType.EPSILON_SVR and param.p < 0:
        raise InvalidEpsilonError(f"p должно быть >= 0, получено {param.p}")

    if len(param.weight_label) != len(param.weight):
        raise WeightLengthMismatchError(
            f"weight_label ({len(param.weight_label)}) и weight ({len(param.weight)}) разной длины"
        )
    if any(w <= 0 for w in param.weight):
        raise InvalidCostError(f"веса классов должны быть > 0, получено {param.weight}")

    if param.max_iter_factor < 1:
        raise InvalidParameterError(f"max_iter_factor должно быть >= 1, получено {param.max_iter_factor}")
    if param.n_jobs < 1:
        raise InvalidParameterError(f"n_jobs должно быть >= 1, получено {param.n_jobs}")

    if param.probability and svm_type == SvmType.ONE_CLASS:
        raise UnsupportedProbabilityError("one-class SVM не поддерживает оценку вероятностей")

    if problem.l == 0:
        raise EmptyProblemError("пустая обучающая выборка")

    if svm_type in CLASSIFICATION_TYPES:
        y = problem.y
        if not np.all(np.isfinite(y)) or np.any(y != np.round(y)):
            raise InvalidLabelError("метки классов должны быть целыми числами")
        labels, counts = np.unique(y, return_counts=True)
        if len(labels) < 2:
            raise SingleClassError(f"в обучающей выборке только один класс: {labels.tolist()}")

        if svm_type == SvmType.NU_SVC:
            for i in range(len(labels)):
                for j in range(i + 1, len(labels)):
                    n1, n2 = counts[i], counts[j]
                    if param.nu * (n1 + n2) / 2 > min(n1, n2):
                        raise InfeasibleNuError(
                            f"nu={param.nu} недостижимо для классов {labels[i]:g} и {labels[j]:g}"
                        )
