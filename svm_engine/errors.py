"""
Иерархия ошибок svm_engine.

Каждое исключение несёт тег ErrorKind, чтобы вызывающий код мог различать
причины без разбора текста сообщения:

- ValidationError: некорректная конфигурация или данные, обнаруживается
  до запуска солвера, никогда не повторяется;
- SerializationError: повреждённый снимок модели;
- ProbabilityModelError: запрошены вероятности у модели без калибровки;
- NotFittedError: у estimator ещё нет модели.

Несходимость SMO (MAX_ITER_EXCEEDED) не является ошибкой: выдаётся
ConvergenceWarning, а модель возвращается с лучшим найденным решением.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_SVM_TYPE = "invalid_svm_type"
    INVALID_KERNEL_TYPE = "invalid_kernel_type"
    NEGATIVE_GAMMA = "negative_gamma"
    INVALID_DEGREE = "invalid_degree"
    INVALID_COST = "invalid_cost"
    INVALID_NU = "invalid_nu"
    INFEASIBLE_NU = "infeasible_nu"
    INVALID_EPSILON = "invalid_epsilon"
    INVALID_TOLERANCE = "invalid_tolerance"
    INVALID_CACHE_SIZE = "invalid_cache_size"
    WEIGHT_LENGTH_MISMATCH = "weight_length_mismatch"
    UNSUPPORTED_PROBABILITY = "unsupported_probability"
    EMPTY_PROBLEM = "empty_problem"
    SINGLE_CLASS = "single_class"
    INVALID_LABEL = "invalid_label"
    INVALID_PARAMETER = "invalid_parameter"
    INVALID_PROBLEM = "invalid_problem"
    SERIALIZATION = "serialization"
    NO_PROBABILITY_MODEL = "no_probability_model"
    NOT_FITTED = "not_fitted"


class SVMError(Exception):
    """Базовое исключение библиотеки."""

    kind = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SVMError, ValueError):
    """Конфигурация или данные отвергнуты до начала обучения."""

    kind = ErrorKind.INVALID_PARAMETER


class InvalidSvmTypeError(ValidationError):
    kind = ErrorKind.INVALID_SVM_TYPE


class InvalidKernelTypeError(ValidationError):
    kind = ErrorKind.INVALID_KERNEL_TYPE


class NegativeGammaError(ValidationError):
    kind = ErrorKind.NEGATIVE_GAMMA


class InvalidDegreeError(ValidationError):
    kind = ErrorKind.INVALID_DEGREE


class InvalidCostError(ValidationError):
    kind = ErrorKind.INVALID_COST


class InvalidNuError(ValidationError):
    kind = ErrorKind.INVALID_NU


class InfeasibleNuError(ValidationError):
    kind = ErrorKind.INFEASIBLE_NU


class InvalidEpsilonError(ValidationError):
    kind = ErrorKind.INVALID_EPSILON


class InvalidToleranceError(ValidationError):
    kind = ErrorKind.INVALID_TOLERANCE


class InvalidCacheSizeError(ValidationError):
    kind = ErrorKind.INVALID_CACHE_SIZE


class WeightLengthMismatchError(ValidationError):
    kind = ErrorKind.WEIGHT_LENGTH_MISMATCH


class UnsupportedProbabilityError(ValidationError):
    kind = ErrorKind.UNSUPPORTED_PROBABILITY


class EmptyProblemError(ValidationError):
    kind = ErrorKind.EMPTY_PROBLEM


class SingleClassError(ValidationError):
    kind = ErrorKind.SINGLE_CLASS


class InvalidLabelError(ValidationError):
    kind = ErrorKind.INVALID_LABEL


class InvalidParameterError(ValidationError):
    kind = ErrorKind.INVALID_PARAMETER


class InvalidProblemError(ValidationError):
    """Нарушен формат разреженных векторов (индексы, размеры)."""

    kind = ErrorKind.INVALID_PROBLEM


class SerializationError(SVMError):
    """Снимок модели не удалось прочитать или записать."""

    kind = ErrorKind.SERIALIZATION


class ProbabilityModelError(SVMError, ValueError):
    kind = ErrorKind.NO_PROBABILITY_MODEL


class NotFittedError(SVMError, RuntimeError):
    """Обращение к модели estimator до fit() или загрузки."""

    kind = ErrorKind.NOT_FITTED


class ConvergenceWarning(UserWarning):
    """SMO остановлен до выполнения условий KKT (лимит итераций или отмена)."""
