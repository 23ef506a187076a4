"""
Вычисление ядер на разреженных векторах.

Ядра:
    linear:  K(x, y) = x^T y
    poly:    K(x, y) = (gamma * x^T y + coef0)^degree
    rbf:     K(x, y) = exp(-gamma * ||x - y||^2)
    sigmoid: K(x, y) = tanh(gamma * x^T y + coef0)

Векторы передаются как пары массивов (indices, data) с возрастающими
индексами; отсутствующий индекс означает ноль. Скалярное произведение и
квадрат расстояния считаются слиянием двух отсортированных списков, поэтому
K(x, y) == K(y, x) побитово.

Оптимизации:
- Numba JIT для внутренних циклов (nogil: пары классов можно обучать
  в отдельных потоках)
- Строка ядра K[i, :] вычисляется на лету, полная матрица не хранится
"""

import numpy as np
from numba import njit

from .errors import InvalidParameterError
from .parameter import KernelType

LINEAR = int(KernelType.LINEAR)
POLY = int(KernelType.POLY)
RBF = int(KernelType.RBF)
SIGMOID = int(KernelType.SIGMOID)


# =============================================================================
# Numba-оптимизированные функции ядра
# =============================================================================

@njit(cache=True, nogil=True)
def sparse_dot(ind_a, val_a, ind_b, val_b):
    """Скалярное произведение двух разреженных векторов."""
    total = 0.0
    i = 0
    j = 0
    na = ind_a.shape[0]
    nb = ind_b.shape[0]
    while i < na and j < nb:
        if ind_a[i] == ind_b[j]:
            total += val_a[i] * val_b[j]
            i += 1
            j += 1
        elif ind_a[i] > ind_b[j]:
            j += 1
        else:
            i += 1
    return total


@njit(cache=True, nogil=True)
def sparse_sq_dist(ind_a, val_a, ind_b, val_b):
    """||a - b||^2 без промежуточного плотного вектора."""
    total = 0.0
    i = 0
    j = 0
    na = ind_a.shape[0]
    nb = ind_b.shape[0]
    while i < na and j < nb:
        if ind_a[i] == ind_b[j]:
            d = val_a[i] - val_b[j]
            total += d * d
            i += 1
            j += 1
        elif ind_a[i] > ind_b[j]:
            total += val_b[j] * val_b[j]
            j += 1
        else:
            total += val_a[i] * val_a[i]
            i += 1
    while i < na:
        total += val_a[i] * val_a[i]
        i += 1
    while j < nb:
        total += val_b[j] * val_b[j]
        j += 1
    return total


@njit(cache=True, nogil=True)
def kernel_value(kernel_type, degree, gamma, coef0, ind_a, val_a, ind_b, val_b):
    """K(a, b) для выбранного семейства ядра."""
    if kernel_type == LINEAR:
        return sparse_dot(ind_a, val_a, ind_b, val_b)
    elif kernel_type == POLY:
        return (gamma * sparse_dot(ind_a, val_a, ind_b, val_b) + coef0) ** degree
    elif kernel_type == RBF:
        return np.exp(-gamma * sparse_sq_dist(ind_a, val_a, ind_b, val_b))
    elif kernel_type == SIGMOID:
        return np.tanh(gamma * sparse_dot(ind_a, val_a, ind_b, val_b) + coef0)
    return 0.0


@njit(cache=True, nogil=True)
def kernel_row(kernel_type, degree, gamma, coef0, ind_x, val_x, indptr, indices, data):
    """
    Строка ядра: K(x, X[j]) для всех строк CSR-матрицы X.

    Args:
        ind_x, val_x: Разреженный вектор x
        indptr, indices, data: CSR-представление X

    Returns:
        row: (n_rows,)
    """
    n_rows = indptr.shape[0] - 1
    row = np.empty(n_rows, dtype=np.float64)
    for j in range(n_rows):
        start = indptr[j]
        end = indptr[j + 1]
        row[j] = kernel_value(
            kernel_type, degree, gamma, coef0,
            ind_x, val_x, indices[start:end], data[start:end]
        )
    return row


@njit(cache=True, nogil=True)
def kernel_diagonal(kernel_type, degree, gamma, coef0, indptr, indices, data):
    """K(X[i], X[i]) для всех строк."""
    n_rows = indptr.shape[0] - 1
    diag = np.empty(n_rows, dtype=np.float64)
    for i in range(n_rows):
        start = indptr[i]
        end = indptr[i + 1]
        diag[i] = kernel_value(
            kernel_type, degree, gamma, coef0,
            indices[start:end], data[start:end], indices[start:end], data[start:end]
        )
    return diag


# =============================================================================
# Обёртки над CSR-матрицами
# =============================================================================

def _kernel_args(param):
    if param.gamma is None:
        if KernelType(param.kernel_type) != KernelType.LINEAR:
            raise InvalidParameterError(
                "gamma не задана: используйте param.resolve_gamma(n_features)"
            )
        gamma = 0.0
    else:
        gamma = float(param.gamma)
    return int(param.kernel_type), int(param.degree), gamma, float(param.coef0)


def _row_slice(matrix, i):
    start, end = matrix.indptr[i], matrix.indptr[i + 1]
    return matrix.indices[start:end], matrix.data[start:end]


def k_function(x, y, param) -> float:
    """
    Значение ядра для одной пары векторов (CSR-матрицы из одной строки).

    Чистая функция: зависит только от аргументов и параметров ядра.
    Для нелинейных ядер gamma должна быть задана (см. resolve_gamma).
    """
    ind_x, val_x = _row_slice(x, 0)
    ind_y, val_y = _row_slice(y, 0)
    return float(kernel_value(*_kernel_args(param), ind_x, val_x, ind_y, val_y))


def kernel_matrix(a, b, param) -> np.ndarray:
    """K(a[i], b[j]) для двух CSR-матриц, (n_a, n_b)."""
    args = _kernel_args(param)
    out = np.empty((a.shape[0], b.shape[0]), dtype=np.float64)
    for i in range(a.shape[0]):
        ind_x, val_x = _row_slice(a, i)
        out[i] = kernel_row(*args, ind_x, val_x, b.indptr, b.indices, b.data)
    return out


class Kernel:
    """
    Ядро, привязанное к обучающей выборке.

    Предоставляет строки K[i, :] и диагональ для Q-матриц солвера.
    Не хранит вычисленных значений: кэширование делает KernelCache.
    """

    def __init__(self, x, param):
        self.x = x
        self.args = _kernel_args(param)

    @property
    def l(self) -> int:
        return self.x.shape[0]

    def row(self, i: int) -> np.ndarray:
        ind_x, val_x = _row_slice(self.x, i)
        return kernel_row(*self.args, ind_x, val_x, self.x.indptr, self.x.indices, self.x.data)

    def diagonal(self) -> np.ndarray:
        return kernel_diagonal(*self.args, self.x.indptr, self.x.indices, self.x.data)
