"""
Обучающая выборка: разреженные векторы признаков + метки.

Векторы хранятся построчно в scipy.sparse.csr_matrix, номер столбца равен
индексу признака. Индексы в формате LIBSVM начинаются с 1, поэтому плотные
массивы переводятся со сдвигом: столбец c -> индекс c + 1.
"""

from dataclasses import dataclass
from typing import Iterable

import numpy as np
from scipy import sparse

from .errors import InvalidProblemError


@dataclass(frozen=True, eq=False)
class SVMProblem:
    """
    Неизменяемая обучающая выборка.

    Attributes:
        x: Матрица признаков (l, max_index + 1) в CSR с упорядоченными индексами
        y: Метки классов или целевые значения регрессии (l,)
    """
    x: sparse.csr_matrix
    y: np.ndarray

    def __post_init__(self):
        x = sparse.csr_matrix(self.x, dtype=np.float64)
        x.sort_indices()
        y = np.array(self.y, dtype=np.float64).reshape(-1)
        if x.shape[0] != y.shape[0]:
            raise InvalidProblemError(
                f"число векторов ({x.shape[0]}) не совпадает с числом меток ({y.shape[0]})"
            )
        if not np.all(np.isfinite(y)):
            raise InvalidProblemError("метки содержат NaN или inf")
        if x.nnz and not np.all(np.isfinite(x.data)):
            raise InvalidProblemError("признаки содержат NaN или inf")
        y.setflags(write=False)
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    @property
    def l(self) -> int:
        return self.x.shape[0]

    @property
    def max_index(self) -> int:
        """Наибольший индекс признака (используется для gamma = 1/num_features)."""
        return int(self.x.indices.max()) if self.x.nnz else 0

    def subset(self, indices) -> "SVMProblem":
        indices = np.asarray(indices, dtype=np.int64)
        return SVMProblem(self.x[indices], self.y[indices])

    def __len__(self):
        return self.l


def _row_pairs(row):
    """Приводит одну строку к списку пар (index, value)."""
    if isinstance(row, dict):
        return sorted((int(k), float(v)) for k, v in row.items())
    if isinstance(row, np.ndarray) or (
        len(row) > 0 and not isinstance(row[0], (tuple, list, np.ndarray))
    ):
        dense = np.asarray(row, dtype=np.float64).reshape(-1)
        nz = np.flatnonzero(dense)
        return [(int(i) + 1, float(dense[i])) for i in nz]
    return [(int(idx), float(val)) for idx, val in row]


def rows_to_csr(rows: Iterable) -> sparse.csr_matrix:
    """
    Собирает CSR-матрицу из строк: словарей {index: value}, последовательностей
    пар (index, value) или плотных 1-D массивов.

    Индексы в каждой строке должны быть неотрицательными, уникальными и
    возрастающими.
    """
    indptr = [0]
    indices = []
    data = []
    n_rows = 0
    for r, row in enumerate(rows):
        prev = -1
        for idx, val in _row_pairs(row):
            if idx < 0:
                raise InvalidProblemError(f"строка {r}: отрицательный индекс {idx}")
            if idx <= prev:
                raise InvalidProblemError(
                    f"строка {r}: индексы должны возрастать и не повторяться ({prev}, {idx})"
                )
            prev = idx
            indices.append(idx)
            data.append(val)
        indptr.append(len(indices))
        n_rows += 1

    width = max(indices) + 1 if indices else 1
    return sparse.csr_matrix(
        (np.asarray(data, dtype=np.float64),
         np.asarray(indices, dtype=np.int32),
         np.asarray(indptr, dtype=np.int32)),
        shape=(n_rows, width),
    )


def _shift_columns(matrix) -> sparse.csr_matrix:
    """Плотные столбцы 0..n-1 -> индексы признаков 1..n."""
    matrix = sparse.csr_matrix(matrix, dtype=np.float64)
    pad = sparse.csr_matrix((matrix.shape[0], 1), dtype=np.float64)
    shifted = sparse.hstack([pad, matrix], format="csr")
    shifted.sort_indices()
    return shifted


def to_feature_matrix(x) -> sparse.csr_matrix:
    """Любой поддерживаемый формат набора векторов -> CSR."""
    if sparse.issparse(x):
        return _shift_columns(x)
    if isinstance(x, np.ndarray):
        if x.ndim != 2:
            raise InvalidProblemError(f"ожидается 2-D массив, получено ndim={x.ndim}")
        return _shift_columns(sparse.csr_matrix(x))
    return rows_to_csr(x)


def to_sparse_vector(x) -> sparse.csr_matrix:
    """Один вектор запроса -> CSR-матрица из одной строки."""
    if sparse.issparse(x):
        if x.shape[0] != 1:
            raise InvalidProblemError(f"ожидается одна строка, получено {x.shape[0]}")
        return _shift_columns(x)
    return rows_to_csr([x])


def make_problem(x, y) -> SVMProblem:
    """Выборка из плотного массива, scipy.sparse или списка разреженных строк."""
    return SVMProblem(to_feature_matrix(x), np.asarray(y, dtype=np.float64))


def read_problem(path: str) -> SVMProblem:
    """
    Читает файл в формате LIBSVM: "<label> <index>:<value> ...".

    Пустые строки пропускаются.
    """
    labels = []
    rows = []
    with open(path, "r") as f:
        for line_no, line in enumerate(f, start=1):
            tokens = line.split()
            if not tokens:
                continue
            try:
                labels.append(float(tokens[0]))
                row = []
                for token in tokens[1:]:
                    idx, val = token.split(":", 1)
                    row.append((int(idx), float(val)))
            except ValueError:
                raise InvalidProblemError(f"{path}:{line_no}: не удалось разобрать строку") from None
            rows.append(row)

    try:
        x = rows_to_csr(rows)
    except InvalidProblemError as e:
        raise InvalidProblemError(f"{path}: {e.message}") from None
    return SVMProblem(x, np.asarray(labels, dtype=np.float64))
