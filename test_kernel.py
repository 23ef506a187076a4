"""
Тесты ядер и кэша строк ядра.
"""

import numpy as np
import pytest
from scipy import sparse
from sklearn.metrics.pairwise import linear_kernel, polynomial_kernel, rbf_kernel, sigmoid_kernel

from svm_engine import InvalidParameterError, KernelType, k_function, make_parameter
from svm_engine.cache import KernelCache
from svm_engine.kernel import Kernel, kernel_matrix, sparse_dot, sparse_sq_dist
from svm_engine.problem import rows_to_csr, to_feature_matrix, to_sparse_vector


def _vec(pairs):
    return rows_to_csr([pairs])


# =============================================================================
# Значения ядра
# =============================================================================

def test_sparse_merge_with_different_index_sets():
    ind_a = np.array([1, 3, 7], dtype=np.int32)
    val_a = np.array([1.0, 2.0, 3.0])
    ind_b = np.array([2, 3, 9], dtype=np.int32)
    val_b = np.array([5.0, -1.0, 4.0])

    assert sparse_dot(ind_a, val_a, ind_b, val_b) == -2.0
    # (1)^2 + (-5)^2 + (2+1)^2 + 3^2 + (-4)^2
    assert sparse_sq_dist(ind_a, val_a, ind_b, val_b) == 1.0 + 25.0 + 9.0 + 9.0 + 16.0


@pytest.mark.parametrize("kernel_type", list(KernelType))
def test_kernel_symmetry(kernel_type):
    """K(x, y) == K(y, x) побитово для всех семейств."""
    rng = np.random.RandomState(0)
    param = make_parameter(kernel_type=kernel_type, gamma=0.3, coef0=0.5, degree=3)
    for _ in range(20):
        a = {int(i): float(rng.randn()) for i in rng.choice(np.arange(1, 30), 8, replace=False)}
        b = {int(i): float(rng.randn()) for i in rng.choice(np.arange(1, 30), 5, replace=False)}
        xa, xb = _vec(a), _vec(b)
        assert k_function(xa, xb, param) == k_function(xb, xa, param)


def test_kernel_values_match_formulas():
    x = _vec({1: 1.0, 2: 2.0})
    y = _vec({2: 1.0, 4: 3.0})
    dot = 2.0
    sq_dist = 1.0 + 1.0 + 9.0

    assert k_function(x, y, make_parameter(kernel_type=KernelType.LINEAR)) == dot
    poly = make_parameter(kernel_type=KernelType.POLY, gamma=0.5, coef0=1.0, degree=2)
    assert k_function(x, y, poly) == pytest.approx((0.5 * dot + 1.0) ** 2)
    rbf = make_parameter(kernel_type=KernelType.RBF, gamma=0.1)
    assert k_function(x, y, rbf) == pytest.approx(np.exp(-0.1 * sq_dist))
    sig = make_parameter(kernel_type=KernelType.SIGMOID, gamma=0.2, coef0=-1.0)
    assert k_function(x, y, sig) == pytest.approx(np.tanh(0.2 * dot - 1.0))


@pytest.mark.parametrize("kernel_type", [KernelType.POLY, KernelType.RBF, KernelType.SIGMOID])
def test_unresolved_gamma_rejected(kernel_type):
    x = _vec({1: 1.0, 2: 2.0})
    y = _vec({2: 1.0, 4: 3.0})
    param = make_parameter(kernel_type=kernel_type)
    with pytest.raises(InvalidParameterError):
        k_function(x, y, param)

    resolved = param.resolve_gamma(4)
    assert resolved.gamma == 0.25
    assert k_function(x, y, resolved) == k_function(y, x, resolved)


def test_kernel_matrix_matches_sklearn():
    """Плотные данные: сравнение с sklearn.metrics.pairwise."""
    rng = np.random.RandomState(1)
    A = rng.randn(15, 6)
    B = rng.randn(10, 6)
    A[A < -0.5] = 0.0  # часть нулей, чтобы строки были разреженными
    a, b = to_feature_matrix(A), to_feature_matrix(B)

    cases = [
        (make_parameter(kernel_type=KernelType.LINEAR), linear_kernel(A, B)),
        (make_parameter(kernel_type=KernelType.POLY, gamma=0.2, coef0=1.0, degree=3),
         polynomial_kernel(A, B, degree=3, gamma=0.2, coef0=1.0)),
        (make_parameter(kernel_type=KernelType.RBF, gamma=0.4), rbf_kernel(A, B, gamma=0.4)),
        (make_parameter(kernel_type=KernelType.SIGMOID, gamma=0.1, coef0=0.3),
         sigmoid_kernel(A, B, gamma=0.1, coef0=0.3)),
    ]
    for param, expected in cases:
        np.testing.assert_allclose(kernel_matrix(a, b, param), expected, rtol=1e-10, atol=1e-12)


def test_kernel_rows_and_diagonal():
    rng = np.random.RandomState(2)
    X = to_feature_matrix(rng.randn(12, 4))
    param = make_parameter(kernel_type=KernelType.RBF, gamma=0.5)
    kernel = Kernel(X, param)
    full = kernel_matrix(X, X, param)

    assert kernel.l == 12
    np.testing.assert_allclose(kernel.diagonal(), np.ones(12))
    for i in range(12):
        np.testing.assert_array_equal(kernel.row(i), full[i])


def test_query_formats_are_equivalent():
    """dict, пары, плотный вектор и разреженная строка дают одно и то же."""
    dense = np.array([0.5, 0.0, -2.0])
    expected = to_sparse_vector({1: 0.5, 3: -2.0})
    for query in (dense, [(1, 0.5), (3, -2.0)], sparse.csr_matrix(dense)):
        vec = to_sparse_vector(query)
        np.testing.assert_array_equal(vec.indices, expected.indices)
        np.testing.assert_array_equal(vec.data, expected.data)


# =============================================================================
# Кэш строк ядра
# =============================================================================

def _constant_row(key):
    return np.full(10, float(key))


def test_cache_hits_and_misses():
    cache = KernelCache(budget_bytes=10 * 8 * 4)
    compute_calls = []

    def compute(key):
        compute_calls.append(key)
        return np.full(10, float(key))

    r1 = cache.get(1, compute)
    r1_again = cache.get(1, compute)
    assert r1 is r1_again
    assert compute_calls == [1]
    assert (cache.hits, cache.misses) == (1, 1)
    assert cache.hit_rate == 0.5


def test_cache_evicts_least_recently_used():
    row_bytes = 10 * 8
    cache = KernelCache(budget_bytes=3 * row_bytes)
    for key in (0, 1, 2):
        cache.get(key, _constant_row)
    cache.get(0, _constant_row)    # 0 становится самой свежей
    cache.get(3, _constant_row)    # вытесняет 1

    assert 1 not in cache
    assert all(k in cache for k in (0, 2, 3))
    assert cache.used_bytes == 3 * row_bytes
    assert cache.used_bytes <= cache.budget_bytes


def test_cache_never_exceeds_budget():
    cache = KernelCache(budget_bytes=1000)
    rng = np.random.RandomState(3)
    for key in rng.randint(0, 50, size=200):
        cache.get(int(key), lambda k: np.zeros(int(k) % 7 + 1))
        assert cache.used_bytes <= cache.budget_bytes


def test_cache_oversized_row_is_not_stored():
    cache = KernelCache(budget_bytes=16)
    row = cache.get(5, lambda k: np.zeros(100))
    assert len(row) == 100
    assert 5 not in cache
    assert len(cache) == 0
    assert cache.used_bytes == 0


def test_cached_rows_are_read_only():
    cache = KernelCache(budget_bytes=1024)
    row = cache.get(0, lambda k: np.ones(4))
    with pytest.raises(ValueError):
        row[0] = 2.0

    cache.clear()
    assert len(cache) == 0 and cache.used_bytes == 0
