"""
Тесты параметров обучения и их проверки.
"""

import numpy as np
import pytest

from svm_engine import (
    EmptyProblemError,
    ErrorKind,
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
    KernelSpec,
    KernelType,
    NegativeGammaError,
    SingleClassError,
    SVMParameter,
    SvmType,
    UnsupportedProbabilityError,
    ValidationError,
    WeightLengthMismatchError,
    check_parameter,
    make_parameter,
    make_problem,
    parameter_from_kernel,
    train,
)


@pytest.fixture
def problem():
    X = np.array([[0.0, 1.0], [1.0, 0.0], [1.0, 1.0], [0.0, 0.0]])
    return make_problem(X, [1, 1, 2, 2])


def test_defaults_match_libsvm():
    param = SVMParameter()
    assert param.svm_type == SvmType.C_SVC
    assert param.kernel_type == KernelType.RBF
    assert (param.degree, param.gamma, param.coef0) == (3, None, 0.0)
    assert (param.C, param.nu, param.p, param.eps) == (1.0, 0.5, 0.1, 1e-3)
    assert param.cache_size == 100.0
    assert param.shrinking and not param.probability
    assert param.nr_weight == 0


def test_factories():
    spec = KernelSpec(KernelType.POLY, degree=2, gamma=0.5, coef0=1.0)
    param = parameter_from_kernel(SvmType.NU_SVC, spec, nu=0.3)
    assert param.kernel == spec
    assert param.svm_type == SvmType.NU_SVC and param.nu == 0.3

    param = make_parameter(SvmType.EPSILON_SVR, KernelType.LINEAR, C=5.0, p=0.2)
    assert param.is_regression and not param.is_classification

    weighted = param.replace(weight_label=[1, 2], weight=[2, 3])
    assert weighted.weight_label == (1, 2)
    assert weighted.weight == (2.0, 3.0)
    assert param.nr_weight == 0, "replace() must not mutate the original"


def test_resolve_gamma():
    assert SVMParameter().resolve_gamma(4).gamma == 0.25
    assert SVMParameter(gamma=2.0).resolve_gamma(4).gamma == 2.0
    assert SVMParameter().resolve_gamma(0).gamma == 1.0


def test_parameter_is_immutable():
    param = SVMParameter()
    with pytest.raises(AttributeError):
        param.C = 10.0


@pytest.mark.parametrize("changes, error", [
    (dict(svm_type=7), InvalidSvmTypeError),
    (dict(kernel_type=9), InvalidKernelTypeError),
    (dict(gamma=-0.1), NegativeGammaError),
    (dict(kernel_type=KernelType.POLY, degree=-1), InvalidDegreeError),
    (dict(C=0.0), InvalidCostError),
    (dict(C=-1.0), InvalidCostError),
    (dict(svm_type=SvmType.NU_SVC, nu=0.0), InvalidNuError),
    (dict(svm_type=SvmType.ONE_CLASS, nu=1.5), InvalidNuError),
    (dict(svm_type=SvmType.EPSILON_SVR, p=-0.5), InvalidEpsilonError),
    (dict(eps=0.0), InvalidToleranceError),
    (dict(cache_size=0.0), InvalidCacheSizeError),
    (dict(weight_label=(1,), weight=()), WeightLengthMismatchError),
    (dict(weight_label=(1,), weight=(-2.0,)), InvalidCostError),
    (dict(svm_type=SvmType.ONE_CLASS, probability=True), UnsupportedProbabilityError),
    (dict(max_iter_factor=0), InvalidParameterError),
    (dict(n_jobs=0), InvalidParameterError),
])
def test_invalid_parameters_rejected(problem, changes, error):
    param = SVMParameter(**changes)
    with pytest.raises(error) as exc_info:
        check_parameter(problem, param)
    assert isinstance(exc_info.value, ValidationError)
    assert isinstance(exc_info.value, ValueError)
    assert exc_info.value.kind == error.kind


def test_negative_gamma_allowed_for_linear(problem):
    check_parameter(problem, SVMParameter(kernel_type=KernelType.LINEAR, gamma=-1.0))


def test_empty_problem_rejected():
    empty = make_problem([], [])
    with pytest.raises(EmptyProblemError) as exc_info:
        train(empty, SVMParameter())
    assert exc_info.value.kind == ErrorKind.EMPTY_PROBLEM


def test_single_class_rejected():
    X = np.random.RandomState(0).randn(5, 2)
    with pytest.raises(SingleClassError):
        train(make_problem(X, [3] * 5), SVMParameter())


def test_non_integral_labels_rejected():
    X = np.random.RandomState(0).randn(4, 2)
    with pytest.raises(InvalidLabelError):
        train(make_problem(X, [0.5, 1.0, 0.5, 1.0]), SVMParameter())


def test_infeasible_nu_rejected():
    # nu * (n1 + n2) / 2 = 0.9 * 11 / 2 > min(10, 1)
    X = np.random.RandomState(0).randn(11, 2)
    y = [1] * 10 + [2]
    with pytest.raises(InfeasibleNuError):
        train(make_problem(X, y), SVMParameter(svm_type=SvmType.NU_SVC, nu=0.9))


def test_regression_targets_need_not_be_integral():
    X = np.random.RandomState(0).randn(6, 2)
    y = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]
    check_parameter(make_problem(X, y), SVMParameter(svm_type=SvmType.EPSILON_SVR))
