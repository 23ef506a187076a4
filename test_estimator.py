"""
Тесты объектной обёртки SupportVectorMachine.
"""

import numpy as np
import pytest
from scipy import sparse
from sklearn.datasets import make_blobs

from svm_engine import (
    KernelType,
    NotFittedError,
    SupportVectorMachine,
    SVMParameter,
    SvmType,
    make_problem,
)


@pytest.fixture
def blobs():
    X, y = make_blobs(n_samples=90, centers=[[-3, 0], [3, 0], [0, 4]], cluster_std=1.0,
                      random_state=0)
    return X, y + 1


def test_fit_predict(blobs):
    X, y = blobs
    clf = SupportVectorMachine(kernel_type=KernelType.RBF, C=10.0)
    assert clf.fit(X, y) is clf

    np.testing.assert_array_equal(clf.classes_, [1, 2, 3])
    assert clf.score(X, y) >= 0.95
    assert clf.decision_function(X).shape == (90, 3)
    assert len(clf.support_) == clf.model.total_sv
    assert np.all(clf.support_ < len(X))


def test_constructor_overrides_param():
    base = SVMParameter(svm_type=SvmType.NU_SVC, nu=0.2)
    clf = SupportVectorMachine(base, nu=0.4)
    assert clf.param.svm_type == SvmType.NU_SVC
    assert clf.param.nu == 0.4
    assert base.nu == 0.2


def test_binary_decision_function_is_one_dimensional():
    X, y = make_blobs(n_samples=40, centers=2, random_state=3)
    clf = SupportVectorMachine(kernel_type=KernelType.LINEAR).fit(X, y)
    dec = clf.decision_function(X)
    assert dec.shape == (40,)
    # dec > 0 -> первый класс (меньшая метка)
    np.testing.assert_array_equal(clf.predict(X), np.where(dec > 0, 0.0, 1.0))


def test_predict_proba(blobs):
    X, y = blobs
    clf = SupportVectorMachine(probability=True).fit(X, y)
    proba = clf.predict_proba(X)
    assert proba.shape == (90, 3)
    np.testing.assert_allclose(proba.sum(axis=1), 1.0)
    assert np.mean(clf.classes_[np.argmax(proba, axis=1)] == y) >= 0.95


def test_not_fitted():
    clf = SupportVectorMachine()
    with pytest.raises(NotFittedError):
        clf.predict(np.zeros((1, 2)))
    with pytest.raises(NotFittedError):
        clf.to_xml()
    with pytest.raises(NotFittedError):
        clf.classes_


def test_sparse_and_problem_inputs(blobs):
    X, y = blobs
    dense = SupportVectorMachine(gamma=0.5).fit(X, y)
    from_sparse = SupportVectorMachine(gamma=0.5).fit(sparse.csr_matrix(X), y)
    from_problem = SupportVectorMachine(gamma=0.5).fit(make_problem(X, y))

    expected = dense.predict(X)
    np.testing.assert_array_equal(from_sparse.predict(sparse.csr_matrix(X)), expected)
    np.testing.assert_array_equal(from_problem.predict(X), expected)


def test_xml_round_trip(blobs):
    X, y = blobs
    clf = SupportVectorMachine(C=2.0).fit(X, y)
    xml = clf.to_xml()
    assert xml.startswith("<?xml")

    restored = SupportVectorMachine().load_xml(xml)
    assert restored.model.param == clf.model.param
    assert restored.param.gamma is None
    np.testing.assert_array_equal(restored.predict(X), clf.predict(X))
    assert restored.to_xml() == xml


def test_export_import(tmp_path, blobs):
    X, y = blobs
    clf = SupportVectorMachine().fit(X, y)
    path = str(tmp_path / "svm.xml")
    clf.export(path)

    restored = SupportVectorMachine().import_model(path)
    np.testing.assert_array_equal(restored.decision_function(X), clf.decision_function(X))


def test_regression_and_one_class():
    rng = np.random.RandomState(0)
    X = rng.uniform(-2, 2, (60, 1))
    y = X[:, 0] ** 2

    reg = SupportVectorMachine(svm_type=SvmType.EPSILON_SVR, C=10.0, gamma=1.0).fit(X, y)
    assert reg.score(X, y) > -0.05
    assert reg.decision_function(X).shape == (60,)

    detector = SupportVectorMachine(svm_type=SvmType.ONE_CLASS, nu=0.1).fit(X, np.ones(60))
    assert set(np.unique(detector.predict(X))) <= {-1.0, 1.0}
    assert detector.predict(np.array([[10.0]]))[0] == -1.0


def test_cross_validate(blobs):
    X, y = blobs
    target = SupportVectorMachine().cross_validate(X, y, n_fold=3)
    assert np.mean(target == y) >= 0.9


def test_refit_after_import_resolves_gamma_for_new_data(tmp_path, blobs):
    X, y = blobs
    path = str(tmp_path / "svm.xml")
    SupportVectorMachine().fit(X, y).export(path)

    clf = SupportVectorMachine().import_model(path)
    assert clf.model.param.gamma == pytest.approx(0.5)

    # 4 признака -> gamma = 1/4, а не значение из загруженной модели
    X4 = np.hstack([X, X])
    clf.fit(X4, y)
    assert clf.param.gamma is None
    assert clf.model.param.gamma == pytest.approx(0.25)
