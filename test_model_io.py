"""
Тесты XML-сериализации модели.
"""

import numpy as np
import pytest
from sklearn.datasets import make_blobs

from svm_engine import (
    ErrorKind,
    KernelType,
    SerializationError,
    SolverState,
    SvmType,
    deserialize,
    load_model,
    make_parameter,
    make_problem,
    predict,
    predict_probability,
    predict_values,
    save_model,
    serialize,
    train,
)


@pytest.fixture(scope="module")
def models():
    X, y = make_blobs(n_samples=90, centers=3, cluster_std=1.5, random_state=0)
    rng = np.random.RandomState(0)
    Xr = rng.uniform(0, 5, (50, 1))
    yr = np.cos(Xr[:, 0])
    return {
        "multiclass": train(make_problem(X, y + 1),
                            make_parameter(SvmType.C_SVC, KernelType.RBF, probability=True,
                                           weight_label=(2,), weight=(1.5,))),
        "nu_svc": train(make_problem(X[y < 2], y[y < 2]),
                        make_parameter(SvmType.NU_SVC, KernelType.POLY, gamma=0.1, coef0=1.0)),
        "one_class": train(make_problem(X, np.ones(len(X))),
                           make_parameter(SvmType.ONE_CLASS, KernelType.RBF, nu=0.2)),
        "regression": train(make_problem(Xr, yr),
                            make_parameter(SvmType.EPSILON_SVR, KernelType.RBF, C=4.0,
                                           probability=True)),
    }


def queries():
    rng = np.random.RandomState(1)
    return [rng.randn(2) * 4 for _ in range(10)]


def replace_text(data, tag, text):
    """Заменяет содержимое первого <tag>...</tag> в документе."""
    doc = data.decode("utf-8")
    start = doc.index(f"<{tag}>") + len(f"<{tag}>")
    end = doc.index(f"</{tag}>")
    return (doc[:start] + text + doc[end:]).encode("utf-8")


@pytest.mark.parametrize("name", ["multiclass", "nu_svc", "one_class", "regression"])
def test_bytes_round_trip_is_identical(models, name):
    data = serialize(models[name])
    assert isinstance(data, bytes)
    assert serialize(deserialize(data)) == data


@pytest.mark.parametrize("name", ["multiclass", "nu_svc", "one_class"])
def test_restored_model_predicts_identically(models, name):
    model = models[name]
    restored = deserialize(serialize(model))
    for q in queries():
        np.testing.assert_array_equal(predict_values(model, q), predict_values(restored, q))
        assert predict(model, q) == predict(restored, q)


def test_restored_model_keeps_all_fields(models):
    model = models["multiclass"]
    restored = deserialize(serialize(model))

    assert restored.param == model.param
    assert restored.n_class == model.n_class
    np.testing.assert_array_equal(restored.labels, model.labels)
    np.testing.assert_array_equal(restored.sv_coef, model.sv_coef)
    np.testing.assert_array_equal(restored.rho, model.rho)
    np.testing.assert_array_equal(restored.n_sv, model.n_sv)
    np.testing.assert_array_equal(restored.sv_indices, model.sv_indices)
    np.testing.assert_array_equal(restored.prob_a, model.prob_a)
    np.testing.assert_array_equal(restored.prob_b, model.prob_b)
    assert (restored.support_vectors != model.support_vectors).nnz == 0
    assert restored.reports == model.reports
    assert all(r.state == SolverState.CONVERGED for r in restored.reports)

    q = queries()[0]
    assert predict_probability(restored, q) == predict_probability(model, q)


def test_regression_round_trip_keeps_laplace_scale(models):
    model = models["regression"]
    restored = deserialize(serialize(model))
    np.testing.assert_array_equal(restored.prob_a, model.prob_a)
    assert restored.prob_b is None
    assert predict(restored, [2.0]) == predict(model, [2.0])


def test_model_arrays_are_read_only(models):
    model = models["multiclass"]
    with pytest.raises(ValueError):
        model.sv_coef[0, 0] = 1.0
    with pytest.raises(ValueError):
        model.support_vectors.data[0] = 1.0
    with pytest.raises(AttributeError):
        model.rho = np.zeros(3)


@pytest.mark.parametrize("data", [
    b"not xml at all",
    b"<other_root/>",
    b"<svm_model version='1' n_class='2'></svm_model>",
    b"<svm_model version='99' n_class='2'/>",
])
def test_malformed_documents_rejected(data):
    with pytest.raises(SerializationError) as exc_info:
        deserialize(data)
    assert exc_info.value.kind == ErrorKind.SERIALIZATION


def test_truncated_document_rejected(models):
    data = serialize(models["multiclass"])
    with pytest.raises(SerializationError):
        deserialize(data[: len(data) // 2])


def test_inconsistent_layout_rejected(models):
    broken = replace_text(serialize(models["multiclass"]), "rho", "0.0")
    with pytest.raises(SerializationError):
        deserialize(broken)


def test_save_and_load(tmp_path, models):
    path = tmp_path / "model.xml"
    save_model(models["one_class"], str(path))
    assert path.read_bytes().startswith(b"<?xml")
    restored = load_model(str(path))
    assert serialize(restored) == serialize(models["one_class"])


def test_load_missing_file(tmp_path):
    with pytest.raises(SerializationError):
        load_model(str(tmp_path / "missing.xml"))


@pytest.mark.parametrize("tag, text", [
    ("prob_a", "abc"),
    ("prob_b", ""),
    ("prob_a", "0.5 0.5"),
])
def test_bad_probability_parameters_rejected(models, tag, text):
    data = replace_text(serialize(models["multiclass"]), tag, text)
    with pytest.raises(SerializationError):
        deserialize(data)


def test_regression_probability_layout_checked(models):
    data = serialize(models["regression"])
    with pytest.raises(SerializationError):
        deserialize(replace_text(data, "prob_a", "0.1 0.2"))

    extra = data.replace(b"<n_sv", b"<prob_b>1.0</prob_b><n_sv", 1)
    with pytest.raises(SerializationError):
        deserialize(extra)


def test_unsorted_labels_rejected(models):
    data = serialize(models["multiclass"])
    assert b"<labels>1 2 3</labels>" in data
    with pytest.raises(SerializationError):
        deserialize(replace_text(data, "labels", "1 3 2"))
    with pytest.raises(SerializationError):
        deserialize(replace_text(data, "labels", "1 1 3"))


def test_unsorted_feature_indices_rejected(models):
    model = models["multiclass"]
    doc = serialize(model).decode("utf-8")
    first = doc.index("<sv ")
    start = doc.index(">", first) + 1
    end = doc.index("</sv>", start)
    tokens = doc[start:end].split()
    assert len(tokens) == 2

    for text in (" ".join(reversed(tokens)), " ".join([tokens[0], tokens[0]])):
        broken = (doc[:start] + text + doc[end:]).encode("utf-8")
        with pytest.raises(SerializationError):
            deserialize(broken)
