"""
XML-снимок модели.

    <svm_model version="1" n_class="3">
      <param svm_type="C_SVC" kernel_type="RBF" ...>
        <weight label="1" value="2.0" />
      </param>
      <labels>1 2 3</labels>
      <rho>...</rho>
      <prob_a>...</prob_a>            (если есть)
      <prob_b>...</prob_b>            (если есть)
      <n_sv>...</n_sv>
      <sv_indices>...</sv_indices>
      <reports>
        <report state="converged" n_iterations="12" objective="..." gap="..." />
      </reports>
      <support_vectors count="5">
        <sv coef="0.5 -0.25">1:0.1 4:2.0</sv>
      </support_vectors>
    </svm_model>

Вещественные числа записываются через repr(), который восстанавливает
float без потерь, поэтому serialize(deserialize(b)) == b.
"""

import xml.etree.ElementTree as ET

import numpy as np
from scipy import sparse

from .errors import SerializationError
from .model import SVMModel
from .parameter import KernelType, SVMParameter, SvmType
from .solver import SolverReport, SolverState

FORMAT_VERSION = "1"

_FLOAT_FIELDS = ("coef0", "C", "nu", "p", "eps", "cache_size")
_INT_FIELDS = ("degree", "max_iter_factor", "n_jobs", "seed")
_BOOL_FIELDS = ("shrinking", "probability", "verbose")


def _fmt(value) -> str:
    return repr(float(value))


def _join_floats(values) -> str:
    return " ".join(_fmt(v) for v in values)


def _join_ints(values) -> str:
    return " ".join(str(int(v)) for v in values)


def _parse_floats(text) -> np.ndarray:
    return np.array([float(t) for t in (text or "").split()], dtype=np.float64)


def _parse_ints(text) -> np.ndarray:
    return np.array([int(t) for t in (text or "").split()], dtype=np.int64)


def _param_element(param: SVMParameter) -> ET.Element:
    elem = ET.Element("param")
    elem.set("svm_type", SvmType(param.svm_type).name)
    elem.set("kernel_type", KernelType(param.kernel_type).name)
    elem.set("gamma", "none" if param.gamma is None else _fmt(param.gamma))
    for name in _FLOAT_FIELDS:
        elem.set(name, _fmt(getattr(param, name)))
    for name in _INT_FIELDS:
        elem.set(name, str(int(getattr(param, name))))
    for name in _BOOL_FIELDS:
        elem.set(name, "true" if getattr(param, name) else "false")
    for label, weight in zip(param.weight_label, param.weight):
        w = ET.SubElement(elem, "weight")
        w.set("label", str(int(label)))
        w.set("value", _fmt(weight))
    return elem


def _parse_bool(text) -> bool:
    if text not in ("true", "false"):
        raise ValueError(f"bad boolean: {text!r}")
    return text == "true"


def _read_param(elem) -> SVMParameter:
    gamma = elem.attrib["gamma"]
    fields = {
        "svm_type": SvmType[elem.attrib["svm_type"]],
        "kernel_type": KernelType[elem.attrib["kernel_type"]],
        "gamma": None if gamma == "none" else float(gamma),
    }
    for name in _FLOAT_FIELDS:
        fields[name] = float(elem.attrib[name])
    for name in _INT_FIELDS:
        fields[name] = int(elem.attrib[name])
    for name in _BOOL_FIELDS:
        fields[name] = _parse_bool(elem.attrib[name])
    weights = elem.findall("weight")
    fields["weight_label"] = tuple(int(w.attrib["label"]) for w in weights)
    fields["weight"] = tuple(float(w.attrib["value"]) for w in weights)
    return SVMParameter(**fields)


def _sv_text(matrix, row) -> str:
    start, end = matrix.indptr[row], matrix.indptr[row + 1]
    return " ".join(f"{int(i)}:{_fmt(v)}"
                    for i, v in zip(matrix.indices[start:end], matrix.data[start:end]))


def serialize(model: SVMModel) -> bytes:
    """Модель -> каноническое XML-представление (UTF-8)."""
    root = ET.Element("svm_model")
    root.set("version", FORMAT_VERSION)
    root.set("n_class", str(model.n_class))
    root.append(_param_element(model.param))

    ET.SubElement(root, "labels").text = _join_ints(model.labels)
    ET.SubElement(root, "rho").text = _join_floats(model.rho)
    if model.prob_a is not None:
        ET.SubElement(root, "prob_a").text = _join_floats(model.prob_a)
    if model.prob_b is not None:
        ET.SubElement(root, "prob_b").text = _join_floats(model.prob_b)
    ET.SubElement(root, "n_sv").text = _join_ints(model.n_sv)
    ET.SubElement(root, "sv_indices").text = _join_ints(model.sv_indices)

    reports = ET.SubElement(root, "reports")
    for report in model.reports:
        r = ET.SubElement(reports, "report")
        r.set("state", SolverState(report.state).value)
        r.set("n_iterations", str(int(report.n_iterations)))
        r.set("objective", _fmt(report.objective))
        r.set("gap", _fmt(report.gap))

    svs = ET.SubElement(root, "support_vectors")
    svs.set("count", str(model.total_sv))
    svs.set("width", str(model.support_vectors.shape[1]))
    for k in range(model.total_sv):
        sv = ET.SubElement(svs, "sv")
        sv.set("coef", _join_floats(model.sv_coef[:, k]))
        sv.text = _sv_text(model.support_vectors, k)

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _read_support_vectors(elem, n_coef_rows):
    rows = elem.findall("sv")
    if len(rows) != int(elem.attrib["count"]):
        raise ValueError("support vector count mismatch")
    width = int(elem.attrib["width"])

    indptr = [0]
    indices = []
    data = []
    coef = np.zeros((n_coef_rows, len(rows)))
    for k, row in enumerate(rows):
        values = _parse_floats(row.attrib["coef"])
        if len(values) != n_coef_rows:
            raise ValueError(f"support vector {k}: expected {n_coef_rows} coefficients")
        coef[:, k] = values
        row_indices = []
        for token in (row.text or "").split():
            idx, val = token.split(":", 1)
            row_indices.append(int(idx))
            data.append(float(val))
        # слияние разреженных векторов требует строго возрастающих индексов
        if any(b <= a for a, b in zip(row_indices, row_indices[1:])):
            raise ValueError(f"support vector {k}: feature indices must be strictly ascending")
        indices.extend(row_indices)
        indptr.append(len(indices))

    if indices and (min(indices) < 0 or max(indices) >= width):
        raise ValueError("feature index outside matrix width")
    matrix = sparse.csr_matrix(
        (np.asarray(data, dtype=np.float64),
         np.asarray(indices, dtype=np.int32),
         np.asarray(indptr, dtype=np.int32)),
        shape=(len(rows), width),
    )
    return matrix, coef


def _check_layout(svm_type, n_class, labels, rho, n_sv, sv_indices, prob_a, prob_b, total_sv):
    n_pairs = n_class * (n_class - 1) // 2
    if svm_type in (SvmType.C_SVC, SvmType.NU_SVC):
        if len(labels) != n_class or len(n_sv) != n_class or int(np.sum(n_sv)) != total_sv:
            raise SerializationError("class layout does not match support vectors")
        # голосование разрешает ничьи по порядку меток
        if np.any(np.diff(labels) <= 0):
            raise SerializationError("class labels must be strictly ascending")
        if len(rho) != n_pairs:
            raise SerializationError(f"expected {n_pairs} rho values, got {len(rho)}")
        if (prob_a is None) != (prob_b is None):
            raise SerializationError("prob_a and prob_b must be stored together")
        if prob_a is not None and (len(prob_a) != n_pairs or len(prob_b) != n_pairs):
            raise SerializationError(f"expected {n_pairs} probability parameters per sigmoid")
    else:
        if len(rho) != 1:
            raise SerializationError(f"expected 1 rho value, got {len(rho)}")
        if prob_b is not None:
            raise SerializationError("prob_b is only defined for classification")
        if prob_a is not None:
            if svm_type == SvmType.ONE_CLASS:
                raise SerializationError("one-class model cannot carry probability parameters")
            if len(prob_a) != 1:
                raise SerializationError(f"expected 1 Laplace scale, got {len(prob_a)}")
    if len(sv_indices) != total_sv:
        raise SerializationError("sv_indices length does not match support vectors")


def deserialize(data: bytes) -> SVMModel:
    """
    XML -> модель.

    Raises:
        SerializationError: документ повреждён или не согласован
    """
    try:
        root = ET.fromstring(data)
        if root.tag != "svm_model":
            raise ValueError(f"unexpected root element <{root.tag}>")
        if root.attrib.get("version") != FORMAT_VERSION:
            raise ValueError(f"unsupported format version {root.attrib.get('version')!r}")

        param = _read_param(root.find("param"))
        n_class = int(root.attrib["n_class"])
        labels = _parse_ints(root.find("labels").text)
        rho = _parse_floats(root.find("rho").text)
        prob_a_elem = root.find("prob_a")
        prob_b_elem = root.find("prob_b")
        prob_a = None if prob_a_elem is None else _parse_floats(prob_a_elem.text)
        prob_b = None if prob_b_elem is None else _parse_floats(prob_b_elem.text)
        n_sv = _parse_ints(root.find("n_sv").text)
        sv_indices = _parse_ints(root.find("sv_indices").text)
        reports = tuple(
            SolverReport(
                state=SolverState(r.attrib["state"]),
                n_iterations=int(r.attrib["n_iterations"]),
                objective=float(r.attrib["objective"]),
                gap=float(r.attrib["gap"]),
            )
            for r in root.find("reports").findall("report")
        )

        n_coef_rows = max(n_class - 1, 0)
        support_vectors, sv_coef = _read_support_vectors(root.find("support_vectors"), n_coef_rows)
    except (ET.ParseError, AttributeError, KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"malformed model document: {e}") from e

    _check_layout(SvmType(param.svm_type), n_class, labels, rho, n_sv, sv_indices,
                  prob_a, prob_b, support_vectors.shape[0])

    return SVMModel(
        param=param,
        n_class=n_class,
        labels=labels,
        support_vectors=support_vectors,
        sv_coef=sv_coef,
        rho=rho,
        n_sv=n_sv,
        sv_indices=sv_indices,
        prob_a=prob_a,
        prob_b=prob_b,
        reports=reports,
    )


def save_model(model: SVMModel, path: str) -> None:
    try:
        with open(path, "wb") as f:
            f.write(serialize(model))
    except OSError as e:
        raise SerializationError(f"cannot write model to {path}: {e}") from e


def load_model(path: str) -> SVMModel:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise SerializationError(f"cannot read model from {path}: {e}") from e
    return deserialize(data)
