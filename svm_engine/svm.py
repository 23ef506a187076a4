"""
Публичный API: обучение, предсказание, кросс-валидация, калибровка.

    model = train(problem, param)
    label = predict(model, {1: 0.5, 3: -1.0})
    data = serialize(model)
"""

from typing import Optional

import numpy as np

from .builder import build_classification_model, build_single_model
from .calibration import laplace_scale, sigmoid_train
from .errors import InvalidParameterError, ProbabilityModelError
from .formulations import train_one
from .model import ModelKind, SVMModel
from .multiclass import group_classes, train_pairs, weighted_costs
from .parameter import SVMParameter, SvmType, check_parameter
from .predictor import (
    decision_matrix,
    labels_from_decision,
    predict,
    predict_probability,
    predict_values,
    probability_matrix,
)
from .problem import SVMProblem
from .serialization import deserialize, load_model, save_model, serialize
from .solver import is_cancelled

# Число фолдов внутренней кросс-валидации для калибровки
PROBABILITY_FOLDS = 5


def train(problem: SVMProblem, param: SVMParameter, cancel=None) -> SVMModel:
    """
    Обучает модель.

    Args:
        problem: Обучающая выборка
        param: Параметры обучения
        cancel: Объект с методом is_set() (например threading.Event);
            при отмене возвращается лучшая найденная модель без
            калибровки вероятностей

    Returns:
        SVMModel

    Raises:
        ValidationError: параметры или данные отвергнуты до обучения
    """
    check_parameter(problem, param)
    return _train(problem, param.resolve_gamma(problem.max_index), cancel)


def _train(problem: SVMProblem, param: SVMParameter, cancel=None) -> SVMModel:
    param = param.resolve_gamma(problem.max_index)
    svm_type = SvmType(param.svm_type)

    if svm_type not in (SvmType.C_SVC, SvmType.NU_SVC):
        prob_a = None
        if param.probability and svm_type in (SvmType.EPSILON_SVR, SvmType.NU_SVR):
            prob_a = svr_probability(problem, param, cancel)
        decision = train_one(problem, param, cancel=cancel)
        return build_single_model(param, problem, decision, prob_a)

    groups = group_classes(problem.y)
    weighted_C = weighted_costs(groups.labels, param)
    results = train_pairs(problem, param, groups, weighted_C, cancel,
                          probability_fn=binary_svc_probability)
    return build_classification_model(param, problem, groups, results)


# =============================================================================
# Калибровка вероятностей
# =============================================================================

def _fold_bounds(l, n_fold):
    return [(i * l // n_fold, (i + 1) * l // n_fold) for i in range(n_fold)]


def binary_svc_probability(problem: SVMProblem, param: SVMParameter, Cp: float, Cn: float,
                           cancel=None):
    """
    Параметры сигмоиды Платта для бинарной подзадачи (метки ±1).

    Решающие значения берутся из 5-fold кросс-валидации с перемешиванием
    по param.seed. Отмена прерывает калибровку между фолдами и внутри
    солвера.

    Returns:
        (A, B) или None, если обучение отменено
    """
    l = problem.l
    rng = np.random.default_rng(param.seed)
    perm = rng.permutation(l)
    dec_values = np.zeros(l)

    subparam = param.replace(
        probability=False, C=1.0, weight_label=(1, -1), weight=(Cp, Cn),
        n_jobs=1, verbose=False,
    )
    for begin, end in _fold_bounds(l, PROBABILITY_FOLDS):
        if is_cancelled(cancel):
            return None
        test = perm[begin:end]
        if len(test) == 0:
            continue
        train_idx = np.concatenate([perm[:begin], perm[end:]])
        sub = problem.subset(train_idx)
        p_count = int(np.sum(sub.y > 0))
        n_count = sub.l - p_count

        if p_count == 0 and n_count == 0:
            dec_values[test] = 0.0
        elif n_count == 0:
            dec_values[test] = 1.0
        elif p_count == 0:
            dec_values[test] = -1.0
        else:
            submodel = _train(sub, subparam, cancel)
            dec = decision_matrix(submodel, problem.x[test])[:, 0]
            dec_values[test] = dec * submodel.labels[0]

    if is_cancelled(cancel):
        return None
    return sigmoid_train(dec_values, problem.y, verbose=param.verbose)


def svr_probability(problem: SVMProblem, param: SVMParameter, cancel=None) -> Optional[float]:
    """
    Масштаб Лапласа для остатков регрессии по 5-fold кросс-валидации.

    Returns:
        sigma или None, если обучение отменено
    """
    subparam = param.replace(probability=False, n_jobs=1, verbose=False)
    predicted = _cross_validation(problem, subparam, PROBABILITY_FOLDS, cancel)
    if predicted is None:
        return None
    sigma = laplace_scale(problem.y - predicted)
    if param.verbose:
        print("Prob. model for test data: target value = predicted value + z,\n"
              f"z: Laplace distribution e^(-|z|/sigma)/(2sigma),sigma= {sigma:.6f}")
    return sigma


def get_svr_probability(model: SVMModel) -> float:
    """Масштаб распределения Лапласа регрессионной модели."""
    if model.kind != ModelKind.REGRESSION or model.prob_a is None:
        raise ProbabilityModelError(
            "model doesn't contain information for SVR probability inference"
        )
    return float(model.prob_a[0])


# =============================================================================
# Кросс-валидация
# =============================================================================

def _stratified_folds(y, n_fold, rng):
    groups = group_classes(y)
    folds = [[] for _ in range(n_fold)]
    for c in range(groups.n_class):
        members = groups.perm[groups.start[c]:groups.start[c] + groups.count[c]].copy()
        rng.shuffle(members)
        for i, (begin, end) in enumerate(_fold_bounds(len(members), n_fold)):
            folds[i].extend(members[begin:end])
    return [np.array(sorted(f), dtype=np.int64) for f in folds]


def _cross_validation(problem: SVMProblem, param: SVMParameter, n_fold: int,
                      cancel=None) -> Optional[np.ndarray]:
    l = problem.l
    n_fold = min(n_fold, l)
    rng = np.random.default_rng(param.seed)
    classification = param.is_classification

    if classification and n_fold < l:
        folds = _stratified_folds(problem.y, n_fold, rng)
    else:
        perm = rng.permutation(l)
        folds = [np.sort(perm[begin:end]) for begin, end in _fold_bounds(l, n_fold)]

    target = np.zeros(l)
    for test in folds:
        if is_cancelled(cancel):
            return None
        if len(test) == 0:
            continue
        mask = np.ones(l, dtype=bool)
        mask[test] = False
        submodel = _train(problem.subset(np.flatnonzero(mask)), param, cancel)
        dec = decision_matrix(submodel, problem.x[test])
        if classification and param.probability and submodel.n_class > 1:
            probs = probability_matrix(submodel, dec)
            target[test] = submodel.labels[np.argmax(probs, axis=1)]
        else:
            target[test] = labels_from_decision(submodel, dec)
    if is_cancelled(cancel):
        return None
    return target


def cross_validation(problem: SVMProblem, param: SVMParameter, n_fold: int) -> np.ndarray:
    """
    Предсказания out-of-fold.

    Для классификации фолды стратифицированы по классам. n_fold > l
    сводится к leave-one-out.

    Returns:
        target: (l,), предсказание для каждого примера моделью, которая
            его не видела
    """
    if n_fold < 2:
        raise InvalidParameterError(f"n_fold должно быть >= 2, получено {n_fold}")
    check_parameter(problem, param)
    return _cross_validation(problem, param.resolve_gamma(problem.max_index), n_fold)


__all__ = [
    "train",
    "predict",
    "predict_values",
    "predict_probability",
    "cross_validation",
    "get_svr_probability",
    "serialize",
    "deserialize",
    "save_model",
    "load_model",
]
