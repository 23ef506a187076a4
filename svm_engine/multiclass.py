"""
One-vs-one: разбиение K классов на K(K-1)/2 бинарных подзадач.

Метки сортируются по возрастанию; в паре (i, j), i < j, класс i получает
метку +1, класс j - метку -1. Подзадачи независимы и при n_jobs > 1
обучаются в пуле потоков (numba-ядра отпускают GIL). Результаты собираются
в порядке пар, поэтому модель не зависит от n_jobs.
"""

import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
from tqdm.auto import tqdm

from .formulations import DecisionFunction, train_one
from .problem import SVMProblem
from .solver import is_cancelled


@dataclass(frozen=True, eq=False)
class ClassGroups:
    """
    Обучающая выборка, сгруппированная по классам.

    Attributes:
        labels: Метки классов по возрастанию
        start: Начало блока каждого класса в perm
        count: Размер каждого класса
        perm: Номера примеров, упорядоченные по классам (внутри класса -
            в исходном порядке)
    """
    labels: np.ndarray
    start: np.ndarray
    count: np.ndarray
    perm: np.ndarray

    @property
    def n_class(self) -> int:
        return len(self.labels)


@dataclass
class PairResult:
    decision: DecisionFunction
    prob_a: Optional[float] = None
    prob_b: Optional[float] = None


def group_classes(y) -> ClassGroups:
    y = np.asarray(y, dtype=np.float64).astype(np.int64)
    labels = np.unique(y)
    label_index = np.searchsorted(labels, y)
    perm = np.argsort(label_index, kind="stable")
    count = np.bincount(label_index, minlength=len(labels))
    start = np.concatenate([[0], np.cumsum(count)[:-1]]).astype(np.int64)
    return ClassGroups(labels=labels, start=start, count=count, perm=perm)


def class_pairs(n_class: int) -> List[Tuple[int, int]]:
    return [(i, j) for i in range(n_class) for j in range(i + 1, n_class)]


def weighted_costs(labels, param) -> np.ndarray:
    """C каждого класса с учётом weight_label/weight."""
    C = np.full(len(labels), float(param.C))
    for label, weight in zip(param.weight_label, param.weight):
        found = np.flatnonzero(labels == label)
        if len(found) == 0:
            warnings.warn(f"Class label {label} specified in weight is not found")
            continue
        C[found[0]] *= weight
    return C


def vote(dec_values, n_class: int) -> int:
    """
    Индекс класса-победителя по голосам пар.

    dec > 0 - голос за первый класс пары; при равенстве голосов
    побеждает меньший индекс.
    """
    votes = np.zeros(n_class, dtype=np.int64)
    for p, (i, j) in enumerate(class_pairs(n_class)):
        if dec_values[p] > 0:
            votes[i] += 1
        else:
            votes[j] += 1
    return int(np.argmax(votes))


def train_pairs(problem: SVMProblem, param, groups: ClassGroups, weighted_C,
                cancel=None, probability_fn: Optional[Callable] = None) -> List[PairResult]:
    """
    Обучает все пары классов.

    Args:
        problem: Исходная выборка
        param: Параметры с разрешённой gamma
        groups: Результат group_classes
        weighted_C: C каждого класса
        cancel: Объект с is_set(), передаётся в каждый солвер
        probability_fn: (sub_problem, param, Cp, Cn, cancel) -> (A, B) или
            None после отмены; вызывается, если param.probability

    Returns:
        Результаты в порядке class_pairs
    """
    x = problem.x[groups.perm]
    pairs = class_pairs(groups.n_class)

    def fit_pair(pair):
        i, j = pair
        si, ci = groups.start[i], groups.count[i]
        sj, cj = groups.start[j], groups.count[j]
        idx = np.concatenate([np.arange(si, si + ci), np.arange(sj, sj + cj)])
        sub = SVMProblem(x[idx], np.concatenate([np.ones(ci), -np.ones(cj)]))

        result = PairResult(decision=None)
        if param.probability and probability_fn is not None and not is_cancelled(cancel):
            calibration = probability_fn(sub, param, weighted_C[i], weighted_C[j], cancel)
            if calibration is not None:
                result.prob_a, result.prob_b = calibration
        result.decision = train_one(sub, param, weighted_C[i], weighted_C[j], cancel)
        return result

    desc = f"Training SVM pairs ({groups.n_class} classes)"
    if param.n_jobs > 1 and len(pairs) > 1:
        with ThreadPoolExecutor(max_workers=param.n_jobs) as executor:
            return list(tqdm(executor.map(fit_pair, pairs), total=len(pairs),
                             desc=desc, disable=not param.verbose))
    return [fit_pair(pair) for pair in tqdm(pairs, desc=desc, disable=not param.verbose)]
