"""
Сборка SVMModel из решений подзадач.
"""

from typing import List, Optional

import numpy as np

from .formulations import DecisionFunction
from .model import SVMModel
from .multiclass import ClassGroups, PairResult, class_pairs


def build_classification_model(param, problem, groups: ClassGroups,
                               results: List[PairResult]) -> SVMModel:
    """
    Модель one-vs-one.

    Опорный вектор - пример, у которого ненулевой коэффициент хотя бы в
    одной паре. Векторы идут блоками по классам в порядке groups.perm.
    """
    n_class = groups.n_class
    start, count = groups.start, groups.count
    l = problem.l
    pairs = class_pairs(n_class)

    nonzero = np.zeros(l, dtype=bool)
    for (i, j), result in zip(pairs, results):
        alpha = result.decision.alpha
        ci = count[i]
        nonzero[start[i]:start[i] + ci] |= np.abs(alpha[:ci]) > 0
        nonzero[start[j]:start[j] + count[j]] |= np.abs(alpha[ci:]) > 0

    n_sv = np.array([np.sum(nonzero[start[c]:start[c] + count[c]]) for c in range(n_class)],
                    dtype=np.int64)
    nz_start = np.concatenate([[0], np.cumsum(n_sv)[:-1]]).astype(np.int64)
    total_sv = int(np.sum(n_sv))

    sv_coef = np.zeros((max(n_class - 1, 0), total_sv))
    for (i, j), result in zip(pairs, results):
        alpha = result.decision.alpha
        ci = count[i]
        mask_i = nonzero[start[i]:start[i] + ci]
        mask_j = nonzero[start[j]:start[j] + count[j]]
        sv_coef[j - 1, nz_start[i]:nz_start[i] + n_sv[i]] = alpha[:ci][mask_i]
        sv_coef[i, nz_start[j]:nz_start[j] + n_sv[j]] = alpha[ci:][mask_j]

    prob_a = prob_b = None
    # после отмены калибровка части пар не выполнена: модель без вероятностей
    if param.probability and results and all(r.prob_a is not None for r in results):
        prob_a = np.array([r.prob_a for r in results])
        prob_b = np.array([r.prob_b for r in results])

    if param.verbose:
        print(f"Total nSV = {total_sv}")

    sv_rows = groups.perm[nonzero]
    return SVMModel(
        param=param,
        n_class=n_class,
        labels=groups.labels,
        support_vectors=problem.x[sv_rows],
        sv_coef=sv_coef,
        rho=np.array([r.decision.rho for r in results]),
        n_sv=n_sv,
        sv_indices=sv_rows + 1,
        prob_a=prob_a,
        prob_b=prob_b,
        reports=tuple(r.decision.report for r in results),
    )


def build_single_model(param, problem, decision: DecisionFunction,
                       prob_a: Optional[float] = None) -> SVMModel:
    """Модель one-class или регрессии: одна решающая функция."""
    nonzero = np.abs(decision.alpha) > 0
    rows = np.flatnonzero(nonzero)
    if param.verbose:
        print(f"Total nSV = {len(rows)}")
    return SVMModel(
        param=param,
        n_class=2,
        labels=np.array([], dtype=np.int64),
        support_vectors=problem.x[rows],
        sv_coef=decision.alpha[nonzero].reshape(1, -1),
        rho=np.array([decision.rho]),
        n_sv=np.array([], dtype=np.int64),
        sv_indices=rows + 1,
        prob_a=None if prob_a is None else np.array([prob_a]),
        reports=(decision.report,),
    )
