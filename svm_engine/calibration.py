"""
Калибровка вероятностей.

- Platt, J. (2000). "Probabilistic Outputs for Support Vector Machines"
- Lin, H.-T., Lin, C.-J., & Weng, R. C. (2007). "A note on Platt's
  probabilistic outputs for support vector machines" (метод Ньютона с
  поиском шага, устойчивые формулы)
- Wu, T.-F., Lin, C.-J., & Weng, R. C. (2004). "Probability Estimates for
  Multi-class Classification by Pairwise Coupling" (метод 2)

P(y = 1 | f) = 1 / (1 + exp(A·f + B))
"""

import warnings

import numpy as np


def _sigmoid_loss(dec_values, targets, A, B):
    """Отрицательное лог-правдоподобие без переполнения exp."""
    fApB = dec_values * A + B
    pos = fApB >= 0
    loss = np.empty_like(fApB)
    loss[pos] = targets[pos] * fApB[pos] + np.log1p(np.exp(-fApB[pos]))
    neg = ~pos
    loss[neg] = (targets[neg] - 1.0) * fApB[neg] + np.log1p(np.exp(fApB[neg]))
    return float(np.sum(loss))


def sigmoid_train(dec_values: np.ndarray, labels: np.ndarray, verbose: bool = False):
    """
    Подбор (A, B) сигмоиды по решающим значениям.

    Args:
        dec_values: Решающие значения f(x_i) (из кросс-валидации)
        labels: Метки, > 0 - положительный класс

    Returns:
        (A, B)
    """
    dec_values = np.asarray(dec_values, dtype=np.float64)
    labels = np.asarray(labels)
    prior1 = float(np.sum(labels > 0))
    prior0 = float(len(labels) - prior1)

    max_iter = 100       # Максимум итераций Ньютона
    min_step = 1e-10     # Минимальный шаг line search
    sigma = 1e-12        # Регуляризация гессиана
    eps = 1e-5

    hi_target = (prior1 + 1.0) / (prior1 + 2.0)
    lo_target = 1.0 / (prior0 + 2.0)
    targets = np.where(labels > 0, hi_target, lo_target)

    A = 0.0
    B = np.log((prior0 + 1.0) / (prior1 + 1.0))
    fval = _sigmoid_loss(dec_values, targets, A, B)

    for _ in range(max_iter):
        # Градиент и гессиан
        fApB = dec_values * A + B
        p = np.empty_like(fApB)
        q = np.empty_like(fApB)
        pos = fApB >= 0
        e = np.exp(-fApB[pos])
        p[pos] = e / (1.0 + e)
        q[pos] = 1.0 / (1.0 + e)
        e = np.exp(fApB[~pos])
        p[~pos] = 1.0 / (1.0 + e)
        q[~pos] = e / (1.0 + e)

        d2 = p * q
        h11 = sigma + np.sum(dec_values * dec_values * d2)
        h22 = sigma + np.sum(d2)
        h21 = np.sum(dec_values * d2)
        d1 = targets - p
        g1 = np.sum(dec_values * d1)
        g2 = np.sum(d1)

        # Критерий остановки
        if abs(g1) < eps and abs(g2) < eps:
            break

        # Направление Ньютона: -inv(H) * g
        det = h11 * h22 - h21 * h21
        dA = -(h22 * g1 - h21 * g2) / det
        dB = -(-h21 * g1 + h11 * g2) / det
        gd = g1 * dA + g2 * dB

        stepsize = 1.0
        while stepsize >= min_step:
            new_A = A + stepsize * dA
            new_B = B + stepsize * dB
            new_f = _sigmoid_loss(dec_values, targets, new_A, new_B)
            if new_f < fval + 0.0001 * stepsize * gd:
                A, B, fval = new_A, new_B, new_f
                break
            stepsize /= 2.0

        if stepsize < min_step:
            warnings.warn("Platt scaling: line search fails")
            break
    else:
        if verbose:
            print("Platt scaling: reaching maximal iterations")

    return float(A), float(B)


def sigmoid_predict(dec_value: float, A: float, B: float) -> float:
    """P(y = 1 | f) для одного решающего значения."""
    fApB = dec_value * A + B
    if fApB >= 0:
        return float(np.exp(-fApB) / (1.0 + np.exp(-fApB)))
    return float(1.0 / (1.0 + np.exp(fApB)))


def multiclass_probability(pairwise: np.ndarray) -> np.ndarray:
    """
    Вероятности классов из попарных r_ij = P(i | i or j, x).

    Решает min_p 1/2 p^T Q p при Σ p = 1 итерациями по координатам
    (Wu, Lin & Weng, метод 2).

    Args:
        pairwise: (k, k), r[i, j] + r[j, i] = 1

    Returns:
        p: (k,), сумма равна 1
    """
    r = np.asarray(pairwise, dtype=np.float64)
    k = r.shape[0]
    max_iter = max(100, k)
    eps = 0.005 / k

    Q = -r.T * r
    np.fill_diagonal(Q, 0.0)
    Q[np.diag_indices(k)] = np.sum(r.T ** 2, axis=1) - np.diag(r) ** 2

    p = np.full(k, 1.0 / k)
    for _ in range(max_iter):
        # Условие остановки: Qp_t = pQp для всех t
        Qp = Q @ p
        pQp = float(p @ Qp)
        if np.max(np.abs(Qp - pQp)) < eps:
            break
        for t in range(k):
            diff = (-Qp[t] + pQp) / Q[t, t]
            p[t] += diff
            pQp = (pQp + diff * (diff * Q[t, t] + 2.0 * Qp[t])) / (1.0 + diff) / (1.0 + diff)
            Qp = (Qp + diff * Q[t, :]) / (1.0 + diff)
            p /= (1.0 + diff)

    return p / np.sum(p)


def laplace_scale(residuals: np.ndarray) -> float:
    """
    Масштаб распределения Лапласа для остатков SVR: z ~ e^(-|z|/σ) / (2σ).

    Остатки больше 5·std считаются выбросами и не учитываются.
    """
    abs_res = np.abs(np.asarray(residuals, dtype=np.float64))
    mae = float(np.mean(abs_res))
    std = np.sqrt(2.0 * mae * mae)
    inliers = abs_res[abs_res <= 5.0 * std]
    return float(np.mean(inliers)) if len(inliers) else mae
