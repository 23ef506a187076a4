"""
Выбор рабочего множества (пары переменных) для SMO.

WSS3 из Fan, Chen & Lin (2005), "Working Set Selection Using Second Order
Information for Training SVM":

    i = argmax { -y_t G_t : t in I_up(α) }
    j = argmin { -b_it^2 / a_it : t in I_low(α), -y_t G_t < -y_i G_i }

где a_it = K_ii + K_tt - 2 K_it, b_it = -y_i G_i + y_t G_t.

    I_up  = { t : α_t < C_t, y_t = +1  или  α_t > 0, y_t = -1 }
    I_low = { t : α_t < C_t, y_t = -1  или  α_t > 0, y_t = +1 }

Выбор детерминирован: кандидаты перебираются по возрастанию индекса,
сравнения строгие, поэтому при равенстве побеждает меньший индекс.

Выбор разбит на два шага, потому что между ними нужна строка Q_i из кэша.
"""

import numpy as np
from numba import njit

# Замена неположительного a_it (вырожденная диагональ ядра)
TAU = 1e-12


@njit(cache=True, nogil=True)
def select_i(active, y, G, alpha, C):
    """
    Шаг 1: i = argmax_{t in I_up} -y_t G_t.

    Returns:
        (i, Gmax): i = -1, если I_up пусто
    """
    gmax = -np.inf
    gmax_idx = -1
    for k in range(active.shape[0]):
        t = active[k]
        if y[t] > 0:
            if alpha[t] < C[t]:
                if -G[t] > gmax:
                    gmax = -G[t]
                    gmax_idx = t
        else:
            if alpha[t] > 0.0:
                if G[t] > gmax:
                    gmax = G[t]
                    gmax_idx = t
    return gmax_idx, gmax


@njit(cache=True, nogil=True)
def select_j(active, y, G, alpha, C, QD, Q_i, i, gmax):
    """
    Шаг 2: j по второму порядку среди I_low.

    Returns:
        (j, Gmax2): j = -1, если подходящего j нет; Gmax + Gmax2 - нарушение KKT
    """
    gmax2 = -np.inf
    gmin_idx = -1
    obj_diff_min = np.inf
    for k in range(active.shape[0]):
        j = active[k]
        if y[j] > 0:
            if alpha[j] > 0.0:
                grad_diff = gmax + G[j]
                if G[j] > gmax2:
                    gmax2 = G[j]
                if grad_diff > 0.0:
                    quad_coef = QD[i] + QD[j] - 2.0 * y[i] * Q_i[j]
                    if quad_coef > 0.0:
                        obj_diff = -(grad_diff * grad_diff) / quad_coef
                    else:
                        obj_diff = -(grad_diff * grad_diff) / TAU
                    if obj_diff < obj_diff_min:
                        gmin_idx = j
                        obj_diff_min = obj_diff
        else:
            if alpha[j] < C[j]:
                grad_diff = gmax - G[j]
                if -G[j] > gmax2:
                    gmax2 = -G[j]
                if grad_diff > 0.0:
                    quad_coef = QD[i] + QD[j] + 2.0 * y[i] * Q_i[j]
                    if quad_coef > 0.0:
                        obj_diff = -(grad_diff * grad_diff) / quad_coef
                    else:
                        obj_diff = -(grad_diff * grad_diff) / TAU
                    if obj_diff < obj_diff_min:
                        gmin_idx = j
                        obj_diff_min = obj_diff
    return gmin_idx, gmax2


# =============================================================================
# Вариант для nu-SVM: i и j берутся из одного класса
# =============================================================================

@njit(cache=True, nogil=True)
def select_i_nu(active, y, G, alpha, C):
    """
    Шаг 1 для nu-SVM: отдельные кандидаты для y = +1 и y = -1.

    Returns:
        (ip, Gmaxp, in_, Gmaxn)
    """
    gmaxp = -np.inf
    gmaxp_idx = -1
    gmaxn = -np.inf
    gmaxn_idx = -1
    for k in range(active.shape[0]):
        t = active[k]
        if y[t] > 0:
            if alpha[t] < C[t]:
                if -G[t] > gmaxp:
                    gmaxp = -G[t]
                    gmaxp_idx = t
        else:
            if alpha[t] > 0.0:
                if G[t] > gmaxn:
                    gmaxn = G[t]
                    gmaxn_idx = t
    return gmaxp_idx, gmaxp, gmaxn_idx, gmaxn


@njit(cache=True, nogil=True)
def select_j_nu(active, y, G, alpha, C, QD, Q_ip, Q_in, ip, in_, gmaxp, gmaxn):
    """
    Шаг 2 для nu-SVM.

    Returns:
        (j, gap): gap = max(Gmaxp + Gmaxp2, Gmaxn + Gmaxn2)
    """
    gmaxp2 = -np.inf
    gmaxn2 = -np.inf
    gmin_idx = -1
    obj_diff_min = np.inf
    for k in range(active.shape[0]):
        j = active[k]
        if y[j] > 0:
            if alpha[j] > 0.0:
                grad_diff = gmaxp + G[j]
                if G[j] > gmaxp2:
                    gmaxp2 = G[j]
                if grad_diff > 0.0:
                    quad_coef = QD[ip] + QD[j] - 2.0 * Q_ip[j]
                    if quad_coef > 0.0:
                        obj_diff = -(grad_diff * grad_diff) / quad_coef
                    else:
                        obj_diff = -(grad_diff * grad_diff) / TAU
                    if obj_diff < obj_diff_min:
                        gmin_idx = j
                        obj_diff_min = obj_diff
        else:
            if alpha[j] < C[j]:
                grad_diff = gmaxn - G[j]
                if -G[j] > gmaxn2:
                    gmaxn2 = -G[j]
                if grad_diff > 0.0:
                    quad_coef = QD[in_] + QD[j] - 2.0 * Q_in[j]
                    if quad_coef > 0.0:
                        obj_diff = -(grad_diff * grad_diff) / quad_coef
                    else:
                        obj_diff = -(grad_diff * grad_diff) / TAU
                    if obj_diff < obj_diff_min:
                        gmin_idx = j
                        obj_diff_min = obj_diff
    return gmin_idx, max(gmaxp + gmaxp2, gmaxn + gmaxn2)
