"""
Пять формулировок SVM как частные случаи общей двойственной задачи.

    C-SVC:        min 1/2 α^T Q α - e^T α,      0 ≤ α_i ≤ C_i,  y^T α = 0
    nu-SVC:       min 1/2 α^T Q α,              0 ≤ α_i ≤ 1,    y^T α = 0, e^T α = nu·l
    one-class:    min 1/2 α^T K α,              0 ≤ α_i ≤ 1,    e^T α = nu·l
    epsilon-SVR:  удвоенная задача (α, α*), p_i = eps ∓ y_i
    nu-SVR:       удвоенная задача с ограничением e^T(α + α*) = C·nu·l

Начальные приближения и масштабирование результата как в LIBSVM.
"""

from dataclasses import dataclass

import numpy as np

from .parameter import SvmType
from .solver import NuSolver, OneClassQ, SVCQ, SVRQ, SolutionInfo, Solver, SolverReport


@dataclass
class DecisionFunction:
    """Решающая функция одной подзадачи: коэффициенты α_i y_i и rho."""
    alpha: np.ndarray
    rho: float
    report: SolverReport


# Нижняя граница лимита итераций, как в LIBSVM
MIN_MAX_ITER = 10_000_000


def _max_iter(param, n_variables):
    return max(MIN_MAX_ITER, int(param.max_iter_factor) * max(n_variables, 1))


def _signs(y):
    return np.where(np.asarray(y) > 0, 1.0, -1.0)


def solve_c_svc(problem, param, Cp, Cn, cancel=None) -> SolutionInfo:
    l = problem.l
    y = _signs(problem.y)
    alpha = np.zeros(l)
    p = -np.ones(l)
    C = np.where(y > 0, Cp, Cn)

    solver = Solver(verbose=param.verbose, cancel=cancel)
    si = solver.solve(l, SVCQ(problem.x, param, y), p, y, alpha, C,
                      param.eps, param.shrinking, _max_iter(param, l))

    if param.verbose and Cp == Cn:
        print(f"nu = {np.sum(si.alpha) / (Cp * l):.6f}")

    si.alpha = si.alpha * y
    return si


def solve_nu_svc(problem, param, cancel=None) -> SolutionInfo:
    l = problem.l
    y = _signs(problem.y)
    nu = param.nu

    # Допустимое начало: по nu·l/2 на каждый знак, слева направо
    sum_pos = nu * l / 2.0
    sum_neg = nu * l / 2.0
    alpha = np.zeros(l)
    for i in range(l):
        if y[i] > 0:
            alpha[i] = min(1.0, sum_pos)
            sum_pos -= alpha[i]
        else:
            alpha[i] = min(1.0, sum_neg)
            sum_neg -= alpha[i]

    solver = NuSolver(verbose=param.verbose, cancel=cancel)
    si = solver.solve(l, SVCQ(problem.x, param, y), np.zeros(l), y, alpha, np.ones(l),
                      param.eps, param.shrinking, _max_iter(param, l))

    r = si.r
    if param.verbose:
        print(f"C = {1.0 / r:.6f}")

    si.alpha = si.alpha * y / r
    si.rho /= r
    si.objective /= r * r
    si.upper_bound_p = 1.0 / r
    si.upper_bound_n = 1.0 / r
    return si


def solve_one_class(problem, param, cancel=None) -> SolutionInfo:
    l = problem.l
    n = int(param.nu * l)

    alpha = np.zeros(l)
    alpha[:n] = 1.0
    if n < l:
        alpha[n] = param.nu * l - n

    solver = Solver(verbose=param.verbose, cancel=cancel)
    return solver.solve(l, OneClassQ(problem.x, param), np.zeros(l), np.ones(l), alpha,
                        np.ones(l), param.eps, param.shrinking, _max_iter(param, l))


def solve_epsilon_svr(problem, param, cancel=None) -> SolutionInfo:
    l = problem.l
    target = problem.y

    alpha2 = np.zeros(2 * l)
    linear_term = np.concatenate([param.p - target, param.p + target])
    y2 = np.concatenate([np.ones(l), -np.ones(l)])

    solver = Solver(verbose=param.verbose, cancel=cancel)
    si = solver.solve(2 * l, SVRQ(problem.x, param), linear_term, y2, alpha2,
                      np.full(2 * l, param.C), param.eps, param.shrinking,
                      _max_iter(param, 2 * l))

    si.alpha = si.alpha[:l] - si.alpha[l:]
    if param.verbose:
        print(f"nu = {np.sum(np.abs(si.alpha)) / (param.C * l):.6f}")
    return si


def solve_nu_svr(problem, param, cancel=None) -> SolutionInfo:
    l = problem.l
    target = problem.y
    C = param.C

    alpha2 = np.zeros(2 * l)
    remaining = C * param.nu * l / 2.0
    for i in range(l):
        alpha2[i] = alpha2[i + l] = min(remaining, C)
        remaining -= alpha2[i]

    linear_term = np.concatenate([-target, target])
    y2 = np.concatenate([np.ones(l), -np.ones(l)])

    solver = NuSolver(verbose=param.verbose, cancel=cancel)
    si = solver.solve(2 * l, SVRQ(problem.x, param), linear_term, y2, alpha2,
                      np.full(2 * l, C), param.eps, param.shrinking,
                      _max_iter(param, 2 * l))

    if param.verbose:
        print(f"epsilon = {-si.r:.6f}")
    si.alpha = si.alpha[:l] - si.alpha[l:]
    return si


def train_one(problem, param, Cp: float = 0.0, Cn: float = 0.0, cancel=None) -> DecisionFunction:
    """
    Обучает одну решающую функцию.

    Args:
        problem: Подзадача (для классификации метки ±1)
        param: Параметры с разрешённой gamma
        Cp, Cn: Верхние границы для y = +1 и y = -1 (только C-SVC)
        cancel: Объект с is_set() для кооперативной отмены

    Returns:
        DecisionFunction
    """
    svm_type = SvmType(param.svm_type)
    if svm_type == SvmType.C_SVC:
        si = solve_c_svc(problem, param, Cp, Cn, cancel)
    elif svm_type == SvmType.NU_SVC:
        si = solve_nu_svc(problem, param, cancel)
    elif svm_type == SvmType.ONE_CLASS:
        si = solve_one_class(problem, param, cancel)
    elif svm_type == SvmType.EPSILON_SVR:
        si = solve_epsilon_svr(problem, param, cancel)
    else:
        si = solve_nu_svr(problem, param, cancel)

    if param.verbose:
        y = problem.y
        abs_alpha = np.abs(si.alpha)
        n_sv = int(np.sum(abs_alpha > 0))
        n_bsv = int(np.sum(((y > 0) & (abs_alpha >= si.upper_bound_p)) |
                           ((y <= 0) & (abs_alpha >= si.upper_bound_n))))
        print(f"obj = {si.objective:.6f}, rho = {si.rho:.6f}")
        print(f"nSV = {n_sv}, nBSV = {n_bsv}")

    return DecisionFunction(alpha=si.alpha, rho=float(si.rho), report=si.report)
