"""
Sequential Minimal Optimization (SMO) солвер общей двойственной задачи.

Алгоритм SMO основан на работе:
- Platt, J. (1998). "Sequential Minimal Optimization: A Fast Algorithm for Training SVMs"
- Fan, R.-E., Chen, P.-H., & Lin, C.-J. (2005). "Working Set Selection Using Second Order Information"
- Chang, C.-C. & Lin, C.-J. (2011). "LIBSVM: A library for support vector machines"

Двойственная задача:
    min_α 1/2 α^T Q α + p^T α

    s.t. y^T α = Δ          (ограничение равенства)
         0 ≤ α_i ≤ C_i      (box constraints)

    где Q_ij = y_i y_j K(x_i, x_j) (для one-class и SVR - свои Q, см. ниже)

Состояния: INITIALIZING -> ITERATING <-> SHRUNK -> CONVERGED
                                                | MAX_ITER_EXCEEDED
                                                | CANCELLED

Оптимизации:
- Строки Q вычисляются на лету и хранятся в LRU-кэше (KernelCache)
- Shrinking: переменные на границе, которые не сдвинутся, исключаются
  из активного множества; перед финальной проверкой градиент
  восстанавливается полностью
"""

import warnings
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numba import njit

from .cache import KernelCache
from .errors import ConvergenceWarning
from .kernel import Kernel
from .working_set import TAU, select_i, select_i_nu, select_j, select_j_nu


class SolverState(str, Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    SHRUNK = "shrunk"
    CONVERGED = "converged"
    MAX_ITER_EXCEEDED = "max_iter_exceeded"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SolverReport:
    """Итог одного запуска солвера (сохраняется в модели)."""
    state: SolverState
    n_iterations: int
    objective: float
    gap: float

    @property
    def converged(self) -> bool:
        return self.state == SolverState.CONVERGED


@dataclass
class SolutionInfo:
    """Результат работы SMO солвера."""
    alpha: np.ndarray          # Множители Лагранжа
    rho: float                 # Смещение со знаком минус: f(x) = Σ coef·K - rho
    objective: float           # Значение целевой функции
    upper_bound_p: float       # C для y = +1
    upper_bound_n: float       # C для y = -1
    report: SolverReport
    r: float = 0.0             # Только для nu-SVM


# =============================================================================
# Q-матрицы
# =============================================================================

class SVCQ:
    """Q_ij = y_i y_j K(x_i, x_j) для классификации."""

    def __init__(self, x, param, y):
        self.kernel = Kernel(x, param)
        self.y = np.asarray(y, dtype=np.float64)
        self.cache = KernelCache(param.cache_bytes)
        self.QD = self.kernel.diagonal()

    def get_Q(self, i: int) -> np.ndarray:
        return self.cache.get(i, self._compute_row)

    def _compute_row(self, i):
        return self.y[i] * self.y * self.kernel.row(i)


class OneClassQ:
    """Q_ij = K(x_i, x_j)."""

    def __init__(self, x, param):
        self.kernel = Kernel(x, param)
        self.cache = KernelCache(param.cache_bytes)
        self.QD = self.kernel.diagonal()

    def get_Q(self, i: int) -> np.ndarray:
        return self.cache.get(i, self.kernel.row)


class SVRQ:
    """
    Удвоенная задача регрессии: переменные α (k < l) и α* (k >= l).

    Q_ij = s_i s_j K(x_{i mod l}, x_{j mod l}), s = +1 для α, -1 для α*.
    Кэшируются строки ядра длины l, строка Q собирается из них.
    """

    def __init__(self, x, param):
        l = x.shape[0]
        self.l = l
        self.kernel = Kernel(x, param)
        self.cache = KernelCache(param.cache_bytes)
        self.sign = np.concatenate([np.ones(l), -np.ones(l)])
        self.index = np.concatenate([np.arange(l), np.arange(l)])
        kd = self.kernel.diagonal()
        self.QD = np.concatenate([kd, kd])

    def get_Q(self, i: int) -> np.ndarray:
        data = self.cache.get(int(self.index[i]), self.kernel.row)
        return self.sign[i] * self.sign * data[self.index]


# =============================================================================
# Аналитическое решение подзадачи для пары
# =============================================================================

@njit(cache=True, nogil=True)
def two_variable_update(y_i, y_j, QD_i, QD_j, Q_ij, G_i, G_j, alpha_i, alpha_j, C_i, C_j):
    """
    Оптимизация пары (α_i, α_j) в замкнутой форме с обрезкой по box и
    по прямой ограничения равенства.

    При неположительном a_ij (вырожденная диагональ ядра) шаг считается
    с a_ij = TAU.

    Returns:
        (new_alpha_i, new_alpha_j)
    """
    if y_i != y_j:
        quad_coef = QD_i + QD_j + 2.0 * Q_ij
        if quad_coef <= 0.0:
            quad_coef = TAU
        delta = (-G_i - G_j) / quad_coef
        diff = alpha_i - alpha_j
        alpha_i += delta
        alpha_j += delta

        if diff > 0.0:
            if alpha_j < 0.0:
                alpha_j = 0.0
                alpha_i = diff
        else:
            if alpha_i < 0.0:
                alpha_i = 0.0
                alpha_j = -diff
        if diff > C_i - C_j:
            if alpha_i > C_i:
                alpha_i = C_i
                alpha_j = C_i - diff
        else:
            if alpha_j > C_j:
                alpha_j = C_j
                alpha_i = C_j + diff
    else:
        quad_coef = QD_i + QD_j - 2.0 * Q_ij
        if quad_coef <= 0.0:
            quad_coef = TAU
        delta = (G_i - G_j) / quad_coef
        total = alpha_i + alpha_j
        alpha_i -= delta
        alpha_j += delta

        if total > C_i:
            if alpha_i > C_i:
                alpha_i = C_i
                alpha_j = total - C_i
        else:
            if alpha_j < 0.0:
                alpha_j = 0.0
                alpha_i = total
        if total > C_j:
            if alpha_j > C_j:
                alpha_j = C_j
                alpha_i = total - C_j
        else:
            if alpha_i < 0.0:
                alpha_i = 0.0
                alpha_j = total
    return alpha_i, alpha_j


# =============================================================================
# Основной класс солвера
# =============================================================================

def is_cancelled(cancel) -> bool:
    """Установлен ли флаг отмены (объект с is_set() или None)."""
    return cancel is not None and cancel.is_set()


class Solver:
    """
    SMO для задачи с одним ограничением равенства.

    Состояние (α, градиент, кэш) принадлежит одному запуску и не
    разделяется между потоками.
    """

    def __init__(self, verbose: bool = False, cancel=None):
        """
        Args:
            verbose: Выводить ход оптимизации
            cancel: Объект с методом is_set() (например threading.Event);
                проверяется на границе каждой итерации
        """
        self.verbose = verbose
        self.cancel = cancel
        self.state = SolverState.INITIALIZING

    # --- статусы переменных ---

    def _is_upper(self, idx):
        return self.alpha[idx] >= self.C[idx]

    def _is_lower(self, idx):
        return self.alpha[idx] <= 0.0

    def solve(self, l, Q, p, y, alpha, C, eps, shrinking, max_iter) -> SolutionInfo:
        """
        Решает двойственную задачу.

        Args:
            l: Число переменных
            Q: Q-матрица (SVCQ, OneClassQ, SVRQ)
            p: Линейный член (l,)
            y: Знаки ±1 (l,)
            alpha: Допустимое начальное приближение (l,)
            C: Верхние границы (l,)
            eps: Допуск критерия остановки
            shrinking: Использовать shrinking
            max_iter: Лимит итераций

        Returns:
            SolutionInfo
        """
        self.state = SolverState.INITIALIZING
        self.l = l
        self.Q = Q
        self.QD = Q.QD
        self.p = np.array(p, dtype=np.float64)
        self.y = np.array(y, dtype=np.float64)
        self.alpha = np.array(alpha, dtype=np.float64)
        self.C = np.array(C, dtype=np.float64)
        self.eps = eps
        self.active = np.arange(l, dtype=np.int64)
        self.unshrink = False
        self.gap = np.inf
        self._zero_row = np.zeros(l, dtype=np.float64)

        # Инициализация градиента: G = p + Q·α, G_bar = Σ_{α_i = C_i} C_i Q_i
        self.G = self.p.copy()
        self.G_bar = np.zeros(l, dtype=np.float64)
        for i in np.flatnonzero(self.alpha > 0.0):
            Q_i = Q.get_Q(i)
            self.G += self.alpha[i] * Q_i
            if self._is_upper(i):
                self.G_bar += self.C[i] * Q_i

        if self.verbose:
            print(f"SMO solver started: {l} variables, max_iter={max_iter}, shrinking={shrinking}")

        self.state = SolverState.ITERATING
        n_iter = 0
        counter = min(l, 1000) + 1

        while n_iter < max_iter:
            if is_cancelled(self.cancel):
                self.state = SolverState.CANCELLED
                break

            counter -= 1
            if counter == 0:
                counter = min(l, 1000)
                if shrinking:
                    self._do_shrinking()

            pair = self._select_working_set()
            if pair is None:
                # Финальная проверка на полном множестве
                self._reconstruct_gradient()
                self.active = np.arange(l, dtype=np.int64)
                self.state = SolverState.ITERATING
                if self.verbose:
                    print("*", end="")
                pair = self._select_working_set()
                if pair is None:
                    self.state = SolverState.CONVERGED
                    break
                counter = 1

            n_iter += 1
            self._update_pair(*pair)

            if self.verbose and n_iter % 1000 == 0:
                print(f"Iter {n_iter}: violation={self.gap:.6f}, "
                      f"active={len(self.active)}/{l}, "
                      f"cache_hit={self._cache_hit_rate():.2%}")

        if self.state in (SolverState.ITERATING, SolverState.SHRUNK):
            self.state = SolverState.MAX_ITER_EXCEEDED

        if self.state != SolverState.CONVERGED:
            if len(self.active) < l:
                self._reconstruct_gradient()
                self.active = np.arange(l, dtype=np.int64)
            if self.state == SolverState.MAX_ITER_EXCEEDED:
                warnings.warn(
                    f"SMO reached max_iter={max_iter} before convergence "
                    f"(violation={self.gap:.3g}); returning best solution found",
                    ConvergenceWarning,
                )
            else:
                warnings.warn(
                    f"SMO cancelled after {n_iter} iterations; returning best solution found",
                    ConvergenceWarning,
                )

        rho, r = self._calculate_rho()
        objective = float(np.dot(self.alpha, self.G + self.p) / 2.0)

        if self.verbose:
            print(f"\nSMO finished: {n_iter} iterations, state={self.state.value}, "
                  f"obj={objective:.6f}, rho={rho:.6f}")

        report = SolverReport(
            state=self.state,
            n_iterations=n_iter,
            objective=objective,
            gap=float(self.gap),
        )
        return SolutionInfo(
            alpha=self.alpha,
            rho=rho,
            objective=objective,
            upper_bound_p=float(self.C[self.y > 0].max()) if np.any(self.y > 0) else 0.0,
            upper_bound_n=float(self.C[self.y < 0].max()) if np.any(self.y < 0) else 0.0,
            report=report,
            r=r,
        )

    def _cache_hit_rate(self):
        cache = getattr(self.Q, "cache", None)
        return cache.hit_rate if cache is not None else 0.0

    # --- шаг оптимизации ---

    def _select_working_set(self):
        i, gmax = select_i(self.active, self.y, self.G, self.alpha, self.C)
        Q_i = self.Q.get_Q(i) if i != -1 else self._zero_row
        j, gmax2 = select_j(self.active, self.y, self.G, self.alpha, self.C,
                            self.QD, Q_i, i, gmax)
        self.gap = gmax + gmax2
        if self.gap < self.eps or j == -1:
            return None
        return int(i), int(j)

    def _update_pair(self, i, j):
        Q_i = self.Q.get_Q(i)
        Q_j = self.Q.get_Q(j)
        C_i, C_j = self.C[i], self.C[j]
        old_alpha_i, old_alpha_j = self.alpha[i], self.alpha[j]
        upper_i, upper_j = old_alpha_i >= C_i, old_alpha_j >= C_j

        alpha_i, alpha_j = two_variable_update(
            self.y[i], self.y[j], self.QD[i], self.QD[j], Q_i[j],
            self.G[i], self.G[j], old_alpha_i, old_alpha_j, C_i, C_j
        )
        self.alpha[i] = alpha_i
        self.alpha[j] = alpha_j

        # Обновляем градиент только для активных переменных
        delta_alpha_i = alpha_i - old_alpha_i
        delta_alpha_j = alpha_j - old_alpha_j
        act = self.active
        self.G[act] += Q_i[act] * delta_alpha_i + Q_j[act] * delta_alpha_j

        # G_bar меняется, только если переменная пересекла верхнюю границу
        if upper_i != (alpha_i >= C_i):
            self.G_bar += (-C_i if upper_i else C_i) * Q_i
        if upper_j != (alpha_j >= C_j):
            self.G_bar += (-C_j if upper_j else C_j) * Q_j

    # --- shrinking ---

    def _reconstruct_gradient(self):
        """Восстанавливает G для исключённых переменных."""
        if len(self.active) == self.l:
            return

        inactive_mask = np.ones(self.l, dtype=bool)
        inactive_mask[self.active] = False
        inactive = np.flatnonzero(inactive_mask)

        self.G[inactive] = self.G_bar[inactive] + self.p[inactive]

        act = self.active
        free = act[(self.alpha[act] > 0.0) & (self.alpha[act] < self.C[act])]
        if self.verbose and 2 * len(free) < len(act):
            print("\nWARNING: using shrinking=False may be faster")
        for i in free:
            Q_i = self.Q.get_Q(i)
            self.G[inactive] += self.alpha[i] * Q_i[inactive]

    def _unshrink_if_close(self, gap):
        if not self.unshrink and gap <= self.eps * 10:
            self.unshrink = True
            self._reconstruct_gradient()
            self.active = np.arange(self.l, dtype=np.int64)

    def _shrink(self, shrunk_mask):
        old_size = len(self.active)
        self.active = self.active[~shrunk_mask]
        if len(self.active) < self.l:
            self.state = SolverState.SHRUNK
        else:
            self.state = SolverState.ITERATING
        if self.verbose and old_size != len(self.active):
            print(f"\nShrinking: {old_size} -> {len(self.active)} active")

    def _do_shrinking(self):
        act = self.active
        G, y = self.G[act], self.y[act]
        pos = y > 0
        upper = self._is_upper(act)
        lower = self._is_lower(act)

        # Gmax1 = max { -y_t G_t : t in I_up },  Gmax2 = max { y_t G_t : t in I_low }
        up_mask = np.where(pos, ~upper, ~lower)
        low_mask = np.where(pos, ~lower, ~upper)
        yG = np.where(pos, G, -G)
        gmax1 = np.max(-yG[up_mask]) if up_mask.any() else -np.inf
        gmax2 = np.max(yG[low_mask]) if low_mask.any() else -np.inf

        self._unshrink_if_close(gmax1 + gmax2)

        act = self.active
        G, pos = self.G[act], self.y[act] > 0
        upper = self._is_upper(act)
        lower = self._is_lower(act)
        shrunk = (upper & np.where(pos, -G > gmax1, -G > gmax2)) | \
                 (lower & np.where(pos, G > gmax2, G > gmax1))
        self._shrink(shrunk)

    # --- смещение ---

    def _calculate_rho(self):
        yG = self.y * self.G
        upper = self.alpha >= self.C
        lower = self.alpha <= 0.0
        free = ~upper & ~lower

        if free.any():
            return float(np.mean(yG[free])), 0.0

        # Нет свободных переменных - середина допустимого интервала
        ub_mask = (upper & (self.y < 0)) | (lower & (self.y > 0))
        lb_mask = (upper & (self.y > 0)) | (lower & (self.y < 0))
        ub = np.min(yG[ub_mask]) if ub_mask.any() else np.inf
        lb = np.max(yG[lb_mask]) if lb_mask.any() else -np.inf
        return float(_midpoint(ub, lb)), 0.0


class NuSolver(Solver):
    """
    SMO для nu-SVC и nu-SVR: два ограничения равенства (по одному на знак y),
    поэтому пара всегда берётся из одного класса.
    """

    def _select_working_set(self):
        ip, gmaxp, in_, gmaxn = select_i_nu(self.active, self.y, self.G, self.alpha, self.C)
        Q_ip = self.Q.get_Q(ip) if ip != -1 else self._zero_row
        Q_in = self.Q.get_Q(in_) if in_ != -1 else self._zero_row
        j, gap = select_j_nu(self.active, self.y, self.G, self.alpha, self.C,
                             self.QD, Q_ip, Q_in, ip, in_, gmaxp, gmaxn)
        self.gap = gap
        if gap < self.eps or j == -1:
            return None
        i = ip if self.y[j] > 0 else in_
        return int(i), int(j)

    def _do_shrinking(self):
        act = self.active
        G, pos = self.G[act], self.y[act] > 0
        neg = ~pos
        not_upper = ~self._is_upper(act)
        not_lower = ~self._is_lower(act)

        gmax1 = _masked_max(-G, pos & not_upper)
        gmax2 = _masked_max(G, pos & not_lower)
        gmax3 = _masked_max(G, neg & not_lower)
        gmax4 = _masked_max(-G, neg & not_upper)

        self._unshrink_if_close(max(gmax1 + gmax2, gmax3 + gmax4))

        act = self.active
        G, pos = self.G[act], self.y[act] > 0
        upper = self._is_upper(act)
        lower = self._is_lower(act)
        shrunk = (upper & np.where(pos, -G > gmax1, -G > gmax4)) | \
                 (lower & np.where(pos, G > gmax2, G > gmax3))
        self._shrink(shrunk)

    def _calculate_rho(self):
        upper = self.alpha >= self.C
        lower = self.alpha <= 0.0
        free = ~upper & ~lower

        G = self.G
        r_values = []
        for sign_mask in (self.y > 0, self.y < 0):
            free_s = free & sign_mask
            if free_s.any():
                r_values.append(float(np.mean(G[free_s])))
            else:
                ub = _masked_min(G, lower & sign_mask)
                lb = _masked_max(G, upper & sign_mask)
                r_values.append(float(_midpoint(ub, lb)))

        r1, r2 = r_values
        return (r1 - r2) / 2.0, (r1 + r2) / 2.0


def _masked_max(values, mask):
    return np.max(values[mask]) if mask.any() else -np.inf


def _masked_min(values, mask):
    return np.min(values[mask]) if mask.any() else np.inf


def _midpoint(ub, lb):
    if np.isinf(ub) and np.isinf(lb):
        return 0.0
    if np.isinf(ub):
        return lb
    if np.isinf(lb):
        return ub
    return (ub + lb) / 2.0
