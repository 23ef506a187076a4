"""
LRU-кэш строк ядра с бюджетом в байтах.

Кэш принадлежит одному запуску солвера и выбрасывается вместе с ним.
"""

from collections import OrderedDict
from typing import Callable

import numpy as np


class KernelCache:
    """
    Кэш строк Q/K, вытеснение least-recently-used.

    Гарантии:
    - used_bytes никогда не превышает budget_bytes;
    - сохранённые строки доступны только для чтения, поэтому повторное
      обращение возвращает ровно то, что было вычислено;
    - строка больше всего бюджета возвращается без сохранения.
    """

    def __init__(self, budget_bytes: int):
        self.budget_bytes = int(budget_bytes)
        self._rows = OrderedDict()
        self.used_bytes = 0
        self.hits = 0
        self.misses = 0

    def __len__(self):
        return len(self._rows)

    def __contains__(self, key):
        return key in self._rows

    def get(self, key: int, compute: Callable[[int], np.ndarray]) -> np.ndarray:
        row = self._rows.get(key)
        if row is not None:
            self._rows.move_to_end(key)
            self.hits += 1
            return row

        self.misses += 1
        row = compute(key)
        row.setflags(write=False)
        row_bytes = row.nbytes
        if row_bytes > self.budget_bytes:
            return row

        # Освобождаем место, начиная с самой давно использованной строки
        while self._rows and self.used_bytes + row_bytes > self.budget_bytes:
            _, evicted = self._rows.popitem(last=False)
            self.used_bytes -= evicted.nbytes

        self._rows[key] = row
        self.used_bytes += row_bytes
        return row

    def clear(self):
        self._rows.clear()
        self.used_bytes = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
