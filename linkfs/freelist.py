from __future__ import annotations

from typing import Iterable, List, Set


class FreeListError(Exception):
    pass


class NoSpaceError(FreeListError):
    pass


class FreeList:
    """Pool of unused block indices.

    Kept as a stack: ``allocate`` pops from the top and ``release`` pushes
    back on top, so the most recently freed block is handed out first.
    """

    def __init__(self, block_count: int):
        self.block_count = block_count
        self._stack: List[int] = []
        self._free: Set[int] = set()
        self.reset()

    def __len__(self):
        return len(self._stack)

    def __contains__(self, index: int):
        return index in self._free

    @property
    def free_count(self):
        return len(self._stack)

    def is_free(self, index: int):
        return index in self._free

    def reset(self, ascending: bool = False):
        # top of the stack is the end of the list
        if ascending:
            self._stack = list(range(self.block_count - 1, -1, -1))
        else:
            self._stack = list(range(self.block_count))
        self._free = set(self._stack)

    def load(self, order: Iterable[int]):
        stack = list(order)
        seen: Set[int] = set()
        for index in stack:
            if not (0 <= index < self.block_count):
                raise FreeListError(f"Номер блока вне диапазона: {index}")
            if index in seen:
                raise FreeListError(f"Блок {index} встречается в списке свободных дважды")
            seen.add(index)
        self._stack = stack
        self._free = seen

    def snapshot(self):
        return list(self._stack)

    def allocate(self, count: int):
        if count < 0:
            raise FreeListError("Число блоков должно быть >= 0")
        if count > len(self._stack):
            raise NoSpaceError(
                f"Недостаточно свободных блоков: нужно {count}, свободно {len(self._stack)}"
            )
        result: List[int] = []
        for _ in range(count):
            index = self._stack.pop()
            self._free.discard(index)
            result.append(index)
        return result

    def release(self, index: int):
        if not (0 <= index < self.block_count):
            raise FreeListError(f"Номер блока вне диапазона: {index}")
        if index in self._free:
            raise FreeListError(f"Блок {index} уже свободен")
        self._stack.append(index)
        self._free.add(index)
