from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from linkfs.constants import (
    END_OF_CHAIN,
    HASH_MULTIPLIER,
    SLOT_NEVER_USED,
    SLOT_LIVE,
    SLOT_TOMBSTONE,
)
from linkfs.disk import DIR_SLOT_STRUCT, DiskError


@dataclass
class DirectoryEntry:
    name: str
    start_block: Optional[int]
    size: int
    occupied: bool = True

    def pack(self, slot_size: int):
        name_bytes = self.name.encode("utf-8")
        state = SLOT_LIVE if self.occupied else SLOT_TOMBSTONE
        start = END_OF_CHAIN if self.start_block is None else self.start_block
        raw = DIR_SLOT_STRUCT.pack(state, 0, len(name_bytes), start, self.size) + name_bytes
        if len(raw) > slot_size:
            raise DiskError(f"Имя файла не помещается в слот каталога: {self.name}")
        return raw + b"\x00" * (slot_size - len(raw))

    @classmethod
    def unpack(cls, raw: bytes):
        if len(raw) < DIR_SLOT_STRUCT.size:
            raise DiskError("Слот каталога слишком мал")
        state, _, name_len, start, size = DIR_SLOT_STRUCT.unpack_from(raw)
        if state == SLOT_NEVER_USED:
            return None
        if state not in (SLOT_LIVE, SLOT_TOMBSTONE):
            raise DiskError(f"Неизвестное состояние слота каталога: {state}")
        base = DIR_SLOT_STRUCT.size
        if base + name_len > len(raw):
            raise DiskError("Длина имени выходит за пределы слота каталога")
        try:
            name = raw[base: base + name_len].decode("utf-8")
        except UnicodeDecodeError as e:
            raise DiskError("Имя файла в каталоге повреждено") from e
        return cls(
            name=name,
            start_block=None if start == END_OF_CHAIN else start,
            size=size,
            occupied=state == SLOT_LIVE,
        )


class DirectoryTable:
    """Open-addressing hash table of directory entries.

    A slot is ``None`` when it was never used and holds an entry with
    ``occupied = False`` once that entry is deleted. Lookups probe past such
    tombstones and stop only at a never-used slot, so removing one of two
    colliding names never hides the other. Inserts reuse the first tombstone
    on the probe path.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.slots: List[Optional[DirectoryEntry]] = [None] * capacity
        self._count = 0
        self._dirty: Set[int] = set()

    def __len__(self):
        return self._count

    def is_full(self):
        return self._count >= self.capacity

    def hash(self, name: str):
        h = 0
        for b in name.encode("utf-8"):
            h = (h * HASH_MULTIPLIER + b) % self.capacity
        return h

    def _probe(self, name: str) -> Iterator[int]:
        start = self.hash(name)
        for step in range(self.capacity):
            yield (start + step) % self.capacity

    def slot_of(self, name: str):
        for slot in self._probe(name):
            entry = self.slots[slot]
            if entry is None:
                return None
            if entry.occupied and entry.name == name:
                return slot
        return None

    def search(self, name: str):
        slot = self.slot_of(name)
        if slot is None:
            return None
        return self.slots[slot]

    def insert(self, name: str, start_block: Optional[int], size: int):
        target = None
        for slot in self._probe(name):
            entry = self.slots[slot]
            if entry is None:
                if target is None:
                    target = slot
                break
            if entry.occupied:
                if entry.name == name:
                    return False
            elif target is None:
                target = slot
        if target is None:
            return False
        self.slots[target] = DirectoryEntry(name, start_block, size)
        self._count += 1
        self._dirty.add(target)
        return True

    def update(self, name: str, start_block: Optional[int], size: int):
        slot = self.slot_of(name)
        if slot is None:
            return False
        entry = self.slots[slot]
        entry.start_block = start_block
        entry.size = size
        self._dirty.add(slot)
        return True

    def remove(self, name: str):
        slot = self.slot_of(name)
        if slot is None:
            return False
        self.slots[slot].occupied = False
        self._count -= 1
        self._dirty.add(slot)
        return True

    def list_occupied(self):
        return [entry for entry in self.slots if entry is not None and entry.occupied]

    def clear(self):
        self.slots = [None] * self.capacity
        self._count = 0
        self._dirty.clear()

    def load(self, entries: List[Optional[DirectoryEntry]]):
        if len(entries) != self.capacity:
            raise DiskError("Число слотов каталога не совпадает с ёмкостью таблицы")
        names: Set[str] = set()
        for entry in entries:
            if entry is None or not entry.occupied:
                continue
            if entry.name in names:
                raise DiskError(f"Имя файла встречается в каталоге дважды: {entry.name}")
            names.add(entry.name)
        self.slots = list(entries)
        self._count = len(names)
        self._dirty.clear()

    def take_dirty(self):
        dirty = sorted(self._dirty)
        self._dirty.clear()
        return dirty

    def pack_slot(self, slot: int, slot_size: int):
        entry = self.slots[slot]
        if entry is None:
            return b"\x00" * slot_size
        return entry.pack(slot_size)

    def pack(self, slot_size: int):
        return b"".join(self.pack_slot(slot, slot_size) for slot in range(self.capacity))
