from __future__ import annotations

import io
import logging
import os
import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

from linkfs.constants import (
    BLOCK_SIZE,
    NUM_BLOCKS,
    DIR_ZONE_SIZE,
    FREE_ZONE_SIZE,
    DATA_ZONE_SIZE,
    DIR_SLOT_SIZE,
    POINTER_SIZE,
    FS_MAGIC,
    FS_VERSION,
)

POINTER_STRUCT = struct.Struct("<i")
FREE_HEADER_STRUCT = struct.Struct("<4s H H I I I I I")
DIR_SLOT_STRUCT = struct.Struct("<B B H i I")

logger = logging.getLogger(__name__)


class DiskError(Exception):
    pass


class BlockRangeError(DiskError):
    pass


@dataclass(frozen=True)
class Geometry:
    block_size: int = BLOCK_SIZE
    block_count: int = NUM_BLOCKS
    dir_zone_size: int = DIR_ZONE_SIZE
    free_zone_size: int = FREE_ZONE_SIZE
    data_zone_size: int = DATA_ZONE_SIZE

    @classmethod
    def default(cls):
        return cls()

    @classmethod
    def for_blocks(cls, block_count: int, block_size: int = BLOCK_SIZE, slot_size: int = DIR_SLOT_SIZE):
        return cls(
            block_size=block_size,
            block_count=block_count,
            dir_zone_size=block_count * slot_size,
            free_zone_size=FREE_HEADER_STRUCT.size + block_count * 4,
            data_zone_size=block_count * block_size,
        )

    @property
    def payload_size(self):
        return self.block_size - POINTER_SIZE

    @property
    def slot_size(self):
        return self.dir_zone_size // self.block_count

    @property
    def max_name_len(self):
        return self.slot_size - DIR_SLOT_STRUCT.size

    @property
    def dir_offset(self):
        return 0

    @property
    def free_offset(self):
        return self.dir_zone_size

    @property
    def data_offset(self):
        return self.dir_zone_size + self.free_zone_size

    @property
    def total_size(self):
        return self.dir_zone_size + self.free_zone_size + self.data_zone_size

    def validate(self):
        if self.block_size <= POINTER_SIZE:
            raise DiskError(f"Размер блока ({self.block_size}) должен быть больше указателя ({POINTER_SIZE})")
        if self.block_count < 1:
            raise DiskError("Число блоков должно быть > 0")
        if self.block_count > 2 ** 31 - 1:
            raise DiskError("Число блоков не помещается в 32-битный указатель")
        if self.data_zone_size != self.block_size * self.block_count:
            raise DiskError(
                f"Размер области данных ({self.data_zone_size}) не равен "
                f"{self.block_size} * {self.block_count}"
            )
        if self.max_name_len < 1:
            raise DiskError("Область каталога слишком мала для заданного числа блоков")
        if self.free_zone_size < FREE_HEADER_STRUCT.size + self.block_count * 4:
            raise DiskError("Область списка свободных блоков слишком мала")
        return self


def pack_block(payload: bytes, next_block: int, block_size: int):
    capacity = block_size - POINTER_SIZE
    body = bytes(payload[:capacity])
    body = body + b"\x00" * (capacity - len(body))
    try:
        return body + POINTER_STRUCT.pack(next_block)
    except struct.error as e:
        raise DiskError(f"Некорректный указатель на следующий блок: {next_block}") from e


def unpack_block(raw: bytes):
    if len(raw) <= POINTER_SIZE:
        raise DiskError("Блок слишком мал")
    body = raw[:-POINTER_SIZE]
    payload = body.split(b"\x00", 1)[0]
    (next_block,) = POINTER_STRUCT.unpack_from(raw, len(raw) - POINTER_SIZE)
    return payload, next_block


class Disk:
    def __init__(self, fileobj: io.BufferedRandom, geometry: Geometry, path: str = ""):
        self.f = fileobj
        self.geometry = geometry
        self.path = path

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _read_at(self, offset: int, size: int):
        try:
            self.f.seek(offset)
            data = self.f.read(size)
        except OSError as e:
            raise DiskError(f"Ошибка чтения контейнера: {e}") from e
        if len(data) != size:
            raise DiskError("Не удалось полностью прочитать данные из контейнера")
        return data

    def _write_at(self, offset: int, data: bytes):
        try:
            self.f.seek(offset)
            self.f.write(data)
            self.f.flush()
        except OSError as e:
            raise DiskError(f"Ошибка записи в контейнер: {e}") from e

    def _block_offset(self, index: int):
        if not (0 <= index < self.geometry.block_count):
            raise BlockRangeError(f"Номер блока вне диапазона: {index}")
        return self.geometry.data_offset + index * self.geometry.block_size

    def _slot_offset(self, slot: int):
        if not (0 <= slot < self.geometry.block_count):
            raise DiskError(f"Номер слота каталога вне диапазона: {slot}")
        return self.geometry.dir_offset + slot * self.geometry.slot_size

    @classmethod
    def create(cls, path: str, geometry: Optional[Geometry] = None):
        geometry = (geometry or Geometry.default()).validate()
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        try:
            f = open(path, "w+b")
        except OSError as e:
            raise DiskError(f"Не удалось создать контейнер {path}: {e}") from e
        try:
            f.truncate(geometry.total_size)
        except OSError as e:
            f.close()
            raise DiskError(f"Не удалось выделить место под контейнер: {e}") from e
        logger.info(f"Created container {path} ({geometry.total_size} bytes, {geometry.block_count} blocks)")
        return cls(fileobj=f, geometry=geometry, path=path)

    @classmethod
    def open(cls, path: str, geometry: Optional[Geometry] = None):
        geometry = (geometry or Geometry.default()).validate()
        if not os.path.exists(path):
            raise DiskError(f"Контейнер {path} не существует")
        try:
            f = open(path, "r+b")
            f.seek(0, os.SEEK_END)
            size = f.tell()
        except OSError as e:
            raise DiskError(f"Не удалось открыть контейнер {path}: {e}") from e
        if size < geometry.total_size:
            f.close()
            raise DiskError("Файл контейнера меньше заявленного размера")
        logger.info(f"Opened container {path} ({size} bytes)")
        return cls(fileobj=f, geometry=geometry, path=path)

    def close(self):
        if self.f.closed:
            return
        try:
            self.f.flush()
            os.fsync(self.f.fileno())
        finally:
            self.f.close()

    def read_block(self, index: int) -> Tuple[bytes, int]:
        raw = self._read_at(self._block_offset(index), self.geometry.block_size)
        return unpack_block(raw)

    def write_block(self, index: int, payload: bytes, next_block: int):
        offset = self._block_offset(index)
        self._write_at(offset, pack_block(payload, next_block, self.geometry.block_size))

    def read_dir_slot(self, slot: int):
        return self._read_at(self._slot_offset(slot), self.geometry.slot_size)

    def write_dir_slot(self, slot: int, raw: bytes):
        if len(raw) != self.geometry.slot_size:
            raise DiskError("Запись слота каталога имеет неверный размер")
        self._write_at(self._slot_offset(slot), raw)

    def read_dir_zone(self):
        return self._read_at(self.geometry.dir_offset, self.geometry.dir_zone_size)

    def write_dir_zone(self, raw: bytes):
        if len(raw) > self.geometry.dir_zone_size:
            raise DiskError("Каталог не помещается в отведённую область")
        raw = raw + b"\x00" * (self.geometry.dir_zone_size - len(raw))
        self._write_at(self.geometry.dir_offset, raw)

    def read_free_zone(self) -> Optional[List[int]]:
        g = self.geometry
        header = self._read_at(g.free_offset, FREE_HEADER_STRUCT.size)
        magic, version, _, block_size, block_count, dir_zone_size, free_zone_size, free_count = (
            FREE_HEADER_STRUCT.unpack(header)
        )
        if magic != FS_MAGIC:
            return None
        if version != FS_VERSION:
            raise DiskError(f"Неподдерживаемая версия метаданных: {version}")
        if block_size != g.block_size or block_count != g.block_count:
            raise DiskError(
                f"Геометрия контейнера ({block_size} x {block_count}) не совпадает "
                f"с заданной ({g.block_size} x {g.block_count})"
            )
        if dir_zone_size != g.dir_zone_size or free_zone_size != g.free_zone_size:
            raise DiskError(
                f"Размеры служебных областей контейнера ({dir_zone_size}, {free_zone_size}) не совпадают "
                f"с заданными ({g.dir_zone_size}, {g.free_zone_size})"
            )
        if free_count > block_count:
            raise DiskError("Повреждён список свободных блоков")
        raw = self._read_at(g.free_offset + FREE_HEADER_STRUCT.size, free_count * 4)
        return list(struct.unpack("<%dI" % free_count, raw))

    def write_free_zone(self, order: List[int]):
        g = self.geometry
        header = FREE_HEADER_STRUCT.pack(
            FS_MAGIC, FS_VERSION, 0, g.block_size, g.block_count, g.dir_zone_size, g.free_zone_size, len(order)
        )
        raw = header + struct.pack("<%dI" % len(order), *order)
        if len(raw) > g.free_zone_size:
            raise DiskError("Список свободных блоков не помещается в отведённую область")
        self._write_at(g.free_offset, raw)
