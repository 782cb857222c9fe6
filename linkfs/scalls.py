from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from linkfs.chain import CorruptChainError, chain_blocks, chunk_count, read_chain, write_chain
from linkfs.directory import DirectoryEntry, DirectoryTable
from linkfs.disk import Disk, DiskError
from linkfs.freelist import FreeList, FreeListError

logger = logging.getLogger(__name__)


class FsError(Exception):
    pass


class FsNotFoundError(FsError):
    pass


class FsExistsError(FsError):
    pass


class FsNoSpaceError(FsError):
    pass


class FsTableFullError(FsError):
    pass


def _as_bytes(data: Union[bytes, bytearray, str]):
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class FileSystem:
    def __init__(self, disk: Disk, persistent: bool = True):
        self.disk = disk
        self.geometry = disk.geometry
        self.persistent = persistent
        self.directory = DirectoryTable(self.geometry.block_count)
        self.free_list = FreeList(self.geometry.block_count)
        self.formatted = False
        if persistent:
            self._load_metadata()
        else:
            logger.info("Volatile mode: metadata starts empty and is not saved")

    def _load_metadata(self):
        order = self.disk.read_free_zone()
        if order is None:
            logger.info("No metadata in container, formatting empty directory")
            self._write_all_metadata()
            self.formatted = True
            return
        try:
            self.free_list.load(order)
        except FreeListError as e:
            raise DiskError(f"Повреждён список свободных блоков: {e}") from e
        raw = self.disk.read_dir_zone()
        slot_size = self.geometry.slot_size
        entries = [
            DirectoryEntry.unpack(raw[slot * slot_size: (slot + 1) * slot_size])
            for slot in range(self.geometry.block_count)
        ]
        self.directory.load(entries)
        logger.info(f"Loaded {len(self.directory)} files, {self.free_list.free_count} free blocks")

    def _write_all_metadata(self):
        self.directory.take_dirty()
        if not self.persistent:
            return
        self.disk.write_dir_zone(self.directory.pack(self.geometry.slot_size))
        self.disk.write_free_zone(self.free_list.snapshot())
        logger.debug("Wrote full directory and free list")

    def _flush_metadata(self):
        dirty = self.directory.take_dirty()
        if not self.persistent:
            return
        slot_size = self.geometry.slot_size
        for slot in dirty:
            self.disk.write_dir_slot(slot, self.directory.pack_slot(slot, slot_size))
        self.disk.write_free_zone(self.free_list.snapshot())
        logger.debug(f"Flushed directory slots {dirty} and {self.free_list.free_count} free blocks")

    def _validate_name(self, name: str):
        if not isinstance(name, str) or not name:
            raise FsError("Некорректное имя файла")
        if "\x00" in name:
            raise FsError("Имя файла не может содержать нулевой байт")
        limit = self.geometry.max_name_len
        if len(name.encode("utf-8")) > limit:
            raise FsError(f"Имя файла длиннее {limit} байт: {name}")

    def _lookup(self, name: str):
        entry = self.directory.search(name)
        if entry is None:
            raise FsNotFoundError(f"Файл не найден: {name}")
        return entry

    def _blocks_needed(self, length: int):
        return chunk_count(length, self.geometry.payload_size)

    def _store(self, data: bytes):
        blocks = self.free_list.allocate(self._blocks_needed(len(data)))
        logger.debug(f"Allocated blocks {blocks} for {len(data)} bytes")
        try:
            write_chain(self.disk, blocks, data)
        except DiskError:
            for blk in reversed(blocks):
                self.free_list.release(blk)
            raise
        return blocks[0] if blocks else None

    def _check_owned(self, name: str, blocks: List[int]):
        for blk in blocks:
            if self.free_list.is_free(blk):
                raise CorruptChainError(f"Блок {blk} файла {name} уже отмечен как свободный")

    def _release(self, name: str, blocks: List[int]):
        self._check_owned(name, blocks)
        for blk in blocks:
            self.free_list.release(blk)

    @property
    def free_blocks(self):
        return self.free_list.free_count

    @property
    def used_blocks(self):
        return self.geometry.block_count - self.free_list.free_count

    def list_files(self):
        return self.directory.list_occupied()

    def exists(self, name: str):
        return self.directory.search(name) is not None

    def stat(self, name: str):
        return self._lookup(name)

    def chain_blocks(self, name: str):
        entry = self._lookup(name)
        return chain_blocks(self.disk, entry.start_block)

    def create(self, name: str, data: Union[bytes, bytearray, str] = b""):
        self._validate_name(name)
        data = _as_bytes(data)
        if self.directory.search(name) is not None:
            raise FsExistsError(f"Файл уже существует: {name}")
        if self.directory.is_full():
            logger.warning(f"Directory full, cannot create {name}")
            raise FsTableFullError("В каталоге нет свободных слотов")
        needed = self._blocks_needed(len(data))
        if needed > self.free_list.free_count:
            logger.warning(f"Not enough space for {name}: need {needed}, free {self.free_list.free_count}")
            raise FsNoSpaceError(
                f"Недостаточно места: нужно {needed} блок(ов), свободно {self.free_list.free_count}"
            )
        start = self._store(data)
        if not self.directory.insert(name, start, len(data)):
            raise FsTableFullError("В каталоге нет свободных слотов")
        self._flush_metadata()
        logger.info(f"Created {name} ({len(data)} bytes, {needed} blocks)")
        return self.directory.search(name)

    def read(self, name: str):
        entry = self._lookup(name)
        return read_chain(self.disk, entry.start_block)

    def read_text(self, name: str):
        return self.read(name).decode("utf-8", errors="ignore")

    def replace(self, name: str, data: Union[bytes, bytearray, str]):
        entry = self._lookup(name)
        data = _as_bytes(data)
        old_blocks = chain_blocks(self.disk, entry.start_block)
        needed = self._blocks_needed(len(data))
        available = self.free_list.free_count + len(old_blocks)
        if needed > available:
            logger.warning(f"Not enough space to rewrite {name}: need {needed}, available {available}")
            raise FsNoSpaceError(f"Недостаточно места для изменения файла: нужно {needed}, доступно {available}")
        self._check_owned(name, old_blocks)
        if needed <= self.free_list.free_count:
            # old chain stays intact until the new one is written
            start = self._store(data)
            self._release(name, old_blocks)
        else:
            self._release(name, old_blocks)
            try:
                start = self._store(data)
            except DiskError:
                # old blocks may already be overwritten
                self.directory.remove(name)
                self._flush_metadata()
                logger.warning(f"Lost {name}: rewrite in place failed")
                raise
        self.directory.update(name, start, len(data))
        self._flush_metadata()
        logger.info(f"Rewrote {name} ({len(data)} bytes, {needed} blocks)")
        return entry

    def append(self, name: str, extra: Union[bytes, bytearray, str]):
        entry = self._lookup(name)
        old = read_chain(self.disk, entry.start_block)
        return self.replace(name, old + _as_bytes(extra))

    def delete(self, name: str):
        entry = self._lookup(name)
        blocks = chain_blocks(self.disk, entry.start_block)
        self._release(name, blocks)
        self.directory.remove(name)
        self._flush_metadata()
        logger.info(f"Deleted {name}, released {len(blocks)} blocks")

    def defragment(self):
        files = [(entry.name, read_chain(self.disk, entry.start_block)) for entry in self.directory.list_occupied()]
        self.directory.clear()
        self.free_list.reset(ascending=True)
        lost = []
        for name, data in files:
            try:
                start = self._store(data)
            except DiskError as e:
                logger.warning(f"Defragment could not rewrite {name}: {e}")
                lost.append(name)
                continue
            self.directory.insert(name, start, len(data))
        self._write_all_metadata()
        if lost:
            raise DiskError(f"Дефрагментация не смогла записать файлы: {', '.join(lost)}")
        logger.info(f"Defragmented {len(files)} files into {self.used_blocks} blocks")
        return len(files)

    def import_file(self, src_path: str, name: str):
        try:
            with open(src_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise FsError(f"Не удалось прочитать файл {src_path}: {e}") from e
        return self.create(name, data)

    def export_file(self, name: str, dst_path: str):
        data = self.read(name)
        try:
            with open(dst_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise FsError(f"Не удалось записать файл {dst_path}: {e}") from e
        return len(data)

    def check(self):
        problems: List[str] = []
        owner: Dict[int, str] = {}
        for entry in self.directory.list_occupied():
            try:
                blocks = chain_blocks(self.disk, entry.start_block)
            except CorruptChainError as e:
                problems.append(f"{entry.name}: {e}")
                continue
            for blk in blocks:
                if blk in owner:
                    problems.append(f"Блок {blk} принадлежит сразу {owner[blk]} и {entry.name}")
                else:
                    owner[blk] = entry.name
                if self.free_list.is_free(blk):
                    problems.append(f"Блок {blk} файла {entry.name} отмечен как свободный")
        for blk in range(self.geometry.block_count):
            if blk not in owner and not self.free_list.is_free(blk):
                problems.append(f"Блок {blk} потерян: не свободен и не принадлежит ни одному файлу")
        return problems

    def info(self):
        g = self.geometry
        return {
            "block_size": g.block_size,
            "payload_size": g.payload_size,
            "block_count": g.block_count,
            "files": len(self.directory),
            "free_blocks": self.free_blocks,
            "used_blocks": self.used_blocks,
            "total_size": g.total_size,
            "persistent": self.persistent,
        }

    def debug_layout(self):
        g = self.geometry
        return {
            "dir_offset": g.dir_offset,
            "dir_size": g.dir_zone_size,
            "slot_size": g.slot_size,
            "free_offset": g.free_offset,
            "free_size": g.free_zone_size,
            "data_offset": g.data_offset,
            "data_size": g.data_zone_size,
            "block_size": g.block_size,
            "block_count": g.block_count,
        }

    def block_offset_bytes(self, block_no: int):
        return self.geometry.data_offset + block_no * self.geometry.block_size

    def slot_offset_bytes(self, name: str) -> Optional[int]:
        slot = self.directory.slot_of(name)
        if slot is None:
            return None
        return self.geometry.dir_offset + slot * self.geometry.slot_size
