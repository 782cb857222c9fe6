from __future__ import annotations

from typing import Iterator, List, Optional, Set, Tuple

from linkfs.constants import END_OF_CHAIN
from linkfs.disk import Disk, DiskError


class CorruptChainError(DiskError):
    pass


def chunk_count(length: int, payload_size: int):
    return (length + payload_size - 1) // payload_size


def split_chunks(data: bytes, payload_size: int):
    return [data[i * payload_size: (i + 1) * payload_size] for i in range(chunk_count(len(data), payload_size))]


def write_chain(disk: Disk, blocks: List[int], data: bytes):
    chunks = split_chunks(data, disk.geometry.payload_size)
    if len(chunks) != len(blocks):
        raise DiskError(f"Для {len(chunks)} фрагментов выделено {len(blocks)} блоков")
    for i, blk in enumerate(blocks):
        next_block = blocks[i + 1] if i + 1 < len(blocks) else END_OF_CHAIN
        disk.write_block(blk, chunks[i], next_block)


def walk_chain(disk: Disk, start: Optional[int]) -> Iterator[Tuple[int, bytes]]:
    if start is None or start == END_OF_CHAIN:
        return
    block_count = disk.geometry.block_count
    seen: Set[int] = set()
    current = start
    while current != END_OF_CHAIN:
        if not (0 <= current < block_count):
            raise CorruptChainError(f"Указатель цепочки вне диапазона: {current}")
        if current in seen:
            raise CorruptChainError(f"Цепочка блоков зациклена на блоке {current}")
        seen.add(current)
        payload, next_block = disk.read_block(current)
        yield current, payload
        current = next_block


def read_chain(disk: Disk, start: Optional[int]):
    return b"".join(payload for _, payload in walk_chain(disk, start))


def chain_blocks(disk: Disk, start: Optional[int]):
    return [blk for blk, _ in walk_chain(disk, start)]
