import pytest

from linkfs.disk import Disk, Geometry
from linkfs.scalls import FileSystem

# 16 blocks of 64 bytes: 60 payload bytes per block
SMALL = Geometry.for_blocks(16, block_size=64)


def make_content(size, seed=0):
    # never contains a zero byte
    return bytes((i + seed) % 255 + 1 for i in range(size))


@pytest.fixture
def container(tmp_path):
    return str(tmp_path / "fs.bin")


@pytest.fixture
def disk(container):
    d = Disk.create(container, SMALL)
    yield d
    d.close()


@pytest.fixture
def fs(disk):
    return FileSystem(disk)
