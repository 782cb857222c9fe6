import os

import pytest

from linkfs.disk import BlockRangeError, Disk, DiskError, Geometry, pack_block, unpack_block

from conftest import SMALL


class TestGeometry:
    def test_default_layout(self):
        g = Geometry.default().validate()
        assert g.block_count == 8192
        assert g.total_size == 10 * 1024 * 1024
        assert g.payload_size == 1020
        assert g.slot_size == 128
        assert g.free_offset == 1024 * 1024
        assert g.data_offset == 2 * 1024 * 1024

    def test_for_blocks_is_consistent(self):
        g = SMALL.validate()
        assert g.data_zone_size == 16 * 64
        assert g.payload_size == 60
        assert g.max_name_len == 116

    def test_data_zone_must_match_blocks(self):
        g = Geometry(block_size=64, block_count=16, dir_zone_size=2048, free_zone_size=1024, data_zone_size=1000)
        with pytest.raises(DiskError):
            g.validate()

    def test_block_must_hold_pointer(self):
        with pytest.raises(DiskError):
            Geometry.for_blocks(16, block_size=4).validate()

    def test_free_zone_too_small(self):
        g = Geometry(block_size=64, block_count=16, dir_zone_size=2048, free_zone_size=32, data_zone_size=1024)
        with pytest.raises(DiskError):
            g.validate()

    def test_dir_zone_too_small(self):
        g = Geometry(block_size=64, block_count=16, dir_zone_size=16 * 12, free_zone_size=1024, data_zone_size=1024)
        with pytest.raises(DiskError):
            g.validate()


class TestBlockCodec:
    def test_pack_pads_payload(self):
        raw = pack_block(b"abc", -1, 64)
        assert len(raw) == 64
        assert raw[:3] == b"abc"
        assert raw[3:60] == b"\x00" * 57
        assert raw[60:] == b"\xff\xff\xff\xff"

    def test_unpack_stops_at_zero_byte(self):
        raw = pack_block(b"ab\x00cd", 7, 64)
        assert unpack_block(raw) == (b"ab", 7)

    def test_full_payload(self):
        payload = b"x" * 60
        assert unpack_block(pack_block(payload, 3, 64)) == (payload, 3)


class TestDisk:
    def test_create_zero_filled(self, container):
        with Disk.create(container, SMALL) as disk:
            assert disk.read_block(0) == (b"", 0)
        assert os.path.getsize(container) == SMALL.total_size

    def test_block_roundtrip(self, disk):
        disk.write_block(0, b"hello", -1)
        disk.write_block(5, b"world", 0)
        assert disk.read_block(0) == (b"hello", -1)
        assert disk.read_block(5) == (b"world", 0)

    def test_block_lands_in_data_zone(self, disk, container):
        disk.write_block(2, b"MARK", -1)
        disk.close()
        with open(container, "rb") as f:
            f.seek(SMALL.data_offset + 2 * SMALL.block_size)
            assert f.read(4) == b"MARK"

    def test_long_payload_truncated(self, disk):
        disk.write_block(1, b"y" * 100, 4)
        assert disk.read_block(1) == (b"y" * 60, 4)

    @pytest.mark.parametrize("index", [-1, 16, 1000])
    def test_out_of_range(self, disk, index):
        with pytest.raises(BlockRangeError):
            disk.read_block(index)
        with pytest.raises(BlockRangeError):
            disk.write_block(index, b"x", -1)

    def test_open_missing(self, tmp_path):
        with pytest.raises(DiskError):
            Disk.open(str(tmp_path / "missing.bin"), SMALL)

    def test_open_too_small(self, tmp_path):
        path = tmp_path / "short.bin"
        path.write_bytes(b"\x00" * 100)
        with pytest.raises(DiskError):
            Disk.open(str(path), SMALL)

    def test_reopen_keeps_data(self, disk, container):
        disk.write_block(3, b"kept", -1)
        disk.close()
        with Disk.open(container, SMALL) as again:
            assert again.read_block(3) == (b"kept", -1)

    def test_free_zone_unformatted(self, disk):
        assert disk.read_free_zone() is None

    def test_free_zone_roundtrip(self, disk):
        disk.write_free_zone([3, 1, 2])
        assert disk.read_free_zone() == [3, 1, 2]

    def test_free_zone_geometry_mismatch(self, disk, container):
        disk.write_free_zone(list(range(16)))
        disk.close()
        other = Geometry.for_blocks(16, block_size=32)
        with Disk.open(container, other) as again:
            with pytest.raises(DiskError):
                again.read_free_zone()

    def test_free_zone_records_zone_sizes(self, disk):
        disk.write_free_zone(list(range(16)))
        wider = Geometry(
            block_size=64,
            block_count=16,
            dir_zone_size=SMALL.dir_zone_size,
            free_zone_size=SMALL.free_zone_size + 64,
            data_zone_size=16 * 64,
        ).validate()
        assert wider.free_offset == SMALL.free_offset
        with pytest.raises(DiskError):
            Disk(disk.f, wider).read_free_zone()

    def test_dir_slot_size_checked(self, disk):
        with pytest.raises(DiskError):
            disk.write_dir_slot(0, b"short")
