from __future__ import annotations

import argparse
import logging
import os

from linkfs.constants import BLOCK_SIZE, NUM_BLOCKS, DEFAULT_CONTAINER
from linkfs.disk import Disk, DiskError, Geometry
from linkfs.scalls import FileSystem
from linkfs.shell import Shell


def _geometry(args):
    if args.block_size == BLOCK_SIZE and args.blocks == NUM_BLOCKS:
        return Geometry.default()
    return Geometry.for_blocks(args.blocks, block_size=args.block_size)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="linkfs",
        description="Файловая система со связными блоками внутри одного файла-контейнера",
    )
    parser.add_argument(
        "-p", "--path",
        default=DEFAULT_CONTAINER,
        help="Путь к файлу-контейнеру",
    )
    parser.add_argument("--block-size", type=int, default=BLOCK_SIZE, help="Размер блока в байтах")
    parser.add_argument("--blocks", type=int, default=NUM_BLOCKS, help="Число блоков в области данных")
    parser.add_argument(
        "--volatile",
        action="store_true",
        help="Не сохранять каталог и список свободных блоков между запусками",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Подробный журнал")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        geometry = _geometry(args).validate()
        if not os.path.exists(args.path):
            print(f"Создаётся новый контейнер файловой системы ({args.path})...")
            disk = Disk.create(args.path, geometry)
        else:
            print(f"Открывается существующий контейнер ({args.path})...")
            disk = Disk.open(args.path, geometry)
    except DiskError as e:
        print("Произошла ошибка при открытии контейнера: ", e)
        return 1

    try:
        fs = FileSystem(disk, persistent=not args.volatile)
        if args.volatile:
            print("Каталог пуст: метаданные не сохраняются между запусками.")
        elif not fs.formatted:
            print(f"Загружено файлов: {len(fs.list_files())}.")
        Shell(fs).run()
    except DiskError as e:
        print("Произошла ошибка при чтении метаданных: ", e)
        return 1
    finally:
        disk.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
