from __future__ import annotations

import shlex
from typing import List

from linkfs.disk import DiskError
from linkfs.freelist import FreeListError
from linkfs.scalls import (
    FileSystem,
    FsError,
    FsNotFoundError,
    FsExistsError,
    FsNoSpaceError,
    FsTableFullError,
)

RESET = "\033[0m"
BOLD = "\033[1m"
CYAN = "\033[36m"


def _format_size(size: int):
    for unit in ("Б", "КиБ", "МиБ"):
        if size < 1024 or unit == "МиБ":
            if unit == "Б":
                return f"{size} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024


class Shell:
    def __init__(self, fs: FileSystem):
        self.fs = fs

    def _prompt(self):
        return "linkfs:/ $ "

    def run(self):
        print("Оболочка linkfs. Наберите 'help' для списка команд.")
        while True:
            try:
                line = input(self._prompt())
            except EOFError:
                print()
                break
            line = line.strip()
            if not line:
                continue
            if not self.execute(line):
                break

    def execute(self, line: str):
        try:
            args = shlex.split(line)
        except ValueError as e:
            print(f"Ошибка разбора строки: {e}")
            return True
        if not args:
            return True
        cmd = args[0]
        try:
            if cmd in ("exit", "quit"):
                return False
            elif cmd == "help":
                self.cmd_help(args[1:])
            elif cmd == "ls":
                self.cmd_ls(args[1:])
            elif cmd == "cat":
                self.cmd_cat(args[1:])
            elif cmd == "stat":
                self.cmd_stat(args[1:])
            elif cmd == "write":
                self.cmd_write(args[1:])
            elif cmd == "append":
                self.cmd_append(args[1:])
            elif cmd == "echo":
                self.cmd_echo(args[1:])
            elif cmd == "rm":
                self.cmd_rm(args[1:])
            elif cmd == "import":
                self.cmd_import(args[1:])
            elif cmd == "export":
                self.cmd_export(args[1:])
            elif cmd == "defrag":
                self.cmd_defrag(args[1:])
            elif cmd == "df":
                self.cmd_df(args[1:])
            elif cmd == "fsck":
                self.cmd_fsck(args[1:])
            elif cmd == "debugfs":
                self.cmd_debugfs(args[1:])
            else:
                print(f"Неизвестная команда: {cmd}")
        except FsNotFoundError as e:
            print(f"Не найдено: {e}")
        except FsExistsError as e:
            print(f"Уже существует: {e}")
        except FsNoSpaceError as e:
            print(f"Нет места: {e}")
        except FsTableFullError as e:
            print(f"Каталог заполнен: {e}")
        except FsError as e:
            print(f"Ошибка файловой системы: {e}")
        except (DiskError, FreeListError) as e:
            print(f"Ошибка контейнера: {e}")
        return True

    def cmd_help(self, args: List[str]):
        print("Доступные команды:")
        print("  help                            - показать эту справку")
        print("  exit, quit                      - выйти из оболочки")
        print("  ls                              - показать список файлов")
        print("  cat <имя>                       - вывести содержимое файла")
        print("  stat <имя>                      - подробная информация о файле и его блоках")
        print("  write <имя> <строка>            - создать файл с содержимым")
        print("  append <имя> <строка>           - дописать строку в конец файла")
        print("  echo [строка] > <имя>           - записать строку в файл (с заменой)")
        print("  echo [строка] >> <имя>          - дописать строку в файл")
        print("  rm <имя>                        - удалить файл")
        print("  import <путь> <имя>             - скопировать файл с хоста в контейнер")
        print("  export <имя> <путь>             - скопировать файл из контейнера на хост")
        print("  defrag                          - дефрагментация")
        print("  df                              - занятое и свободное место")
        print("  fsck                            - проверить целостность цепочек и списка свободных блоков")
        print("  debugfs                         - показать оффсеты областей контейнера (для hex-редактора)")

    def cmd_ls(self, args: List[str]):
        entries = self.fs.list_files()
        if not entries:
            print("Файлов нет.")
            return
        print(BOLD + "  #  РАЗМЕР      НАЧ.БЛОК  ИМЯ" + RESET)
        for i, entry in enumerate(entries, start=1):
            start = "-" if entry.start_block is None else str(entry.start_block)
            print(f"{i:3d}  {entry.size:10d}  {start:>8s}  {entry.name}")

    def cmd_cat(self, args: List[str]):
        if not args:
            print("Использование: cat <имя>")
            return
        text = self.fs.read_text(args[0])
        print(CYAN + f"--- Содержимое «{args[0]}» ---" + RESET)
        print(text)
        print(CYAN + "--- Конец файла ---" + RESET)

    def cmd_stat(self, args: List[str]):
        if not args:
            print("Использование: stat <имя>")
            return
        name = args[0]
        entry = self.fs.stat(name)
        blocks = self.fs.chain_blocks(name)
        slot_off = self.fs.slot_offset_bytes(name)
        print(BOLD + f"Информация о файле «{name}»" + RESET)
        print(f"Размер:         {entry.size} байт")
        print(f"Блоков:         {len(blocks)}")
        print(f"Слот каталога:  {self.fs.directory.slot_of(name)} @ {slot_off} (0x{slot_off:08x})")
        if not blocks:
            print("Цепочка:        —")
            return
        parts = []
        for b in blocks:
            off = self.fs.block_offset_bytes(b)
            parts.append(f"{b}@{off} (0x{off:08x})")
        print("Цепочка:        " + " -> ".join(parts))

    def cmd_write(self, args: List[str]):
        if len(args) < 2:
            print("Использование: write <имя> <строка>")
            return
        self.fs.create(args[0], " ".join(args[1:]))
        print("Файл создан.")

    def cmd_append(self, args: List[str]):
        if len(args) < 2:
            print("Использование: append <имя> <строка>")
            return
        self.fs.append(args[0], " ".join(args[1:]))
        print("Файл изменён.")

    def cmd_echo(self, args: List[str]):
        if not args:
            print()
            return
        redir_token = None
        if ">>" in args:
            redir_token = ">>"
        elif ">" in args:
            redir_token = ">"

        if redir_token:
            idx = args.index(redir_token)
            text = " ".join(args[:idx])
            if idx + 1 >= len(args):
                print(f"Использование: echo [строка] {redir_token} <имя>")
                return
            name = args[idx + 1]
            if not self.fs.exists(name):
                self.fs.create(name, text + "\n")
            elif redir_token == ">>":
                self.fs.append(name, text + "\n")
            else:
                self.fs.replace(name, text + "\n")
        else:
            print(" ".join(args))

    def cmd_rm(self, args: List[str]):
        if not args:
            print("Использование: rm <имя>")
            return
        self.fs.delete(args[0])
        print("Файл удалён.")

    def cmd_import(self, args: List[str]):
        if len(args) != 2:
            print("Использование: import <путь> <имя>")
            return
        entry = self.fs.import_file(args[0], args[1])
        print(f"Скопировано в контейнер: {entry.name} ({entry.size} байт)")

    def cmd_export(self, args: List[str]):
        if len(args) != 2:
            print("Использование: export <имя> <путь>")
            return
        size = self.fs.export_file(args[0], args[1])
        print(f"Скопировано на хост: {args[1]} ({size} байт)")

    def cmd_defrag(self, args: List[str]):
        print("Дефрагментация...")
        count = self.fs.defragment()
        print(f"Дефрагментация завершена: файлов {count}, занято блоков {self.fs.used_blocks}.")

    def cmd_df(self, args: List[str]):
        info = self.fs.info()
        used_bytes = info["used_blocks"] * info["block_size"]
        free_bytes = info["free_blocks"] * info["block_size"]
        print(BOLD + "БЛОКОВ    ЗАНЯТО    СВОБОДНО  ФАЙЛОВ" + RESET)
        print(f"{info['block_count']:6d}  {info['used_blocks']:8d}  {info['free_blocks']:10d}  {info['files']:6d}")
        print(f"Занято {_format_size(used_bytes)}, свободно {_format_size(free_bytes)}")
        if not info["persistent"]:
            print("Метаданные не сохраняются между запусками.")

    def cmd_fsck(self, args: List[str]):
        problems = self.fs.check()
        if not problems:
            print("Ошибок не найдено.")
            return
        for problem in problems:
            print(f"  {problem}")
        print(f"Найдено ошибок: {len(problems)}")

    def cmd_debugfs(self, args: List[str]):
        layout = self.fs.debug_layout()
        print(BOLD + "Области контейнера" + RESET)
        print(
            f"  Каталог:              {layout['dir_size']} байт, слот {layout['slot_size']} байт, "
            f"смещение {layout['dir_offset']} (0x{layout['dir_offset']:08x})"
        )
        print(
            f"  Список свободных:     {layout['free_size']} байт, "
            f"смещение {layout['free_offset']} (0x{layout['free_offset']:08x})"
        )
        print(
            f"  Данные файлов:        {layout['block_count']} блок(ов) по {layout['block_size']} байт, "
            f"смещение {layout['data_offset']} (0x{layout['data_offset']:08x})"
        )
