BLOCK_SIZE = 1024
DIR_ZONE_SIZE = 1 * 1024 * 1024
FREE_ZONE_SIZE = 1 * 1024 * 1024
DATA_ZONE_SIZE = 8 * 1024 * 1024
TOTAL_SIZE = DIR_ZONE_SIZE + FREE_ZONE_SIZE + DATA_ZONE_SIZE
NUM_BLOCKS = DATA_ZONE_SIZE // BLOCK_SIZE
DIR_SLOT_SIZE = DIR_ZONE_SIZE // NUM_BLOCKS

POINTER_SIZE = 4
END_OF_CHAIN = -1

HASH_MULTIPLIER = 31

FS_MAGIC = b"LFS1"
FS_VERSION = 1

SLOT_NEVER_USED = 0
SLOT_LIVE = 1
SLOT_TOMBSTONE = 2

DEFAULT_CONTAINER = "File_system.bin"
