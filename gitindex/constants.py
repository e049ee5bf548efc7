# Magic and versions
INDEX_MAGIC = b"DIRC"  # 4 bytes: "dircache"

MIN_VERSION = 2
MAX_KNOWN_VERSION = 4

HEADER_SIZE = 12
EXT_HEADER_SIZE = 8

# Entry flags (16-bit word after the object id)
FLAG_NAMEMASK = 0x0FFF
FLAG_STAGEMASK = 0x3000
FLAG_STAGESHIFT = 12
FLAG_EXTENDED = 0x4000
FLAG_VALID = 0x8000

# Extended flags (version 3+, only when FLAG_EXTENDED is set)
EXT_FLAG_RESERVED = 0x8000
EXT_FLAG_SKIP_WORKTREE = 0x4000
EXT_FLAG_INTENT_TO_ADD = 0x2000

# Mode word: object type nibble at bits 12-15
MODE_TYPE_SHIFT = 12
MODE_TYPE_MASK = 0x0F
MODE_TYPE_REGULAR = 0x8
MODE_TYPE_SYMLINK = 0xA
MODE_TYPE_GITLINK = 0xE

# Entries of versions 2 and 3 are padded to a multiple of this many bytes
ENTRY_ALIGNMENT = 8

# Extension signatures
EXT_TREE = b"TREE"
EXT_RESOLVE_UNDO = b"REUC"
EXT_LINK = b"link"
EXT_UNTRACKED = b"UNTR"
EXT_FSMONITOR = b"FSMN"
EXT_END_OF_ENTRIES = b"EOIE"
EXT_ENTRY_OFFSETS = b"IEOT"
EXT_SPARSE_DIRS = b"sdir"

EXTENSION_NAMES = {
    EXT_TREE: "Cache tree",
    EXT_RESOLVE_UNDO: "Resolve undo",
    EXT_LINK: "Split index",
    EXT_UNTRACKED: "Untracked cache",
    EXT_FSMONITOR: "File system monitor cache",
    EXT_END_OF_ENTRIES: "End of index entry",
    EXT_ENTRY_OFFSETS: "Index entry offset table",
    EXT_SPARSE_DIRS: "Sparse directory entries",
}


# Hash algorithms (name -> digest size in bytes)
HASH_SHA1 = "sha1"
HASH_SHA256 = "sha256"
DEFAULT_HASH = HASH_SHA1
HASH_DIGEST_SIZES = {
    HASH_SHA1: 20,
    HASH_SHA256: 32,
}


# Tunables
READ_CHUNK_SIZE = 65536
DEFAULT_MAX_TREE_DEPTH = 512
NSEC_PER_SEC = 1_000_000_000
