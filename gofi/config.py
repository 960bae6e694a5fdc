"""
Configuration constants for the gofi client.
"""

# --- Network / Framing ---
SERVER_PORT = 1985
DEFAULT_TARGET_URL = f"127.0.0.1:{SERVER_PORT}"
BUFFER_SIZE = 2048  # Payload chunk size on the wire
SIZE_FIELD_WIDTH = 10
NAME_FIELD_WIDTH = 64
FILL_CHAR = ":"
TRANSFER_PREFIX = "gofi_"

# --- Session Artifacts ---
DATABASE_NAME = "gofi.db"
SHARD_SUFFIX = ".tmp.JSON"
SHARD_PREFIX_LEN = 5
LOG_FILE = "gofi.log"

# --- Batching ---
DEFAULT_BATCH_LIMIT = 5000

# --- Hashing & Sniffing ---
# Fixed deployment-wide key so digests are comparable across machines.
# It is public and provides no secrecy.
HASH_KEY_HEX = "000102030405060708090A0B0C0D0E0FF0E0D0C0B0A090807060504030201000"
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
SNIFF_BYTES = 8192  # Leading bytes handed to type/MIME detection

# Files at or above this size are recorded without reading their content
SIZE_CEILING = 6 * 1024 * 1024 * 1024  # 6 GiB

# --- Labels ---
TOO_LARGE = "file_too_large"
UNKNOWN_TYPE = "unknown"
UNKNOWN_IP = "unknown"
