"""Shared constants for appforge."""

CONFIG_FILE_NAME = ".appforge.yml"
TEMP_ROOT_NAME = ".appforge-tmp"

DEFAULT_ARCHIVE_URL = "https://github.com/Atomic-Reactor/Actinium-2.0/archive/master.zip"
DEFAULT_PORT = 9000
DEFAULT_DATABASE_URI = "mongodb://localhost:27017/actinium"
DEFAULT_ENV_FILE = "src/env.json"
DEFAULT_SEED_DIR = "seed"
SERVER_URI_TEMPLATE = "http://localhost:{port}/api"

ADMIN_USER_ID = "Gkjx4uRaJd"
ADMIN_COLLECTION = "_User"

DATA_FORMATS = ("bson", "json")
ARCHIVE_EXTENSION = ".zip"

MIN_TOOLS_VERSION = "100.0.0"

DOWNLOAD_CHUNK_SIZE = 8192
DOWNLOAD_TIMEOUT = 60.0
