"""
Constants and configuration values for avatarslots.

This module contains the fixed slot enumeration, built-in bundle URLs,
layout heuristics, file names and other constants used throughout the
application.
"""

APP_NAME = "avatarslots"

# Fixed slot enumeration (order is significant)
SLOT_IDS = ("character_1", "character_2", "character_3")
PRIMARY_SLOT_ID = "character_1"

# Built-in bundle URLs
BUNDLE_BASE_URL = "https://storage.googleapis.com/oto_bucket/live2d"
SLOT_DEFAULT_URLS = {
    "character_1": f"{BUNDLE_BASE_URL}/Hiyori.zip",
    "character_2": f"{BUNDLE_BASE_URL}/cat3.zip",
    "character_3": f"{BUNDLE_BASE_URL}/steve.zip",
}
# Used by provisioning when the primary slot has no URL at all
PRIMARY_FALLBACK_URL = f"{BUNDLE_BASE_URL}/Hiyori1.zip"

BUNDLE_EXTENSION = ".zip"
LOCAL_URL_PREFIX = "local:"

# Descriptor detection
DESCRIPTOR_SUFFIX = ".model3.json"
MAX_DESCRIPTOR_SEARCH_DEPTH = 3

# Auxiliary (texture) folder heuristics, checked in this order
AUX_FOLDER_SUFFIXES = (".2048", ".4096", ".1024")
AUX_FOLDER_NAME = "textures"
AUX_IMAGE_EXTENSIONS = (".png",)

# File and directory names
MODELS_DIR_NAME = "models"
SLOTS_FILE_NAME = ".characters.json"
LEGACY_MODEL_CONFIG_FILE_NAME = ".model_config.json"
SETTINGS_FILE_NAME = "config.yaml"
LOG_FILE_NAME = "avatarslots.log"

# Slots file JSON field names
FIELD_SLOT_ID = "slot_id"
FIELD_MODEL_URL = "model_url"
FIELD_ENABLED = "enabled"
FIELD_FOLDER = "folder"
FIELD_MODEL_FILE = "model_file"
FIELD_TEXTURE_FOLDER = "texture_folder"

# Legacy single-slot JSON field names
LEGACY_FIELD_URL = "url"

# Events emitted to display collaborators
EVENT_PROVISIONING_PROGRESS = "provisioning-progress"
EVENT_VISIBILITY_CHANGED = "visibility-changed"
EVENT_ACTIVE_SLOT_CHANGED = "active-slot-changed"

# Provisioning progress steps
STEP_DOWNLOADING = "downloading"
STEP_EXTRACTING = "extracting"
STEP_COPYING = "copying"
STEP_DETECTING = "detecting"
STEP_COMPLETE = "complete"

# Network settings (in seconds)
DEFAULT_REQUEST_TIMEOUT = 60
HTTP_STATUS_ERROR_THRESHOLD = 400
BYTES_PER_MEGABYTE = 1024 * 1024
FILE_SIZE_MB_LOGGING_THRESHOLD = 1.0

# Settings file keys
SETTING_DATA_DIR = "DATA_DIR"
SETTING_REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
SETTING_LOG_LEVEL = "LOG_LEVEL"
SETTING_LOG_TO_FILE = "LOG_TO_FILE"

# Logging
LOGGER_NAME = "avatarslots"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_FILE_BACKUP_COUNT = 3
LOG_LEVEL_ENV_VAR = "AVATARSLOTS_LOG_LEVEL"
