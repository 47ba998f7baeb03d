"""GameShelf file path constants and utilities."""

import os


# GameShelf data directory (overridable through GAMESHELF_DATA_DIR)
GAMESHELF_DATA_DIR = os.environ.get(
    "GAMESHELF_DATA_DIR", os.path.expanduser("~/.local/share/gameshelf")
)

# Data file names inside the data directory
SETTINGS_FILE = "settings.json"
DEVICE_STORE_FILE = "device_store.json"
DOCUMENT_STORE_FILE = "documents.json"


def data_path(name: str, data_dir: str = GAMESHELF_DATA_DIR) -> str:
    """Get the full path of a data file inside the data directory.

    Args:
        name: File name, e.g. 'documents.json'
        data_dir: Directory to resolve against

    Returns:
        Absolute path to the file
    """
    return os.path.join(data_dir, name)


def ensure_data_dir(data_dir: str = GAMESHELF_DATA_DIR) -> None:
    """Ensure the gameshelf data directory exists."""
    os.makedirs(data_dir, exist_ok=True)
