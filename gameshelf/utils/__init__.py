# Utility helpers shared across GameShelf components
from .paths import GAMESHELF_DATA_DIR, ensure_data_dir
from .results import Ok, Unavailable, settle, gather_settled
from .titles import normalize_title, titles_match
