"""File-based JSON storage for settings.

Data layout:
  data/
    settings.json   API endpoint, model, prompt layers, scenario overrides

Partners and their chat logs belong to the host application and are passed
in with each request; only settings are persisted here.
"""

# Re-export all public symbols so `from pocket_chat import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
)

from .config import (  # noqa: F401
    get_settings,
    update_settings,
)
