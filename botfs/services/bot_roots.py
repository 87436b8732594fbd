from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_DATA_ROOT, settings
from .errors import InvalidPathError

BOT_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$')


def bot_data_root(bot_id: str, data_root: Optional[str] = None) -> Path:
    if not BOT_ID_PATTERN.match(bot_id or ''):
        raise InvalidPathError('invalid bot id')
    base = (data_root if data_root is not None else settings.data_root).strip() or DEFAULT_DATA_ROOT
    return Path(base).absolute() / 'bots' / bot_id


def ensure_bot_data_root(bot_id: str, data_root: Optional[str] = None) -> Path:
    """Return the bot's root directory, creating it on first use."""
    root = bot_data_root(bot_id, data_root)
    root.mkdir(mode=settings.dir_mode, parents=True, exist_ok=True)
    return root
