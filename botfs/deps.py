from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, status
from fastapi import Path as PathParam

from .config import settings
from .services.bot_roots import BOT_ID_PATTERN, ensure_bot_data_root
from .services.errors import InvalidPathError
from .services.file_ops import FileOps

_TRUE_VALUES = {'1', 't', 'T', 'TRUE', 'true', 'True'}
_FALSE_VALUES = {'0', 'f', 'F', 'FALSE', 'false', 'False'}


def parse_bool_query(raw: Optional[str], name: str, default: bool = False) -> bool:
    value = (raw or '').strip()
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f'invalid boolean for {name}: {value!r}')


def get_bot_ops(bot_id: str = PathParam(..., pattern=BOT_ID_PATTERN.pattern)) -> FileOps:
    try:
        root = ensure_bot_data_root(bot_id)
    except InvalidPathError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except OSError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='Unable to prepare bot data root')
    return FileOps(root, file_mode=settings.file_mode, dir_mode=settings.dir_mode)
