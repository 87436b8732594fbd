from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..deps import get_bot_ops, parse_bool_query
from ..schemas import (
    ApiResponse,
    FSEntry,
    FSListResponse,
    FSMkdirRequest,
    FSReadResponse,
    FSStatResponse,
    FSUsageResponse,
    FSWriteRequest,
)
from ..services.errors import (
    DirectoryNotEmptyError,
    FileOpsError,
    InvalidPathError,
    PathConflictError,
    PathNotFoundError,
    WrongKindError,
)
from ..services.file_ops import FileOps

router = APIRouter(prefix='/api/bots/{bot_id}/fs', tags=['fs'])

_STATUS_BY_ERROR = (
    (InvalidPathError, 400),
    (WrongKindError, 400),
    (DirectoryNotEmptyError, 400),
    (PathNotFoundError, 404),
    (PathConflictError, 409),
)


def _http_error(exc: FileOpsError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@router.get('', response_model=FSListResponse)
def list_fs(
    path: Optional[str] = Query(default=None),
    recursive: Optional[str] = Query(default=None),
    ops: FileOps = Depends(get_bot_ops),
):
    flag = parse_bool_query(recursive, 'recursive')
    try:
        listing = ops.list_dir(path or '', recursive=flag)
    except FileOpsError as exc:
        raise _http_error(exc)
    return FSListResponse(path=listing.path, entries=[FSEntry.model_validate(e) for e in listing.entries])


@router.get('/file', response_model=FSReadResponse)
def read_fs_file(path: Optional[str] = Query(default=None), ops: FileOps = Depends(get_bot_ops)):
    try:
        result = ops.read_file(path or '')
    except FileOpsError as exc:
        raise _http_error(exc)
    return FSReadResponse(
        path=result.path,
        content=result.content.decode('utf-8', errors='replace'),
        size=result.size,
        mode=result.mode,
        mod_time=result.mod_time,
    )


@router.get('/stat', response_model=FSStatResponse)
def stat_fs(path: Optional[str] = Query(default=None), ops: FileOps = Depends(get_bot_ops)):
    try:
        return FSStatResponse.model_validate(ops.stat(path or ''))
    except FileOpsError as exc:
        raise _http_error(exc)


@router.get('/usage', response_model=FSUsageResponse)
def usage_fs(path: Optional[str] = Query(default=None), ops: FileOps = Depends(get_bot_ops)):
    try:
        return FSUsageResponse.model_validate(ops.usage(path or ''))
    except FileOpsError as exc:
        raise _http_error(exc)


@router.post('/file')
def write_fs_file(payload: FSWriteRequest, ops: FileOps = Depends(get_bot_ops)):
    if not payload.path.strip():
        raise HTTPException(status_code=400, detail='path is required')
    overwrite = True if payload.overwrite is None else payload.overwrite
    try:
        written = ops.write_file(payload.path, payload.content, overwrite=overwrite)
    except FileOpsError as exc:
        raise _http_error(exc)
    return ApiResponse(ok=True, message='Written', data={'path': written})


@router.post('/dir')
def mkdir_fs(payload: FSMkdirRequest, ops: FileOps = Depends(get_bot_ops)):
    if not payload.path.strip():
        raise HTTPException(status_code=400, detail='path is required')
    parents = True if payload.parents is None else payload.parents
    try:
        created = ops.mkdir(payload.path, parents=parents)
    except FileOpsError as exc:
        raise _http_error(exc)
    return ApiResponse(ok=True, message='Folder created', data={'path': created})


@router.post('/upload')
async def upload_fs(
    file: UploadFile = File(...),
    form_path: Optional[str] = Form(default=None, alias='path'),
    query_path: Optional[str] = Query(default=None, alias='path'),
    ops: FileOps = Depends(get_bot_ops),
):
    requested = (form_path or '').strip() or (query_path or '').strip()
    try:
        uploaded = await run_in_threadpool(
            ops.upload, requested, file.filename, file.file, settings.upload_chunk_bytes
        )
    except FileOpsError as exc:
        raise _http_error(exc)
    finally:
        await file.close()
    return ApiResponse(ok=True, message='Uploaded', data={'path': uploaded})


@router.delete('')
def delete_fs(
    path: Optional[str] = Query(default=None),
    recursive: Optional[str] = Query(default=None),
    ops: FileOps = Depends(get_bot_ops),
):
    flag = parse_bool_query(recursive, 'recursive')
    try:
        deleted = ops.delete(path or '', recursive=flag)
    except FileOpsError as exc:
        raise _http_error(exc)
    return ApiResponse(ok=True, message='Deleted', data={'path': deleted})
