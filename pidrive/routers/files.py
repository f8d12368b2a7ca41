from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse

from ..deps import get_file_ops, get_notifier
from ..errors import InvalidState, PathEscape
from ..schemas import FileEntry, RenameRequest, RenameResponse, SuccessResponse, UploadResponse
from ..services.change_notify import ChangeNotifier
from ..services.file_ops import FileOps

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api', tags=['files'])


def _os_reason(exc: OSError) -> str:
    return exc.strerror or exc.__class__.__name__


@router.get('/files', response_model=list[FileEntry])
def list_files(path: str = Query(default=''), ops: FileOps = Depends(get_file_ops)):
    try:
        return ops.list_dir(path)
    except PathEscape:
        raise HTTPException(status_code=400, detail='Invalid path')
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail='Directory not found')
    except NotADirectoryError:
        raise HTTPException(status_code=400, detail='Path is not a directory')
    except OSError as exc:
        logger.error('Error reading files in %r: %s', path, exc)
        raise HTTPException(status_code=500, detail=f'Failed to read files: {_os_reason(exc)}')


@router.post('/upload', response_model=UploadResponse)
async def upload(
    background_tasks: BackgroundTasks,
    path: str = Query(default=''),
    files: Optional[list[UploadFile]] = File(default=None),
    ops: FileOps = Depends(get_file_ops),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    files = files or []
    stored: list[dict] = []
    try:
        # every name is checked before the first byte is written
        ops.upload_targets(path, [item.filename or '' for item in files])
        for item in files:
            stored.append(await ops.store_upload(path, item.filename or '', item))
    except PathEscape:
        raise HTTPException(status_code=400, detail='Invalid path')
    except InvalidState as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except OSError as exc:
        logger.error('Upload error in %r: %s', path, exc)
        if stored:
            await notifier.notify()
        raise HTTPException(status_code=500, detail=f'Upload failed: {_os_reason(exc)}')

    if stored:
        background_tasks.add_task(notifier.notify)
    return UploadResponse(success=True, files=stored)


@router.get('/download/{filename}')
def download(filename: str, ops: FileOps = Depends(get_file_ops)):
    try:
        target = ops.download_path(filename)
    except PathEscape:
        raise HTTPException(status_code=400, detail='Invalid path')
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail='File not found')
    return FileResponse(target, filename=target.name)


@router.delete('/files/{filename}', response_model=SuccessResponse)
def delete(
    filename: str,
    background_tasks: BackgroundTasks,
    path: str = Query(default=''),
    ops: FileOps = Depends(get_file_ops),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    try:
        ops.delete(path, filename)
    except PathEscape:
        raise HTTPException(status_code=400, detail='Invalid path')
    except OSError as exc:
        logger.error('Delete error for %r in %r: %s', filename, path, exc)
        raise HTTPException(status_code=500, detail=f'Failed to delete file: {_os_reason(exc)}')

    background_tasks.add_task(notifier.notify)
    return SuccessResponse(success=True)


@router.put('/files/{filename}', response_model=RenameResponse)
def rename(
    filename: str,
    background_tasks: BackgroundTasks,
    payload: Optional[RenameRequest] = None,
    path: str = Query(default=''),
    ops: FileOps = Depends(get_file_ops),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    if payload is None or not payload.new_name:
        raise HTTPException(status_code=400, detail='newName is required')
    try:
        new_name = ops.rename(path, filename, payload.new_name)
    except PathEscape:
        raise HTTPException(status_code=400, detail='Invalid path')
    except InvalidState as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except OSError as exc:
        logger.error('Rename error for %r in %r: %s', filename, path, exc)
        raise HTTPException(status_code=500, detail=f'Failed to rename file: {_os_reason(exc)}')

    background_tasks.add_task(notifier.notify)
    return RenameResponse(success=True, new_name=new_name)
