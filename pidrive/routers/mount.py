from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_mount_manager
from ..errors import MountError
from ..schemas import MountStatus, SuccessResponse
from ..services.mount_manager import MountManager

router = APIRouter(prefix='/api', tags=['mount'])


@router.post('/refresh', response_model=SuccessResponse)
async def refresh(manager: MountManager = Depends(get_mount_manager)):
    result = await manager.refresh()
    try:
        result.raise_for_status()
    except MountError:
        raise HTTPException(status_code=500, detail='Failed to refresh mount')
    return SuccessResponse(success=True)


@router.get('/status', response_model=MountStatus)
def status(manager: MountManager = Depends(get_mount_manager)):
    return manager.status()
