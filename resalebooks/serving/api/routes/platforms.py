"""
Sale Platform Endpoints
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from resalebooks.serving.api.dependencies import get_store
from resalebooks.store import RecordStore
from resalebooks.taxonomy import PlatformCatalog

router = APIRouter()


class PlatformRequest(BaseModel):
    name: str


def get_catalog(store: RecordStore = Depends(get_store)) -> PlatformCatalog:
    return PlatformCatalog(store)


@router.get("")
async def list_platforms(catalog: PlatformCatalog = Depends(get_catalog)) -> List[Dict[str, Any]]:
    return await catalog.list_platforms()


@router.post("", status_code=201)
async def add_platform(
    request: PlatformRequest,
    catalog: PlatformCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    return await catalog.add_platform(request.name)


@router.put("/{platform_id}")
async def rename_platform(
    platform_id: str,
    request: PlatformRequest,
    catalog: PlatformCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    return await catalog.rename_platform(platform_id, request.name)


@router.delete("/{platform_id}", status_code=204)
async def delete_platform(
    platform_id: str,
    catalog: PlatformCatalog = Depends(get_catalog),
) -> Response:
    await catalog.delete_platform(platform_id)
    return Response(status_code=204)
