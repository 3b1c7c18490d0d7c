"""
Taxonomy API Endpoints

Department/category/subcategory lists, find-or-create, quick find and
analytics groupings.
"""

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel

from resalebooks.serving.api.dependencies import get_store
from resalebooks.store import RecordStore
from resalebooks.taxonomy import (
    GroupingService,
    TaxonomyLevel,
    TaxonomyResolver,
    quick_find,
)

router = APIRouter()


class EnsureRequest(BaseModel):
    level: TaxonomyLevel
    name: str
    parent_id: Optional[str] = None


class GroupingRequest(BaseModel):
    department_id: str
    category_id: str
    subcategory_id: str


def get_resolver(store: RecordStore = Depends(get_store)) -> TaxonomyResolver:
    return TaxonomyResolver(store)


def get_groupings(store: RecordStore = Depends(get_store)) -> GroupingService:
    return GroupingService(store)


@router.get("/departments")
async def list_departments(resolver: TaxonomyResolver = Depends(get_resolver)) -> List[Dict[str, Any]]:
    return [asdict(node) for node in await resolver.list_departments()]


@router.get("/departments/{department_id}/categories")
async def list_categories(
    department_id: str,
    resolver: TaxonomyResolver = Depends(get_resolver),
) -> List[Dict[str, Any]]:
    return [asdict(node) for node in await resolver.list_categories(department_id)]


@router.get("/categories/{category_id}/subcategories")
async def list_subcategories(
    category_id: str,
    resolver: TaxonomyResolver = Depends(get_resolver),
) -> List[Dict[str, Any]]:
    return [asdict(node) for node in await resolver.list_subcategories(category_id)]


@router.post("/ensure")
async def ensure_node(
    request: EnsureRequest,
    resolver: TaxonomyResolver = Depends(get_resolver),
) -> Dict[str, Any]:
    """Return the matching row (case-insensitive) under the parent, creating it if needed"""
    return asdict(await resolver.ensure(request.level, request.name, parent_id=request.parent_id))


@router.get("/triples")
async def list_triples(
    q: str = "",
    limit: int = Query(12, ge=1, le=100),
    resolver: TaxonomyResolver = Depends(get_resolver),
) -> List[Dict[str, Any]]:
    triples = await resolver.list_all_triples()
    if q.strip():
        triples = quick_find(triples, q, limit=limit)
    return [asdict(t) for t in triples]


@router.get("/groupings")
async def list_groupings(service: GroupingService = Depends(get_groupings)) -> List[Dict[str, Any]]:
    return [asdict(g) for g in await service.list_groupings()]


@router.post("/groupings", status_code=201)
async def create_grouping(
    request: GroupingRequest,
    service: GroupingService = Depends(get_groupings),
) -> Dict[str, Any]:
    return await service.add_grouping(request.department_id, request.category_id, request.subcategory_id)


@router.put("/groupings/{grouping_id}")
async def update_grouping(
    grouping_id: str,
    request: GroupingRequest,
    service: GroupingService = Depends(get_groupings),
) -> Dict[str, Any]:
    return await service.update_grouping(
        grouping_id, request.department_id, request.category_id, request.subcategory_id
    )


@router.delete("/groupings/{grouping_id}", status_code=204)
async def delete_grouping(
    grouping_id: str,
    service: GroupingService = Depends(get_groupings),
) -> Response:
    await service.delete_grouping(grouping_id)
    return Response(status_code=204)
