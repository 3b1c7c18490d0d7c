"""
Record Intake Endpoints

Sales, refunds, inventory, expenses and rebates.
"""

from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends

from resalebooks.reconciliation import (
    ExpenseEntry,
    InventoryEntry,
    RebateEntry,
    ReconciliationService,
    RefundEntry,
    SaleEntry,
)
from resalebooks.serving.api.dependencies import get_store
from resalebooks.store import RecordStore

router = APIRouter()


def get_service(store: RecordStore = Depends(get_store)) -> ReconciliationService:
    return ReconciliationService(store)


@router.post("/sales", status_code=201)
async def create_sale(
    entry: SaleEntry,
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    """
    Record a sale. A linked inventory item is decremented; if that fails the
    sale is still saved and ``inventory_error`` says why.
    """
    return asdict(await service.record_sale(entry))


@router.get("/sales/{sale_id}/provenance")
async def get_refund_provenance(
    sale_id: str,
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    return asdict(await service.refund_provenance(sale_id))


@router.post("/refunds", status_code=201)
async def create_refund(
    entry: RefundEntry,
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    return asdict(await service.record_refund(entry))


@router.post("/inventory", status_code=201)
async def create_inventory_item(
    entry: InventoryEntry,
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    return await service.record_inventory(entry)


@router.post("/expenses", status_code=201)
async def create_expense(
    entry: ExpenseEntry,
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    return await service.record_expense(entry)


@router.post("/rebates", status_code=201)
async def create_rebate(
    entry: RebateEntry,
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    return await service.record_rebate(entry)
