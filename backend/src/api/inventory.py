# pyright: reportMissingTypeStubs=false
"""
Inventory API endpoints.

Suppliers, products, stock movements, current stock levels and the
implant register CSV import/export.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin_or_manager
from auth.permissions import require_feature
from services import InventoryService
from api.responses import (
    ProductResponse,
    StockLevelResponse,
    StockMovementResponse,
    SupplierResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("inventory"))])


class SupplierRequest(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class ProductRequest(BaseModel):
    name: str
    sku: Optional[str] = None
    service_type: Optional[str] = None
    udi_di: Optional[str] = None
    unit_cost: Optional[Decimal | str] = None
    min_threshold: int = 0
    supplier_id: Optional[int] = None


class MovementCreateRequest(BaseModel):
    """Movement is IN or OUT; the quantity sign is ignored."""
    product_id: int
    movement: str
    quantity: int
    note: Optional[str] = None
    patient_id: Optional[int] = None
    udi_pi: Optional[str] = None
    intervention_date: Optional[date] = None
    intervention_site: Optional[str] = None
    purchase_date: Optional[date] = None


class MovementUpdateRequest(BaseModel):
    movement: str
    quantity: int
    note: Optional[str] = None


# ===== Suppliers =====

@router.get("/suppliers", summary="List suppliers")
async def list_suppliers(
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> List[SupplierResponse]:
    return [SupplierResponse.model_validate(s) for s in InventoryService.list_suppliers(db)]


@router.post("/suppliers", summary="Create a supplier", status_code=status.HTTP_201_CREATED)
async def create_supplier(
    request: SupplierRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> SupplierResponse:
    supplier = InventoryService.create_supplier(db, current_user, **request.model_dump())
    return SupplierResponse.model_validate(supplier)


@router.put("/suppliers/{supplier_id}", summary="Update a supplier")
async def update_supplier(
    supplier_id: int,
    request: SupplierRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> SupplierResponse:
    supplier = InventoryService.update_supplier(db, current_user, supplier_id, **request.model_dump())
    return SupplierResponse.model_validate(supplier)


@router.delete("/suppliers/{supplier_id}", summary="Delete a supplier", status_code=status.HTTP_204_NO_CONTENT)
async def delete_supplier(
    supplier_id: int,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> None:
    InventoryService.delete_supplier(db, current_user, supplier_id)


# ===== Products =====

@router.get("/products", summary="List products")
async def list_products(
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> List[ProductResponse]:
    return [ProductResponse.model_validate(p) for p in InventoryService.list_products(db)]


@router.post("/products", summary="Create a product", status_code=status.HTTP_201_CREATED)
async def create_product(
    request: ProductRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> ProductResponse:
    product = InventoryService.create_product(db, current_user, **request.model_dump())
    return ProductResponse.model_validate(product)


@router.put("/products/{product_id}", summary="Update a product")
async def update_product(
    product_id: int,
    request: ProductRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> ProductResponse:
    product = InventoryService.update_product(db, current_user, product_id, **request.model_dump())
    return ProductResponse.model_validate(product)


@router.delete("/products/{product_id}", summary="Delete a product and its movements", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> None:
    InventoryService.delete_product(db, current_user, product_id)


# ===== Movements =====

@router.get("/movements", summary="List stock movements")
async def list_movements(
    product_id: Optional[int] = Query(None),
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> List[StockMovementResponse]:
    return [StockMovementResponse.model_validate(m) for m in InventoryService.list_movements(db, product_id)]


@router.post("/movements", summary="Record a stock movement", status_code=status.HTTP_201_CREATED)
async def add_movement(
    request: MovementCreateRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> StockMovementResponse:
    movement = InventoryService.add_movement(db, current_user, **request.model_dump())
    return StockMovementResponse.model_validate(movement)


@router.put("/movements/{movement_id}", summary="Update a stock movement")
async def update_movement(
    movement_id: int,
    request: MovementUpdateRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> StockMovementResponse:
    movement = InventoryService.update_movement(db, current_user, movement_id, **request.model_dump())
    return StockMovementResponse.model_validate(movement)


@router.delete("/movements/{movement_id}", summary="Delete a stock movement", status_code=status.HTTP_204_NO_CONTENT)
async def delete_movement(
    movement_id: int,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> None:
    InventoryService.delete_movement(db, current_user, movement_id)


# ===== Levels and register =====

@router.get("/levels", summary="Current stock per product")
async def stock_levels(
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> List[StockLevelResponse]:
    return [StockLevelResponse(**level) for level in InventoryService.stock_levels(db)]


@router.post("/import", summary="Import the implant register CSV")
async def import_stock_csv(
    file: Optional[UploadFile] = File(None),
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    """
    Import a ';'-separated implant register.

    Each row becomes an OUT movement of one device. Patients, suppliers and
    products are matched by name (or UDI-DI) and created when missing.
    """
    text = None
    if file is not None:
        raw = await file.read()
        text = raw.decode("utf-8-sig", errors="replace")
    return InventoryService.import_stock_csv(db, current_user, text)


@router.get("/export", summary="Export the implant register CSV")
async def export_stock_csv(
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> Response:
    content = InventoryService.export_stock_csv(db)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="registro-impianti.csv"'},
    )
