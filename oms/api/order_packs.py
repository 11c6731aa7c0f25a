"""Pack catalog endpoints"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from oms.api.serializers import pack_out
from oms.models.base import get_db
from oms.services import order_pack_service

router = APIRouter(prefix="/api/order-packs", tags=["order-packs"])


class PackIn(BaseModel):
    value: Optional[str] = None
    label: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    width: Optional[float] = None
    length: Optional[float] = None


@router.get("")
async def list_packs(db: Session = Depends(get_db)):
    return {"success": True, "data": [pack_out(p) for p in order_pack_service.list_packs(db)]}


@router.post("")
async def create_pack(body: PackIn, db: Session = Depends(get_db)):
    pack = order_pack_service.create_pack(db, body.model_dump(exclude_none=True))
    return {"success": True, "data": pack_out(pack)}


@router.patch("/{pack_id}")
async def update_pack(pack_id: int, body: PackIn, db: Session = Depends(get_db)):
    pack = order_pack_service.update_pack(db, pack_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": pack_out(pack)}


@router.delete("/{pack_id}")
async def delete_pack(pack_id: int, db: Session = Depends(get_db)):
    order_pack_service.delete_pack(db, pack_id)
    return {"success": True}
