"""Pack catalog maintenance"""
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from oms.exceptions import NotFoundError, ValidationError
from oms.models.base import commit
from oms.models.order_pack import OrderPack

PACK_FIELDS = ("value", "label", "weight", "height", "width", "length")


def list_packs(db: Session) -> List[OrderPack]:
    return db.query(OrderPack).order_by(OrderPack.label.asc()).all()


def get_pack(db: Session, pack_id: int) -> OrderPack:
    pack = db.query(OrderPack).filter(OrderPack.id == pack_id).first()
    if not pack:
        raise NotFoundError(f"Order pack {pack_id} not found")
    return pack


def _check_weight(data: Dict[str, Any]) -> None:
    weight = data.get("weight")
    if weight is not None and weight <= 0:
        raise ValidationError("Pack weight must be positive", fields=["weight"])


def create_pack(db: Session, data: Dict[str, Any]) -> OrderPack:
    missing = [name for name in ("value", "label") if not data.get(name)]
    if missing:
        raise ValidationError(fields=missing)
    _check_weight(data)
    pack = OrderPack(**{k: v for k, v in data.items() if k in PACK_FIELDS})
    db.add(pack)
    commit(db)
    return pack


def update_pack(db: Session, pack_id: int, data: Dict[str, Any]) -> OrderPack:
    pack = get_pack(db, pack_id)
    _check_weight(data)
    for key, value in data.items():
        if key in PACK_FIELDS:
            setattr(pack, key, value)
    commit(db)
    return pack


def delete_pack(db: Session, pack_id: int) -> None:
    db.delete(get_pack(db, pack_id))
    commit(db)
