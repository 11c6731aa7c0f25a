"""Feature request board"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from oms.api.serializers import feature_request_out
from oms.models.base import get_db
from oms.services import feature_request_service

router = APIRouter(prefix="/api/feature-requests", tags=["feature-requests"])


class FeatureRequestCreate(BaseModel):
    description: str = ""
    author: str = ""
    link_url: Optional[str] = None


class FeatureRequestStatus(BaseModel):
    status: str


@router.get("")
async def list_feature_requests(db: Session = Depends(get_db)):
    requests = feature_request_service.list_requests(db)
    return {"success": True, "data": [feature_request_out(r) for r in requests]}


@router.post("")
async def create_feature_request(body: FeatureRequestCreate, db: Session = Depends(get_db)):
    request = feature_request_service.create_request(db, body.description, body.author, body.link_url)
    return {"success": True, "data": feature_request_out(request)}


@router.patch("/{request_id}")
async def update_feature_request(request_id: int, body: FeatureRequestStatus, db: Session = Depends(get_db)):
    request = feature_request_service.update_status(db, request_id, body.status)
    return {"success": True, "data": feature_request_out(request)}


@router.delete("/{request_id}")
async def delete_feature_request(request_id: int, db: Session = Depends(get_db)):
    feature_request_service.delete_request(db, request_id)
    return {"success": True}
