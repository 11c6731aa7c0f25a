"""Feature request board: staff suggestions with a status"""
from typing import List, Optional

from sqlalchemy.orm import Session

from oms.exceptions import NotFoundError, ValidationError
from oms.models.base import commit
from oms.models.feature_request import FeatureRequest
from oms.utils.logger import log

STATUSES = ("Open", "Planned", "In Progress", "Done", "Rejected")


def list_requests(db: Session) -> List[FeatureRequest]:
    return db.query(FeatureRequest).order_by(FeatureRequest.created_at.desc(), FeatureRequest.id.desc()).all()


def create_request(db: Session, description: str, author: str, link_url: Optional[str] = None) -> FeatureRequest:
    missing = [name for name, value in (("description", description), ("author", author)) if not (value or "").strip()]
    if missing:
        raise ValidationError("Description and author are required", fields=missing)
    request = FeatureRequest(
        description=description.strip(),
        author=author.strip(),
        link_url=(link_url or "").strip() or None,
    )
    db.add(request)
    commit(db)
    log.info(f"Feature request {request.id} added by {request.author}")
    return request


def update_status(db: Session, request_id: int, status: str) -> FeatureRequest:
    if status not in STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}", fields=["status"])
    request = db.query(FeatureRequest).filter(FeatureRequest.id == request_id).first()
    if not request:
        raise NotFoundError(f"Feature request {request_id} not found")
    request.status = status
    commit(db)
    return request


def delete_request(db: Session, request_id: int) -> None:
    request = db.query(FeatureRequest).filter(FeatureRequest.id == request_id).first()
    if not request:
        raise NotFoundError(f"Feature request {request_id} not found")
    db.delete(request)
    commit(db)
