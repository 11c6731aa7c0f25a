"""Label PDF proxy, so the browser never sees carrier credentials"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from oms.api.deps import get_carrier
from oms.models.base import get_db
from oms.services.shipping_label_service import ShippingLabelService

router = APIRouter(prefix="/api/labels", tags=["labels"])


@router.get("/{parcel_id}")
async def download_label(parcel_id: str, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    pdf = await ShippingLabelService(db, carrier).get_label_pdf(parcel_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="label-{parcel_id}.pdf"'},
    )
