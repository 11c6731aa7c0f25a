"""
Customer endpoints: records imported from Stripe, CRM owner, trial end
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from oms.api.deps import get_crm, get_stripe
from oms.api.serializers import customer_out
from oms.exceptions import ValidationError
from oms.models.base import get_db
from oms.services.customer_service import CustomerService

router = APIRouter(prefix="/api/customers", tags=["customers"])


# ── Schemas ──────────────────────────────────────────────

class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    address_house_number: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_country: Optional[str] = None


class StripeCustomerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(alias="customerId")


# ── Endpoints ────────────────────────────────────────────

@router.get("")
async def list_customers(
    search: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    customers = CustomerService(db).list_customers(search=search, limit=limit, offset=offset)
    return {"success": True, "data": [customer_out(c) for c in customers]}


@router.post("/fetch-stripe")
async def fetch_stripe_customer(body: StripeCustomerRequest, db: Session = Depends(get_db), stripe_client=Depends(get_stripe)):
    """Import (or refresh) a customer from Stripe by its Stripe id"""
    customer, created = CustomerService(db, stripe_client=stripe_client).import_from_stripe(body.customer_id)
    return {"success": True, "created": created, "data": customer_out(customer)}


@router.post("/trial-end")
async def trial_end(body: StripeCustomerRequest, db: Session = Depends(get_db), stripe_client=Depends(get_stripe)):
    return {"success": True, **CustomerService(db, stripe_client=stripe_client).trial_end(body.customer_id)}


@router.get("/{customer_id}")
async def get_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = CustomerService(db).get(customer_id)
    return {"success": True, "data": customer_out(customer, include_orders=True)}


@router.patch("/{customer_id}")
async def update_customer(customer_id: int, body: CustomerUpdate, db: Session = Depends(get_db)):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update")
    customer = CustomerService(db).update(customer_id, updates)
    return {"success": True, "data": customer_out(customer)}


@router.post("/{customer_id}/fetch-hubspot-owner")
async def fetch_hubspot_owner(customer_id: int, db: Session = Depends(get_db), crm=Depends(get_crm)):
    customer = await CustomerService(db, crm=crm).fetch_crm_owner(customer_id)
    return {
        "success": True,
        "owner_id": customer.hubspot_owner_id,
        "owner_name": customer.hubspot_owner_name,
        "data": customer_out(customer),
    }
