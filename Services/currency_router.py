# Services/currency_router.py
from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field, ValidationError, conint
from typing import Dict, List, Optional
from datetime import datetime
import httpx
import logging
import os
from Models import CurrencySetting
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import commit_or_raise, now
from Services import revalidation

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Currency not found"}})

REFRESH_TIMEOUT_S = float(os.getenv("EXCHANGE_RATES_TIMEOUT_S", "20"))

class CurrencyResponse(BaseModel):
    currency_code: str
    currency_name: str
    symbol: Optional[str] = None
    exchange_rate: Optional[float] = None
    rates_updated_at: Optional[datetime] = None
    is_enabled: bool = False
    is_featured: bool = False
    is_default: bool = False
    display_order: Optional[int] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class EnabledToggle(BaseModel):
    is_enabled: bool

class FeaturedToggle(BaseModel):
    is_featured: bool

class DisplayOrderUpdate(BaseModel):
    display_order: conint(ge=0)

class RatesPayload(BaseModel):
    """Body returned by the hosted `fetch-exchange-rates` function."""
    success: bool = False
    message: Optional[str] = None
    source: Optional[str] = None
    rates: Dict[str, float] = {}
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")

class RefreshResult(BaseModel):
    success: bool
    message: Optional[str] = None
    source: Optional[str] = None
    rates: Dict[str, float] = {}
    last_updated: Optional[str] = None
    updated: int = 0

def _revalidate(*tags: str):
    revalidation.revalidate("/admin/settings/currencies", tags=list(tags))

def _get_currency(db: Session, currency_code: str) -> CurrencySetting:
    currency = db.query(CurrencySetting).filter(
        CurrencySetting.currency_code == currency_code.upper()
    ).first()
    if not currency:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Currency not found")
    return currency

def set_enabled(db: Session, currency: CurrencySetting, is_enabled: bool) -> CurrencySetting:
    if not is_enabled and currency.is_default:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot disable the default currency"
        )
    currency.is_enabled = is_enabled
    # A disabled currency can never stay featured
    if not is_enabled:
        currency.is_featured = False
    currency.updated_at = now()
    commit_or_raise(db, "Failed to update currency")
    return currency

def set_featured(db: Session, currency: CurrencySetting, is_featured: bool) -> CurrencySetting:
    if is_featured and not currency.is_enabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Currency must be enabled before featuring"
        )
    currency.is_featured = is_featured
    currency.updated_at = now()
    commit_or_raise(db, "Failed to update currency")
    return currency

def set_default(db: Session, currency: CurrencySetting) -> CurrencySetting:
    """Make `currency` the only default; the previous default is cleared in the same commit."""
    if not currency.is_enabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Currency must be enabled before setting as default"
        )
    timestamp = now()
    (
        db.query(CurrencySetting)
        .filter(CurrencySetting.is_default == True, CurrencySetting.currency_code != currency.currency_code)
        .update({"is_default": False, "updated_at": timestamp}, synchronize_session=False)
    )
    currency.is_default = True
    currency.updated_at = timestamp
    commit_or_raise(db, "Failed to set default currency")
    return currency

def fetch_exchange_rates() -> RatesPayload:
    """Ask the hosted `fetch-exchange-rates` function for fresh rates."""
    base_url = (os.getenv("SUPABASE_URL") or "").rstrip("/")
    anon_key = os.getenv("SUPABASE_ANON_KEY") or ""
    if not base_url or not anon_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Supabase configuration missing"
        )

    try:
        res = httpx.post(
            f"{base_url}/functions/v1/fetch-exchange-rates",
            headers={"Authorization": f"Bearer {anon_key}", "Content-Type": "application/json"},
            json={"force": True},
            timeout=REFRESH_TIMEOUT_S,
        )
    except httpx.HTTPError as e:
        logger.error(f"Exchange rate refresh failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to refresh rates")

    if res.status_code >= 400:
        logger.error(f"Exchange rate function error {res.status_code}: {res.text}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to refresh rates")

    try:
        return RatesPayload.model_validate(res.json())
    except (ValidationError, ValueError) as e:
        logger.error(f"Exchange rate function returned an unusable body: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to refresh rates")

def store_rates(db: Session, rates: Dict[str, float]) -> int:
    timestamp = now()
    updated = 0
    for currency in db.query(CurrencySetting).all():
        rate = rates.get(currency.currency_code)
        if rate is None:
            continue
        currency.exchange_rate = rate
        currency.rates_updated_at = timestamp
        currency.updated_at = timestamp
        updated += 1
    commit_or_raise(db, "Failed to store exchange rates")
    return updated

@router.get("", response_model=List[CurrencyResponse])
async def list_currencies(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return (
        db.query(CurrencySetting)
        .order_by(CurrencySetting.display_order.asc(), CurrencySetting.currency_code.asc())
        .all()
    )

@router.patch("/{currency_code}/enabled", response_model=CurrencyResponse)
def toggle_currency_enabled(
    currency_code: str,
    data: EnabledToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    currency = set_enabled(db, _get_currency(db, currency_code), data.is_enabled)
    logger.info(f"Currency {currency.currency_code} enabled={data.is_enabled} by {actor.id}")
    _revalidate("currencies")
    return currency

@router.patch("/{currency_code}/featured", response_model=CurrencyResponse)
def toggle_currency_featured(
    currency_code: str,
    data: FeaturedToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    currency = set_featured(db, _get_currency(db, currency_code), data.is_featured)
    _revalidate("currencies")
    return currency

@router.post("/{currency_code}/default", response_model=CurrencyResponse)
def set_default_currency(
    currency_code: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    currency = set_default(db, _get_currency(db, currency_code))
    logger.info(f"Default currency set to {currency.currency_code} by {actor.id}")
    _revalidate("currencies")
    return currency

@router.patch("/{currency_code}/order", response_model=CurrencyResponse)
def update_currency_order(
    currency_code: str,
    data: DisplayOrderUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    currency = _get_currency(db, currency_code)
    currency.display_order = data.display_order
    currency.updated_at = now()
    commit_or_raise(db, "Failed to update currency order")

    _revalidate("currencies")
    return currency

@router.post("/refresh-rates", response_model=RefreshResult)
def refresh_exchange_rates(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    result = fetch_exchange_rates()
    if not result.success:
        logger.warning(f"Exchange rate refresh reported failure: {result.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.message or "Failed to refresh rates"
        )

    updated = store_rates(db, result.rates)
    logger.info(f"Exchange rates refreshed from {result.source}: {updated} currencies updated")
    _revalidate("exchange-rates", "currencies")
    return {
        "success": True,
        "message": result.message,
        "source": result.source,
        "rates": result.rates,
        "last_updated": result.last_updated,
        "updated": updated,
    }
