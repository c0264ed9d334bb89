# Services/vendor_route_router.py
from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from typing import Optional
import logging
from Models import Route
from database import get_db
from Services.auth import Actor, require_vendor
from Services.helpers import commit_or_raise, now
from Services.query import BulkIds, BulkResult, Paginated, paginate
from Services.route_router import (
    RouteFilters, RouteForm, RouteResponse, commit_route, filter_routes,
    load_route, revalidate_routes, route_filters, route_values, with_locations,
)

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Route not found"}})

class BulkRouteUpdate(BulkIds):
    is_active: Optional[bool] = None
    is_popular: Optional[bool] = None
    is_shared: Optional[bool] = None

def owned_by(vendor_id: str):
    return and_(Route.created_by == vendor_id, Route.created_by_type == 'vendor')

def available_to(vendor_id: str):
    """Admin routes plus routes other vendors chose to share."""
    return or_(
        Route.created_by_type == 'admin',
        and_(
            Route.created_by_type == 'vendor',
            Route.is_shared == True,
            Route.created_by != vendor_id,
        ),
    )

def _owned_route(db: Session, route_id: str, vendor_id: str) -> Route:
    route = db.query(Route).filter(Route.id == route_id, owned_by(vendor_id)).first()
    if not route:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")
    return route

@router.get("", response_model=Paginated[RouteResponse])
async def get_my_routes(
    filters: RouteFilters = Depends(route_filters),
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    query = with_locations(db.query(Route)).filter(owned_by(actor.vendor_id))
    query = filter_routes(query, filters)
    return paginate(query, filters.page, filters.limit, [Route.created_at.desc()]).as_dict()

@router.get("/available", response_model=Paginated[RouteResponse])
async def get_available_routes(
    filters: RouteFilters = Depends(route_filters),
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    query = with_locations(db.query(Route)).filter(available_to(actor.vendor_id))
    query = filter_routes(query, filters)
    return paginate(query, filters.page, filters.limit, [Route.created_at.desc()]).as_dict()

@router.get("/{route_id}", response_model=RouteResponse)
async def get_my_route(
    route_id: str,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    route = with_locations(db.query(Route)).filter(Route.id == route_id, owned_by(actor.vendor_id)).first()
    if not route:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")
    return route

@router.post("", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
def create_my_route(
    data: RouteForm,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    route = Route(**route_values(db, data), created_by=actor.vendor_id, created_by_type='vendor')
    db.add(route)
    commit_route(db, "Failed to create route")

    logger.info(f"Vendor {actor.vendor_id} created route {route.route_slug}")
    revalidate_routes()
    return load_route(db, route.id)

@router.put("/{route_id}", response_model=RouteResponse)
def update_my_route(
    route_id: str,
    data: RouteForm,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    route = db.query(Route).filter(Route.id == route_id).first()
    if not route:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")
    if route.created_by != actor.vendor_id or route.created_by_type != 'vendor':
        logger.warning(f"Vendor {actor.vendor_id} tried to update route {route_id} it does not own")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to update this route"
        )

    for field, value in route_values(db, data).items():
        setattr(route, field, value)
    route.updated_at = now()
    commit_route(db, "Failed to update route")

    revalidate_routes(route_id)
    return load_route(db, route_id)

@router.delete("/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_my_route(
    route_id: str,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    route = _owned_route(db, route_id, actor.vendor_id)
    db.delete(route)
    commit_or_raise(db, "Failed to delete route")

    revalidate_routes(route_id)
    return None

@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete_my_routes(
    data: BulkIds,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    if not data.ids:
        return {"count": 0}
    count = (
        db.query(Route)
        .filter(Route.id.in_(data.ids), owned_by(actor.vendor_id))
        .delete(synchronize_session=False)
    )
    commit_or_raise(db, "Failed to delete routes")

    revalidate_routes()
    return {"count": count}

@router.post("/bulk-update", response_model=BulkResult)
def bulk_update_my_routes(
    data: BulkRouteUpdate,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    values = data.model_dump(exclude={"ids"}, exclude_none=True)
    if not data.ids or not values:
        return {"count": 0}
    values["updated_at"] = now()

    count = (
        db.query(Route)
        .filter(Route.id.in_(data.ids), owned_by(actor.vendor_id))
        .update(values, synchronize_session=False)
    )
    commit_or_raise(db, "Failed to update routes")

    revalidate_routes()
    return {"count": count}
