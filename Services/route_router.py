# Services/route_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import exc
from sqlalchemy.orm import Session, joinedload
from pydantic import BaseModel, ConfigDict, confloat, conint, constr
from typing import List, Optional
from datetime import datetime
import logging
from Models import Location, Route
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import commit_or_raise, get_or_404, now, slugify
from Services.query import BulkIds, BulkResult, Flag, Paginated, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import LocationSummary

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Route not found"}})

SLUG_CONFLICT = "A route with this slug already exists"
COMBINATION_CONFLICT = "A route between these locations already exists"

class RouteBase(BaseModel):
    route_name: constr(min_length=1, max_length=200)
    route_slug: constr(max_length=200) = ""
    origin_location_id: constr(min_length=1)
    destination_location_id: constr(min_length=1)
    distance_km: Optional[confloat(ge=0)] = None
    estimated_duration_minutes: Optional[conint(ge=0)] = None
    base_price: Optional[confloat(ge=0)] = None
    is_active: bool = True
    is_popular: bool = False
    is_shared: bool = False

class RouteForm(RouteBase):
    pass

class RouteResponse(RouteBase):
    id: str
    created_by: Optional[str] = None
    created_by_type: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    origin_location: Optional[LocationSummary] = None
    destination_location: Optional[LocationSummary] = None

    model_config = ConfigDict(from_attributes=True)

class ActiveToggle(BaseModel):
    is_active: Optional[bool] = None

class PopularToggle(BaseModel):
    is_popular: Optional[bool] = None

class RouteFilters(BaseModel):
    search: Optional[str] = None
    origin_location_id: Optional[str] = None
    destination_location_id: Optional[str] = None
    is_active: Flag = None
    is_popular: Flag = None
    is_shared: Flag = None
    page: int = 1
    limit: int = 10

def route_filters(
    search: Optional[str] = Query(default=None, description="Matches route name or slug"),
    origin_location_id: Optional[str] = Query(default=None),
    destination_location_id: Optional[str] = Query(default=None),
    is_active: Flag = Query(default=None),
    is_popular: Flag = Query(default=None),
    is_shared: Flag = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> RouteFilters:
    return RouteFilters(
        search=search, origin_location_id=origin_location_id,
        destination_location_id=destination_location_id, is_active=is_active,
        is_popular=is_popular, is_shared=is_shared, page=page, limit=limit
    )

def with_locations(query):
    return query.options(
        joinedload(Route.origin_location),
        joinedload(Route.destination_location),
    )

def filter_routes(query, filters: RouteFilters):
    query = apply_search(query, [Route.route_name, Route.route_slug], filters.search)
    query = apply_equals(query, Route.origin_location_id, filters.origin_location_id)
    query = apply_equals(query, Route.destination_location_id, filters.destination_location_id)
    query = apply_equals(query, Route.is_active, filters.is_active)
    query = apply_equals(query, Route.is_popular, filters.is_popular)
    return apply_equals(query, Route.is_shared, filters.is_shared)

def list_routes(db: Session, filters: RouteFilters):
    query = filter_routes(with_locations(db.query(Route)), filters)
    return paginate(query, filters.page, filters.limit, [Route.created_at.desc()])

def route_values(db: Session, data: RouteForm) -> dict:
    """Validated column values for a submitted route form."""
    if data.origin_location_id == data.destination_location_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Origin and destination must be different"
        )
    found = db.query(Location.id).filter(
        Location.id.in_([data.origin_location_id, data.destination_location_id])
    ).count()
    if found != 2:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Location not found")

    slug = slugify(data.route_slug or data.route_name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")

    values = data.model_dump()
    values["route_name"] = data.route_name.strip()
    values["route_slug"] = slug
    return values

def conflict_message(error: exc.IntegrityError) -> str:
    if "route_slug" in str(error.orig):
        return SLUG_CONFLICT
    return COMBINATION_CONFLICT

def commit_route(db: Session, failure: str):
    """Commit, telling a duplicate slug apart from a duplicate origin/destination pair."""
    try:
        db.commit()
    except exc.IntegrityError as e:
        db.rollback()
        logger.warning(f"{failure}: {e.orig}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=conflict_message(e)
        )
    except exc.SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{failure}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=failure
        )

def revalidate_routes(route_id: Optional[str] = None):
    paths = ["/admin/routes", "/vendor/routes"]
    if route_id:
        paths.append(f"/admin/routes/{route_id}/edit")
    revalidation.revalidate(*paths, tags=["routes"])

def load_route(db: Session, route_id: str) -> Route:
    route = with_locations(db.query(Route)).filter(Route.id == route_id).first()
    if not route:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")
    return route

@router.get("", response_model=Paginated[RouteResponse])
async def get_routes(
    filters: RouteFilters = Depends(route_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_routes(db, filters).as_dict()

@router.get("/locations", response_model=List[LocationSummary])
async def get_route_locations(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return db.query(Location).filter(Location.is_active == True).order_by(Location.name).all()

@router.get("/{route_id}", response_model=RouteResponse)
async def get_route(
    route_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return load_route(db, route_id)

@router.post("", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
def create_route(
    data: RouteForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    route = Route(**route_values(db, data), created_by=actor.id, created_by_type='admin')
    db.add(route)
    commit_route(db, "Failed to create route")

    logger.info(f"Route created: {route.route_slug} by {actor.id}")
    revalidate_routes()
    return load_route(db, route.id)

@router.put("/{route_id}", response_model=RouteResponse)
def update_route(
    route_id: str,
    data: RouteForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    route = get_or_404(db, Route, route_id, "Route")
    for field, value in route_values(db, data).items():
        setattr(route, field, value)
    route.updated_at = now()
    commit_route(db, "Failed to update route")

    revalidate_routes(route_id)
    return load_route(db, route_id)

@router.delete("/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_route(
    route_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    route = get_or_404(db, Route, route_id, "Route")
    db.delete(route)
    commit_or_raise(db, "Failed to delete route")

    logger.info(f"Route deleted: {route_id} by {actor.id}")
    revalidate_routes(route_id)
    return None

@router.patch("/{route_id}/status", response_model=RouteResponse)
def toggle_route_status(
    route_id: str,
    data: ActiveToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    route = get_or_404(db, Route, route_id, "Route")
    route.is_active = (not route.is_active) if data.is_active is None else data.is_active
    route.updated_at = now()
    commit_or_raise(db, "Failed to update route status")

    revalidate_routes(route_id)
    return load_route(db, route_id)

@router.patch("/{route_id}/popular", response_model=RouteResponse)
def toggle_route_popular(
    route_id: str,
    data: PopularToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    route = get_or_404(db, Route, route_id, "Route")
    route.is_popular = (not route.is_popular) if data.is_popular is None else data.is_popular
    route.updated_at = now()
    commit_or_raise(db, "Failed to update route")

    revalidate_routes(route_id)
    return load_route(db, route_id)

@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete_routes(
    data: BulkIds,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if not data.ids:
        return {"count": 0}
    count = db.query(Route).filter(Route.id.in_(data.ids)).delete(synchronize_session=False)
    commit_or_raise(db, "Failed to delete routes")

    logger.info(f"Bulk route delete removed {count} rows by {actor.id}")
    revalidate_routes()
    return {"count": count}
