from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..db import engine
from ..auth.security import get_current_user
from ..schemas.settings import GeocodeRequest
from ..services.geocoding import MapboxGeocoder, GeocodingNotConfigured, GeocodingError


router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.get("/status")
def status():
    # DB health
    db_ok = True
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except SQLAlchemyError:
        db_ok = False

    return {
        "db": db_ok,
        "blob": bool(settings.azure_blob_connection and settings.azure_blob_container),
        "geocoding": bool(settings.mapbox_geocoding_token),
        "maps": bool(settings.mapbox_public_token),
    }


@router.post("/geocode")
def geocode(req: GeocodeRequest, _=Depends(get_current_user)):
    """Address suggestions with coordinates"""
    if not req.address.strip():
        raise HTTPException(status_code=400, detail="Address is required")
    try:
        geocoder = MapboxGeocoder()
        suggestions = geocoder.geocode(req.address.strip(), limit=req.limit, country=req.country)
    except GeocodingNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except GeocodingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"query": req.address, "suggestions": suggestions}
