from fastapi import APIRouter
from app.api.v2 import contact_segments

api_router = APIRouter()

# Include all v2 routers
api_router.include_router(contact_segments.router, prefix="/contact-segments", tags=["contact-segments"])
