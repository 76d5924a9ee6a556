from fastapi import APIRouter

from hiring_pipeline.api.routes import applications
from hiring_pipeline.api.routes import dashboard
from hiring_pipeline.api.routes import taxonomy

api_router = APIRouter()
api_router.include_router(applications.router)
api_router.include_router(dashboard.router)
api_router.include_router(taxonomy.router)
