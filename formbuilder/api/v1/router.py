from fastapi import APIRouter

from formbuilder.api.v1.endpoints import auth, dashboard, forms, public

api_v1_router = APIRouter()

api_v1_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_v1_router.include_router(forms.router, prefix="/forms", tags=["forms"])
api_v1_router.include_router(public.router, prefix="/public", tags=["public"])
api_v1_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
