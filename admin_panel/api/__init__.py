"""API endpoints."""

from fastapi import APIRouter

api_router = APIRouter()

# Импортируем все роутеры
from admin_panel.api import auth, classes, moderators, news, parents, verifications

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(classes.router, prefix="/classes", tags=["classes"])
api_router.include_router(news.router, prefix="/news", tags=["news"])
api_router.include_router(moderators.router, prefix="/moderators", tags=["moderators"])
api_router.include_router(parents.router, prefix="/parents", tags=["parents"])
api_router.include_router(verifications.router, prefix="/verifications", tags=["verifications"])
