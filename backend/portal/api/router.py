from fastapi import APIRouter

from portal.api.notifications import notifications_router
from portal.api.requests import requests_router
from portal.api.users import users_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(notifications_router)
api_router.include_router(users_router)
