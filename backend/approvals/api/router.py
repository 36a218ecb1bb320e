from fastapi import APIRouter

from approvals.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(requests_router)
