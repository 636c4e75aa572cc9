"""
Main API router
"""
from fastapi import APIRouter
from handshake.api.v1 import github_apps

api_router = APIRouter()

# GitHub redirects the browser to these routes, so they stay plain GETs
api_router.include_router(github_apps.router, tags=["github-apps"])
