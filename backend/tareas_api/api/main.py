from fastapi import APIRouter

from tareas_api.api.routes import tareas, utils

api_router = APIRouter()
api_router.include_router(tareas.router)
api_router.include_router(utils.router)
