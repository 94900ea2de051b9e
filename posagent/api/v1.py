# posagent/api/v1.py
from fastapi import APIRouter

from posagent.api.deps import AppSettings
from posagent.api.endpoints import appstore, chat, devices, diagnostic, status, terminals
from posagent.models.api import ServiceIndexResponse

api_router = APIRouter()


@api_router.get("", response_model=ServiceIndexResponse, tags=["Status & Health"], summary="Service index")
async def get_index(settings: AppSettings):
    return status.service_index(settings)


api_router.include_router(chat.router)
api_router.include_router(devices.router)
api_router.include_router(terminals.router)
api_router.include_router(appstore.router)
api_router.include_router(diagnostic.router)
