from fastapi import APIRouter, Depends
from app.config import settings
from app.core.dependencies import require_admin
from app.modules.auth.service import AuthStore
from app.modules.setup.schemas import SetupStatusResponse
from app.modules.setup.service import SetupService

router = APIRouter(prefix="/setup", tags=["setup"])


def get_setup_service(auth_store: AuthStore = Depends(require_admin)) -> SetupService:
    return SetupService(auth_store.account_store, settings.get_setup_tables_list())


@router.get("/status", response_model=SetupStatusResponse)
async def get_setup_status(service: SetupService = Depends(get_setup_service)):
    """Check that the tables the app relies on exist (admin only)"""
    return await service.check_database_setup()
