from fastapi import APIRouter

from campusconnect.core.modules.account.models import AccountView
from campusconnect.web.deps import AppDep, IdentityDep
from campusconnect.web.openapi import ErrorResponse

router = APIRouter(tags=["profile"])


@router.get(
    "/profile",
    summary="Get current account profile",
    description="Get the profile of the currently authenticated member or administrator.",
    operation_id="getCurrentProfile",
    responses={
        200: {"description": "Current account profile"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Session ended, replaced or token invalid"},
    },
)
async def get_profile(app: AppDep, identity: IdentityDep) -> AccountView:
    return await app.get_current_account(identity)
