from typing import Any
from uuid import UUID

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, Field

from campusconnect.app import App
from campusconnect.core.modules.account.models import AccountView
from campusconnect.core.modules.session.models import PrincipalKind, SignInPolicy
from campusconnect.web.cookies import clear_session_cookies, set_session_cookie
from campusconnect.web.deps import AppDep, IdentityDep, TokenResolverDep
from campusconnect.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class MemberSignUpRequest(BaseModel):
    """Member registration request."""

    email: str = Field(..., description="Email address, unique among members")
    password: str = Field(..., description="Password, at least 6 characters")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    student_id: str = Field(..., description="Student ID from the campus allow-list, e.g. ST12")


class AdminSignUpRequest(BaseModel):
    """Administrator registration request."""

    email: str = Field(..., description="Email address, unique among administrators")
    password: str = Field(..., description="Password, at least 8 characters")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    admin_code: str = Field(..., description="Registration code issued to administrators")


class SignUpResponse(BaseModel):
    success: bool = True
    message: str
    account: AccountView


class SignInRequest(BaseModel):
    """Credentials for sign-in."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Password")
    replace_existing: bool = Field(True, description="End a session still active elsewhere instead of refusing")


class MemberSignInRequest(SignInRequest):
    """Member credentials; the student ID must match the one registered."""

    student_id: str = Field(..., description="Student ID used at signup")


class SignInResponse(BaseModel):
    success: bool = True
    message: str
    token: str = Field(..., description="Session token, also set as a cookie")


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SessionInfo(BaseModel):
    """The verified session behind the request."""

    kind: PrincipalKind
    account_id: UUID
    session_id: str


async def _sign_in(
    app: App, kind: PrincipalKind, data: SignInRequest, response: Response, student_id: str | None = None
) -> SignInResponse:
    policy = SignInPolicy.SUPERSEDE if data.replace_existing else SignInPolicy.REJECT_IF_ACTIVE
    result = await app.sign_in(kind, data.email, data.password, policy, student_id)
    set_session_cookie(response, kind, result.token, app.config)
    message = "Signed in successfully. Previous session ended." if result.superseded else "Signed in successfully."
    return SignInResponse(message=message, token=result.token)


SIGN_IN_RESPONSES: dict[int | str, dict[str, Any]] = {
    200: {"description": "Successfully signed in"},
    401: {"model": ErrorResponse, "description": "Invalid credentials"},
    409: {"model": ErrorResponse, "description": "Session already active and replace_existing is false"},
}


@router.post(
    "/members/signup",
    summary="Register member",
    description="Create a member account. Does not sign in.",
    operation_id="memberSignUp",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Invalid input"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def member_sign_up(data: MemberSignUpRequest, app: AppDep) -> SignUpResponse:
    account = await app.sign_up(
        PrincipalKind.MEMBER, data.email, data.password, data.first_name, data.last_name, student_id=data.student_id
    )
    return SignUpResponse(message="Account created successfully.", account=account)


@router.post(
    "/admins/signup",
    summary="Register administrator",
    description="Create an administrator account using a registration code.",
    operation_id="adminSignUp",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Invalid input or admin code"},
        409: {"model": ErrorResponse, "description": "Email or admin code already registered"},
    },
)
async def admin_sign_up(data: AdminSignUpRequest, app: AppDep) -> SignUpResponse:
    account = await app.sign_up(
        PrincipalKind.ADMINISTRATOR, data.email, data.password, data.first_name, data.last_name, data.admin_code
    )
    return SignUpResponse(message="Admin account created successfully.", account=account)


@router.post(
    "/members/signin",
    summary="Member sign-in",
    description="Start the member's only session; any previous session ends.",
    operation_id="memberSignIn",
    responses=SIGN_IN_RESPONSES,
)
async def member_sign_in(data: MemberSignInRequest, app: AppDep, response: Response) -> SignInResponse:
    return await _sign_in(app, PrincipalKind.MEMBER, data, response, data.student_id)


@router.post(
    "/admins/signin",
    summary="Administrator sign-in",
    description="Start the administrator's only session; any previous session ends.",
    operation_id="adminSignIn",
    responses=SIGN_IN_RESPONSES,
)
async def admin_sign_in(data: SignInRequest, app: AppDep, response: Response) -> SignInResponse:
    return await _sign_in(app, PrincipalKind.ADMINISTRATOR, data, response)


@router.post(
    "/auth/logout",
    summary="End session",
    description="End every session the request carries that is still active. Session cookies are always cleared.",
    operation_id="logout",
    responses={200: {"description": "Signed out"}},
)
async def logout(request: Request, app: AppDep, resolver: TokenResolverDep, response: Response) -> MessageResponse:
    hint = resolver.role_hint(request)
    # A browser may hold member and admin sessions at once; end each one it presents
    tokens = resolver.candidates(request, hint)
    bearer = resolver.bearer(request)
    if bearer is not None and bearer not in tokens:
        tokens.append(bearer)
    for token in tokens:
        await app.sign_out(token, hint)
    clear_session_cookies(response, app.config, hint)
    return MessageResponse(message="Signed out successfully.")


@router.get(
    "/auth/session",
    summary="Current session",
    description="Describe the verified session behind the request.",
    operation_id="getSession",
    responses={
        200: {"description": "Session is active"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Session ended, replaced or token invalid"},
    },
)
async def get_session(identity: IdentityDep) -> SessionInfo:
    return SessionInfo(kind=identity.kind, account_id=identity.account_id, session_id=identity.session_id)
