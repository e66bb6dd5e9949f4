"""Authentication endpoints brokered through the identity provider."""

from fastapi import APIRouter, Depends, Request, status
from loguru import logger

from src.identity_broker.api.http.deps import (
    get_admin_directory,
    get_request_identity,
    get_token_broker,
    get_user_sync_service,
)
from src.identity_broker.api.http.schemas import (
    ApiResponse,
    AuthUrlResponse,
    GoogleCallbackRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    UserInfoResponse,
    success,
)
from src.identity_broker.core.models.identity import CanonicalIdentity, TokenSet
from src.identity_broker.core.outcome import Outcome, log_and_continue
from src.identity_broker.core.services import (
    AdminDirectoryClient,
    TokenBroker,
    UserSyncService,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def sync_after_login(
    username: str, admin: AdminDirectoryClient, user_sync: UserSyncService
) -> Outcome:
    """Mirror the directory's view of ``username`` into the local store."""
    try:
        info = await admin.get_user_info(username)
        user_sync.sync_user(info.id, info.username, info.email, info.full_name or info.username)
    except Exception as exc:
        return Outcome.failure(f"{type(exc).__name__}: {exc}", exc)
    return Outcome.success()


@router.post(
    "/register",
    response_model=ApiResponse[None],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: Request,
    body: RegisterRequest,
    admin: AdminDirectoryClient = Depends(get_admin_directory),
) -> ApiResponse:
    logger.info("Registration request for username: {}", body.username)
    await admin.register(body.username, body.email, body.full_name, body.password)
    return success(request, message="Registration successful. You can now login.")


@router.post("/login", response_model=ApiResponse[TokenSet])
async def login(
    request: Request,
    body: LoginRequest,
    broker: TokenBroker = Depends(get_token_broker),
    admin: AdminDirectoryClient = Depends(get_admin_directory),
    user_sync: UserSyncService = Depends(get_user_sync_service),
) -> ApiResponse:
    logger.info("Login request for username: {}", body.username)
    tokens = await broker.exchange_password(body.username, body.password)
    log_and_continue(
        await sync_after_login(body.username, admin, user_sync),
        "post-login user sync",
        username=body.username,
    )
    return success(request, tokens, "Login successful")


@router.post("/refresh", response_model=ApiResponse[TokenSet])
async def refresh(
    request: Request,
    body: RefreshRequest,
    broker: TokenBroker = Depends(get_token_broker),
) -> ApiResponse:
    tokens = await broker.refresh(body.refresh_token)
    return success(request, tokens)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    request: Request,
    body: LogoutRequest,
    broker: TokenBroker = Depends(get_token_broker),
) -> ApiResponse:
    log_and_continue(await broker.revoke(body.refresh_token), "provider logout")
    return success(request, message="Logged out successfully")


@router.get("/google/url", response_model=ApiResponse[AuthUrlResponse])
async def google_login_url(
    request: Request,
    redirect_uri: str,
    broker: TokenBroker = Depends(get_token_broker),
) -> ApiResponse:
    url = broker.google_login_url(redirect_uri)
    return success(request, AuthUrlResponse(url=url))


@router.post("/google/callback", response_model=ApiResponse[TokenSet])
async def google_callback(
    request: Request,
    body: GoogleCallbackRequest,
    broker: TokenBroker = Depends(get_token_broker),
) -> ApiResponse:
    # The local user is created on the first authenticated request
    tokens = await broker.exchange_authorization_code(body.code, body.redirect_uri)
    return success(request, tokens, "Google login successful")


@router.get("/me", response_model=ApiResponse[UserInfoResponse])
async def me(
    request: Request,
    identity: CanonicalIdentity = Depends(get_request_identity),
    user_sync: UserSyncService = Depends(get_user_sync_service),
) -> ApiResponse:
    """Current caller, after a full sync of their provider fields."""
    user = user_sync.sync_from_identity(identity)
    return success(
        request,
        UserInfoResponse(
            id=identity.subject_id,
            username=identity.username,
            email=identity.email,
            full_name=identity.display_name,
            roles=sorted(identity.roles),
            local_user_id=user.id,
        ),
    )
