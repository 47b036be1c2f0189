"""FastAPI dependency factories wiring request-scoped services from app.state."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import aget_db
from app.services.AccountService import AccountService
from app.services.AuthOrchestrator import AuthOrchestrator
from app.services.CredentialStore import CredentialStore
from app.services.TokenService import TokenService
from app.services.VerificationIssuer import VerificationIssuer


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credential_store(
    db: AsyncSession = Depends(aget_db),
    settings: Settings = Depends(get_app_settings),
) -> CredentialStore:
    return CredentialStore(db, settings)


def get_token_service(
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_app_settings),
) -> TokenService:
    return TokenService(settings, store)


def get_verification_issuer(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_app_settings),
) -> VerificationIssuer:
    return VerificationIssuer(
        settings,
        store,
        email_sender=request.app.state.email_sender,
        sms_sender=request.app.state.sms_sender,
    )


def get_auth_service(
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
    issuer: VerificationIssuer = Depends(get_verification_issuer),
    settings: Settings = Depends(get_app_settings),
) -> AuthOrchestrator:
    return AuthOrchestrator(settings, store, tokens, issuer)


def get_account_service(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
) -> AccountService:
    return AccountService(store, request.app.state.image_host)
