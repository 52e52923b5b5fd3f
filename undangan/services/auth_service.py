"""Service layer for registration, login, logout and password changes."""

from undangan.exceptions.domain import (
    InactiveAccountError,
    InvalidCredentialsError,
    PasswordMismatchError,
    UserAlreadyExistsError,
    ValidationError,
)
from undangan.models import (
    AuthResponse,
    ClientInfo,
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
    UpdatePasswordRequest,
    UpdatePasswordResponse,
    User,
)
from undangan.repositories.base import transaction
from undangan.repositories.user_repository import UserRepository
from undangan.services.session_service import SessionService
from undangan.utils.auth import get_password_hash, verify_password
from undangan.utils.common import token_preview
from undangan.utils.logger import logger


class AuthService:
    """Service for account authentication flows."""

    def __init__(self, user_repo: UserRepository, session_service: SessionService):
        """Initialize auth service.

        Args:
            user_repo: User repository instance
            session_service: Session lifecycle service
        """
        self.user_repo = user_repo
        self.session_service = session_service

    async def verify_credentials(self, username: str, password: str) -> User:
        """Check a username/password pair.

        Args:
            username: Username
            password: Plain text password

        Returns:
            Authenticated user

        Raises:
            InvalidCredentialsError: If the user is unknown or the password is wrong
            InactiveAccountError: If the account is disabled
        """
        user = await self.user_repo.find_by_username(username)
        if user is None or not verify_password(password, user.hashed_password):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise InactiveAccountError()
        return user

    async def register(
        self, request: RegisterRequest, fingerprint: ClientInfo | None = None
    ) -> AuthResponse:
        """Create an account and open its first session.

        Both rows are written in one transaction: if the session cannot be
        created, the account is not created either.

        Raises:
            UserAlreadyExistsError: If the username or email is taken
            StorageError: If either write fails
        """
        existing = await self.user_repo.find_by_username_or_email(request.username, request.email)
        if existing is not None:
            raise UserAlreadyExistsError("email" if existing.email == request.email else "username")

        async with transaction(self.user_repo.session):
            user = await self.user_repo.create(
                User(
                    username=request.username,
                    email=request.email,
                    hashed_password=get_password_hash(request.password),
                    is_active=True,
                )
            )
            token = await self.session_service.create_or_refresh(user.id, fingerprint)
        logger.info(f"User {user.id} has registered.")

        return self._auth_response(user, token)

    async def login(self, request: LoginRequest, fingerprint: ClientInfo | None = None) -> AuthResponse:
        """Authenticate and return the session token for this device.

        Raises:
            InvalidCredentialsError: If the credentials are wrong
            InactiveAccountError: If the account is disabled
        """
        user = await self.user_repo.find_by_username(request.username)
        if user is not None:
            await self.session_service.purge_expired_for_user(user.id)

        user = await self.verify_credentials(request.username, request.password)
        token = await self.session_service.create_or_refresh(user.id, fingerprint)
        logger.info(f"User {user.id} logged in.")
        return self._auth_response(user, token)

    async def logout(self, user: User, token: str) -> LogoutResponse:
        """End the user's session holding ``token``.

        Raises:
            InvalidSessionError: If the user has no active session with that token
        """
        await self.session_service.logout(user.id, token)
        return LogoutResponse(
            success=True,
            message="Logout successful",
            timestamp=self.session_service.clock(),
            token_preview=token_preview(token),
        )

    async def update_password(
        self,
        user: User,
        request: UpdatePasswordRequest,
        fingerprint: ClientInfo | None = None,
    ) -> UpdatePasswordResponse:
        """Change the password, sign out every device and open a new session here.

        The three writes share one transaction, so a failure keeps the old
        password and the old sessions.

        Raises:
            InvalidCredentialsError: If the current password is wrong
            PasswordMismatchError: If the confirmation does not match
            ValidationError: If the new password equals the current one
        """
        if not verify_password(request.current_password, user.hashed_password):
            raise InvalidCredentialsError().with_context("Current password is incorrect")
        if request.new_password != request.confirm_password:
            raise PasswordMismatchError()
        if request.new_password == request.current_password:
            raise ValidationError("New password must differ from the current password")

        changed_at = self.session_service.clock()
        async with transaction(self.user_repo.session):
            user = await self.user_repo.update_password(
                user, get_password_hash(request.new_password), changed_at
            )
            await self.session_service.invalidate_all(user.id)
            token = await self.session_service.create_or_refresh(user.id, fingerprint)
        logger.info(f"User {user.id} changed password.")

        return UpdatePasswordResponse(
            **self._auth_response(user, token).model_dump(),
            password_changed_at=changed_at,
        )

    @staticmethod
    def _auth_response(user: User, token: str) -> AuthResponse:
        return AuthResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            token=token,
            is_active=user.is_active,
            created_at=user.created_at,
        )
