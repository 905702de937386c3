import logging
from typing import Optional, Tuple

from padelbook.core.errors import AuthError, ForbiddenError, ValidationError
from padelbook.models.session import Session
from padelbook.models.user import Role, User
from padelbook.repositories.session_repository import SessionRepository
from padelbook.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, user_repo: UserRepository, session_repo: SessionRepository, session_ttl_minutes: int = 60):
        self.user_repo = user_repo
        self.session_repo = session_repo
        self.session_ttl_minutes = session_ttl_minutes

    def register(self, email: str, password: str, full_name: str = "") -> User:
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required.")
        if not User.email_valid(email):
            raise ValidationError("Email is not valid.")
        if not User.password_valid(password):
            raise ValidationError("Password needs at least 8 characters, a letter and a digit.")
        if self.user_repo.find_by_email(email):
            raise ValidationError("This email is already registered.")
        user = User(email=email, password_hash="", full_name=(full_name or "").strip())
        user.set_password(password)
        user.validate()
        user = self.user_repo.create(user, Role.CLIENT)
        logger.info("Registered user %s", user.id)
        return user

    def sign_in(self, email: str, password: str) -> Tuple[User, Session]:
        user = self.user_repo.find_by_email((email or "").strip().lower())
        if not user or not user.check_password(password or ""):
            raise AuthError("Invalid credentials.")
        self.session_repo.delete_expired()
        session = self.session_repo.create(Session.issue(user.id, self.session_ttl_minutes))
        return user, session

    def sign_out(self, token: str) -> None:
        if token:
            self.session_repo.delete(token)

    def resolve(self, token: str) -> Tuple[Optional[User], Optional[Role]]:
        """Look up the user and cached role behind a session token."""
        if not token:
            return None, None
        session = self.session_repo.find_by_token(token)
        if not session or session.is_expired():
            return None, None
        user = self.user_repo.find_by_id(session.user_id)
        if not user:
            return None, None
        role = self.user_repo.get_role(user.id)
        if role is None:
            role = self.user_repo.ensure_profile(user.id).role
        return user, role


class SessionContext:
    """Identity of the caller for the lifetime of one request.

    `init` resolves the token once; `teardown` ends the session server-side and
    forgets the cached identity.
    """

    def __init__(self, auth_service: AuthService):
        self.auth_service = auth_service
        self.token = ""
        self.user: Optional[User] = None
        self.role: Optional[Role] = None

    def init(self, token: str) -> "SessionContext":
        self.token = token or ""
        self.user, self.role = self.auth_service.resolve(self.token)
        return self

    def teardown(self) -> None:
        self.auth_service.sign_out(self.token)
        self.token = ""
        self.user = None
        self.role = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def require_user(self) -> User:
        if self.user is None:
            raise AuthError("You need to sign in first.")
        return self.user

    def require_admin(self) -> User:
        user = self.require_user()
        if not self.is_admin:
            raise ForbiddenError("Administrators only.")
        return user
