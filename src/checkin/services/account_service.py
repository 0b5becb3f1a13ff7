"""Account service — registration and password login.

Learn: Both flows end by issuing a JWT access token. Validation rules
are intentionally minimal (well-formed email, 6-100 char password);
anything stricter is out of scope for this service.
"""

import re
from urllib.parse import quote

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from checkin.auth.jwt import create_access_token
from checkin.auth.password import hash_password, verify_password
from checkin.db.models import User
from checkin.errors import InvalidCredentials, InvalidInput, UserExists
from checkin.services.event_service import EventService

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 100


def avatar_url(name: str) -> str:
    """Placeholder avatar with the user's initials."""
    return (
        f"https://ui-avatars.com/api/?name={quote(name)}"
        "&size=150&background=random&color=ffffff&bold=true"
    )


def validate_email(email: str) -> None:
    if not EMAIL_RE.match(email):
        raise InvalidInput("Invalid email format")


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise InvalidInput(
            f"Password must be less than {MAX_PASSWORD_LENGTH} characters long"
        )


class AccountService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = EventService(db)

    async def register(self, name: str, email: str, password: str) -> tuple[str, User]:
        """Create a user and return (access_token, user)."""
        validate_email(email)
        validate_password(password)

        if await self.store.find_user_by_email(email):
            raise UserExists()

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            avatar=avatar_url(name),
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise UserExists()

        return create_access_token(user.id, user.email), user

    async def login(self, email: str, password: str) -> tuple[str, User]:
        """Check credentials and return (access_token, user)."""
        user = await self.store.find_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentials()
        return create_access_token(user.id, user.email), user
