import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from padelbook.core import security
from padelbook.core.errors import ValidationError

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_REGEX = re.compile(r"^(?=.*[A-Za-z])(?=.*\d).{8,}$")


class Role(str, Enum):
    CLIENT = "client"
    ADMIN = "admin"


@dataclass
class User:
    email: str
    password_hash: str
    full_name: str = ""
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def set_password(self, password: str) -> None:
        self.password_hash = security.generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return security.verify_password(password, self.password_hash)

    def validate(self) -> None:
        if not self.email:
            raise ValidationError("Email is required.")
        if not self.email_valid(self.email):
            raise ValidationError("Email is not valid.")
        if not self.password_hash:
            raise ValidationError("Password is required.")

    @staticmethod
    def email_valid(email: str) -> bool:
        return bool(EMAIL_REGEX.match(email))

    @staticmethod
    def password_valid(password: str) -> bool:
        return bool(PASSWORD_REGEX.match(password))


@dataclass
class Profile:
    user_id: int
    role: Role = Role.CLIENT

    def __post_init__(self):
        self.role = Role(self.role)
