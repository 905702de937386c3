from typing import Optional

from padelbook.core.config import Settings
from padelbook.core.db import cursor
from padelbook.models.user import Profile, Role, User

USER_COLUMNS = "id, email, full_name, password_hash, created_at"


class UserRepository:
    def __init__(self, settings: Settings):
        self.settings = settings

    def create(self, user: User, role: Role = Role.CLIENT) -> User:
        """Insert the user and its profile row in a single statement."""
        with cursor(self.settings) as cur:
            cur.execute(
                """
                WITH new_user AS (
                    INSERT INTO users (email, full_name, password_hash)
                    VALUES (%s, %s, %s)
                    RETURNING id, created_at
                ), new_profile AS (
                    INSERT INTO profiles (id, role) SELECT id, %s FROM new_user
                )
                SELECT id, created_at FROM new_user
                """,
                (user.email, user.full_name, user.password_hash, Role(role).value),
            )
            row = cur.fetchone()
        user.id = row["id"]
        user.created_at = row["created_at"]
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        with cursor(self.settings) as cur:
            cur.execute(f"SELECT {USER_COLUMNS} FROM users WHERE email = %s", (email,))
            row = cur.fetchone()
        return User(**row) if row else None

    def find_by_id(self, user_id: int) -> Optional[User]:
        with cursor(self.settings) as cur:
            cur.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return User(**row) if row else None

    def get_role(self, user_id: int) -> Optional[Role]:
        with cursor(self.settings) as cur:
            cur.execute("SELECT role FROM profiles WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return Role(row["role"]) if row else None

    def ensure_profile(self, user_id: int, role: Role = Role.CLIENT) -> Profile:
        """Create the profile row when missing and return the stored profile."""
        with cursor(self.settings) as cur:
            cur.execute(
                "INSERT INTO profiles (id, role) VALUES (%s, %s) ON CONFLICT (id) DO NOTHING",
                (user_id, Role(role).value),
            )
            cur.execute("SELECT id, role FROM profiles WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return Profile(user_id=row["id"], role=row["role"])

    def count_profiles(self) -> int:
        with cursor(self.settings) as cur:
            cur.execute("SELECT COUNT(*) AS total FROM profiles")
            return cur.fetchone()["total"]
