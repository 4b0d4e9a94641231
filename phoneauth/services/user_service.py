from sqlalchemy.orm import Session

from ..core.errors import UserNotFoundError
from ..models.user import User
from ..repositories.user import UserRepository

PROFILE_FIELDS = ("name", "email", "language_preference")


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def get_profile(self, user_id: str) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def update_profile(self, user_id: str, **changes) -> User:
        """Apply the given profile fields; unknown keys and None values are ignored."""
        user = self.get_profile(user_id)
        fields = {k: v for k, v in changes.items() if k in PROFILE_FIELDS and v is not None}
        if "email" in fields and fields["email"] != user.email:
            fields["email_verified"] = False
        if fields:
            self.users.update(user, **fields)
            self.db.commit()
            self.db.refresh(user)
        return user
