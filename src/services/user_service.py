"""Profile of the current user."""

import logging

from src.api.models import UpdateProfileRequest, UserProfileResponse
from src.core.exceptions import UserNotFoundError
from src.core.models import ProfileChanges, UserModel
from src.db.repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """
    There is no authentication yet: "the current user" is the first registered user.
    """

    def __init__(self, users: UserRepository) -> None:
        self.users = users

    def get_profile(self) -> UserProfileResponse:
        return UserProfileResponse.from_model(self._current_user())

    def update_profile(self, request: UpdateProfileRequest) -> UserProfileResponse:
        """Only fields present in the request are changed. Preferences are merged, not replaced."""
        user = self._current_user()
        assert user.id is not None
        changes = ProfileChanges(
            display_name=request.display_name,
            bio=request.bio,
            preferences=(
                request.preferences.model_dump(exclude_none=True)
                if request.preferences
                else None
            ),
        )
        updated = self.users.update_profile(user.id, changes)
        if updated is None:
            raise UserNotFoundError("User not found")
        logger.info("Profile updated: %s", updated.username)
        return UserProfileResponse.from_model(updated)

    def _current_user(self) -> UserModel:
        users = self.users.first_users(limit=1)
        if not users:
            raise UserNotFoundError("User not found")
        return users[0]
