"""Identity handed to the core by the sign-in layer"""
from typing import Optional
from pydantic import BaseModel, ConfigDict

LOCAL_USER_ID = "local"


class UserIdentity(BaseModel):
    """Current user id and whether the session is authenticated"""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    authenticated: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.authenticated and bool(self.user_id)

    @classmethod
    def anonymous(cls) -> "UserIdentity":
        return cls()

    @classmethod
    def signed_in(cls, user_id: str) -> "UserIdentity":
        return cls(user_id=user_id, authenticated=True)

    @classmethod
    def local(cls) -> "UserIdentity":
        """The single on-device owner in local-only mode"""
        return cls(user_id=LOCAL_USER_ID, authenticated=True)
