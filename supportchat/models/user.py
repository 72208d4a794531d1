# supportchat/models/user.py
"""Chat participant as supplied by the external profile owner."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import Role


class User(BaseModel):
    """
    Snapshot of a participant's profile.

    Instances are immutable; settling a send produces a new User which is
    handed back to the profile owner through the update callback.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: Optional[str] = None
    role: Role = Role.STUDENT
    credits: int = Field(default=0, ge=0)
    last_chat_time: Optional[datetime] = None

    @property
    def is_privileged(self) -> bool:
        return self.role.is_privileged
