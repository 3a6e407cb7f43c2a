from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class ProfilePublic(BaseModel):
    id: str
    email: Optional[str] = None
    created_at: datetime
    stay_signed_in: bool
    theme: str


class SettingsUpdate(BaseModel):
    stay_signed_in: Optional[bool] = None
    theme: Optional[Literal["light", "dark", "system"]] = None
