"""
Domain: Profile (user accounts).

Profiles are owned by the authentication side of the platform. The rotation
only reads them to decide whether someone may be enrolled as a broker, and
flips the role when an admin promotes a user to broker.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_optional_utc_timestamp


class ProfileRole(str, Enum):
    ADMIN = "admin"
    BROKER = "broker"
    CLIENT = "client"


@dataclass(frozen=True, slots=True)
class Profile:
    profile_id: UUID
    role: ProfileRole = ProfileRole.CLIENT
    full_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_optional_utc_timestamp("created_at", self.created_at)
        require_optional_utc_timestamp("updated_at", self.updated_at)

    def is_broker(self) -> bool:
        return self.role == ProfileRole.BROKER
