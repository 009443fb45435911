"""Created/modified bookkeeping for nodes and models."""

import getpass
from datetime import datetime, timezone
from typing import Optional


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangesTracker:
    """Mixin recording who created and last modified an object, and when."""

    def _init_tracking(
        self,
        created_by: Optional[str] = None,
        created_on: Optional[datetime] = None,
        modified_by: Optional[str] = None,
        modified_on: Optional[datetime] = None,
    ) -> None:
        self.created_by = created_by or current_user()
        self.created_on = created_on or utcnow()
        self.modified_by = modified_by or self.created_by
        self.modified_on = modified_on or self.created_on

    def touch(self) -> None:
        self.modified_by = current_user()
        self.modified_on = utcnow()
