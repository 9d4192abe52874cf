from typing import Optional

from pydantic import BaseModel


class StatusUpdate(BaseModel):
    # Optional here so a missing status is reported as a 400 by the route, same as a blank one.
    status: Optional[str] = None
