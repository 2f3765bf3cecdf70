from pydantic import BaseModel

from ...models.db_models import FeeStatus


class UserStatusRequest(BaseModel):
    is_active: bool


class FeeStatusRequest(BaseModel):
    status: FeeStatus
