"""Web push subscription schemas."""

from typing import Optional

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel, StrictRequestModel


class PushSubscribeRequest(StrictRequestModel):
    """Browser PushSubscription as produced by ``subscription.toJSON()`` on the client."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)

    endpoint: str = Field(..., max_length=2048)
    p256dh_key: str = Field(..., alias="p256dh", max_length=512)
    auth_key: str = Field(..., alias="auth", max_length=512)
    user_agent: Optional[str] = Field(None, max_length=500)


class PushUnsubscribeRequest(StrictRequestModel):
    endpoint: str = Field(..., max_length=2048)


class VapidPublicKeyResponse(StrictModel):
    public_key: str


class PushStatusResponse(StrictModel):
    success: bool
    message: str
