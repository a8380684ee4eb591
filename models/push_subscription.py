from pydantic import BaseModel


class PushSubscriptionKeys(BaseModel):
    p256dh: str
    auth: str

class PushSubscriptionModel(BaseModel):
    endpoint: str
    keys: PushSubscriptionKeys

class PushUnsubscribeModel(BaseModel):
    endpoint: str
