from pydantic import BaseModel


class ConnectCalendarRequest(BaseModel):
    provider: str  # "Google" or "Office365"


class ConnectCalendarResponse(BaseModel):
    auth_url: str
