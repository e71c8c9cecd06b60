from pydantic import BaseModel
from typing import Optional


class DeviceWatchStatus(BaseModel):
    installed_time: Optional[int] = None
    installed_date: Optional[str] = None
    grace_period: int
    grace_remaining: int
    enforcing: bool
    run_only_in_admin: bool
    cache_backend: str
    trusted_ip_count: int
    cookie_domains: list[str]
    recipient_count: int
