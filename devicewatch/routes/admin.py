from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from devicewatch.core.settings import settings
from devicewatch.db import get_db
from devicewatch.models.user import User
from devicewatch.schemas.device_watch import DeviceWatchStatus
from devicewatch.services.auth import require_admin
from devicewatch.services.device_watch import (
    format_install_date,
    get_device_watcher,
    grace_remaining,
    recipients,
    suppress,
)
from devicewatch.services.options import INSTALLED_TIME, OptionStore
from devicewatch.utils.datetime import epoch_now

router = APIRouter()


@router.get("/device-watch/status", response_model=DeviceWatchStatus)
def device_watch_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Grace window and configuration of the new device watcher."""
    watcher = get_device_watcher()
    policy = watcher.policy
    grace = policy.grace_period()
    now = epoch_now()

    raw = OptionStore(db).get(INSTALLED_TIME)
    installed_time = int(raw) if raw is not None else None
    if installed_time is None:
        remaining, enforcing = grace, False
    else:
        remaining = grace_remaining(now, installed_time, grace)
        enforcing = not suppress(now, installed_time, grace)

    return DeviceWatchStatus(
        installed_time=installed_time,
        installed_date=format_install_date(installed_time) if installed_time is not None else None,
        grace_period=grace,
        grace_remaining=remaining,
        enforcing=enforcing,
        run_only_in_admin=settings.run_only_in_admin,
        cache_backend=watcher.cache.BACKEND_NAME,
        trusted_ip_count=len(policy.trusted_ips()),
        cookie_domains=[d for d in policy.cookie_domains() if d],
        recipient_count=len(recipients(policy)),
    )
