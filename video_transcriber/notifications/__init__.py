"""Live job notifications."""

from .hub import HEARTBEAT, TASK_UPDATE, HubEvent, JobChannel, NotificationHub

__all__ = ["HEARTBEAT", "HubEvent", "JobChannel", "NotificationHub", "TASK_UPDATE"]
