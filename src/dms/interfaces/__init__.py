from .notification_port import NotificationPort

__all__ = ["NotificationPort"]
