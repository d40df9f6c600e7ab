from pagewatch.notifications.email_sender import (
    NotificationResult,
    Notifier,
    ResendEmailNotifier,
)

__all__ = ["NotificationResult", "Notifier", "ResendEmailNotifier"]
