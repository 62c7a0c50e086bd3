class NotificationError(Exception):
    """Raised when a notification cannot be published or subscribed."""
