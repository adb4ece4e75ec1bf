from rentpay.domains.payments.infrastructure.notifications.fcm_notification_sender import FcmNotificationSender

__all__ = ["FcmNotificationSender"]
