"""
Notification Models - In-app messages shown to customers.
"""
from django.conf import settings
from django.db import models


class Notification(models.Model):

    class Type(models.TextChoices):
        ORDER = 'order', 'Order'
        PROMOTION = 'promotion', 'Promotion'
        REMINDER = 'reminder', 'Reminder'
        SYSTEM = 'system', 'System'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(
        max_length=20,
        choices=Type.choices,
        default=Type.SYSTEM
    )
    title = models.CharField(max_length=200)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    action_url = models.CharField(max_length=300, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Notification'
        verbose_name_plural = 'Notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read'),
        ]

    def __str__(self):
        return f"[{self.type}] {self.title} -> {self.user}"
