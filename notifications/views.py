"""
Notification API Views.

Implements:
- GET /notifications/ - Caller's notifications, newest first
- PUT /notifications/{id}/read/ - Mark one notification read
- PUT /notifications/read-all/ - Mark all of the caller's notifications read
"""
from django.shortcuts import get_object_or_404
from rest_framework import generics
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Notification
from .serializers import NotificationSerializer


class NotificationListView(generics.ListAPIView):
    """
    Query Parameters:
        - type: order, promotion, reminder or system
        - is_read: true/false

    The paginated response carries an extra unread_count.
    """
    serializer_class = NotificationSerializer

    def get_queryset(self):
        queryset = Notification.objects.filter(user=self.request.user)

        notification_type = self.request.query_params.get('type', '').lower()
        if notification_type in Notification.Type.values:
            queryset = queryset.filter(type=notification_type)

        is_read = self.request.query_params.get('is_read', '').lower()
        if is_read in ('true', 'false'):
            queryset = queryset.filter(is_read=is_read == 'true')

        return queryset

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        response.data['unread_count'] = Notification.objects.filter(
            user=request.user, is_read=False
        ).count()
        return response


class NotificationReadView(APIView):

    def put(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk, user=request.user)
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=['is_read'])
        return Response(NotificationSerializer(notification).data)


class NotificationReadAllView(APIView):

    def put(self, request):
        updated = Notification.objects.filter(user=request.user, is_read=False).update(is_read=True)
        return Response({'updated': updated})
