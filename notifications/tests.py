"""
Tests for order notifications and the notification endpoints.
"""
from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from orders.models import Order
from orders.tasks import build_order_message, notify_order_event
from .models import Notification

User = get_user_model()


class OrderNotificationTaskTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.order = Order.objects.create(
            user=self.user,
            payment_method=Order.PaymentMethod.COD,
            subtotal=100000,
            shipping_fee=30000,
            total=130000,
            shipping_address={'city': 'Da Nang'},
        )

    def test_created_notification(self):
        result = notify_order_event(self.order.id, 'created')

        self.assertEqual(result['status'], 'success')
        notification = Notification.objects.get(pk=result['notification_id'])
        self.assertEqual(notification.user, self.user)
        self.assertEqual(notification.type, Notification.Type.ORDER)
        self.assertIn(self.order.order_number, notification.message)
        self.assertEqual(notification.action_url, f'/orders/{self.order.id}')
        self.assertFalse(notification.is_read)

    def test_status_changed_notification(self):
        self.order.status = Order.Status.SHIPPING
        self.order.save()

        notify_order_event(self.order.id, 'status_changed')

        notification = Notification.objects.get(user=self.user)
        self.assertIn('on its way', notification.message)

    def test_status_changed_uses_queued_status(self):
        self.order.status = Order.Status.DELIVERED
        self.order.save()

        notify_order_event(self.order.id, 'status_changed', 'confirmed')

        notification = Notification.objects.get(user=self.user)
        self.assertIn('has been confirmed', notification.message)

    def test_pending_status_has_no_message(self):
        result = notify_order_event(self.order.id, 'status_changed')

        self.assertEqual(result['status'], 'skipped')
        self.assertFalse(Notification.objects.exists())

    def test_missing_order(self):
        result = notify_order_event(424242, 'created')

        self.assertEqual(result['status'], 'error')
        self.assertFalse(Notification.objects.exists())

    def test_unknown_event(self):
        with self.assertRaises(ValueError):
            build_order_message(self.order, 'exploded')


class NotificationAPITestCase(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='reader', password='pass')
        self.other = User.objects.create_user(username='other', password='pass')
        self.client.force_authenticate(self.user)

        self.order_note = Notification.objects.create(
            user=self.user, type=Notification.Type.ORDER, title='Order placed', message='...'
        )
        self.promo_note = Notification.objects.create(
            user=self.user, type=Notification.Type.PROMOTION, title='Sale', message='...', is_read=True
        )
        self.foreign_note = Notification.objects.create(
            user=self.other, type=Notification.Type.ORDER, title='Not yours', message='...'
        )

    def test_list_own_notifications(self):
        response = self.client.get('/api/notifications/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['unread_count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.promo_note.id)

    def test_filters(self):
        response = self.client.get('/api/notifications/', {'type': 'order'})
        self.assertEqual([n['id'] for n in response.data['results']], [self.order_note.id])

        response = self.client.get('/api/notifications/', {'is_read': 'true'})
        self.assertEqual([n['id'] for n in response.data['results']], [self.promo_note.id])

    def test_mark_read(self):
        response = self.client.put(f'/api/notifications/{self.order_note.id}/read/')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['is_read'])
        self.order_note.refresh_from_db()
        self.assertTrue(self.order_note.is_read)

    def test_cannot_mark_someone_elses(self):
        response = self.client.put(f'/api/notifications/{self.foreign_note.id}/read/')

        self.assertEqual(response.status_code, 404)
        self.foreign_note.refresh_from_db()
        self.assertFalse(self.foreign_note.is_read)

    def test_mark_all_read(self):
        response = self.client.put('/api/notifications/read-all/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['updated'], 1)
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())
        self.foreign_note.refresh_from_db()
        self.assertFalse(self.foreign_note.is_read)
