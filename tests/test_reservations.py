import unittest
from datetime import datetime, time, timedelta

from models.models import db, Parking, Reservation, utcnow
from controllers.reservation_controller import (CLOSED, NO_SPOTS, NO_VEHICLE, NOT_ACTIVE,
                                                is_bookable_now, booking_refusal)

from tests.base import AppTestCase


class BookingRulesTests(unittest.TestCase):
    def parking(self, **fields):
        values = {'status': 'active', 'available_spots': 3, 'total_spots': 3, 'is_24h': False,
                  'opening_time': time(8, 0), 'closing_time': time(20, 0)}
        values.update(fields)
        return Parking(**values)

    def test_closing_time_is_exclusive(self):
        parking = self.parking()
        self.assertTrue(is_bookable_now(parking, datetime(2024, 5, 1, 8, 0)))
        self.assertTrue(is_bookable_now(parking, datetime(2024, 5, 1, 19, 59)))
        self.assertFalse(is_bookable_now(parking, datetime(2024, 5, 1, 20, 0)))

    def test_unknown_hours_cannot_be_booked_but_display_as_open(self):
        parking = self.parking(opening_time=None, closing_time=None)
        self.assertFalse(is_bookable_now(parking, datetime(2024, 5, 1, 12, 0)))
        self.assertTrue(parking.is_open_now(datetime(2024, 5, 1, 12, 0)))

    def test_refusal_order(self):
        noon = datetime(2024, 5, 1, 12, 0)
        self.assertEqual(booking_refusal(self.parking(status='inactive', available_spots=0), now=noon), NOT_ACTIVE)
        self.assertEqual(booking_refusal(self.parking(available_spots=0), now=noon), NO_SPOTS)
        self.assertEqual(booking_refusal(self.parking(), now=datetime(2024, 5, 1, 22, 0)), CLOSED)
        self.assertEqual(booking_refusal(self.parking(), has_vehicles=False, now=noon), NO_VEHICLE)
        self.assertIsNone(booking_refusal(self.parking(), now=noon))


class ReservationTests(AppTestCase):
    def setUp(self):
        super().setUp()
        owner_id = self.create_user('owner', email='owner@example.com')
        self.parking_id = self.create_parking(owner_id, total_spots=5, available_spots=5, cancel_time_limit=15)
        self.driver_id = self.create_user('driver', email='driver@example.com')
        self.vehicle_id = self.create_vehicle(self.driver_id, plate='AB-123-CD')
        self.login(self.driver_id)

    def reserve(self, parking_id=None, vehicle_id=None):
        return self.client.post(f'/parkings/{parking_id or self.parking_id}/reserve',
                                data={'vehicle_id': vehicle_id or self.vehicle_id})

    def create_reservation(self, status='pending', age=timedelta(0), available_spots=4):
        with self.app.app_context():
            reservation = Reservation(user_id=self.driver_id, parking_id=self.parking_id,
                                      vehicle_id=self.vehicle_id, status=status,
                                      reserved_at=utcnow() - age)
            db.session.add(reservation)
            db.session.get(Parking, self.parking_id).available_spots = available_spots
            db.session.commit()
            return reservation.id

    def test_reserve_page_reports_whether_booking_is_possible(self):
        props = self.client.get(f'/parkings/{self.parking_id}/reserve').get_json()['props']
        self.assertTrue(props['canBook'])
        self.assertIsNone(props['notBookableReason'])
        self.assertEqual([v['license_plate'] for v in props['vehicles']], ['AB-123-CD'])

        self.login(self.create_user('driver', email='walker@example.com'))
        props = self.client.get(f'/parkings/{self.parking_id}/reserve').get_json()['props']
        self.assertFalse(props['canBook'])
        self.assertEqual(props['notBookableReason'], NO_VEHICLE)

    def test_reservation_holds_a_spot(self):
        response = self.reserve()
        self.assertEqual(response.status_code, 302)

        with self.app.app_context():
            reservation = Reservation.query.one()
            self.assertEqual(reservation.status, 'pending')
            self.assertEqual(reservation.vehicle_id, self.vehicle_id)
            self.assertEqual(reservation.parking.available_spots, 4)

        listed = self.client.get('/reservations').get_json()['props']['reservations']
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]['vehicle']['license_plate'], 'AB-123-CD')
        self.assertTrue(0 < listed[0]['remaining_seconds'] <= 15 * 60)

    def test_vehicle_cannot_hold_two_reservations(self):
        self.reserve()
        response = self.reserve()
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['errors'],
                         {'vehicle_id': ['This vehicle already has an ongoing reservation.']})
        self.assertEqual(self.fetch(Parking, self.parking_id).available_spots, 4)

    def test_vehicle_must_belong_to_the_driver(self):
        other_id = self.create_user('driver', email='other@example.com')
        foreign_vehicle = self.create_vehicle(other_id, plate='AB-999-CD')

        response = self.reserve(vehicle_id=foreign_vehicle)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['errors'], {'vehicle_id': ['The selected vehicle id is invalid.']})

    def test_full_and_closed_parkings_are_refused(self):
        owner_id = self.create_user('owner', email='second-owner@example.com')
        full = self.create_parking(owner_id, total_spots=2, available_spots=0)
        no_hours = self.create_parking(owner_id, is_24h=False, opening_time=None, closing_time=None)

        self.assertEqual(self.reserve(parking_id=full).get_json()['errors'], {'reservation': [NO_SPOTS]})
        self.assertEqual(self.reserve(parking_id=no_hours).get_json()['errors'], {'reservation': [CLOSED]})

    def test_owners_cannot_reserve(self):
        self.login(self.create_user('owner', email='second-owner@example.com'))
        self.assertEqual(self.client.get(f'/parkings/{self.parking_id}/reserve').status_code, 403)
        self.assertEqual(self.reserve().status_code, 403)

    def test_index_expires_overdue_pending_reservations(self):
        overdue = self.create_reservation(age=timedelta(minutes=30), available_spots=4)

        listed = self.client.get('/reservations').get_json()['props']['reservations']
        self.assertEqual(listed, [])
        self.assertEqual(self.fetch(Reservation, overdue).status, 'cancelled_auto')
        self.assertEqual(self.fetch(Parking, self.parking_id).available_spots, 5)

    def test_released_spot_never_exceeds_capacity(self):
        overdue = self.create_reservation(age=timedelta(minutes=30), available_spots=5)
        self.client.get('/reservations')
        self.assertEqual(self.fetch(Reservation, overdue).status, 'cancelled_auto')
        self.assertEqual(self.fetch(Parking, self.parking_id).available_spots, 5)

    def test_cancel_before_the_deadline_frees_the_spot(self):
        reservation_id = self.create_reservation(age=timedelta(minutes=5))

        response = self.client.post(f'/reservations/{reservation_id}/cancel')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(self.fetch(Reservation, reservation_id).status, 'cancelled_user')
        self.assertEqual(self.fetch(Parking, self.parking_id).available_spots, 5)

    def test_cancel_after_the_deadline_expires_the_reservation(self):
        reservation_id = self.create_reservation(age=timedelta(minutes=20))

        response = self.client.post(f'/reservations/{reservation_id}/cancel')
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.fetch(Reservation, reservation_id).status, 'cancelled_auto')
        self.assertEqual(self.fetch(Parking, self.parking_id).available_spots, 5)

    def test_active_and_finished_reservations_cannot_be_cancelled(self):
        active = self.create_reservation(status='active')
        response = self.client.post(f'/reservations/{active}/cancel')
        self.assertEqual(response.status_code, 422)
        self.assertIn('already entered', response.get_json()['message'])

        with self.app.app_context():
            db.session.get(Reservation, active).status = 'completed'
            db.session.commit()
        response = self.client.post(f'/reservations/{active}/cancel')
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.fetch(Reservation, active).status, 'completed')

    def test_cannot_cancel_another_drivers_reservation(self):
        reservation_id = self.create_reservation()
        self.login(self.create_user('driver', email='other@example.com'))
        self.assertEqual(self.client.post(f'/reservations/{reservation_id}/cancel').status_code, 403)


if __name__ == "__main__":
    unittest.main()
