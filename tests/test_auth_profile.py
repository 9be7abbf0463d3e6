import unittest
from unittest import mock

from sqlalchemy.exc import SQLAlchemyError

from models.models import db, User, Parking

from tests.base import AppTestCase, PASSWORD, image_bytes


class AuthTests(AppTestCase):
    def test_welcome_page_counts(self):
        owner_id = self.create_user('owner')
        self.create_user('driver')
        self.create_user('driver')
        self.create_parking(owner_id)

        props = self.client.get('/').get_json()['props']
        self.assertEqual((props['ownerCount'], props['driverCount'], props['parkingCount']), (1, 2, 1))
        self.assertIsNone(props['auth']['user'])

    def test_bad_credentials(self):
        self.create_user('driver', email='driver@example.com')
        response = self.client.post('/login', data={'email': 'driver@example.com', 'password': 'wrong-password'})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['errors'],
                         {'email': ['These credentials do not match our records.']})

    def test_login_and_logout(self):
        user_id = self.create_user('driver', email='driver@example.com')
        response = self.client.post('/login', data={'email': 'driver@example.com', 'password': PASSWORD})
        self.assertTrue(response.headers['Location'].endswith('/dashboard'))

        dashboard = self.client.get('/dashboard')
        self.assertEqual(dashboard.status_code, 200)
        self.assertIn('no-store', dashboard.headers['Cache-Control'])
        props = dashboard.get_json()['props']
        self.assertEqual(props['auth']['user']['id'], user_id)
        self.assertEqual(props['flash'], {'success': 'Welcome back, Jane Doe!'})

        self.client.post('/logout')
        self.assertEqual(self.client.get('/dashboard').status_code, 302)

    def test_guests_are_sent_to_login(self):
        response = self.client.get('/parkings/available')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login', response.headers['Location'])


class ProfileTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.user_id = self.create_user('owner', email='owner@example.com', name='Omar Benali')
        self.login(self.user_id)

    def profile_form(self, **overrides):
        form = {'name': 'Omar Benali', 'email': 'owner@example.com'}
        form.update(overrides)
        return form

    def test_update_profile_fields(self):
        response = self.client.patch('/settings/profile', data=self.profile_form(
            phone='0612345678', company_name='Benali Parkings', website='https://benali.example'))
        self.assertEqual(response.status_code, 302)

        user = self.fetch(User, self.user_id)
        self.assertEqual(user.phone, '0612345678')
        self.assertEqual(user.company_name, 'Benali Parkings')

        props = self.client.get('/settings/profile').get_json()['props']
        self.assertEqual(props['profile']['website'], 'https://benali.example')

    def test_phone_must_be_digits(self):
        response = self.client.patch('/settings/profile', data=self.profile_form(phone='06-12'))
        self.assertEqual(response.status_code, 422)
        self.assertIn('phone', response.get_json()['errors'])

    def test_email_may_stay_but_not_collide(self):
        self.create_user('driver', email='taken@example.com')
        response = self.client.patch('/settings/profile', data=self.profile_form(email='taken@example.com'))
        self.assertEqual(response.get_json()['errors'], {'email': ['The email has already been taken.']})

    def test_new_avatar_replaces_the_old_file(self):
        for _ in range(2):
            self.client.post('/settings/profile', data=self.profile_form(avatar=(image_bytes(), 'me.png')),
                             content_type='multipart/form-data')

        user = self.fetch(User, self.user_id)
        self.assertEqual(self.stored_files(), [user.avatar_path])
        self.assertEqual(self.client.get(user.avatar_url).status_code, 200)

    def test_failed_update_keeps_the_current_avatar(self):
        self.client.post('/settings/profile', data=self.profile_form(avatar=(image_bytes(), 'me.png')),
                         content_type='multipart/form-data')
        old_avatar = self.fetch(User, self.user_id).avatar_path

        with mock.patch.object(db.session, 'commit', side_effect=SQLAlchemyError('disk I/O error')):
            with self.assertRaises(SQLAlchemyError):
                self.client.post('/settings/profile',
                                 data=self.profile_form(name='Omar B', avatar=(image_bytes(), 'new.png')),
                                 content_type='multipart/form-data')

        user = self.fetch(User, self.user_id)
        self.assertEqual(user.avatar_path, old_avatar)
        self.assertEqual(user.name, 'Omar Benali')
        self.assertEqual(self.stored_files(), [old_avatar])

    def test_delete_account_removes_user_data_and_files(self):
        self.client.post('/settings/profile', data=self.profile_form(avatar=(image_bytes(), 'me.png')),
                         content_type='multipart/form-data')
        parking_id = self.create_parking(self.user_id)

        response = self.client.delete('/settings/profile')
        self.assertTrue(response.headers['Location'].endswith('/login'))
        self.assertIsNone(self.fetch(User, self.user_id))
        self.assertIsNone(self.fetch(Parking, parking_id))
        self.assertEqual(self.stored_files(), [])
        self.assertEqual(self.client.get('/dashboard').status_code, 302)


if __name__ == "__main__":
    unittest.main()
