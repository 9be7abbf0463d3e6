import unittest
from unittest import mock

import requests

from services.classifier import HttpParkingClassifier

URL = 'http://classifier.test/api/is_parking'


def response(status_code=200, payload=None, json_error=False):
    resp = mock.MagicMock(status_code=status_code)
    if json_error:
        resp.json.side_effect = ValueError('Expecting value')
    else:
        resp.json.return_value = payload
    return resp


class HttpParkingClassifierTests(unittest.TestCase):
    def setUp(self):
        self.classifier = HttpParkingClassifier(URL, timeout=30)

    @mock.patch('services.classifier.requests.post')
    def test_posts_the_image_path_as_json(self, post):
        post.return_value = response(payload={'is_parking': True})

        self.assertTrue(self.classifier.classify('/srv/storage/parkings/lot.png'))
        post.assert_called_once_with(URL, json={'image_path': '/srv/storage/parkings/lot.png'}, timeout=30)

    @mock.patch('services.classifier.requests.post')
    def test_explicit_false_is_rejected(self, post):
        post.return_value = response(payload={'is_parking': False})
        self.assertFalse(self.classifier.classify('/tmp/lot.png'))

    @mock.patch('services.classifier.requests.post')
    def test_only_a_literal_true_counts(self, post):
        for payload in ({}, {'is_parking': 'true'}, {'is_parking': 1}, ['is_parking'], None):
            post.return_value = response(payload=payload)
            self.assertFalse(self.classifier.classify('/tmp/lot.png'), payload)

    @mock.patch('services.classifier.requests.post')
    def test_timeout_fails_closed(self, post):
        post.side_effect = requests.Timeout('read timed out')
        self.assertFalse(self.classifier.classify('/tmp/lot.png'))
        self.assertEqual(post.call_count, 1)

    @mock.patch('services.classifier.requests.post')
    def test_connection_error_fails_closed(self, post):
        post.side_effect = requests.ConnectionError('refused')
        self.assertFalse(self.classifier.classify('/tmp/lot.png'))

    @mock.patch('services.classifier.requests.post')
    def test_error_status_fails_closed_even_with_a_positive_body(self, post):
        post.return_value = response(status_code=500, payload={'is_parking': True})
        self.assertFalse(self.classifier.classify('/tmp/lot.png'))
        post.return_value.json.assert_not_called()

    @mock.patch('services.classifier.requests.post')
    def test_non_json_body_fails_closed(self, post):
        post.return_value = response(json_error=True)
        self.assertFalse(self.classifier.classify('/tmp/lot.png'))


if __name__ == "__main__":
    unittest.main()
