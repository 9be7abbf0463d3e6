import os
import shutil
import tempfile
import unittest

from services.file_store import PublicFileStore, TentativeUpload, storage_url
from utils import format_distance, haversine_km, paginate_list

from tests.base import image_upload


class DistanceTests(unittest.TestCase):
    def test_same_point_is_zero(self):
        self.assertEqual(format_distance(haversine_km(33.5731, -7.5898, 33.5731, -7.5898)), '0 m')

    def test_casablanca_to_rabat(self):
        distance = haversine_km(33.5731, -7.5898, 34.0209, -6.8416)
        self.assertAlmostEqual(distance, 85.2, delta=1.5)

    def test_format_distance(self):
        self.assertEqual(format_distance(0.35), '350 m')
        self.assertEqual(format_distance(12.345), '12.3 km')


class PaginateListTests(unittest.TestCase):
    def test_pages(self):
        page = paginate_list(list(range(25)), 3, 12)
        self.assertEqual(page['data'], [24])
        self.assertEqual((page['last_page'], page['from'], page['to'], page['total']), (3, 25, 25, 25))

    def test_empty(self):
        page = paginate_list([], 1, 12)
        self.assertEqual((page['last_page'], page['from'], page['to']), (1, None, None))


class FileStoreTests(unittest.TestCase):
    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.store = PublicFileStore(self.root)

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_store_keeps_the_extension_under_a_random_name(self):
        path = self.store.store(image_upload('My Lot.PNG'), 'parkings')
        self.assertTrue(path.startswith('parkings/'))
        self.assertTrue(path.endswith('.png'))
        self.assertTrue(os.path.isfile(os.path.join(self.root, path)))
        self.assertEqual(self.store.url(path), f'/storage/{path}')

    def test_delete_is_quiet_for_missing_files(self):
        self.assertFalse(self.store.delete('parkings/missing.png'))
        self.assertFalse(self.store.delete(None))
        self.assertIsNone(storage_url(None))

    def test_uncommitted_upload_is_removed(self):
        with TentativeUpload(self.store, image_upload(), 'parkings') as upload:
            self.assertTrue(self.store.exists(upload.path))
        self.assertFalse(self.store.exists(upload.path))

    def test_missing_file_is_a_no_op(self):
        with TentativeUpload(self.store, None, 'avatars') as upload:
            self.assertIsNone(upload.path)
        self.assertEqual(os.listdir(self.root), [])

    def test_committed_upload_is_kept(self):
        with TentativeUpload(self.store, image_upload(), 'parkings') as upload:
            upload.commit()
        self.assertTrue(self.store.exists(upload.path))


if __name__ == "__main__":
    unittest.main()
