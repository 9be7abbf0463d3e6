# ParkEase/services/file_store.py
import logging
import os
import uuid

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

STORAGE_URL_PREFIX = '/storage/'


def storage_url(path):
    """Public URL of a stored file, or None when there is no file."""
    if not path:
        return None
    return f"{STORAGE_URL_PREFIX}{path}"


class PublicFileStore:
    """Local disk store for user uploads (parking photos, avatars)."""

    def __init__(self, root):
        self.root = root

    def absolute_path(self, path):
        return os.path.abspath(os.path.join(self.root, path))

    def store(self, file, folder):
        """Saves an uploaded file under ``folder`` and returns its relative path."""
        extension = os.path.splitext(secure_filename(file.filename or ''))[1].lower()
        relative_path = f"{folder}/{uuid.uuid4().hex}{extension}"

        destination = self.absolute_path(relative_path)
        os.makedirs(os.path.dirname(destination), exist_ok=True)
        file.stream.seek(0)
        file.save(destination)
        logger.debug("Stored upload at %s", relative_path)
        return relative_path

    def exists(self, path):
        return bool(path) and os.path.isfile(self.absolute_path(path))

    def delete(self, path):
        if not path:
            return False
        try:
            os.remove(self.absolute_path(path))
        except FileNotFoundError:
            return False
        logger.debug("Deleted upload %s", path)
        return True

    def url(self, path):
        return storage_url(path)


class TentativeUpload:
    """Two-phase upload: the file is stored on enter and deleted on exit unless committed.

        with TentativeUpload(store, photo, 'parkings') as upload:
            ...                # any exception or early rejection removes the file
            upload.commit()    # keep it

    With no file the upload is a no-op and ``path`` stays None.
    """

    def __init__(self, file_store, file, folder):
        self.file_store = file_store
        self.file = file
        self.folder = folder
        self.path = None
        self.committed = False

    def __enter__(self):
        if self.file is not None:
            self.path = self.file_store.store(self.file, self.folder)
        return self

    @property
    def absolute_path(self):
        return self.file_store.absolute_path(self.path)

    def commit(self):
        self.committed = True

    def __exit__(self, exc_type, exc, tb):
        if self.path and not self.committed:
            self.file_store.delete(self.path)
            logger.info("Discarded tentative upload %s", self.path)
        return False
