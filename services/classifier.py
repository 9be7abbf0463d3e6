# ParkEase/services/classifier.py
import logging
from typing import Protocol

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ParkingClassifier(Protocol):
    def classify(self, image_path) -> bool: ...


class HttpParkingClassifier:
    """POSTs ``{"image_path": ...}`` to the classifier endpoint.

    Anything but an explicit ``{"is_parking": true}`` answer counts as "not a
    parking": transport errors, timeouts, error statuses and unreadable bodies
    all return False. No retries.
    """

    def __init__(self, url, timeout=DEFAULT_TIMEOUT):
        self.url = url
        self.timeout = timeout

    def classify(self, image_path):
        try:
            resp = requests.post(self.url, json={'image_path': image_path}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Parking classifier unreachable at %s: %s", self.url, exc)
            return False

        if not 200 <= resp.status_code < 300:
            logger.warning("Parking classifier answered HTTP %s for %s", resp.status_code, image_path)
            return False

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Parking classifier returned a non-JSON body for %s", image_path)
            return False

        is_parking = isinstance(data, dict) and data.get('is_parking') is True
        logger.info("Parking classifier verdict for %s: %s", image_path, is_parking)
        return is_parking
