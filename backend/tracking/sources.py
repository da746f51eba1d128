"""Location sources feeding the tracking loop."""

import json
import logging
import threading
from typing import Iterable, Iterator, Union

from common.utils.geo import GeoPoint

from .exceptions import GeolocationUnavailable

logger = logging.getLogger(__name__)


class LocationSource:
    """
    An iterable of GeoPoint samples.

    Iteration blocks until the next fix is available and ends when the
    source is exhausted or closed. Sources raise GeolocationUnavailable
    when the platform cannot provide a fix at all.
    """

    def __iter__(self) -> Iterator[GeoPoint]:
        raise NotImplementedError

    def close(self):
        pass


class ReplayLocationSource(LocationSource):
    """Replays recorded positions, optionally paced by `interval` seconds."""

    def __init__(self, points: Iterable[Union[GeoPoint, dict]], interval: float = 0.0):
        self.points = [
            point if isinstance(point, GeoPoint) else GeoPoint.from_dict(point)
            for point in points
        ]
        self.interval = interval
        self._closed = threading.Event()

    @classmethod
    def from_file(cls, path, interval: float = 0.0) -> "ReplayLocationSource":
        """
        Load a recording: either a JSON list of {"latitude", "longitude"}
        objects or an object with such a list under "positions".
        """
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)

        if isinstance(data, dict):
            data = data.get("positions", [])
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of positions")
        return cls(data, interval=interval)

    def __iter__(self) -> Iterator[GeoPoint]:
        if not self.points:
            raise GeolocationUnavailable("Recording contains no positions")

        for index, point in enumerate(self.points):
            if index and self.interval > 0:
                # wait() returns True as soon as close() is called
                if self._closed.wait(self.interval):
                    return
            if self._closed.is_set():
                return
            yield point

    def close(self):
        self._closed.set()
