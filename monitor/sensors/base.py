"""Uniform sensor-source interface and its error types."""
import logging

logger = logging.getLogger("hwmonitor.sensors")


class SensorUnavailable(Exception):
    """This OS/hardware has no such sensor. Permanent for the life of the process."""
    def __init__(self, message, family=None):
        super().__init__(message)
        self.family = family


class SensorReadError(Exception):
    """A transient read failure. The next tick retries."""
    def __init__(self, message, family=None):
        super().__init__(message)
        self.family = family


class SensorSource:
    """Produces the current values of one metric family.

    Subclasses set ``family`` and implement ``read()`` returning
    ``{metric_name: float}``. ``read()`` raises SensorUnavailable when the
    platform lacks the sensor and SensorReadError on transient failures.
    """

    family = ""

    def read(self):
        raise NotImplementedError

    def _unavailable(self, reason):
        return SensorUnavailable(f"{self.family}: {reason}", family=self.family)

    def _read_error(self, reason):
        return SensorReadError(f"{self.family}: {reason}", family=self.family)

    def __repr__(self):
        return f"<{type(self).__name__} family={self.family!r}>"
