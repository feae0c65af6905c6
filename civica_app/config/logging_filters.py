import logging

HEALTH_PATHS: tuple[str, ...] = ("/healthz", "/readyz")


class HealthEndpointFilter(logging.Filter):
    """Drop successful probe lines from access logs; failing probes stay visible."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if not any(path in message for path in HEALTH_PATHS):
            return True

        # runserver attaches the response status to its records; gunicorn
        # only has the formatted access line.
        status_code = getattr(record, "status_code", None)
        if status_code is not None:
            return int(status_code) != 200
        return " 200 " not in message
