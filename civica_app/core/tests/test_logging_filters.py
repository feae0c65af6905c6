import logging

from django.test import SimpleTestCase

from config.logging_filters import HealthEndpointFilter


def _record(msg: str, *, name: str = "django.server", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class HealthEndpointFilterTests(SimpleTestCase):
    def setUp(self) -> None:
        self.filt = HealthEndpointFilter()

    def test_successful_probe_lines_are_dropped(self) -> None:
        self.assertFalse(self.filt.filter(_record('"GET /healthz HTTP/1.1" 200 12')))

    def test_failing_probe_lines_are_kept(self) -> None:
        self.assertTrue(self.filt.filter(_record('"GET /readyz HTTP/1.1" 503 40')))

    def test_other_paths_are_kept(self) -> None:
        self.assertTrue(self.filt.filter(_record('"GET /elections/voting/pending/ HTTP/1.1" 200 12')))

    def test_status_code_attribute_wins_over_message(self) -> None:
        self.assertTrue(self.filt.filter(_record('"GET /readyz HTTP/1.1" 200 40', status_code=503)))
        self.assertFalse(self.filt.filter(_record('"GET /readyz/ HTTP/1.1" 200 40', status_code=200)))

    def test_gunicorn_access_format(self) -> None:
        record = _record(
            '- - - [19/Oct/2026:10:49:08 +0000] "GET /readyz HTTP/1.1" 200 37 "-" "kube-probe/1.30"',
            name="gunicorn.access",
        )
        self.assertFalse(self.filt.filter(record))
