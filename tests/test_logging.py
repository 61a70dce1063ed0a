import logging

from freeseat_booking.utils.logging_config import (
    APP_LOGGER,
    LIBRARY_LEVELS,
    SensitiveDataFilter,
    build_logging_config,
    business_logger,
    log_business_event,
)


def _record(msg, **extra):
    record = logging.LogRecord(APP_LOGGER, logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_contact_emails_are_masked_in_messages_and_details():
    record = _record(
        "Receipt for alice@uark.edu queued",
        event_details={"contact_email": "bob@example.com", "smtp_password": "hunter2"},
    )

    SensitiveDataFilter().filter(record)

    assert record.msg == "Receipt for a***@uark.edu queued"
    assert record.event_details == {"contact_email": "b***@example.com", "smtp_password": "***MASKED***"}


def test_library_loggers_share_the_console_handler():
    config = build_logging_config("DEBUG")

    assert set(config["loggers"]) == set(LIBRARY_LEVELS) | {APP_LOGGER}
    assert config["loggers"]["sqlalchemy.engine"] == {
        "level": "WARNING", "handlers": ["console"], "propagate": False
    }
    assert config["loggers"][APP_LOGGER]["level"] == "DEBUG"
    assert config["handlers"]["console"]["filters"] == ["request_id", "sensitive_data"]


def test_production_errors_go_only_to_the_app_error_file(tmp_path):
    log_file = str(tmp_path / "logs" / "freeseat.log")

    config = build_logging_config("INFO", log_file=log_file, environment="production")

    assert config["handlers"]["error_file"]["filename"] == str(tmp_path / "logs" / "freeseat_errors.log")
    assert config["loggers"][APP_LOGGER]["handlers"] == ["console", "file", "error_file"]
    assert config["loggers"]["uvicorn"]["handlers"] == ["console", "file"]
    assert config["root"]["handlers"] == ["console", "file"]


class _Collector(logging.Handler):
    def __init__(self):
        super().__init__(logging.INFO)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_business_events_carry_details():
    collector = _Collector()
    previous_level = business_logger.level
    business_logger.setLevel(logging.INFO)
    business_logger.addHandler(collector)
    try:
        log_business_event("reservation_committed", {"order_id": "R1", "seats": ["A1"]}, user_id="u1")
    finally:
        business_logger.removeHandler(collector)
        business_logger.setLevel(previous_level)

    record = collector.records[-1]
    assert record.getMessage() == "Business event: reservation_committed"
    assert record.event_details == {"order_id": "R1", "seats": ["A1"]}
    assert record.user_id == "u1"
