import logging

from campus_assistant.core.config import Settings
from campus_assistant.core.logging import setup_logging
from campus_assistant.core.results import OTPErrorKind, OTPResult
from campus_assistant.core.security import OTPHasher
from campus_assistant.db.session import _normalize_database_url


def test_hash_round_trip_and_mismatch():
    hasher = OTPHasher(4)
    code_hash = hasher.hash("482913")

    assert code_hash != "482913"
    assert code_hash.startswith("$2b$04$")
    assert hasher.verify("482913", code_hash)
    assert not hasher.verify("482914", code_hash)


def test_verify_tolerates_garbage_hash():
    hasher = OTPHasher(4)

    assert not hasher.verify("482913", "")
    assert not hasher.verify("482913", "not-a-bcrypt-hash")


def test_hasher_cost_follows_rounds():
    assert OTPHasher(5).hash("482913").startswith("$2b$05$")
    assert OTPHasher(5).context is OTPHasher(5).context


def test_result_detail_includes_only_relevant_hints():
    limited = OTPResult.failure(OTPErrorKind.RATE_LIMITED, "wait", cooldown_seconds=12)
    wrong = OTPResult.failure(OTPErrorKind.INVALID_CODE, "nope", remaining_attempts=0)

    assert not limited.ok
    assert limited.error.status_code == 429
    assert limited.error.to_detail() == {"error": "wait", "code": "rate_limited", "cooldownSeconds": 12}
    assert wrong.error.to_detail()["remainingAttempts"] == 0
    assert OTPResult.success({"id": 1}).ok


def test_every_error_kind_has_a_status_code():
    for kind in OTPErrorKind:
        assert OTPResult.failure(kind, "x").error.status_code >= 400


def test_database_url_normalization():
    assert _normalize_database_url("postgresql://u:p@db/app") == "postgresql+asyncpg://u:p@db/app"
    assert _normalize_database_url("sqlite:///./x.db") == "sqlite+aiosqlite:///./x.db"
    assert _normalize_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_settings_defaults():
    settings = Settings(SMTP_FROM=None, SMTP_USER="mailer@pce.edu", SMTP_PORT=465)

    assert settings.OTP_EXPIRE_SECONDS == 300
    assert settings.OTP_RESEND_COOLDOWN_SECONDS == 60
    assert settings.OTP_MAX_ATTEMPTS == 3
    assert settings.OTP_HASH_ROUNDS == 10
    assert sorted(name for name in Settings.model_fields if name.startswith("OTP_")) == [
        "OTP_EXPIRE_SECONDS",
        "OTP_HASH_ROUNDS",
        "OTP_MAX_ATTEMPTS",
        "OTP_REDIS_GRACE_SECONDS",
        "OTP_RESEND_COOLDOWN_SECONDS",
        "OTP_STORE_BACKEND",
    ]
    assert settings.smtp_sender_address == "mailer@pce.edu"
    assert settings.smtp_use_ssl


def test_setup_logging_does_not_stack_handlers(tmp_path):
    log_file = tmp_path / "logs" / "app.log"

    setup_logging("DEBUG", str(log_file))
    logger = setup_logging("DEBUG", str(log_file))
    logging.getLogger("campus_assistant.test").info("hello")

    assert len(logger.handlers) == 2
    assert logger.level == logging.DEBUG
    for handler in logger.handlers:
        handler.flush()
    assert "hello" in log_file.read_text()
