"""Quick SMTP connectivity check using the configured credentials."""

import sys

import anyio

from campus_assistant.core.config import get_settings
from campus_assistant.core.logging import setup_logging
from campus_assistant.services.email import EmailDeliveryError, SMTPEmailSender


async def check_smtp() -> bool:
    """Authenticate against the relay and disconnect; returns whether it worked."""
    settings = get_settings()
    print(f"Testing SMTP connection to {settings.SMTP_HOST}:{settings.SMTP_PORT}...")
    try:
        await SMTPEmailSender(settings).verify_connection()
    except EmailDeliveryError as exc:
        print(f"SMTP error: {exc}")
        return False
    print("SMTP connection successful.")
    return True


def main() -> None:
    setup_logging()
    sys.exit(0 if anyio.run(check_smtp) else 1)


if __name__ == "__main__":
    main()
