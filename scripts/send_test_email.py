import os
import sys

# Allow running from repo root
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app import create_app
from utils.errors import ApiError


def main():
    if len(sys.argv) < 2:
        print("Usage: TEST_EMAIL_TO=you@example.com python scripts/send_test_email.py <receipt-id> [optional-to]")
        sys.exit(2)
    receipt_id = sys.argv[1]
    to = os.environ.get("TEST_EMAIL_TO") or (sys.argv[2] if len(sys.argv) > 2 else None)
    if not to:
        print("No recipient: set TEST_EMAIL_TO or pass it as the second argument")
        sys.exit(2)

    app = create_app()
    with app.app_context():
        notifier = app.extensions["notifier"]
        print(f"Transport: {type(notifier.transport).__name__}")
        try:
            result = notifier.send(receipt_id, to)
        except ApiError as exc:
            print(f"FAILED: {exc.message} ({exc.code}) {exc.error or ''}")
            sys.exit(1)
    print("Result:", "SIMULATED" if result.simulated else "OK")


if __name__ == "__main__":
    main()
