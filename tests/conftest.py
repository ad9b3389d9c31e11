import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app  # noqa: E402

ADMIN_EMAIL = "admin@x.com"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
def app_config(tmp_path):
    return {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "ADMIN_NAME": "Test Admin",
        "STUDENTS_FILE": str(tmp_path / "students.xlsx"),
        "RECEIPTS_DIR": str(tmp_path / "receipts"),
        "REQUIRED_STUDENT_FIELDS": ("name", "phone", "email", "totalFee", "amountPaid"),
        "RATELIMIT_ENABLED": False,
        "MAIL_SERVER": "",
        "MAIL_USERNAME": "",
        "MAIL_SIMULATION_DELAY": 0,
        "BRAND_NAME": "Test Institute",
    }


@pytest.fixture
def app(app_config):
    return create_app(app_config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    r = client.post('/api/auth/login', json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.get_json()['token']}"}


@pytest.fixture
def jane():
    return {"name": "Jane", "phone": "555", "email": "jane@x.com", "totalFee": 1000, "amountPaid": 400}
