import os
import tempfile
from datetime import datetime, timezone
from itertools import count

import pytest

os.environ['URIDE_ENV'] = 'testing'
os.environ.setdefault('URIDE_LOGS_DIR', tempfile.mkdtemp(prefix='uride-logs-'))

from uride.server import app as flask_app  # noqa: E402
from uride.extensions import db  # noqa: E402
from uride.services.driver_service import DriverService  # noqa: E402
from uride.services.lifecycle_service import DriverLifecycleService  # noqa: E402
from uride.services.vehicle_service import VehicleService  # noqa: E402
from uride.utils.clock import FixedClock  # noqa: E402

# 10:00 in Asia/Kolkata, well clear of the night window
DAYTIME = datetime(2025, 1, 15, 4, 30, tzinfo=timezone.utc)

ADMIN = ('admin-1', 'Asha Admin')

_sequence = count(1)


@pytest.fixture
def app():
    clock = FixedClock(DAYTIME)
    flask_app.config['CLOCK'] = clock
    ctx = flask_app.app_context()
    ctx.push()
    db.drop_all()
    db.create_all()
    yield flask_app
    db.session.remove()
    db.drop_all()
    ctx.pop()
    flask_app.config['CLOCK'] = None


@pytest.fixture
def clock(app):
    return app.config['CLOCK']


@pytest.fixture
def client(app):
    return app.test_client()


def driver_payload(kind='fleet', **overrides):
    n = next(_sequence)
    data = {
        'name': f'Driver {n}',
        'email': f'driver{n}@example.com',
        'phone': f'98{n:08d}',
        'license_number': f'MH{n:013d}',
        'compensation_kind': kind,
    }
    data.update(overrides)
    return data


def vehicle_payload(**overrides):
    n = next(_sequence)
    data = {
        'registration_number': f'MH12AB{n:04d}',
        'make': 'Maruti',
        'model': 'Dzire',
        'year': 2022,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_driver(app):
    def factory(kind='fleet', approve=True, **overrides):
        driver = DriverService.create(driver_payload(kind, **overrides), actor=ADMIN)
        if approve:
            DriverLifecycleService.approve(driver.id, actor=ADMIN)
        return driver
    return factory


@pytest.fixture
def make_vehicle(app):
    def factory(**overrides):
        return VehicleService.create(vehicle_payload(**overrides), actor=ADMIN)
    return factory


@pytest.fixture
def new_driver_data():
    return driver_payload


@pytest.fixture
def new_vehicle_data():
    return vehicle_payload
