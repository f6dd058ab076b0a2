import os

# The package creates its default engine at import time; keep it off disk.
os.environ.setdefault("CLINIC_DB_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker

from clinic_scheduler import ClinicService, init_db
from clinic_scheduler.db import create_sqlite_engine


@pytest.fixture
def engine(tmp_path):
    engine = create_sqlite_engine(f"sqlite:///{tmp_path / 'clinic.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def service(session):
    return ClinicService(session)


@pytest.fixture
def doctor(service):
    return service.create_doctor(name="Dr. Amara Okafor", specialization="General Practice")


@pytest.fixture
def patient(service):
    return service.create_patient(full_name="Grace Miller", gender="female")
