"""Shared fixtures: in-memory database, deterministic calendar, API client."""

from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_db
from app.main import app as fastapi_app
from app.services.calendar_service import BusinessCalendar, HolidayInfo, get_calendar


class FakeCalendar(BusinessCalendar):
    """Calendar answering from fixed holiday / mandated-workday tables."""

    def __init__(self, holidays=(), workdays=()):
        super().__init__(api_url="http://calendar.invalid/{date}")
        self.holidays = set(holidays)
        self.workdays = set(workdays)
        self.queried: list[date] = []

    def get_holiday_info(self, day: date) -> HolidayInfo:
        self.queried.append(day)
        return HolidayInfo(
            date=day,
            is_holiday=day in self.holidays,
            is_workday=day in self.workdays,
        )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def calendar():
    return FakeCalendar()


@pytest.fixture()
def client(session_factory, calendar):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_calendar] = lambda: calendar
    # Not entered as a context manager: the lifespan would create the on-disk DB
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()
