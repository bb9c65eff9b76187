"""Database testing fixtures.

Helpers live in tests.db.helpers; import them directly in test modules.
"""

import pytest

from wellness_tracker.services import RecordService


@pytest.fixture
def service(db):
    return RecordService(db)


@pytest.fixture
def yoga(db, event_factory):
    return event_factory(db, event_name='Yoga Basics', event_type='Seminar')


@pytest.fixture
def nutrition(db, event_factory):
    return event_factory(db, event_name='Nutrition Talk', event_type='Webinar', event_date='2025-04-10')
