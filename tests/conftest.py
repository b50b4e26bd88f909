"""Shared fixtures: a fresh app with a private in-memory database per test."""

import os

os.environ.setdefault('FLASK_ENV', 'testing')

import pytest

from app import create_app
from config import TestingConfig
from planner.models import Person, PersonnelGroup


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions['planner_store']


@pytest.fixture
def storage(store):
    return store.storage


def make_person(person_id, name, group=PersonnelGroup.OP_NURSING,
                availability_state='Frühdienste (Früh)', is_available=True):
    return Person(
        id=person_id,
        name=name,
        group=group,
        availability_state=availability_state,
        is_available=is_available,
        is_active=True,
    )
