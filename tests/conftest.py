"""
Shared pytest fixtures for ChapterHub tests.

The `app` fixture keeps an application context pushed for the whole test,
so fixtures, services and the test client share one database session.
"""
from datetime import datetime, timedelta

import pytest

from app import create_app
from app.extensions import db
from app.models import (
    Event,
    EventRegistration,
    IncentiveProgram,
    Member,
    Organization,
)


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def staff_headers():
    """Headers identifying the staff member making admin changes."""
    return {
        'X-Staff-Email': 'secretary@chapter.test',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def sample_organization(app):
    """Create a sample local chapter."""
    organization = Organization(name='JCI Kuala Lumpur', code='JCI-KL')
    db.session.add(organization)
    db.session.commit()
    return organization


@pytest.fixture
def sample_member(app, sample_organization):
    """Create a sample full member."""
    member = Member(
        organization_id=sample_organization.id,
        name='Aisha Rahman',
        email='aisha@chapter.test',
        role='MEMBER',
    )
    db.session.add(member)
    db.session.commit()
    return member


@pytest.fixture
def make_member(app, sample_organization):
    """Factory for additional members of the sample chapter."""
    counter = {'n': 0}

    def _make(role='MEMBER', organization_id=None, **kwargs):
        counter['n'] += 1
        member = Member(
            organization_id=organization_id or sample_organization.id,
            name=kwargs.pop('name', f"Member {counter['n']}"),
            email=kwargs.pop('email', f"member{counter['n']}@chapter.test"),
            role=role,
            **kwargs
        )
        db.session.add(member)
        db.session.commit()
        return member

    return _make


@pytest.fixture
def make_event(app, sample_organization):
    """Factory for completed chapter events."""
    counter = {'n': 0}

    def _make(event_type='Meeting', status='Completed', attendee_count=0, date=None):
        counter['n'] += 1
        event = Event(
            organization_id=sample_organization.id,
            title=f"{event_type} #{counter['n']}",
            type=event_type,
            status=status,
            attendee_count=attendee_count,
            date=date or datetime(2026, 1, 1) + timedelta(days=counter['n']),
        )
        db.session.add(event)
        db.session.commit()
        return event

    return _make


@pytest.fixture
def check_in(app):
    """Record a checked-in registration for a member at an event."""

    def _check_in(member, event):
        registration = EventRegistration(
            organization_id=event.organization_id,
            event_id=event.id,
            member_id=member.id,
            status='checked_in',
            checked_in_at=event.date,
        )
        db.session.add(registration)
        db.session.commit()
        return registration

    return _check_in


@pytest.fixture
def sample_program(app):
    """Create an incentive program with the five standard categories."""
    program = IncentiveProgram(
        code='2026_MY',
        name='2026 Malaysia Incentive Program',
        year=2026,
        categories={
            'efficient': {'label': 'Efficient', 'min_score': 100},
            'network': {'label': 'Network', 'min_score': 250},
            'experience': {'label': 'Experience', 'min_score': 250},
            'outreach': {'label': 'Outreach', 'min_score': 250},
            'impact': {'label': 'Impact', 'min_score': 250},
        },
    )
    db.session.add(program)
    db.session.commit()
    return program
