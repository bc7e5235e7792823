"""
Reference cast and happy-path walker shared by the unit and API tests.
"""
from types import SimpleNamespace

from permits.core.identity import Profile


# key -> (user_type, staff_unit, staff_position)
PEOPLE = {
    'applicant': ('public', None, None),
    'other_applicant': ('public', None, None),
    'registry_officer': ('staff', 'registry', 'officer'),
    'registry_manager': ('staff', 'registry', 'manager'),
    'compliance_officer': ('staff', 'compliance', 'officer'),
    'compliance_manager': ('staff', 'compliance', 'manager'),
    'revenue_officer': ('staff', 'revenue', 'officer'),
    'directorate_officer': ('staff', 'directorate', 'officer'),
    'director': ('staff', 'directorate', 'director'),
    'managing_director': ('staff', 'directorate', 'managing_director'),
    'admin': ('admin', None, None),
    'super_admin': ('super_admin', None, None),
}

# Happy path from draft: (action, actor key, resulting state)
HAPPY_PATH = [
    ('submit', 'applicant', 'submitted'),
    ('begin_assessment', 'registry_officer', 'under_assessment'),
    ('assess_pass', 'registry_officer', 'passed_initial_review'),
    ('accept_referral', 'compliance_manager', 'forwarded_to_compliance'),
    ('begin_review', 'compliance_officer', 'compliance_review'),
    ('approve', 'compliance_officer', 'directorate_review'),
    ('approve', 'director', 'approved'),
    ('sign_letter', 'managing_director', 'letter_signed'),
]


def make_people(session):
    """Create one profile per PEOPLE entry; returns identities by key plus .profiles."""
    profiles = {}
    for key, (user_type, unit, position) in PEOPLE.items():
        profile = Profile(
            email=f'{key}@example.org',
            full_name=key.replace('_', ' ').title(),
            user_type=user_type,
            staff_unit=unit,
            staff_position=position,
        )
        session.add(profile)
        profiles[key] = profile
    session.commit()

    people = SimpleNamespace(**{key: p.to_identity() for key, p in profiles.items()})
    people.profiles = profiles
    return people


def walk_to(service, people, state='draft', application_type='new', title='Quarry expansion',
            entity_name='Highland Aggregates Ltd'):
    """Create an application as the applicant and walk it along HAPPY_PATH to ``state``."""
    app = service.create_application(
        people.applicant, title=title, application_type=application_type, entity_name=entity_name,
    )
    for action, actor_key, reached in HAPPY_PATH:
        if app.status == state:
            break
        service.apply_transition(app.id, action, getattr(people, actor_key), app.version)
    assert app.status == state
    return app
