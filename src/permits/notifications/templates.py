"""
Notification content lookup.

Titles and messages are chosen from fixed tables keyed by
(from_state, to_state, application_type) and rendered with Jinja2 against
the application's identifiers, so the same transition always produces the
same text.

Resolution order for a transition:
    1. (from_state, to_state, application_type)
    2. (from_state, to_state, None)
    3. (None, to_state, application_type)
    4. (None, to_state, None)
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional, Tuple

from jinja2 import Environment, StrictUndefined

from .models import NotificationPriority


@dataclass(frozen=True)
class NotificationTemplate:
    type: str
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_required: bool = False


TemplateKey = Tuple[Optional[str], str, Optional[str]]

P = NotificationPriority

# Sent to the staff unit that owns the new state
UNIT_TEMPLATES: Dict[TemplateKey, NotificationTemplate] = {
    (None, 'submitted', None): NotificationTemplate(
        'application_submitted',
        'New application {{ reference }}',
        '{{ type_label }} application {{ reference }} ({{ title }}) has been submitted '
        'and awaits initial assessment.',
        P.NORMAL, True),
    (None, 'under_assessment', None): NotificationTemplate(
        'assessment_started',
        'Assessment started: {{ reference }}',
        'Initial assessment of {{ reference }} ({{ title }}) is under way.',
        P.LOW, False),
    ('requires_clarification', 'under_assessment', None): NotificationTemplate(
        'assessment_resumed',
        'Assessment resumed: {{ reference }}',
        'Clarification for {{ reference }} was received; assessment has resumed.',
        P.NORMAL, True),
    (None, 'requires_clarification', None): NotificationTemplate(
        'clarification_pending',
        'Awaiting clarification: {{ reference }}',
        '{{ reference }} ({{ title }}) is waiting on clarification from the applicant.',
        P.LOW, False),
    ('compliance_review', 'requires_clarification', None): NotificationTemplate(
        'compliance_clarification_pending',
        'Compliance requested clarification: {{ reference }}',
        'Compliance returned {{ reference }} ({{ title }}) for clarification from the applicant.',
        P.NORMAL, False),
    (None, 'passed_initial_review', None): NotificationTemplate(
        'compliance_referral',
        'Compliance assessment required: {{ reference }}',
        '{{ type_label }} application {{ reference }} ({{ title }}) passed initial '
        'assessment and requires compliance review.',
        P.HIGH, True),
    (None, 'passed_initial_review', 'enforcement_response'): NotificationTemplate(
        'compliance_referral',
        'Enforcement response for review: {{ reference }}',
        'Enforcement response {{ reference }} from {{ entity_name or "the operator" }} passed initial '
        'assessment and requires urgent compliance review.',
        P.URGENT, True),
    (None, 'forwarded_to_compliance', None): NotificationTemplate(
        'referral_accepted',
        'Referral accepted: {{ reference }}',
        '{{ reference }} ({{ title }}) was accepted for compliance review and can be picked up.',
        P.NORMAL, True),
    (None, 'compliance_review', None): NotificationTemplate(
        'compliance_review_started',
        'Compliance review started: {{ reference }}',
        'Compliance review of {{ reference }} ({{ title }}) is under way.',
        P.LOW, False),
    (None, 'directorate_review', None): NotificationTemplate(
        'directorate_approval_required',
        'Approval required: {{ reference }}',
        '{{ type_label }} application {{ reference }} ({{ title }}) cleared compliance '
        'review and awaits directorate approval.',
        P.HIGH, True),
    (None, 'approved', None): NotificationTemplate(
        'letter_signature_required',
        'Letter signature required: {{ reference }}',
        '{{ reference }} ({{ title }}) was approved; the permit letter awaits signature.',
        P.HIGH, True),
}

# Sent to the original submitter
SUBMITTER_TEMPLATES: Dict[TemplateKey, NotificationTemplate] = {
    (None, 'requires_clarification', None): NotificationTemplate(
        'clarification_requested',
        'Clarification needed for {{ reference }}',
        'Reviewers need more information about your application {{ reference }} '
        '({{ title }}). Please respond so the review can continue.',
        P.HIGH, True),
    (None, 'letter_signed', None): NotificationTemplate(
        'permit_issued',
        'Permit issued: {{ reference }}',
        'Your {{ type_label|lower }} application {{ reference }} ({{ title }}) was '
        'approved and the permit letter has been signed.',
        P.HIGH, False),
    (None, 'rejected', None): NotificationTemplate(
        'application_rejected',
        'Application rejected: {{ reference }}',
        'Your application {{ reference }} ({{ title }}) was rejected.',
        P.HIGH, False),
    (None, 'revoked', None): NotificationTemplate(
        'application_revoked',
        'Application revoked: {{ reference }}',
        'Your application {{ reference }} ({{ title }}) was revoked.',
        P.URGENT, False),
    (None, 'cancelled', None): NotificationTemplate(
        'application_cancelled',
        'Application cancelled: {{ reference }}',
        'Your application {{ reference }} ({{ title }}) was cancelled.',
        P.LOW, False),
}

# Sent to a reviewer when an application is assigned to them
ASSIGNMENT_TEMPLATE = NotificationTemplate(
    'review_assigned',
    'Assigned to you: {{ reference }}',
    '{{ type_label }} application {{ reference }} ({{ title }}) has been assigned to you for review.',
    P.NORMAL, True)


_env = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=False)


@lru_cache(maxsize=None)
def _compile(source: str):
    return _env.from_string(source)


def type_label(application_type: str) -> str:
    """'compliance_report' -> 'Compliance report'"""
    return application_type.replace('_', ' ').capitalize()


def lookup(table: Dict[TemplateKey, NotificationTemplate], from_state: str, to_state: str,
           application_type: str) -> Optional[NotificationTemplate]:
    """Most specific template for a transition, or None if the table has no entry."""
    for key in ((from_state, to_state, application_type),
                (from_state, to_state, None),
                (None, to_state, application_type),
                (None, to_state, None)):
        if key in table:
            return table[key]
    return None


def render(template: NotificationTemplate, **context) -> Tuple[str, str]:
    """
    Render a template's title and message.

    Args:
        template: NotificationTemplate to fill in
        **context: reference, application_type, title, entity_name, ...

    Returns:
        (title, message)
    """
    context.setdefault('type_label', type_label(context.get('application_type', '')))
    context.setdefault('entity_name', None)
    return _compile(template.title).render(**context), _compile(template.message).render(**context)
