#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
from enum import Enum
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class ApplicationType(str, Enum):
    NEW = 'new'
    AMENDMENT = 'amendment'
    RENEWAL = 'renewal'
    TRANSFER = 'transfer'
    SURRENDER = 'surrender'
    AMALGAMATION = 'amalgamation'
    COMPLIANCE_REPORT = 'compliance_report'
    ENFORCEMENT_RESPONSE = 'enforcement_response'


class ApplicationStatus(str, Enum):
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    UNDER_ASSESSMENT = 'under_assessment'
    REQUIRES_CLARIFICATION = 'requires_clarification'
    PASSED_INITIAL_REVIEW = 'passed_initial_review'
    FORWARDED_TO_COMPLIANCE = 'forwarded_to_compliance'
    COMPLIANCE_REVIEW = 'compliance_review'
    DIRECTORATE_REVIEW = 'directorate_review'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    REVOKED = 'revoked'
    CANCELLED = 'cancelled'
    LETTER_SIGNED = 'letter_signed'


# Reference prefixes, e.g. NEW-2026-00042
REFERENCE_PREFIXES = {
    ApplicationType.NEW: 'NEW',
    ApplicationType.AMENDMENT: 'AMD',
    ApplicationType.RENEWAL: 'REN',
    ApplicationType.TRANSFER: 'TRF',
    ApplicationType.SURRENDER: 'SUR',
    ApplicationType.AMALGAMATION: 'AMG',
    ApplicationType.COMPLIANCE_REPORT: 'CRP',
    ApplicationType.ENFORCEMENT_RESPONSE: 'ENF',
}


#----------------------------------------------------------------------------
class Application(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Permit or intent application moving through unit review.

    ``version`` is the optimistic lock: SQLAlchemy bumps it on every UPDATE
    and issues ``UPDATE ... WHERE version = :old`` so a stale writer fails
    at flush time instead of overwriting.
    """
    __tablename__ = 'permit_applications'

    __table_args__ = (
        Index('ix_permit_applications_status', 'status'),
        Index('ix_permit_applications_submitted_by', 'submitted_by'),
    )

    reference = Column(String(20), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    application_type = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default=ApplicationStatus.DRAFT.value)
    entity_name = Column(String(255))
    submitted_by = Column(Integer, ForeignKey('profiles.user_id'), nullable=False)
    assigned_reviewer_id = Column(Integer, ForeignKey('profiles.user_id'))
    submitted_at = Column(DateTime)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    submitter = relationship('Profile', foreign_keys=[submitted_by])
    assigned_reviewer = relationship('Profile', foreign_keys=[assigned_reviewer_id])
    review_records = relationship('ReviewRecord', back_populates='application',
                                  order_by='ReviewRecord.created_at')
    transitions = relationship('ApplicationTransition', back_populates='application',
                               order_by='ApplicationTransition.version')

    @classmethod
    def get_by_reference(cls, session, reference: str) -> Optional['Application']:
        return session.query(cls).filter_by(reference=reference).first()

    @property
    def status_enum(self) -> ApplicationStatus:
        return ApplicationStatus(self.status)

    def __str__(self):
        return f"{self.reference}"

    def __repr__(self):
        return f"<Application(reference='{self.reference}', status='{self.status}', version={self.version})>"


#----------------------------------------------------------------------------
class ApplicationTransition(Base):
    """
    One applied workflow transition.

    Persisted form of the transition event; ``version`` is the application
    version the transition produced and ``params_digest`` fingerprints the
    review data sent with it, which together let a replayed request be
    recognised as already applied.
    """
    __tablename__ = 'application_transitions'

    __table_args__ = (
        Index('ix_application_transitions_application', 'application_id'),
    )

    transition_id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(String(36), ForeignKey('permit_applications.id'), nullable=False)
    from_state = Column(String(30), nullable=False)
    to_state = Column(String(30), nullable=False)
    action = Column(String(30), nullable=False)
    actor_id = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)
    # sha256 of the review parameters sent with the request
    params_digest = Column(String(64))
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    application = relationship('Application', back_populates='transitions')

    def __repr__(self):
        return (f"<ApplicationTransition(application_id='{self.application_id}', "
                f"{self.from_state} -[{self.action}]-> {self.to_state}, version={self.version})>")
#-------------------------------------------------------------------------em-
