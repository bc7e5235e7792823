#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class ReviewRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    A unit's assessment of an application.

    One row per (application, unit); updated by the assigned reviewer or a
    manager as the unit works the application. Rows are never deleted.
    """
    __tablename__ = 'review_records'

    __table_args__ = (
        UniqueConstraint('application_id', 'unit', name='uq_review_records_application_unit'),
        Index('ix_review_records_application', 'application_id'),
    )

    application_id = Column(String(36), ForeignKey('permit_applications.id'), nullable=False)
    unit = Column(String(20), nullable=False)
    assessed_by = Column(Integer, ForeignKey('profiles.user_id'), nullable=False)
    assessment_status = Column(String(30), nullable=False)
    notes = Column(Text)
    recommendations = Column(Text)
    requires_eia = Column(Boolean, nullable=False, default=False)
    requires_workplan = Column(Boolean, nullable=False, default=False)
    forwarded_to_next_unit = Column(Boolean, nullable=False, default=False)
    eia_due_date = Column(Date)
    workplan_due_date = Column(Date)

    application = relationship('Application', back_populates='review_records')
    assessor = relationship('Profile')

    def __repr__(self):
        return (f"<ReviewRecord(application_id='{self.application_id}', unit='{self.unit}', "
                f"assessment_status='{self.assessment_status}')>")
#-------------------------------------------------------------------------em-
