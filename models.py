"""SQLAlchemy models for the employee state service."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

from simple_state import StatefulMixin, StateMachineSpec

Base = declarative_base()

EMPLOYEE_STATES = ("created", "invited", "enrolled", "suspended", "terminated")


class Employee(StatefulMixin, Base):
    """
    An employee moving through onboarding.

    ``version_id`` is the optimistic lock: two writers that both read the
    same state cannot both commit a transition, the second flush raises
    StaleDataError.
    """

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(128), nullable=False)
    state = Column(String(32), nullable=False, default="created")
    rehire_eligible = Column(Boolean, nullable=False, default=True)
    access_revoked = Column(Boolean, nullable=False, default=False)
    invited_at = Column(DateTime, nullable=True)
    enrolled_at = Column(DateTime, nullable=True)
    suspended_at = Column(DateTime, nullable=True)
    terminated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    state_machine = StateMachineSpec("state", EMPLOYEE_STATES)
    state_machine.define("invite", to="invited", from_="created", timestamp=True)
    state_machine.define("enroll", to="enrolled", from_="invited", timestamp=True)
    state_machine.define("suspend", to="suspended", from_="enrolled", timestamp=True)
    state_machine.define(
        "terminate",
        to="terminated",
        from_=["enrolled", "suspended"],
        timestamp=True,
        action="revoke_access",
    )
    state_machine.define(
        "reactivate",
        to="enrolled",
        from_=["suspended", "terminated"],
        timestamp=True,
        guard="eligible_for_reactivation",
    )

    @validates("email")
    def _validate_email(self, key, value):
        if not value or "@" not in value:
            raise ValueError(f"Invalid email: {value!r}")
        return value.strip().lower()

    def eligible_for_reactivation(self):
        return bool(self.rehire_eligible)

    def revoke_access(self):
        self.access_revoked = True
