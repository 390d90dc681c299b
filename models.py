from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from db import Base


class Advisor(Base):
    __tablename__ = "advisors"

    # Explicitly assignable for migrated/seed data.
    advisorId = Column(Integer, primary_key=True, autoincrement=True)
    firstName = Column(String, nullable=False, default="")
    lastName = Column(String, nullable=True)

    @property
    def fullName(self) -> str:
        return " ".join(p for p in (self.firstName or "", self.lastName or "") if p).strip()


class SecureCareEmployee(Base):
    """One row per employee per award type (Level 1, Level 2, Level 3, Consultant, Coach)."""

    __tablename__ = "securecare_employees"
    __table_args__ = (
        UniqueConstraint("employeeNumber", "awardType", name="uq_securecare_employee_level"),
        CheckConstraint(
            '("secureCareAwarded" AND "secureCareAwardedDate" IS NOT NULL) '
            'OR (NOT "secureCareAwarded" AND "secureCareAwardedDate" IS NULL)',
            name="ck_securecare_awarded_date",
        ),
    )

    employeeId = Column(Integer, primary_key=True, autoincrement=True)
    employeeNumber = Column(String, nullable=False, index=True)
    name = Column(Text, nullable=False, default="")
    facility = Column(String, nullable=False, default="", index=True)
    area = Column(String, nullable=False, default="", index=True)
    staffRole = Column(String, nullable=False, default="")
    awardType = Column(String, nullable=False, index=True)

    assignedDate = Column(Date, nullable=True)
    completedDate = Column(Date, nullable=True)
    conferenceCompleted = Column(Date, nullable=True)
    # Stored tri-state: True = pending approval, False = approved, NULL = rejected.
    # format_conference renders False as "Awaiting <date>" and True as the plain date.
    awaiting = Column(Boolean, nullable=True)
    notes = Column(Text, nullable=True)
    advisorId = Column(Integer, ForeignKey("advisors.advisorId"), nullable=True, index=True)

    secureCareAwarded = Column(Boolean, nullable=False, default=False)
    secureCareAwardedDate = Column(Date, nullable=True)

    scheduleStandingVideo = Column(Date, nullable=True)
    standingVideo = Column(Date, nullable=True)
    scheduleSleepingVideo = Column(Date, nullable=True)
    sleepingVideo = Column(Date, nullable=True)
    scheduleFeedGradVideo = Column(Date, nullable=True)
    feedGradVideo = Column(Date, nullable=True)
    schedulenoHandnoSpeak = Column(Date, nullable=True)
    noHandnoSpeak = Column(Date, nullable=True)

    # Persisted column names carry a literal '#'.
    scheduleSession1 = Column("scheduleSession#1", Date, nullable=True)
    session1 = Column("session#1", Date, nullable=True)
    scheduleSession2 = Column("scheduleSession#2", Date, nullable=True)
    session2 = Column("session#2", Date, nullable=True)
    scheduleSession3 = Column("scheduleSession#3", Date, nullable=True)
    session3 = Column("session#3", Date, nullable=True)

    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_log"

    auditId = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(Text, nullable=False, default="", index=True)
    userIdentifier = Column(String, nullable=False, default="", index=True)
    action = Column(String, nullable=False, default="", index=True)
    tableName = Column(String, nullable=False, default="")
    recordId = Column(String, nullable=False, default="", index=True)
    employeeNumber = Column(String, nullable=True, index=True)
    employeeName = Column(Text, nullable=True)
    awardType = Column(String, nullable=True)
    fieldName = Column(String, nullable=True)
    oldValue = Column(Text, nullable=True)
    newValue = Column(Text, nullable=True)
    details = Column(Text, nullable=True)
    ipAddress = Column(String, nullable=True)
