"""
ORM models for import jobs and the records they reconcile against.

Employees double as the users referenced by invoices, EOD reports and
activities.
"""
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from import_engine.db.session import Base
from import_engine.utils.date import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class ImportJob(Base):
    """One uploaded file and the progress of importing it."""

    __tablename__ = "import_jobs"

    id = Column(String, primary_key=True, default=_new_id)
    entity_type = Column(String, nullable=False, index=True)
    source_file_ref = Column(String, nullable=False)
    original_file_name = Column(String, nullable=False)
    status = Column(String, nullable=False, default="PENDING")
    field_mapping = Column(JSON, nullable=True)
    total_records = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=True)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    employee_number = Column(String, unique=True, nullable=True)
    card_number = Column(String, index=True, nullable=True)
    job_title = Column(String, nullable=True)
    department = Column(String, nullable=True)
    status = Column(String, nullable=False, default="ACTIVE")
    contract_type = Column(String, nullable=False, default="FULL_TIME")
    hire_date = Column(Date, nullable=True)
    termination_date = Column(Date, nullable=True)
    salary = Column(Numeric(12, 2), nullable=True)
    salary_currency = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    manager_id = Column(String, ForeignKey("employees.id"), nullable=True)
    emergency_contact_name = Column(String, nullable=True)
    emergency_contact_phone = Column(String, nullable=True)
    emergency_contact_relation = Column(String, nullable=True)


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    role = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    linkedin_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=True)


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    city = Column(String, nullable=True)
    country = Column(String, nullable=True)
    current_title = Column(String, nullable=True)
    years_of_experience = Column(Integer, nullable=True)
    skills = Column(JSON, nullable=True)
    resume_url = Column(String, nullable=True)
    linkedin_url = Column(String, nullable=True)
    github_url = Column(String, nullable=True)
    portfolio_url = Column(String, nullable=True)
    stage = Column(String, nullable=False, default="VALIDATION")
    rating = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    available_from = Column(Date, nullable=True)
    expected_salary = Column(Numeric(12, 2), nullable=True)
    salary_currency = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    odoo_id = Column(String, unique=True, nullable=True)
    drive_folder_id = Column(String, nullable=True)


class ActivityType(Base):
    __tablename__ = "activity_types"

    id = Column(String, primary_key=True, default=_new_id)
    key = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String, primary_key=True, default=_new_id)
    activity_type_id = Column(String, ForeignKey("activity_types.id"), nullable=False)
    candidate_id = Column(String, ForeignKey("candidates.id"), nullable=False)
    subject = Column(String, nullable=False)
    body = Column(Text, nullable=True)
    activity_date = Column(DateTime, nullable=True)
    created_by = Column(String, nullable=False)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=_new_id)
    invoice_number = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="DRAFT")
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax_rate = Column(Numeric(6, 3), nullable=True)
    tax_amount = Column(Numeric(12, 2), nullable=True)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False, default="USD")
    notes = Column(Text, nullable=True)
    items = Column(JSON, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_day = Column(Integer, nullable=True)
    created_by_id = Column(String, ForeignKey("employees.id"), nullable=False)
    pdf_url = Column(String, nullable=True)


class CheckInOut(Base):
    __tablename__ = "check_in_outs"

    id = Column(String, primary_key=True, default=_new_id)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False, index=True)
    date_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False)
    imported_at = Column(DateTime, nullable=True)
    imported_by = Column(String, nullable=True)


class EodReport(Base):
    __tablename__ = "eod_reports"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_eod_employee_date"),)

    id = Column(String, primary_key=True, default=_new_id)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False)
    date = Column(Date, nullable=False)
    summary = Column(Text, nullable=False)
    tasks = Column(JSON, nullable=True)
    hours_worked = Column(Numeric(6, 2), nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    is_late = Column(Boolean, nullable=False, default=False)


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String, primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="NEW")
    value = Column(Numeric(12, 2), nullable=True)
    probability = Column(Integer, nullable=True)
    source = Column(String, nullable=True)
    expected_close_date = Column(Date, nullable=True)
    contact_id = Column(String, ForeignKey("contacts.id"), nullable=False, index=True)
    assigned_to_id = Column(String, ForeignKey("employees.id"), nullable=True)
    converted_customer_id = Column(String, ForeignKey("customers.id"), nullable=True)


# Entity names used by the record store.
RECORD_MODELS = {
    "customers": Customer,
    "employees": Employee,
    "contacts": Contact,
    "candidates": Candidate,
    "activity_types": ActivityType,
    "activities": Activity,
    "invoices": Invoice,
    "check_in_outs": CheckInOut,
    "eod_reports": EodReport,
    "leads": Lead,
}
