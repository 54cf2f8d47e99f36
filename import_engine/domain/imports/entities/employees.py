"""Employee import profile."""
from typing import Any, Dict, Optional

from import_engine.domain.imports.coercion import match_enum, parse_date, parse_decimal, split_full_name
from import_engine.domain.imports.entities.base import EntityProfile, TargetField, requires
from import_engine.domain.imports.errors import RecordConflictError
from import_engine.domain.imports.resolver import normalize_key, resolve_reference

EMPLOYMENT_STATUSES = ("ACTIVE", "ON_LEAVE", "TERMINATED", "RESIGNED")
CONTRACT_TYPES = ("FULL_TIME", "PART_TIME", "CONTRACT", "INTERNSHIP")


def resolve_manager(ctx, email: Optional[str]) -> Optional[str]:
    """Employee id for a manager email; a remembered miss raises again."""
    key = normalize_key(email)
    if not key:
        return None

    def load():
        manager = ctx.store.find_first("employees", iequals={"email": key})
        return manager["id"] if manager else None

    return resolve_reference(
        ctx.cache,
        "manager",
        email,
        [(key, load)],
        message=f'Manager with email "{email}" does not exist or is not linked to an employee record.',
    )


class EmployeeProfile(EntityProfile):
    entity_type = "employees"
    model = "employees"
    label = "Employee"
    fields = (
        TargetField("email", "Work Email", "Work email address; used to match existing employees.", required=True),
        TargetField("first_name", "First Name", "Employee first name (required unless full name provided)."),
        TargetField("last_name", "Last Name", "Employee last name (required unless full name provided)."),
        TargetField("full_name", "Full Name", "Split into first and last name when those are not mapped."),
        TargetField("employee_number", "Employee Number", "Unique employee number (required).", required=True),
        TargetField("card_number", "Card Number", "Access card number used by attendance devices."),
        TargetField("job_title", "Job Title", "Primary job title (required).", required=True),
        TargetField("department", "Department", "Department name (optional)."),
        TargetField("status", "Employment Status", "ACTIVE, ON_LEAVE, TERMINATED or RESIGNED."),
        TargetField("contract_type", "Contract Type", "Contract type (FULL_TIME, PART_TIME, CONTRACT, INTERNSHIP)."),
        TargetField("hire_date", "Hire Date", "Hire/start date (YYYY-MM-DD).", required=True),
        TargetField("termination_date", "Termination Date", "Termination date when applicable (YYYY-MM-DD)."),
        TargetField("salary", "Salary", "Annual salary amount."),
        TargetField("salary_currency", "Salary Currency", "Salary currency code (e.g., USD, EUR)."),
        TargetField("phone", "Phone Number", "Primary phone number."),
        TargetField("manager_email", "Manager Email", "Work email of an existing employee who manages this one."),
        TargetField("emergency_contact_name", "Emergency Contact Name", "Name of the emergency contact."),
        TargetField("emergency_contact_phone", "Emergency Contact Phone", "Phone number for the emergency contact."),
        TargetField(
            "emergency_contact_relation",
            "Emergency Contact Relation",
            "Relationship of the emergency contact to the employee.",
        ),
    )
    required_rules = (
        requires("email", "Email must be mapped for employee import."),
        requires("employee_number", "Employee number must be mapped for employee import."),
        requires("job_title", "Job title must be mapped for employee import."),
        requires("hire_date", "Hire date must be mapped for employee import."),
    )
    attribute_sources = {
        "first_name": ("first_name", "full_name"),
        "last_name": ("last_name", "full_name"),
        "card_number": ("card_number",),
        "department": ("department",),
        "status": ("status",),
        "contract_type": ("contract_type",),
        "termination_date": ("termination_date",),
        "salary": ("salary",),
        "salary_currency": ("salary_currency",),
        "phone": ("phone",),
        "emergency_contact_name": ("emergency_contact_name",),
        "emergency_contact_phone": ("emergency_contact_phone",),
        "emergency_contact_relation": ("emergency_contact_relation",),
    }
    secondary_keys = ("employee_number",)
    preflight_categories = ("managers",)

    def build(self, row, ctx):
        options = ctx.options
        email = self.require(row.get("email"), "Email is required for each employee row.")

        first_name = row.get("first_name")
        last_name = row.get("last_name")
        if not first_name or not last_name:
            full_first, full_last = split_full_name(row.get("full_name"))
            first_name = first_name or full_first
            last_name = last_name or full_last
        if not first_name or not last_name:
            self.require(None, "Each employee must include either first/last name columns or a full name column.")

        employee_number = self.require(row.get("employee_number"), "Employee number is required for each employee.")
        job_title = self.require(row.get("job_title"), "Job title is required for each employee.")
        hire_date = self.require(parse_date(row.get("hire_date")), "Hire date is required for each employee.")

        manager_email = row.get("manager_email") or options.default("manager_email")

        values: Dict[str, Any] = {
            "email": email.lower(),
            "first_name": first_name,
            "last_name": last_name,
            "employee_number": employee_number,
            "card_number": row.get("card_number"),
            "job_title": job_title,
            "department": row.get("department"),
            "status": match_enum(row.get("status"), EMPLOYMENT_STATUSES),
            "contract_type": match_enum(row.get("contract_type"), CONTRACT_TYPES),
            "hire_date": hire_date,
            "termination_date": parse_date(row.get("termination_date")),
            "salary": parse_decimal(row.get("salary"), "salary"),
            "salary_currency": row.get("salary_currency"),
            "phone": row.get("phone"),
            "manager_id": resolve_manager(ctx, manager_email),
            "emergency_contact_name": row.get("emergency_contact_name"),
            "emergency_contact_phone": row.get("emergency_contact_phone"),
            "emergency_contact_relation": row.get("emergency_contact_relation"),
        }
        return self.payload(row, values)

    def natural_key(self, payload):
        return {"iequals": {"email": payload.values["email"]}}

    def create_defaults(self, ctx):
        options = ctx.options
        return {
            "status": match_enum(options.default("status"), EMPLOYMENT_STATUSES) or "ACTIVE",
            "contract_type": match_enum(options.default("contract_type"), CONTRACT_TYPES) or "FULL_TIME",
            "salary_currency": options.default("salary_currency", "USD"),
        }

    def conflict_message(self, attribute, value):
        return f'Employee number "{value}" is already in use by another employee.'

    def update(self, existing, payload, ctx):
        number = payload.values.get("employee_number")
        if number and self._conflicting("employee_number", number, ctx, exclude_id=existing["id"]):
            raise RecordConflictError(self.conflict_message("employee_number", number))
        return super().update(existing, payload, ctx)

    def references(self, row, ctx):
        email = row.get("manager_email") or ctx.options.default("manager_email")
        if email:
            yield "managers", email, lambda: resolve_manager(ctx, email)
