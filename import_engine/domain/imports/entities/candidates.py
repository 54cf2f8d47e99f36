"""
Candidate import profile.

Exports from Odoo carry HTML in every cell and keep document links inside
the notes; ``is_odoo_import`` turns on the cleanup for both. Activities
arrive either as a JSON array in one column or as numbered
"Activity N Type/Subject/Body/Date" columns.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from import_engine.domain.imports.coercion import (
    match_enum,
    parse_boolean,
    parse_date,
    parse_datetime,
    parse_decimal,
    parse_integer,
    parse_list,
    split_full_name,
)
from import_engine.domain.imports.entities.base import EntityProfile, RequiredRule, TargetField, requires
from import_engine.domain.imports.errors import RowValidationError
from import_engine.domain.imports.resolver import normalize_key, resolve_reference
from import_engine.domain.imports.sanitizer import process_notes, strip_html

logger = logging.getLogger(__name__)

CANDIDATE_STAGES = (
    "VALIDATION",
    "CULTURAL_INTERVIEW",
    "TECHNICAL_INTERVIEW",
    "CUSTOMER_INTERVIEW",
    "CONTRACT_SIGNING",
    "HIRED",
    "REJECTED",
)

MAX_NUMBERED_ACTIVITIES = 20

NAME_REQUIRED_MESSAGE = "Each candidate must include either first/last name or a full name column."


def _activity_columns(index: int) -> Dict[str, List[str]]:
    """Column names Odoo uses for the ``index``-th activity, most specific first."""
    first_only = index == 1
    columns = {
        "type": [f"Activity {index} Type", f"Activity Type {index}"],
        "subject": [
            f"Activity {index} Subject",
            f"Activity Subject {index}",
            f"Activity {index} Summary",
            f"Activity Summary {index}",
        ],
        "body": [
            f"Activity {index} Body",
            f"Activity Body {index}",
            f"Activity {index} Description",
            f"Activity Description {index}",
            f"Activity {index} Note",
            f"Activity Note {index}",
        ],
        "date": [
            f"Activity {index} Date",
            f"Activity Date {index}",
            f"Activity {index} Due Date",
            f"Activity Due Date {index}",
        ],
    }
    if first_only:
        columns["type"] += ["Activity/Type", "Activity Type"]
        columns["subject"] += ["Activity/Subject", "Activity Subject", "Activity Summary"]
        columns["body"] += ["Activity/Body", "Activity Body", "Activity Description"]
        columns["date"] += ["Activity/Date", "Activity Date", "Activity Due Date"]
    return columns


def _first_present(row, names: List[str]) -> Optional[str]:
    for name in names:
        value = row.column(name)
        if value:
            return value
    return None


def parse_activities(row) -> List[Dict[str, Any]]:
    """
    Read activity descriptors from the JSON column or numbered columns.

    Numbered columns are picked up by name without being mapped, unless the
    operator listed them as ignored.
    """
    raw = row.get("activities")
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            activities = []
            for item in parsed:
                if not isinstance(item, dict):
                    raise RowValidationError("Each activity must be an object.")
                subject = item.get("subject")
                if not subject or not isinstance(subject, str):
                    raise RowValidationError("Each activity must have a subject.")
                body = item.get("body")
                activities.append(
                    {
                        "type": item.get("activityTypeKey")
                        or item.get("activity_type_key")
                        or item.get("activityType")
                        or item.get("activityTypeName")
                        or item.get("typeName"),
                        "subject": subject.strip(),
                        "body": str(body).strip() if body else None,
                        "date": item.get("activityDate") or item.get("date"),
                    }
                )
            return activities

    activities = []
    for index in range(1, MAX_NUMBERED_ACTIVITIES + 1):
        columns = _activity_columns(index)
        subject = _first_present(row, columns["subject"])
        if not subject:
            break
        activities.append(
            {
                "type": _first_present(row, columns["type"]),
                "subject": subject,
                "body": _first_present(row, columns["body"]),
                "date": _first_present(row, columns["date"]),
            }
        )
    return activities


def resolve_activity_type(ctx, identifier: Optional[str]) -> str:
    """Active activity type whose key or name matches, case-insensitively."""
    label = identifier or "unknown"
    key = normalize_key(identifier)

    def by(column):
        def load():
            found = ctx.store.find_first(
                "activity_types", equals={"is_active": True}, iequals={column: identifier}
            )
            return found["id"] if found else None

        return load

    return resolve_reference(
        ctx.cache,
        "activity_type",
        label,
        [(key, by("key")), (key, by("name"))],
        message=f'Activity type "{label}" not found. Please ensure the activity type exists in the system.',
    )


class CandidateProfile(EntityProfile):
    entity_type = "candidates"
    model = "candidates"
    label = "Candidate"
    fields = (
        TargetField("email", "Email", "Unique email address for the candidate.", required=True),
        TargetField("first_name", "First Name", "Given name."),
        TargetField("last_name", "Last Name", "Family name."),
        TargetField("full_name", "Full Name", "Used when first/last name are not provided separately."),
        TargetField("phone", "Phone", "Primary phone number."),
        TargetField("city", "City", "City of residence."),
        TargetField("country", "Country", "Country of residence."),
        TargetField("current_title", "Current Title", "Current job title."),
        TargetField("years_of_experience", "Years of Experience", "Whole number of years."),
        TargetField("skills", "Skills", "Comma, semicolon or pipe separated list, or a JSON array."),
        TargetField("resume_url", "Resume URL", "Link to the resume document."),
        TargetField("linkedin_url", "LinkedIn URL", "LinkedIn profile link."),
        TargetField("github_url", "GitHub URL", "GitHub profile link."),
        TargetField("portfolio_url", "Portfolio URL", "Personal site or portfolio."),
        TargetField("stage", "Stage", "Pipeline stage, e.g. VALIDATION or TECHNICAL INTERVIEW."),
        TargetField("rating", "Rating", "Whole-number rating."),
        TargetField("notes", "Notes", "Free-form notes; Odoo HTML is cleaned on Odoo imports."),
        TargetField("available_from", "Available From", "Date the candidate can start."),
        TargetField("expected_salary", "Expected Salary", "Expected salary amount."),
        TargetField("salary_currency", "Salary Currency", "Three-letter currency code."),
        TargetField("is_active", "Is Active", "yes/no flag."),
        TargetField("odoo_id", "Odoo ID", "Identifier of the candidate in Odoo."),
        TargetField(
            "activities",
            "Activities",
            'JSON array of activities, or numbered columns such as "Activity 1 Type", "Activity 1 Subject".',
        ),
    )
    required_rules = (
        requires("email", "Email must be mapped for candidate imports."),
        RequiredRule(
            alternatives=(("full_name",), ("first_name", "last_name")),
            message="Map either the full name column or both first and last name columns.",
        ),
    )
    attribute_sources = {
        "first_name": ("first_name", "full_name"),
        "last_name": ("last_name", "full_name"),
        "phone": ("phone",),
        "city": ("city",),
        "country": ("country",),
        "current_title": ("current_title",),
        "years_of_experience": ("years_of_experience",),
        "skills": ("skills",),
        "resume_url": ("resume_url", "notes"),
        "linkedin_url": ("linkedin_url",),
        "github_url": ("github_url",),
        "portfolio_url": ("portfolio_url",),
        "stage": ("stage",),
        "rating": ("rating",),
        "notes": ("notes",),
        "available_from": ("available_from",),
        "expected_salary": ("expected_salary",),
        "salary_currency": ("salary_currency",),
        "is_active": ("is_active",),
        "odoo_id": ("odoo_id",),
        "drive_folder_id": ("notes",),
    }
    secondary_keys = ("odoo_id",)
    preflight_categories = ("activity_types",)

    def _value(self, row, key: str, odoo: bool) -> Optional[str]:
        value = row.get(key)
        if value and odoo:
            return strip_html(value) or None
        return value

    def build(self, row, ctx):
        odoo = ctx.options.is_odoo_import

        email = self.require(self._value(row, "email", odoo), "Email is required for each candidate row.")
        first_name = self._value(row, "first_name", odoo)
        last_name = self._value(row, "last_name", odoo)
        if not first_name or not last_name:
            full_first, full_last = split_full_name(self._value(row, "full_name", odoo))
            first_name = first_name or full_first
            last_name = last_name or full_last
        if not first_name or not last_name:
            self.require(None, NAME_REQUIRED_MESSAGE)

        resume_url = self._value(row, "resume_url", odoo)
        drive_folder_id = None
        raw_notes = row.get("notes")
        if odoo and raw_notes:
            processed = process_notes(raw_notes, resume_url)
            notes = processed.notes
            resume_url = processed.resume_url
            drive_folder_id = processed.drive_folder_id
        else:
            notes = raw_notes

        activities = parse_activities(row)
        if activities and not ctx.options.imported_by:
            raise RowValidationError("imported_by is required when importing activities.")
        for activity in activities:
            activity["activity_type_id"] = resolve_activity_type(ctx, activity["type"])
            activity["activity_date"] = parse_datetime(activity["date"]) if activity["date"] else None

        values: Dict[str, Any] = {
            "email": email.strip().lower(),
            "first_name": first_name.strip(),
            "last_name": last_name.strip(),
            "phone": self._value(row, "phone", odoo),
            "city": self._value(row, "city", odoo),
            "country": self._value(row, "country", odoo),
            "current_title": self._value(row, "current_title", odoo),
            "years_of_experience": parse_integer(self._value(row, "years_of_experience", odoo), "years of experience"),
            "skills": parse_list(self._value(row, "skills", odoo)) or None,
            "resume_url": resume_url,
            "linkedin_url": self._value(row, "linkedin_url", odoo),
            "github_url": self._value(row, "github_url", odoo),
            "portfolio_url": self._value(row, "portfolio_url", odoo),
            "stage": match_enum(self._value(row, "stage", odoo), CANDIDATE_STAGES),
            "rating": parse_integer(self._value(row, "rating", odoo), "rating"),
            "notes": notes,
            "available_from": parse_date(self._value(row, "available_from", odoo)),
            "expected_salary": parse_decimal(self._value(row, "expected_salary", odoo), "expected salary"),
            "salary_currency": self._value(row, "salary_currency", odoo),
            "is_active": parse_boolean(self._value(row, "is_active", odoo)),
            "odoo_id": self._value(row, "odoo_id", odoo),
            "drive_folder_id": drive_folder_id,
        }
        return self.payload(row, values, activities=activities)

    def natural_key(self, payload):
        return {"iequals": {"email": payload.values["email"]}}

    def create_defaults(self, ctx):
        options = ctx.options
        return {
            "stage": match_enum(options.default("stage"), CANDIDATE_STAGES) or "VALIDATION",
            "salary_currency": options.default("salary_currency", "USD"),
            "skills": [],
        }

    def conflict_message(self, attribute, value):
        return f'Cannot create candidate: Odoo ID "{value}" already exists for another candidate.'

    def update_conflict_message(self, attribute, value):
        return f'Odoo ID "{value}" already exists for another candidate. Skipping odooId update.'

    def after_save(self, record, payload, ctx):
        for activity in payload.related.get("activities", []):
            key = {
                "activity_type_id": activity["activity_type_id"],
                "candidate_id": record["id"],
                "subject": activity["subject"],
                "activity_date": activity["activity_date"],
            }
            if ctx.store.find_first("activities", equals=key) is not None:
                logger.debug('Activity "%s" already recorded for candidate %s', activity["subject"], record["id"])
                continue
            ctx.store.create(
                "activities",
                {**key, "body": activity["body"], "created_by": ctx.options.imported_by},
            )

    def references(self, row, ctx):
        for activity in parse_activities(row):
            identifier = activity["type"] or "unknown"
            yield "activity_types", identifier, lambda value=activity["type"]: resolve_activity_type(ctx, value)
