"""
Lead import profile.

Each row names a lead and the contact it belongs to. The contact is looked
up by email and created on the fly when the lead itself is created, so a
sheet can introduce both at once.
"""
from typing import Any, Dict, Optional

from import_engine.domain.imports.coercion import match_enum, parse_date, parse_decimal, parse_integer, split_full_name
from import_engine.domain.imports.entities.base import EntityProfile, TargetField, requires
from import_engine.domain.imports.entities.contacts import resolve_customer_by_name
from import_engine.domain.imports.errors import InvalidOptionsError, RowValidationError
from import_engine.domain.imports.resolver import normalize_key, resolve_reference

LEAD_STATUSES = ("NEW", "CONTACTED", "QUALIFIED", "PROPOSAL", "WON", "LOST")


def _find_owner(ctx, email: str) -> Optional[str]:
    owner = ctx.store.find_first("employees", iequals={"email": email})
    return owner["id"] if owner else None


def resolve_lead_owner(ctx, email: Optional[str]) -> Optional[str]:
    key = normalize_key(email)
    if not key:
        return None
    return resolve_reference(
        ctx.cache,
        "owner",
        email,
        [(key, lambda: _find_owner(ctx, key))],
        message=f'Lead owner email "{email}" does not match an existing user.',
    )


def parse_lead_status(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    status = match_enum(value, LEAD_STATUSES)
    if status is None:
        raise RowValidationError(
            f'Invalid lead status "{value}". Accepted values: {", ".join(LEAD_STATUSES)}'
        )
    return status


class LeadProfile(EntityProfile):
    entity_type = "leads"
    model = "leads"
    label = "Lead"
    fields = (
        TargetField("title", "Lead Title", "Title or summary of the lead (required).", required=True),
        TargetField("description", "Description", "Detailed description or notes about the lead."),
        TargetField("status", "Status", "Lead status (NEW, CONTACTED, QUALIFIED, PROPOSAL, WON, LOST)."),
        TargetField("value", "Value", "Potential value of the lead."),
        TargetField("probability", "Probability (%)", "Probability of closing (0-100)."),
        TargetField("source", "Source", "Lead source (e.g., Website, Referral)."),
        TargetField("expected_close_date", "Expected Close Date", "Expected closing date of the lead."),
        TargetField(
            "customer_name",
            "Customer Name",
            "Existing customer to associate (matched by name, case-insensitive).",
        ),
        TargetField("owner_email", "Owner Email", "Email of the employee who should own the lead."),
        TargetField("contact_email", "Contact Email", "Primary email for the lead contact (required).", required=True),
        TargetField("contact_first_name", "Contact First Name", "First name of the lead contact."),
        TargetField("contact_last_name", "Contact Last Name", "Last name of the lead contact."),
        TargetField(
            "contact_full_name",
            "Contact Full Name",
            "Full name of the lead contact (split into first/last if individual names missing).",
        ),
        TargetField("contact_phone", "Contact Phone", "Phone number for the lead contact."),
        TargetField("contact_role", "Contact Role", "Role or title of the lead contact."),
        TargetField("contact_company", "Contact Company", "Company of the lead contact (used when creating a contact)."),
    )
    required_rules = (
        requires("title", "Lead title must be mapped in order to import leads."),
        requires("contact_email", "Lead contact email must be mapped in order to import leads."),
    )
    attribute_sources = {
        "description": ("description",),
        "status": ("status",),
        "value": ("value",),
        "probability": ("probability",),
        "source": ("source",),
        "expected_close_date": ("expected_close_date",),
        "assigned_to_id": ("owner_email",),
        "converted_customer_id": ("customer_name",),
    }
    preflight_categories = ("customers", "owners")

    def check_options(self, ctx) -> None:
        email = ctx.options.default("owner_email")
        if email and not _find_owner(ctx, normalize_key(email)):
            raise InvalidOptionsError("Default owner email provided does not match an existing user.")

    def create_defaults(self, ctx):
        return {"status": match_enum(ctx.options.default("status"), LEAD_STATUSES) or "NEW"}

    def _contact(self, row) -> Dict[str, Any]:
        email = self.require(row.get("contact_email"), "Contact email is required for each lead row.")
        first_name = row.get("contact_first_name")
        last_name = row.get("contact_last_name")
        if not first_name or not last_name:
            full_first, full_last = split_full_name(row.get("contact_full_name"))
            first_name = first_name or full_first
            last_name = last_name or full_last
        if not first_name or not last_name:
            self.require(None, "Each lead contact must include either first/last name or a full name column.")
        return {
            "email": email.lower(),
            "first_name": first_name,
            "last_name": last_name,
            "phone": row.get("contact_phone"),
            "role": row.get("contact_role"),
            "company_name": row.get("contact_company"),
        }

    def build(self, row, ctx):
        options = ctx.options
        title = self.require(row.get("title"), "Title is required for each lead row.")
        contact = self._contact(row)
        existing_contact = ctx.store.find_first("contacts", iequals={"email": contact["email"]})

        probability = parse_integer(row.get("probability"), "probability")
        if probability is not None:
            probability = min(max(probability, 0), 100)

        values: Dict[str, Any] = {
            "title": title,
            "description": row.get("description"),
            "status": parse_lead_status(row.get("status")),
            "value": parse_decimal(row.get("value"), "value"),
            "probability": probability,
            "source": row.get("source"),
            "expected_close_date": parse_date(row.get("expected_close_date")),
            "contact_id": existing_contact["id"] if existing_contact else None,
            "assigned_to_id": resolve_lead_owner(ctx, row.get("owner_email") or options.default("owner_email")),
            "converted_customer_id": resolve_customer_by_name(ctx, row.get("customer_name")),
        }
        return self.payload(row, values, contact=contact)

    def find_existing(self, payload, ctx):
        contact_id = payload.values["contact_id"]
        if contact_id is None:
            return None
        return ctx.store.find_first(
            self.model, equals={"contact_id": contact_id}, iequals={"title": payload.values["title"]}
        )

    def create(self, payload, ctx):
        if payload.values["contact_id"] is None:
            contact = {key: value for key, value in payload.related["contact"].items() if value is not None}
            payload.values["contact_id"] = ctx.store.create("contacts", contact)["id"]
        return super().create(payload, ctx)

    def references(self, row, ctx):
        name = row.get("customer_name")
        if name:
            yield "customers", name, lambda: resolve_customer_by_name(ctx, name)
        owner = row.get("owner_email") or ctx.options.default("owner_email")
        if owner:
            yield "owners", owner, lambda: resolve_lead_owner(ctx, owner)
