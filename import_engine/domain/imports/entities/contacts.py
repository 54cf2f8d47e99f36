"""Contact import profile."""
from typing import Any, Dict, Optional

from import_engine.domain.imports.coercion import split_full_name
from import_engine.domain.imports.entities.base import EntityProfile, TargetField, requires
from import_engine.domain.imports.errors import InvalidOptionsError
from import_engine.domain.imports.resolver import normalize_key

NAME_REQUIRED_MESSAGE = "Each contact must include either first/last name or a full name column."


def resolve_customer_by_name(ctx, name: Optional[str]) -> Optional[str]:
    """Case-insensitive customer lookup shared by contact and invoice imports."""
    key = normalize_key(name)
    if not key:
        return None

    def load():
        customer = ctx.store.find_first("customers", iequals={"name": name})
        return customer["id"] if customer else None

    return ctx.cache.get_or_load("customer:name", key, load)


def check_default_customer(ctx) -> Optional[str]:
    customer_id = ctx.options.default("customer_id")
    if customer_id and not ctx.store.exists("customers", customer_id):
        raise InvalidOptionsError("Default customer ID provided does not exist.")
    return customer_id


class ContactProfile(EntityProfile):
    entity_type = "contacts"
    model = "contacts"
    label = "Contact"
    fields = (
        TargetField("email", "Email", "Unique email address for the contact.", required=True),
        TargetField("first_name", "First Name", "Given name."),
        TargetField("last_name", "Last Name", "Family name."),
        TargetField("full_name", "Full Name", "Used when first/last name are not provided separately."),
        TargetField("phone", "Phone", "Primary phone number."),
        TargetField("role", "Role / Title", "Job title or role."),
        TargetField("company_name", "Company Name", "Organisation the contact works for."),
        TargetField("linkedin_url", "LinkedIn URL", "LinkedIn profile link."),
        TargetField("notes", "Notes", "Free-form notes."),
        TargetField(
            "customer_name",
            "Customer Name",
            "Existing customer to associate (matched by name, case-insensitive).",
        ),
    )
    required_rules = (requires("email", "Email must be mapped for contact imports."),)
    attribute_sources = {
        "first_name": ("first_name", "full_name"),
        "last_name": ("last_name", "full_name"),
        "phone": ("phone",),
        "role": ("role",),
        "company_name": ("company_name",),
        "linkedin_url": ("linkedin_url",),
        "notes": ("notes",),
        "customer_id": ("customer_name",),
    }
    preflight_categories = ("customers",)

    def check_options(self, ctx) -> None:
        check_default_customer(ctx)

    def build(self, row, ctx):
        email = self.require(row.get("email"), "Email is required for each contact row.")
        first_name = row.get("first_name")
        last_name = row.get("last_name")
        if not first_name or not last_name:
            full_first, full_last = split_full_name(row.get("full_name"))
            first_name = first_name or full_first
            last_name = last_name or full_last
        if not first_name or not last_name:
            self.require(None, NAME_REQUIRED_MESSAGE)

        customer_id = resolve_customer_by_name(ctx, row.get("customer_name"))
        if not customer_id:
            customer_id = ctx.options.default("customer_id")

        values: Dict[str, Any] = {
            "email": email.lower(),
            "first_name": first_name,
            "last_name": last_name,
            "phone": row.get("phone"),
            "role": row.get("role"),
            "company_name": row.get("company_name"),
            "linkedin_url": row.get("linkedin_url"),
            "notes": row.get("notes"),
            "customer_id": customer_id,
        }
        return self.payload(row, values)

    def natural_key(self, payload):
        return {"iequals": {"email": payload.values["email"]}}

    def references(self, row, ctx):
        name = row.get("customer_name")
        if name:
            yield "customers", name, lambda: resolve_customer_by_name(ctx, name)
