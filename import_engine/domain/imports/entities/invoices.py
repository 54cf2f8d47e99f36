"""Invoice import profile."""
from typing import Any, Dict, Optional

from import_engine.domain.imports.coercion import (
    match_enum,
    parse_boolean,
    parse_date,
    parse_decimal,
    parse_integer,
    parse_json_items,
)
from import_engine.domain.imports.entities.base import EntityProfile, TargetField, requires
from import_engine.domain.imports.errors import RowValidationError
from import_engine.domain.imports.resolver import normalize_key, resolve_reference

INVOICE_STATUSES = ("DRAFT", "SENT", "PAID", "OVERDUE", "CANCELLED")

CUSTOMER_UNRESOLVED_MESSAGE = (
    "Customer could not be resolved. Provide a valid customer email or name, or configure defaults."
)


def resolve_invoice_customer(ctx, email: Optional[str], name: Optional[str]) -> str:
    """Match by email first, then by name; row values win over option defaults."""
    lookup_email = normalize_key(email) or normalize_key(ctx.options.default("customer_email"))
    lookup_name = (name or "").strip() or (ctx.options.default("customer_name") or "").strip()

    def by_email():
        customer = ctx.store.find_first("customers", iequals={"email": lookup_email})
        return customer["id"] if customer else None

    def by_name():
        customer = ctx.store.find_first("customers", iequals={"name": lookup_name})
        return customer["id"] if customer else None

    return resolve_reference(
        ctx.cache,
        "customer",
        lookup_email or lookup_name or "unknown",
        [(lookup_email, by_email), (normalize_key(lookup_name), by_name)],
        message=CUSTOMER_UNRESOLVED_MESSAGE,
    )


def resolve_creator(ctx, email: Optional[str]) -> str:
    lookup_email = normalize_key(email) or normalize_key(ctx.options.default("created_by_email"))
    if not lookup_email:
        raise RowValidationError(
            "Invoice creator email is required either in the import file or as a default option."
        )

    def load():
        employee = ctx.store.find_first("employees", iequals={"email": lookup_email})
        return employee["id"] if employee else None

    return resolve_reference(
        ctx.cache,
        "creator",
        lookup_email,
        [(lookup_email, load)],
        message=f'No user found with email "{lookup_email}" to assign as invoice creator.',
    )


class InvoiceProfile(EntityProfile):
    entity_type = "invoices"
    model = "invoices"
    label = "Invoice"
    fields = (
        TargetField("invoice_number", "Invoice Number", "Unique invoice number (required).", required=True),
        TargetField("customer_email", "Customer Email", "Customer email used to match the customer record."),
        TargetField("customer_name", "Customer Name", "Customer name used when email is unavailable."),
        TargetField("issue_date", "Issue Date", "Invoice issue date (required).", required=True),
        TargetField("due_date", "Due Date", "Invoice due date (required).", required=True),
        TargetField("paid_date", "Paid Date", "Date the invoice was paid (optional)."),
        TargetField("status", "Status", "Invoice status (DRAFT, SENT, PAID, OVERDUE, CANCELLED)."),
        TargetField("subtotal", "Subtotal", "Subtotal amount before tax."),
        TargetField("tax_rate", "Tax Rate", "Tax rate percentage."),
        TargetField("tax_amount", "Tax Amount", "Tax amount applied to the invoice."),
        TargetField("total", "Total", "Total amount including tax (required).", required=True),
        TargetField("currency", "Currency", "Three-letter currency code (defaults to USD)."),
        TargetField("notes", "Notes", "Additional notes."),
        TargetField("items", "Items", "Invoice line items as JSON array or newline separated text."),
        TargetField("is_recurring", "Is Recurring", "Whether the invoice is recurring (true/false)."),
        TargetField("recurring_day", "Recurring Day", "Day of month for recurring invoices (1-28)."),
        TargetField("created_by_email", "Created By Email", "Email of the invoice creator."),
        TargetField("pdf_url", "PDF URL", "Link to the invoice PDF file."),
    )
    required_rules = (
        requires("invoice_number", "Invoice number must be mapped."),
        requires("issue_date", "Issue date must be mapped."),
        requires("due_date", "Due date must be mapped."),
        requires("total", "Total amount must be mapped."),
    )
    attribute_sources = {
        "customer_id": ("customer_email", "customer_name"),
        "paid_date": ("paid_date",),
        "status": ("status",),
        "subtotal": ("subtotal", "total"),
        "tax_rate": ("tax_rate",),
        "tax_amount": ("tax_amount",),
        "currency": ("currency",),
        "notes": ("notes",),
        "items": ("items",),
        "is_recurring": ("is_recurring",),
        "recurring_day": ("recurring_day",),
        "created_by_id": ("created_by_email",),
        "pdf_url": ("pdf_url",),
    }
    preflight_categories = ("customers", "creators")

    def build(self, row, ctx):
        invoice_number = self.require(row.get("invoice_number"), "Invoice number is required for each row.")
        issue_date = self.require(parse_date(row.get("issue_date")), "Issue date is required for each row.")
        due_date = self.require(parse_date(row.get("due_date")), "Due date is required for each row.")
        total = self.require(parse_decimal(row.get("total"), "total"), "Total amount is required for each row.")

        recurring_day = parse_integer(row.get("recurring_day"), "recurring day")
        if recurring_day is not None and not 1 <= recurring_day <= 28:
            raise RowValidationError("Recurring day must be between 1 and 28.")

        subtotal = parse_decimal(row.get("subtotal"), "subtotal")

        values: Dict[str, Any] = {
            "invoice_number": invoice_number,
            "customer_id": resolve_invoice_customer(ctx, row.get("customer_email"), row.get("customer_name")),
            "issue_date": issue_date,
            "due_date": due_date,
            "paid_date": parse_date(row.get("paid_date")),
            "status": match_enum(row.get("status"), INVOICE_STATUSES),
            "subtotal": subtotal if subtotal is not None else total,
            "tax_rate": parse_decimal(row.get("tax_rate"), "tax rate"),
            "tax_amount": parse_decimal(row.get("tax_amount"), "tax amount"),
            "total": total,
            "currency": row.get("currency"),
            "notes": row.get("notes"),
            "items": parse_json_items(row.get("items")) or None,
            "is_recurring": parse_boolean(row.get("is_recurring")),
            "recurring_day": recurring_day,
            "created_by_id": resolve_creator(ctx, row.get("created_by_email")),
            "pdf_url": row.get("pdf_url"),
        }
        return self.payload(row, values)

    def natural_key(self, payload):
        return {"equals": {"invoice_number": payload.values["invoice_number"]}}

    def describe(self, payload):
        return f'Invoice "{payload.values["invoice_number"]}"'

    def create_defaults(self, ctx):
        options = ctx.options
        return {
            "status": match_enum(options.default("status"), INVOICE_STATUSES) or "DRAFT",
            "currency": options.default("currency", "USD"),
            "items": [],
            "is_recurring": False,
        }

    def references(self, row, ctx):
        email = row.get("customer_email")
        name = row.get("customer_name")
        if email or name:
            yield "customers", email or name, lambda: resolve_invoice_customer(ctx, email, name)
        creator = row.get("created_by_email") or ctx.options.default("created_by_email")
        if creator:
            yield "creators", creator, lambda: resolve_creator(ctx, creator)
