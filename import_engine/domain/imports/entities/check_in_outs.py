"""Check-in/out (attendance device export) import profile."""
from datetime import timedelta
from typing import Optional

from import_engine.domain.imports.coercion import parse_check_status, parse_datetime
from import_engine.domain.imports.entities.base import EntityProfile, TargetField, requires
from import_engine.domain.imports.errors import RowValidationError
from import_engine.domain.imports.resolver import resolve_reference
from import_engine.utils.date import utcnow


def employee_match_key(first_name: str, last_name: str, card_number: Optional[str]) -> str:
    """Key used for manual matches and pre-flight reports: "first|last[|card]"."""
    key = f"{first_name}|{last_name}"
    return f"{key}|{card_number}" if card_number else key


def resolve_attendance_employee(
    ctx,
    first_name: str,
    last_name: str,
    card_number: Optional[str],
    use_manual_matches: bool = True,
) -> str:
    """Manual match, then card number, then case-insensitive first and last name."""

    def by_card():
        employee = ctx.store.find_first("employees", equals={"card_number": card_number})
        return employee["id"] if employee else None

    def by_name():
        employee = ctx.store.find_first(
            "employees", iequals={"first_name": first_name, "last_name": last_name}
        )
        return employee["id"] if employee else None

    suffix = f' or card number "{card_number}"' if card_number else ""
    return resolve_reference(
        ctx.cache,
        "employee",
        employee_match_key(first_name, last_name, card_number),
        [(card_number, by_card), (f"{first_name}|{last_name}".lower(), by_name)],
        manual_matches=ctx.options.manual_matches if use_manual_matches else None,
        manual_keys=(employee_match_key(first_name, last_name, card_number), f"{first_name} {last_name}", card_number),
        verify_manual=lambda employee_id: ctx.store.exists("employees", employee_id),
        message=(
            f'No employee found matching "{first_name} {last_name}"{suffix}. '
            "Please ensure the employee exists and matches by name or card number."
        ),
    )


class CheckInOutProfile(EntityProfile):
    entity_type = "check_in_outs"
    model = "check_in_outs"
    label = "Check-in/out"
    fields = (
        TargetField("first_name", "First Name", "Employee first name.", required=True),
        TargetField("last_name", "Last Name", "Employee last name.", required=True),
        TargetField("card_number", "Card Number", "Access card number; matched before the name."),
        TargetField("date_time", "Date and Time", "Timestamp of the event.", required=True),
        TargetField("status", "Status", 'Direction of the event, e.g. "Division 5-1 In" or "OUT".', required=True),
    )
    required_rules = (
        requires("first_name", "First name must be mapped for check-in/out import."),
        requires("last_name", "Last name must be mapped for check-in/out import."),
        requires("date_time", "Date and time must be mapped for check-in/out import."),
        requires("status", "Status must be mapped for check-in/out import."),
    )
    preflight_categories = ("employees",)

    def _identity(self, row):
        first_name = self.require(row.get("first_name"), "First name is required for each check-in/out row.")
        last_name = self.require(row.get("last_name"), "Last name is required for each check-in/out row.")
        return first_name, last_name, row.get("card_number")

    def build(self, row, ctx):
        first_name, last_name, card_number = self._identity(row)
        date_time = self.require(
            parse_datetime(row.get("date_time")), "Date and time is required for each check-in/out row."
        )
        raw_status = row.get("status")
        status = parse_check_status(raw_status)
        if status is None:
            raise RowValidationError(
                f'Status is required and must be "IN" or "OUT" (received: "{raw_status or ""}").'
            )

        values = {
            "employee_id": resolve_attendance_employee(ctx, first_name, last_name, card_number),
            "date_time": date_time,
            "status": status,
            "imported_at": utcnow(),
            "imported_by": ctx.options.imported_by,
        }
        return self.payload(row, values)

    def natural_key(self, payload):
        minute = payload.values["date_time"].replace(second=0, microsecond=0)
        end = minute + timedelta(seconds=59, microseconds=999000)
        return {
            "equals": {"employee_id": payload.values["employee_id"]},
            "between": {"date_time": (minute, end)},
        }

    def describe(self, payload):
        return f'Check-in/out at {payload.values["date_time"].isoformat(sep=" ")}'

    def references(self, row, ctx):
        first_name, last_name, card_number = self._identity(row)
        yield (
            "employees",
            employee_match_key(first_name, last_name, card_number),
            lambda: resolve_attendance_employee(ctx, first_name, last_name, card_number, use_manual_matches=False),
        )
