"""
End-of-day report import profile.

Sheets often hold one row per task, so rows are grouped by employee and
report date and each group becomes a single report. Legacy exports keep the
task in dedicated columns and sometimes state the real report date inside
the task text ("report for 06/03"); ``use_legacy_format`` handles both.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from import_engine.domain.imports.coercion import (
    normalize_type_of_work,
    parse_boolean,
    parse_date,
    parse_datetime,
    parse_decimal,
    parse_json_items,
)
from import_engine.domain.imports.entities.base import EntityProfile, RowPayload, TargetField, requires
from import_engine.domain.imports.resolver import EmailIndex, normalize_key, resolve_reference
from import_engine.utils.date import extract_report_date, utcnow

DEFAULT_SUMMARY = "Imported summary"

LEGACY_TASK_FIELDS = (
    "task_details",
    "task_ticket",
    "task_type_of_work",
    "task_estimated_time",
    "task_time_spent",
    "task_lifecycle",
    "task_status",
)


def _email_index(ctx) -> EmailIndex:
    index = ctx.state.get("eod_email_index")
    if index is None:
        index = EmailIndex((employee["id"], employee["email"]) for employee in ctx.store.find_many("employees"))
        ctx.state["eod_email_index"] = index
    return index


def resolve_report_employee(ctx, email: str) -> str:
    """Exact work email first, then the cross-format email index."""
    key = normalize_key(email)

    def exact():
        employee = ctx.store.find_first("employees", iequals={"email": key})
        return employee["id"] if employee else None

    return resolve_reference(
        ctx.cache,
        "employee",
        email,
        [(key, exact), (key, lambda: _email_index(ctx).lookup(email))],
        message=(
            f'Could not match "{email}" to any employee. '
            "Update the row with the employee's work email or create the employee first."
        ),
    )


def _earliest(current: Optional[datetime], incoming: Optional[datetime]) -> Optional[datetime]:
    if incoming is None:
        return current
    if current is None or incoming < current:
        return incoming
    return current


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def build_legacy_task(row) -> Optional[Dict[str, Any]]:
    """One task object from the legacy task columns, or None when they are all empty."""
    if not any(row.get(key) for key in LEGACY_TASK_FIELDS):
        return None
    return {
        "client_details": row.get("task_details"),
        "ticket": row.get("task_ticket"),
        "type_of_work_done": normalize_type_of_work(row.get("task_type_of_work")),
        "task_estimated_time": _as_float(parse_decimal(row.get("task_estimated_time"), "task estimated time")),
        "time_spent_on_ticket": _as_float(parse_decimal(row.get("task_time_spent"), "task time spent")),
        "task_lifecycle": row.get("task_lifecycle"),
        "task_status": row.get("task_status"),
    }


class EodReportProfile(EntityProfile):
    entity_type = "eod_reports"
    model = "eod_reports"
    label = "EOD report"
    min_confidence = 0.25
    grouped = True
    fields = (
        TargetField("email", "Employee Email", "Work email of the employee who wrote the report.", required=True),
        TargetField("date", "Report Date", "Date the report covers.", required=True),
        TargetField("summary", "Summary", "Report text; several rows for the same day are joined."),
        TargetField("tasks", "Tasks Worked On", "JSON array or one task per line."),
        TargetField("hours_worked", "Hours Worked", "Hours for the row; summed per report."),
        TargetField("submitted_at", "Submitted At", "When the report was submitted."),
        TargetField("is_late", "Is Late", "yes/no flag."),
        TargetField("task_details", "Task Details", "Legacy format: task description."),
        TargetField("task_ticket", "Task Ticket/Reference", "Legacy format: ticket reference."),
        TargetField("task_type_of_work", "Task Type of Work", "Legacy format: planning, research, implementation or testing."),
        TargetField("task_estimated_time", "Task Estimated Time", "Legacy format: estimate in hours."),
        TargetField("task_time_spent", "Task Time Spent", "Legacy format: hours spent."),
        TargetField("task_lifecycle", "Task Lifecycle", "Legacy format: lifecycle stage."),
        TargetField("task_status", "Task Status", "Legacy format: task status."),
    )
    required_rules = (
        requires("email", "Email must be mapped for EOD import."),
        requires("date", "Date must be mapped for EOD import."),
    )
    preflight_categories = ("employees",)
    attribute_sources = {
        "summary": ("summary",),
        "tasks": ("tasks",) + LEGACY_TASK_FIELDS,
        "hours_worked": ("hours_worked",),
        "submitted_at": ("submitted_at",),
        "is_late": ("is_late",),
    }

    def build(self, row, ctx):
        options = ctx.options
        email = self.require(row.get("email"), "Email is required for each EOD row.")
        report_date = self.require(parse_date(row.get("date")), "Date is required for each EOD row.")
        summary = row.get("summary") or ""

        submitted_at = parse_datetime(row.get("submitted_at"))
        fallback_submitted_at = None

        if options.use_legacy_format:
            fallback_submitted_at = datetime.combine(report_date, datetime.min.time())
            report_date = (
                extract_report_date(row.get("task_details"), report_date)
                or extract_report_date(summary, report_date)
                or report_date
            )
            task = build_legacy_task(row)
            tasks: Optional[List[Any]] = [task] if task else None
        else:
            tasks = parse_json_items(row.get("tasks")) or None

        values = {
            "employee_id": resolve_report_employee(ctx, email),
            "date": report_date,
            "tasks": tasks,
            "hours_worked": parse_decimal(row.get("hours_worked"), "hours worked"),
            "submitted_at": submitted_at,
            "is_late": parse_boolean(row.get("is_late")),
        }
        summaries = [summary.strip()] if summary.strip() else []
        return self.payload(row, values, summaries=summaries, fallback_submitted_at=fallback_submitted_at)

    def group_key(self, payload):
        return payload.values["employee_id"], payload.values["date"]

    def merge(self, group: RowPayload, payload: RowPayload) -> RowPayload:
        merged, incoming = group.values, payload.values
        for part in payload.related["summaries"]:
            if part not in group.related["summaries"]:
                group.related["summaries"].append(part)
        if incoming["tasks"] is not None:
            merged["tasks"] = list(merged["tasks"] or []) + list(incoming["tasks"])
        if incoming["hours_worked"] is not None:
            current = merged["hours_worked"]
            merged["hours_worked"] = incoming["hours_worked"] if current is None else current + incoming["hours_worked"]
        merged["submitted_at"] = _earliest(merged["submitted_at"], incoming["submitted_at"])
        group.related["fallback_submitted_at"] = _earliest(
            group.related["fallback_submitted_at"], payload.related["fallback_submitted_at"]
        )
        if incoming["is_late"] is not None:
            merged["is_late"] = bool(merged["is_late"]) or incoming["is_late"]
        group.source_rows.extend(payload.source_rows)
        return group

    def finalize(self, group, ctx):
        group.values["summary"] = "\n".join(group.related["summaries"]) or None
        return group

    def _missing_submission(self, payload, ctx) -> Optional[datetime]:
        fallback = payload.related.get("fallback_submitted_at")
        if fallback is None and ctx.options.mark_missing_as_submitted:
            return utcnow()
        return fallback

    def create_defaults(self, ctx):
        return {"summary": DEFAULT_SUMMARY, "tasks": [], "is_late": ctx.options.default_is_late}

    def create(self, payload, ctx):
        if payload.values["submitted_at"] is None:
            payload.values["submitted_at"] = self._missing_submission(payload, ctx)
        return super().create(payload, ctx)

    def update(self, existing, payload, ctx):
        payload.related["missing_submission"] = self._missing_submission(payload, ctx)
        return super().update(existing, payload, ctx)

    def update_values(self, payload, existing):
        values = super().update_values(payload, existing)
        # Submission defaults only fill a report that was never marked submitted.
        missing = payload.related.get("missing_submission")
        if "submitted_at" not in values and existing.get("submitted_at") is None and missing is not None:
            values["submitted_at"] = missing
        return values

    def natural_key(self, payload):
        return {"equals": {"employee_id": payload.values["employee_id"], "date": payload.values["date"]}}

    def describe(self, payload):
        return f'EOD report for {payload.values["date"].isoformat()}'

    def references(self, row, ctx):
        email = row.get("email")
        if email:
            yield "employees", email, lambda: resolve_report_employee(ctx, email)
