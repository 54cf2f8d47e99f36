"""
End-to-end reconciliation scenarios against an in-memory record store.
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from import_engine.domain.imports.entities import get_profile
from import_engine.domain.imports.entities.contacts import NAME_REQUIRED_MESSAGE
from import_engine.domain.imports.entities.invoices import CUSTOMER_UNRESOLVED_MESSAGE
from import_engine.domain.imports.errors import ImportNotFoundError, InvalidOptionsError
from import_engine.domain.imports.mapping import MappedRow
from import_engine.domain.imports.processors.spreadsheet import parse_spreadsheet
from import_engine.domain.imports.reconciliation import ImportSummary, run_import

CONTACT_FIELDS = {"email": "Email", "first_name": "First", "last_name": "Last"}


def _sheet(*lines):
    return parse_spreadsheet(("\n".join(lines) + "\n").encode("utf-8"))


def _employee(store, email, first="Ann", last="Lee", number=None, card=None):
    return store.create(
        "employees",
        {
            "email": email,
            "first_name": first,
            "last_name": last,
            "employee_number": number,
            "card_number": card,
        },
    )


def _count(store, entity):
    return len(store.find_many(entity))


class TestContactScenario:
    LINES = ("Email,First,Last", "a@x.com,Ann,Lee", ",,", "b@x.com,Bo,")

    def test_blank_row_dropped_and_row_without_last_name_fails(self, make_context, summary, record_store):
        sheet = _sheet(*self.LINES)
        assert len(sheet.rows) == 2

        run_import(get_profile("contacts"), sheet, make_context(CONTACT_FIELDS), summary)

        assert summary.total_rows == 2
        assert summary.created_count == 1
        assert summary.failed_count == 1
        assert summary.errors == [{"row": 4, "message": NAME_REQUIRED_MESSAGE}]
        contact = record_store.find_first("contacts", iequals={"email": "A@X.COM"})
        assert (contact["first_name"], contact["last_name"]) == ("Ann", "Lee")

    def test_rerun_updates_in_place(self, make_context, record_store):
        profile = get_profile("contacts")
        run_import(profile, _sheet(*self.LINES), make_context(CONTACT_FIELDS), ImportSummary("first"))

        second = ImportSummary("second")
        run_import(profile, _sheet(*self.LINES), make_context(CONTACT_FIELDS), second)

        assert second.created_count == 0
        assert second.updated_count == 1
        assert second.processed_rows == 1
        assert _count(record_store, "contacts") == 1

    def test_existing_record_skipped_when_updates_disabled(self, make_context, summary):
        profile = get_profile("contacts")
        run_import(profile, _sheet(*self.LINES[:2]), make_context(CONTACT_FIELDS), ImportSummary("first"))

        run_import(profile, _sheet(*self.LINES[:2]), make_context(CONTACT_FIELDS, update_existing=False), summary)

        assert summary.skipped_count == 1
        assert summary.updated_count == 0
        assert summary.errors == [
            {"row": 2, "message": "Contact already exists and updateExisting option is disabled."}
        ]


def test_sparse_update_leaves_unmapped_fields_alone(make_context, record_store):
    profile = get_profile("contacts")
    full = {**CONTACT_FIELDS, "role": "Role", "phone": "Phone"}
    run_import(
        profile,
        _sheet("Email,First,Last,Role,Phone", "a@x.com,Ann,Lee,CTO,111"),
        make_context(full),
        ImportSummary("first"),
    )

    # "Role" still has a value in the file but is not mapped this time.
    run_import(
        profile,
        _sheet("Email,First,Last,Role,Phone", "a@x.com,Ann,Lee,Intern,222"),
        make_context({**CONTACT_FIELDS, "phone": "Phone"}),
        ImportSummary("second"),
    )

    contact = record_store.find_first("contacts", iequals={"email": "a@x.com"})
    assert contact["role"] == "CTO"
    assert contact["phone"] == "222"


def test_row_with_only_unmapped_values_is_skipped(make_context, summary):
    sheet = _sheet("Email,First,Last,Extra", "a@x.com,Ann,Lee,", ",,,leftover")

    run_import(get_profile("contacts"), sheet, make_context(CONTACT_FIELDS), summary)

    assert summary.created_count == 1
    assert summary.skipped_count == 1
    assert summary.failed_count == 0


def test_error_list_is_capped_but_failures_are_counted(make_context):
    sheet = _sheet("Email,First,Last", "a@x.com,,", "b@x.com,,", "c@x.com,,")
    capped = ImportSummary("capped", error_limit=2)

    run_import(get_profile("contacts"), sheet, make_context(CONTACT_FIELDS), capped)

    assert capped.failed_count == 3
    assert [error["row"] for error in capped.errors] == [2, 3]


def test_contact_customer_falls_back_to_default_option(make_context, record_store, summary):
    customer = record_store.create("customers", {"name": "Acme"})
    sheet = _sheet("Email,First,Last,Customer", "a@x.com,Ann,Lee,acme", "b@x.com,Bo,Ray,Unknown Ltd")
    ctx = make_context({**CONTACT_FIELDS, "customer_name": "Customer"}, defaults={"customer_id": customer["id"]})

    run_import(get_profile("contacts"), sheet, ctx, summary)

    assert summary.created_count == 2
    assert {c["customer_id"] for c in record_store.find_many("contacts")} == {customer["id"]}


def test_missing_default_customer_is_rejected_before_the_run(make_context):
    ctx = make_context(CONTACT_FIELDS, defaults={"customer_id": "does-not-exist"})

    with pytest.raises(InvalidOptionsError, match="Default customer ID provided does not exist."):
        get_profile("contacts").check_options(ctx)


def test_unknown_entity_type():
    with pytest.raises(ImportNotFoundError, match="Unknown import type: widgets"):
        get_profile("widgets")


class TestEodReports:
    FIELDS = {"email": "Email", "date": "Date", "hours_worked": "Hours", "summary": "Summary"}

    def test_rows_for_same_day_are_aggregated(self, make_context, record_store, summary):
        employee = _employee(record_store, "x@y.com")
        sheet = _sheet(
            "Email,Date,Hours,Summary",
            "x@y.com,2024-06-01,4,Fixed login",
            "X@Y.com,2024-06-01,3.5,Wrote tests",
            "x@y.com,2024-06-01,,Fixed login",
        )

        run_import(get_profile("eod_reports"), sheet, make_context(self.FIELDS), summary)

        assert summary.created_count == 1
        assert summary.processed_rows == 3
        reports = record_store.find_many("eod_reports")
        assert len(reports) == 1
        report = reports[0]
        assert report["employee_id"] == employee["id"]
        assert report["date"] == date(2024, 6, 1)
        assert report["hours_worked"] == Decimal("7.5")
        assert report["summary"] == "Fixed login\nWrote tests"

    def test_unknown_employee_fails_row(self, make_context, record_store, summary):
        _employee(record_store, "x@y.com")
        sheet = _sheet("Email,Date,Hours,Summary", "ghost@y.com,2024-06-01,1,Nothing")

        run_import(get_profile("eod_reports"), sheet, make_context(self.FIELDS), summary)

        assert summary.failed_count == 1
        assert summary.errors[0]["message"].startswith('Could not match "ghost@y.com" to any employee.')

    def test_email_variant_matches_employee(self, make_context, record_store, summary):
        employee = _employee(record_store, "jane.doe@acme.io")
        sheet = _sheet("Email,Date,Hours,Summary", "janedoe+eod@acme.io,2024-06-01,2,Done")

        run_import(get_profile("eod_reports"), sheet, make_context(self.FIELDS), summary)

        assert summary.created_count == 1
        assert record_store.find_many("eod_reports")[0]["employee_id"] == employee["id"]

    def test_missing_summary_and_submission(self, make_context, record_store, summary):
        _employee(record_store, "x@y.com")
        sheet = _sheet("Email,Date,Hours,Summary", "x@y.com,2024-06-02,1,")

        ctx = make_context(self.FIELDS, mark_missing_as_submitted=True, default_is_late=True)
        run_import(get_profile("eod_reports"), sheet, ctx, summary)

        report = record_store.find_many("eod_reports")[0]
        assert report["summary"] == "Imported summary"
        assert report["submitted_at"] is not None
        assert report["is_late"] is True

    def test_legacy_rows_become_tasks_on_the_mentioned_date(self, make_context, record_store, summary):
        _employee(record_store, "x@y.com")
        sheet = _sheet(
            "Email,Date,Details,Type,Spent",
            'x@y.com,2024-06-01,"Report for 05/31 fixed bugs",Development,2',
        )
        fields = {
            "email": "Email",
            "date": "Date",
            "task_details": "Details",
            "task_type_of_work": "Type",
            "task_time_spent": "Spent",
        }

        run_import(get_profile("eod_reports"), sheet, make_context(fields, use_legacy_format=True), summary)

        report = record_store.find_many("eod_reports")[0]
        assert report["date"] == date(2024, 5, 31)
        assert report["submitted_at"] == datetime(2024, 6, 1)
        assert report["tasks"] == [
            {
                "client_details": "Report for 05/31 fixed bugs",
                "ticket": None,
                "type_of_work_done": "IMPLEMENTATION",
                "task_estimated_time": None,
                "time_spent_on_ticket": 2.0,
                "task_lifecycle": None,
                "task_status": None,
            }
        ]


    def test_rerun_updates_the_same_report(self, make_context, record_store):
        _employee(record_store, "x@y.com")
        lines = ("Email,Date,Hours,Summary", "x@y.com,2024-06-01,4,Fixed login", "x@y.com,2024-06-01,3.5,Wrote tests")
        profile = get_profile("eod_reports")
        run_import(profile, _sheet(*lines), make_context(self.FIELDS), ImportSummary("first"))

        second = ImportSummary("second")
        run_import(profile, _sheet(*lines), make_context(self.FIELDS), second)

        assert (second.created_count, second.updated_count, second.processed_rows) == (0, 1, 2)
        reports = record_store.find_many("eod_reports")
        assert len(reports) == 1
        assert reports[0]["hours_worked"] == Decimal("7.5")

    def test_update_without_summary_keeps_stored_values(self, make_context, record_store):
        _employee(record_store, "x@y.com")
        profile = get_profile("eod_reports")
        first_fields = {**self.FIELDS, "submitted_at": "Submitted", "is_late": "Late"}
        run_import(
            profile,
            _sheet(
                "Email,Date,Hours,Summary,Submitted,Late",
                "x@y.com,2024-06-01,4,Original,2024-06-01T18:00:00,yes",
            ),
            make_context(first_fields),
            ImportSummary("first"),
        )

        # Summary, tasks and lateness are not mapped on the second run.
        second = ImportSummary("second")
        run_import(
            profile,
            _sheet("Email,Date,Hours,Summary", "x@y.com,2024-06-01,5,Ignored"),
            make_context({"email": "Email", "date": "Date", "hours_worked": "Hours"}, mark_missing_as_submitted=True),
            second,
        )

        assert second.updated_count == 1
        report = record_store.find_many("eod_reports")[0]
        assert report["summary"] == "Original"
        assert report["hours_worked"] == Decimal("5")
        assert report["is_late"] is True
        assert report["submitted_at"] == datetime(2024, 6, 1, 18, 0)

    def test_missing_submission_is_filled_on_update(self, make_context, record_store):
        _employee(record_store, "x@y.com")
        profile = get_profile("eod_reports")
        lines = ("Email,Date,Hours,Summary", "x@y.com,2024-06-01,4,Done")
        run_import(profile, _sheet(*lines), make_context(self.FIELDS), ImportSummary("first"))
        assert record_store.find_many("eod_reports")[0]["submitted_at"] is None

        run_import(
            profile, _sheet(*lines), make_context(self.FIELDS, mark_missing_as_submitted=True), ImportSummary("second")
        )

        assert record_store.find_many("eod_reports")[0]["submitted_at"] is not None

class TestEmployees:
    FIELDS = {
        "email": "Email",
        "full_name": "Name",
        "employee_number": "Number",
        "job_title": "Title",
        "hire_date": "Hired",
        "manager_email": "Manager",
    }
    HEADER = "Email,Name,Number,Title,Hired,Manager"

    def test_manager_is_resolved_and_enums_default(self, make_context, record_store, summary):
        boss = _employee(record_store, "boss@x.io", number="E-1")
        sheet = _sheet(self.HEADER, "new@x.io,Nia Long,E-2,Engineer,2024-01-15,BOSS@x.io")

        run_import(get_profile("employees"), sheet, make_context(self.FIELDS), summary)

        assert summary.created_count == 1
        created = record_store.find_first("employees", equals={"employee_number": "E-2"})
        assert created["manager_id"] == boss["id"]
        assert (created["first_name"], created["last_name"]) == ("Nia", "Long")
        assert (created["status"], created["contract_type"]) == ("ACTIVE", "FULL_TIME")
        assert created["hire_date"] == date(2024, 1, 15)

    def test_unknown_manager_fails_every_row_that_names_it(self, make_context, record_store, summary):
        sheet = _sheet(
            self.HEADER,
            "a@x.io,Al Bo,E-5,Engineer,2024-01-15,ghost@x.io",
            "b@x.io,Cy Do,E-6,Engineer,2024-01-15,ghost@x.io",
        )

        run_import(get_profile("employees"), sheet, make_context(self.FIELDS), summary)

        assert summary.failed_count == 2
        assert summary.errors[1]["message"] == (
            'Manager with email "ghost@x.io" does not exist or is not linked to an employee record.'
        )

    def test_employee_number_collision_fails_row(self, make_context, record_store, summary):
        _employee(record_store, "boss@x.io", number="E-1")
        sheet = _sheet(self.HEADER, "new@x.io,Nia Long,E-1,Engineer,2024-01-15,")

        run_import(get_profile("employees"), sheet, make_context(self.FIELDS), summary)

        assert summary.failed_count == 1
        assert summary.errors[0]["message"] == 'Employee number "E-1" is already in use by another employee.'


class TestCandidates:
    FIELDS = {"email": "Email", "full_name": "Name", "odoo_id": "Odoo"}

    def test_odoo_id_collisions(self, make_context, record_store, summary):
        record_store.create("candidates", {"email": "one@x.io", "first_name": "One", "last_name": "A", "odoo_id": "77"})
        record_store.create("candidates", {"email": "two@x.io", "first_name": "Two", "last_name": "B"})
        sheet = _sheet("Email,Name,Odoo", "two@x.io,Two Bee,77", "three@x.io,Three Cee,77")

        run_import(get_profile("candidates"), sheet, make_context(self.FIELDS), summary)

        assert summary.updated_count == 1
        assert summary.failed_count == 1
        assert summary.errors == [
            {"row": 2, "message": 'Odoo ID "77" already exists for another candidate. Skipping odooId update.'},
            {"row": 3, "message": 'Cannot create candidate: Odoo ID "77" already exists for another candidate.'},
        ]
        two = record_store.find_first("candidates", equals={"email": "two@x.io"})
        assert two["odoo_id"] is None
        assert two["last_name"] == "Bee"

    def test_numbered_activity_columns_create_activities(self, make_context, record_store, summary):
        call = record_store.create("activity_types", {"key": "call", "name": "Phone Call"})
        sheet = _sheet(
            "Email,Name,Activity 1 Type,Activity 1 Subject,Activity 2 Type,Activity 2 Subject",
            "c@x.io,Cal Dee,phone call,Intro,CALL,Follow-up",
        )
        ctx = make_context({"email": "Email", "full_name": "Name"}, imported_by="recruiter-1")

        run_import(get_profile("candidates"), sheet, ctx, summary)

        assert summary.created_count == 1
        activities = record_store.find_many("activities")
        assert sorted(a["subject"] for a in activities) == ["Follow-up", "Intro"]
        assert {a["activity_type_id"] for a in activities} == {call["id"]}
        assert {a["created_by"] for a in activities} == {"recruiter-1"}

    def test_activities_need_an_importer(self, make_context, record_store, summary):
        record_store.create("activity_types", {"key": "call", "name": "Phone Call"})
        sheet = _sheet("Email,Name,Activity 1 Type,Activity 1 Subject", "c@x.io,Cal Dee,call,Intro")

        run_import(get_profile("candidates"), sheet, make_context({"email": "Email", "full_name": "Name"}), summary)

        assert summary.failed_count == 1
        assert _count(record_store, "candidates") == 0

    def test_odoo_notes_are_cleaned(self, make_context, record_store, summary):
        sheet = _sheet(
            "Email,Name,Notes",
            '<p>c@x.io</p>,<b>Cal Dee</b>,"<p>Great fit</p><a href=\'https://jobs.example.com/wp-content/uploads/cv.pdf\'>CV</a>"',
        )
        ctx = make_context({"email": "Email", "full_name": "Name", "notes": "Notes"}, is_odoo_import=True)

        run_import(get_profile("candidates"), sheet, ctx, summary)

        candidate = record_store.find_first("candidates", equals={"email": "c@x.io"})
        assert (candidate["first_name"], candidate["last_name"]) == ("Cal", "Dee")
        assert candidate["resume_url"] == "https://jobs.example.com/wp-content/uploads/cv.pdf"
        assert candidate["notes"].startswith("Great fit")
        assert candidate["stage"] == "VALIDATION"
        assert candidate["skills"] == []


    def test_rerun_does_not_repeat_activities(self, make_context, record_store):
        record_store.create("activity_types", {"key": "call", "name": "Phone Call"})
        lines = ("Email,Name,Activity 1 Type,Activity 1 Subject", "c@x.io,Cal Dee,call,Intro")
        fields = {"email": "Email", "full_name": "Name"}
        profile = get_profile("candidates")
        run_import(profile, _sheet(*lines), make_context(fields, imported_by="recruiter-1"), ImportSummary("first"))

        second = ImportSummary("second")
        run_import(profile, _sheet(*lines), make_context(fields, imported_by="recruiter-1"), second)

        assert (second.created_count, second.updated_count) == (0, 1)
        assert _count(record_store, "candidates") == 1
        assert _count(record_store, "activities") == 1

    def test_ignored_activity_columns_are_not_read(self, make_context, record_store, summary):
        record_store.create("activity_types", {"key": "call", "name": "Phone Call"})
        sheet = _sheet("Email,Name,Activity 1 Type,Activity 1 Subject", "c@x.io,Cal Dee,call,Intro")
        ctx = make_context(
            {"email": "Email", "full_name": "Name"},
            ignored_columns=["Activity 1 Type", "Activity 1 Subject"],
        )

        run_import(get_profile("candidates"), sheet, ctx, summary)

        assert summary.created_count == 1
        assert _count(record_store, "activities") == 0

    def test_empty_stage_on_update_keeps_stored_stage(self, make_context, record_store):
        fields = {"email": "Email", "full_name": "Name", "stage": "Stage", "salary_currency": "Currency"}
        profile = get_profile("candidates")
        run_import(
            profile,
            _sheet("Email,Name,Stage,Currency", "c@x.io,Cal Dee,Hired,EUR"),
            make_context(fields),
            ImportSummary("first"),
        )

        run_import(
            profile,
            _sheet("Email,Name,Stage,Currency", "c@x.io,Cal Dee,,"),
            make_context(fields),
            ImportSummary("second"),
        )

        candidate = record_store.find_first("candidates", equals={"email": "c@x.io"})
        assert (candidate["stage"], candidate["salary_currency"]) == ("HIRED", "EUR")

def test_invoices(make_context, record_store, summary):
    customer = record_store.create("customers", {"name": "Acme", "email": "billing@acme.io"})
    creator = _employee(record_store, "boss@x.io")
    sheet = _sheet(
        "Number,Customer,Issue,Due,Total,Creator,Day",
        "INV-1,acme,2024-01-01,2024-01-31,1200.50,boss@x.io,",
        "INV-2,acme,2024-01-01,2024-01-31,10,boss@x.io,31",
        "INV-3,Unknown Co,2024-01-01,2024-01-31,10,boss@x.io,",
    )
    fields = {
        "invoice_number": "Number",
        "customer_name": "Customer",
        "issue_date": "Issue",
        "due_date": "Due",
        "total": "Total",
        "created_by_email": "Creator",
        "recurring_day": "Day",
    }

    run_import(get_profile("invoices"), sheet, make_context(fields), summary)

    assert summary.created_count == 1
    assert [error["message"] for error in summary.errors] == [
        "Recurring day must be between 1 and 28.",
        CUSTOMER_UNRESOLVED_MESSAGE,
    ]
    invoice = record_store.find_first("invoices", equals={"invoice_number": "INV-1"})
    assert invoice["customer_id"] == customer["id"]
    assert invoice["created_by_id"] == creator["id"]
    assert invoice["subtotal"] == Decimal("1200.50")
    assert (invoice["status"], invoice["currency"], invoice["items"]) == ("DRAFT", "USD", [])


def test_check_ins_match_by_card_then_name_and_same_minute_updates(make_context, record_store, summary):
    _employee(record_store, "ann@x.io", first="Ann", last="Lee", card="C-1")
    sheet = _sheet(
        "First,Last,Card,When,Status",
        "Ann,Lee,C-1,2024-06-01 08:00:10,Division 5-1 In",
        "ann,lee,,2024-06-01 08:00:50,In",
        "Bob,Ray,,2024-06-01 09:00:00,Out",
    )
    fields = {"first_name": "First", "last_name": "Last", "card_number": "Card", "date_time": "When", "status": "Status"}

    run_import(get_profile("check_in_outs"), sheet, make_context(fields, imported_by="hr-1"), summary)

    assert (summary.created_count, summary.updated_count, summary.failed_count) == (1, 1, 1)
    assert summary.errors[0]["message"].startswith('No employee found matching "Bob Ray".')
    record = record_store.find_many("check_in_outs")[0]
    assert record["date_time"] == datetime(2024, 6, 1, 8, 0, 50)
    assert record["status"] == "IN"
    assert record["imported_by"] == "hr-1"


def test_check_in_manual_match(make_context, record_store, summary):
    employee = _employee(record_store, "zed@x.io", first="Zed", last="Zulu")
    sheet = _sheet("First,Last,When,Status", "Zee,Zulu,2024-06-01 08:00:00,IN")
    fields = {"first_name": "First", "last_name": "Last", "date_time": "When", "status": "Status"}

    ctx = make_context(fields, manual_matches={"Zee|Zulu": employee["id"]})
    run_import(get_profile("check_in_outs"), sheet, ctx, summary)

    assert summary.created_count == 1


class TestPreflight:
    def test_contacts_report_unknown_customers(self, make_context, record_store):
        record_store.create("customers", {"name": "Acme"})
        sheet = _sheet("Email,First,Last,Customer", "a@x.com,A,B,acme", "b@x.com,C,D,Zeta", "c@x.com,E,F,Alpha")
        ctx = make_context({**CONTACT_FIELDS, "customer_name": "Customer"})
        rows = [MappedRow(raw, ctx.mapping, number) for number, raw in sheet.numbered_rows()]

        assert get_profile("contacts").preflight(rows, ctx) == {"unmatched_customers": ["Alpha", "Zeta"]}

    def test_check_ins_report_match_keys(self, make_context, record_store):
        _employee(record_store, "ann@x.io", first="Ann", last="Lee")
        sheet = _sheet("First,Last,Card,When,Status", "Ann,Lee,,2024-06-01 08:00,IN", "Bob,Ray,77,2024-06-01 08:00,IN")
        fields = {"first_name": "First", "last_name": "Last", "card_number": "Card", "date_time": "When", "status": "Status"}
        ctx = make_context(fields)
        rows = [MappedRow(raw, ctx.mapping, number) for number, raw in sheet.numbered_rows()]

        assert get_profile("check_in_outs").preflight(rows, ctx) == {"unmatched_employees": ["Bob|Ray|77"]}


class TestLeads:
    FIELDS = {
        "title": "Title",
        "contact_email": "Email",
        "contact_full_name": "Name",
        "status": "Status",
        "value": "Value",
        "probability": "Chance",
        "owner_email": "Owner",
        "customer_name": "Customer",
    }
    HEADER = "Title,Email,Name,Status,Value,Chance,Owner,Customer"

    def test_contact_is_created_once_and_lead_is_matched_by_title(self, make_context, record_store, summary):
        owner = _employee(record_store, "boss@x.io")
        customer = record_store.create("customers", {"name": "Acme"})
        sheet = _sheet(
            self.HEADER,
            "Website revamp,c@x.io,Cara Diaz,qualified,12500,150,boss@x.io,acme",
            "website REVAMP,C@x.io,Cara Diaz,won,,,,",
            "Audit,d@x.io,Dan,new,,,ghost@x.io,",
            "Migration,e@x.io,Eve Fox,maybe,,,,",
        )

        run_import(get_profile("leads"), sheet, make_context(self.FIELDS), summary)

        assert (summary.created_count, summary.updated_count, summary.failed_count) == (1, 1, 2)
        assert [error["message"] for error in summary.errors] == [
            'Lead owner email "ghost@x.io" does not match an existing user.',
            'Invalid lead status "maybe". Accepted values: NEW, CONTACTED, QUALIFIED, PROPOSAL, WON, LOST',
        ]
        assert _count(record_store, "contacts") == 1
        lead = record_store.find_many("leads")[0]
        assert lead["status"] == "WON"
        assert lead["probability"] == 100
        assert lead["value"] == Decimal("12500")
        assert lead["assigned_to_id"] == owner["id"]
        assert lead["converted_customer_id"] == customer["id"]

    def test_default_owner_must_exist(self, make_context):
        ctx = make_context(self.FIELDS, defaults={"owner_email": "nobody@x.io"})

        with pytest.raises(InvalidOptionsError, match="Default owner email"):
            get_profile("leads").check_options(ctx)

    def test_rerun_and_sparse_update(self, make_context, record_store):
        owner = _employee(record_store, "boss@x.io")
        profile = get_profile("leads")
        run_import(
            profile,
            _sheet(self.HEADER, "Website revamp,c@x.io,Cara Diaz,won,12500,80,boss@x.io,"),
            make_context(self.FIELDS),
            ImportSummary("first"),
        )

        # Status is blank and the owner column is no longer mapped.
        fields = {key: column for key, column in self.FIELDS.items() if key != "owner_email"}
        second = ImportSummary("second")
        run_import(
            profile,
            _sheet(self.HEADER, "Website revamp,c@x.io,Cara Diaz,,13000,,ghost@x.io,"),
            make_context(fields),
            second,
        )

        assert (second.created_count, second.updated_count, second.failed_count) == (0, 1, 0)
        assert _count(record_store, "leads") == 1
        assert _count(record_store, "contacts") == 1
        lead = record_store.find_many("leads")[0]
        assert lead["status"] == "WON"
        assert lead["value"] == Decimal("13000")
        assert lead["probability"] == 80
        assert lead["assigned_to_id"] == owner["id"]
