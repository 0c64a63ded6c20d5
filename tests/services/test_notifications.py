"""Tests for new-entry notices."""

from decimal import Decimal
from uuid import uuid4

from ledger_kernel.domain.entries import EntryNature
from ledger_services.identity import ActorContext
from ledger_services.notifications import LoggingNotifier, build_new_entry_notice


class TestBuildNotice:

    def test_expense(self, make_entry):
        org = uuid4()
        entry = make_entry(id=uuid4())

        notice = build_new_entry_notice(entry, ActorContext(uuid4(), org))

        assert notice.title_key == "ledger.new_expense"
        assert notice.description == "Rent"
        assert notice.amount == Decimal("100.00")
        assert notice.nature == EntryNature.EXPENSE
        assert notice.organization_id == org
        assert notice.entry_id == entry.id

    def test_income(self, make_entry):
        notice = build_new_entry_notice(
            make_entry(nature=EntryNature.INCOME), ActorContext(uuid4())
        )

        assert notice.title_key == "ledger.new_income"
        assert notice.organization_id is None


class TestLoggingNotifier:

    def test_logs_notice(self, make_entry, captured_logs):
        notice = build_new_entry_notice(make_entry(), ActorContext(uuid4()))

        LoggingNotifier().notify(notice)

        [record] = [r for r in captured_logs() if r["message"] == "new_entry_notice"]
        assert record["title_key"] == "ledger.new_expense"
        assert record["amount"] == "100.00"
