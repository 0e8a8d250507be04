"""
LedgerCore - Schedule Mapping Catalog Tests

Tests for catalog seeding and the statement rollup.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select, func

from ledgercore.models.company import GAAPStandard
from ledgercore.models.reporting import ScheduleMapping, StatementType
from ledgercore.schemas.reporting import StatementLine
from ledgercore.services.schedule_catalog import (
    CASH_FLOW_LAYOUT,
    INDIA_GAAP_CATALOG,
    CatalogLine,
    build_statement_lines,
    find_line,
    item_codes,
    load_catalog,
    seed_schedule_mappings,
)
from ledgercore.utils.error_handling import ConfigurationException


BS = StatementType.BALANCE_SHEET
PL = StatementType.PROFIT_LOSS


class TestRollup:
    """Tests for building statement lines from catalog rows."""

    def test_totals_apply_signs(self):
        rows = [
            CatalogLine("REV", "Revenue", PL, 1, rollup_parent_code="PROFIT"),
            CatalogLine("EXP", "Expenses", PL, 2, rollup_parent_code="PROFIT", rollup_sign=-1),
            CatalogLine("PROFIT", "Profit", PL, 3, is_total=True),
        ]

        lines = build_statement_lines(rows, {"REV": Decimal("1000"), "EXP": Decimal("400")})

        assert find_line(lines, "PROFIT").amount == Decimal("600")

    def test_nested_totals(self):
        lines = build_statement_lines(
            INDIA_GAAP_CATALOG,
            {
                "PL_REVENUE_OPERATIONS": Decimal("100000"),
                "PL_OTHER_INCOME": Decimal("5000"),
                "PL_OTHER_EXPENSES": Decimal("30000"),
                "PL_TAX_EXPENSE": Decimal("15000"),
            },
        )

        assert find_line(lines, "PL_TOTAL_INCOME").amount == Decimal("105000")
        assert find_line(lines, "PL_TOTAL_EXPENSES").amount == Decimal("30000")
        assert find_line(lines, "PL_PBT").amount == Decimal("75000")
        assert find_line(lines, "PL_PAT").amount == Decimal("60000")

    def test_missing_items_are_zero_filled(self):
        lines = build_statement_lines(INDIA_GAAP_CATALOG, {"BS_ASSET_CA_CASH": Decimal("10")})

        cash = find_line(lines, "BS_ASSET_CA_CASH")
        receivables = find_line(lines, "BS_ASSET_CA_RECEIVABLES")
        assert cash.zero_filled is False
        assert receivables.zero_filled is True
        assert receivables.amount == Decimal("0.00")
        # Totals and headers are never flagged
        assert find_line(lines, "BS_ASSETS_TOTAL").zero_filled is False
        assert find_line(lines, "BS_ASSETS").zero_filled is False

    def test_lines_follow_display_order(self):
        rows = [
            CatalogLine("B", "Second", BS, 2, rollup_parent_code="T"),
            CatalogLine("T", "Total", BS, 3, is_total=True),
            CatalogLine("A", "First", BS, 1, rollup_parent_code="T"),
        ]

        lines = build_statement_lines(rows, {})

        assert [line.code for line in lines] == ["A", "B", "T"]

    def test_sub_schedule_children_attached(self):
        rows = [
            CatalogLine("CASH", "Cash", BS, 1, has_sub_schedule=True),
            CatalogLine("OTHER", "Other", BS, 2),
        ]
        breakdown = {
            "CASH": [StatementLine(code="1242", name="Bank Accounts", amount=Decimal("10"))],
            "OTHER": [StatementLine(code="1261", name="Prepaid", amount=Decimal("5"))],
        }

        lines = build_statement_lines(rows, {"CASH": Decimal("10"), "OTHER": Decimal("5")}, breakdown)

        assert [child.code for child in lines[0].children] == ["1242"]
        assert lines[1].children == []

    def test_cycle_rejected(self):
        rows = [
            CatalogLine("T1", "Total 1", BS, 1, is_total=True, rollup_parent_code="T2"),
            CatalogLine("T2", "Total 2", BS, 2, is_total=True, rollup_parent_code="T1"),
        ]

        with pytest.raises(ConfigurationException):
            build_statement_lines(rows, {})

    def test_item_codes(self):
        codes = item_codes(CASH_FLOW_LAYOUT)

        assert "CFO_NET_PROFIT" in codes
        assert "CF_OPENING" in codes
        assert "CFO_TOTAL" not in codes
        assert "CFO_HEADER" not in codes


class TestCatalogLayout:
    """Sanity checks on the shipped layouts."""

    def test_every_rollup_parent_is_a_total(self):
        for catalog in (INDIA_GAAP_CATALOG, CASH_FLOW_LAYOUT):
            totals = {row.line_item_code for row in catalog if row.is_total}
            for row in catalog:
                if row.rollup_parent_code:
                    assert row.rollup_parent_code in totals, row.line_item_code

    def test_codes_unique(self):
        codes = [row.line_item_code for row in INDIA_GAAP_CATALOG]
        assert len(codes) == len(set(codes))


class TestCatalogPersistence:
    """Tests for seeding and loading the catalog."""

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        first = await seed_schedule_mappings(db_session)
        second = await seed_schedule_mappings(db_session)
        await db_session.commit()

        assert first == len(INDIA_GAAP_CATALOG)
        assert second == 0
        count = await db_session.execute(select(func.count(ScheduleMapping.id)))
        assert count.scalar() == len(INDIA_GAAP_CATALOG)

    @pytest.mark.asyncio
    async def test_company_creation_seeds_catalog(self, db_session, ctx):
        rows = await load_catalog(db_session, GAAPStandard.INDIA_GAAP, BS)

        assert rows[0].line_item_code == "BS_ASSETS"
        assert [row.display_order for row in rows] == sorted(row.display_order for row in rows)
        assert all(row.statement_type == BS for row in rows)

    @pytest.mark.asyncio
    async def test_unknown_standard_falls_back(self, db_session):
        rows = await load_catalog(db_session, GAAPStandard.IFRS, PL)

        assert rows
        assert all(row.gaap_standard == GAAPStandard.INDIA_GAAP for row in rows)
