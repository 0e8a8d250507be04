"""
LedgerCore - Chart of Accounts Service

Hierarchical account catalog:
- Account CRUD with code uniqueness and derived level / is_group
- Tree traversal for display and statement rollups
- Statement mapping inheritance from ancestors
- Default Schedule III chart of accounts
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func, and_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.database import atomic
from ledgercore.models.accounting import (
    Account, AccountType, BalanceSide, CashFlowClass, JournalEntryLine,
    CASH_FLOW_CLASSES_BY_TYPE,
)
from ledgercore.schemas.accounting import AccountCreate, AccountUpdate, AccountTree
from ledgercore.services.trial_balance_service import TrialBalanceService
from ledgercore.utils.error_handling import (
    AccountNotFoundError,
    AccountHasOpeningBalanceError,
    AccountHasPostingsError,
    ConflictException,
    DuplicateAccountCodeError,
    HasChildrenError,
    SystemAccountProtectedError,
    ValidationException,
)
from ledgercore.utils.money import to_money

logger = logging.getLogger(__name__)


A = AccountType.ASSET
L = AccountType.LIABILITY
E = AccountType.EQUITY
I = AccountType.INCOME
X = AccountType.EXPENSE

CF = CashFlowClass

# Schedule III (Companies Act, 2013) aligned chart. Mapping codes set on a
# group account are inherited by its children.
DEFAULT_CHART_OF_ACCOUNTS = [
    # ASSETS
    {"code": "1000", "name": "Assets", "type": A},
    {"code": "1100", "name": "Non-Current Assets", "type": A, "parent": "1000"},
    {"code": "1110", "name": "Property, Plant and Equipment", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_PPE", "cf": CF.FIXED_ASSET},
    {"code": "1111", "name": "Land", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1112", "name": "Buildings", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1113", "name": "Plant and Machinery", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1114", "name": "Furniture and Fixtures", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1115", "name": "Vehicles", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1116", "name": "Office Equipment", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1117", "name": "Computers", "type": A, "parent": "1110", "cf": CF.FIXED_ASSET},
    {"code": "1119", "name": "Accumulated Depreciation", "type": A, "parent": "1110", "cf": CF.ACCUMULATED_DEPRECIATION, "system": True},
    {"code": "1120", "name": "Capital Work-in-Progress", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_CWIP", "cf": CF.FIXED_ASSET},
    {"code": "1130", "name": "Intangible Assets", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_INTANGIBLE", "cf": CF.FIXED_ASSET},
    {"code": "1131", "name": "Goodwill", "type": A, "parent": "1130", "cf": CF.FIXED_ASSET},
    {"code": "1132", "name": "Software", "type": A, "parent": "1130", "cf": CF.FIXED_ASSET},
    {"code": "1133", "name": "Patents and Trademarks", "type": A, "parent": "1130", "cf": CF.FIXED_ASSET},
    {"code": "1140", "name": "Non-Current Investments", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_INVESTMENTS", "cf": CF.INVESTMENT},
    {"code": "1150", "name": "Deferred Tax Assets (Net)", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_DTA", "cf": CF.OTHER_CURRENT_ASSET},
    {"code": "1160", "name": "Long-Term Loans and Advances", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_LOANS", "cf": CF.INVESTMENT},
    {"code": "1170", "name": "Other Non-Current Assets", "type": A, "parent": "1100", "mapping": "BS_ASSET_NCA_OTHER", "cf": CF.OTHER_CURRENT_ASSET},

    {"code": "1200", "name": "Current Assets", "type": A, "parent": "1000"},
    {"code": "1210", "name": "Inventories", "type": A, "parent": "1200", "mapping": "BS_ASSET_CA_INVENTORIES", "cf": CF.INVENTORY},
    {"code": "1211", "name": "Raw Materials", "type": A, "parent": "1210", "cf": CF.INVENTORY},
    {"code": "1212", "name": "Work-in-Progress", "type": A, "parent": "1210", "cf": CF.INVENTORY},
    {"code": "1213", "name": "Finished Goods", "type": A, "parent": "1210", "cf": CF.INVENTORY},
    {"code": "1214", "name": "Stores and Spares", "type": A, "parent": "1210", "cf": CF.INVENTORY},
    {"code": "1220", "name": "Current Investments", "type": A, "parent": "1200", "mapping": "BS_ASSET_CA_INVESTMENTS", "cf": CF.INVESTMENT},
    {"code": "1230", "name": "Trade Receivables", "type": A, "parent": "1200", "mapping": "BS_ASSET_CA_RECEIVABLES", "cf": CF.RECEIVABLE, "system": True},
    {"code": "1240", "name": "Cash and Cash Equivalents", "type": A, "parent": "1200", "mapping": "BS_ASSET_CA_CASH", "cf": CF.CASH},
    {"code": "1241", "name": "Cash on Hand", "type": A, "parent": "1240", "cf": CF.CASH, "system": True},
    {"code": "1242", "name": "Bank Accounts", "type": A, "parent": "1240", "cf": CF.CASH, "system": True},
    {"code": "1250", "name": "Short-Term Loans and Advances", "type": A, "parent": "1200", "mapping": "BS_ASSET_CA_LOANS", "cf": CF.OTHER_CURRENT_ASSET},
    {"code": "1260", "name": "Other Current Assets", "type": A, "parent": "1200", "mapping": "BS_ASSET_CA_OTHER", "cf": CF.OTHER_CURRENT_ASSET},
    {"code": "1261", "name": "Prepaid Expenses", "type": A, "parent": "1260", "cf": CF.OTHER_CURRENT_ASSET},
    {"code": "1262", "name": "Advance to Suppliers", "type": A, "parent": "1260", "cf": CF.OTHER_CURRENT_ASSET},
    {"code": "1263", "name": "GST Input Credit", "type": A, "parent": "1260", "cf": CF.OTHER_CURRENT_ASSET, "system": True},
    {"code": "1264", "name": "TDS Receivable", "type": A, "parent": "1260", "cf": CF.OTHER_CURRENT_ASSET, "system": True},

    # LIABILITIES
    {"code": "2000", "name": "Liabilities", "type": L},
    {"code": "2100", "name": "Non-Current Liabilities", "type": L, "parent": "2000"},
    {"code": "2110", "name": "Long-Term Borrowings", "type": L, "parent": "2100", "mapping": "BS_LIAB_NCL_BORROWINGS", "cf": CF.BORROWING},
    {"code": "2120", "name": "Deferred Tax Liabilities (Net)", "type": L, "parent": "2100", "mapping": "BS_LIAB_NCL_DTL", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2130", "name": "Long-Term Provisions", "type": L, "parent": "2100", "mapping": "BS_LIAB_NCL_PROVISIONS", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2140", "name": "Other Non-Current Liabilities", "type": L, "parent": "2100", "mapping": "BS_LIAB_NCL_OTHER", "cf": CF.OTHER_CURRENT_LIABILITY},

    {"code": "2200", "name": "Current Liabilities", "type": L, "parent": "2000"},
    {"code": "2210", "name": "Short-Term Borrowings", "type": L, "parent": "2200", "mapping": "BS_LIAB_CL_BORROWINGS", "cf": CF.BORROWING},
    {"code": "2220", "name": "Trade Payables", "type": L, "parent": "2200", "mapping": "BS_LIAB_CL_PAYABLES", "cf": CF.PAYABLE, "system": True},
    {"code": "2230", "name": "Other Current Liabilities", "type": L, "parent": "2200", "mapping": "BS_LIAB_CL_OTHER", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2231", "name": "GST Output Liability", "type": L, "parent": "2230", "cf": CF.OTHER_CURRENT_LIABILITY, "system": True},
    {"code": "2232", "name": "TDS Payable", "type": L, "parent": "2230", "cf": CF.OTHER_CURRENT_LIABILITY, "system": True},
    {"code": "2233", "name": "Statutory Dues Payable", "type": L, "parent": "2230", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2234", "name": "Salary Payable", "type": L, "parent": "2230", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2235", "name": "Advance from Customers", "type": L, "parent": "2230", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2240", "name": "Short-Term Provisions", "type": L, "parent": "2200", "mapping": "BS_LIAB_CL_PROVISIONS", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2241", "name": "Provision for Expenses", "type": L, "parent": "2240", "cf": CF.OTHER_CURRENT_LIABILITY},
    {"code": "2242", "name": "Provision for Income Tax", "type": L, "parent": "2240", "cf": CF.OTHER_CURRENT_LIABILITY},

    # EQUITY
    {"code": "3000", "name": "Equity", "type": E},
    {"code": "3100", "name": "Share Capital", "type": E, "parent": "3000", "mapping": "BS_EQUITY_SHARE_CAPITAL", "cf": CF.EQUITY},
    {"code": "3110", "name": "Equity Share Capital", "type": E, "parent": "3100", "cf": CF.EQUITY},
    {"code": "3120", "name": "Preference Share Capital", "type": E, "parent": "3100", "cf": CF.EQUITY},
    {"code": "3200", "name": "Reserves and Surplus", "type": E, "parent": "3000", "mapping": "BS_EQUITY_RESERVES", "cf": CF.EQUITY},
    {"code": "3210", "name": "Securities Premium", "type": E, "parent": "3200", "cf": CF.EQUITY},
    {"code": "3220", "name": "General Reserve", "type": E, "parent": "3200", "cf": CF.EQUITY},
    {"code": "3230", "name": "Retained Earnings", "type": E, "parent": "3200", "cf": CF.EQUITY, "system": True},
    {"code": "3240", "name": "Capital Reserve", "type": E, "parent": "3200", "cf": CF.EQUITY},
    {"code": "3300", "name": "Other Equity", "type": E, "parent": "3000", "mapping": "BS_EQUITY_OTHER", "cf": CF.EQUITY},

    # INCOME
    {"code": "4000", "name": "Income", "type": I},
    {"code": "4100", "name": "Revenue from Operations", "type": I, "parent": "4000", "mapping": "PL_REVENUE_OPERATIONS"},
    {"code": "4110", "name": "Sales of Services", "type": I, "parent": "4100"},
    {"code": "4120", "name": "Sales of Products", "type": I, "parent": "4100"},
    {"code": "4130", "name": "Professional Fees", "type": I, "parent": "4100"},
    {"code": "4140", "name": "Consultation Income", "type": I, "parent": "4100"},
    {"code": "4200", "name": "Other Income", "type": I, "parent": "4000", "mapping": "PL_OTHER_INCOME"},
    {"code": "4210", "name": "Interest Income", "type": I, "parent": "4200"},
    {"code": "4220", "name": "Dividend Income", "type": I, "parent": "4200"},
    {"code": "4230", "name": "Rent Received", "type": I, "parent": "4200"},
    {"code": "4240", "name": "Profit on Sale of Assets", "type": I, "parent": "4200"},
    {"code": "4250", "name": "Miscellaneous Income", "type": I, "parent": "4200"},

    # EXPENSES
    {"code": "5000", "name": "Expenses", "type": X},
    {"code": "5100", "name": "Cost of Materials Consumed", "type": X, "parent": "5000", "mapping": "PL_COST_MATERIALS"},
    {"code": "5200", "name": "Purchases of Stock-in-Trade", "type": X, "parent": "5000", "mapping": "PL_PURCHASES"},
    {"code": "5300", "name": "Employee Benefits Expense", "type": X, "parent": "5000", "mapping": "PL_EMPLOYEE_BENEFITS"},
    {"code": "5310", "name": "Salaries and Wages", "type": X, "parent": "5300"},
    {"code": "5320", "name": "Contribution to PF/ESI", "type": X, "parent": "5300"},
    {"code": "5330", "name": "Staff Welfare Expenses", "type": X, "parent": "5300"},
    {"code": "5340", "name": "Bonus", "type": X, "parent": "5300"},
    {"code": "5350", "name": "Gratuity", "type": X, "parent": "5300"},
    {"code": "5400", "name": "Finance Costs", "type": X, "parent": "5000", "mapping": "PL_FINANCE_COSTS"},
    {"code": "5410", "name": "Interest Expense", "type": X, "parent": "5400"},
    {"code": "5420", "name": "Bank Charges", "type": X, "parent": "5400"},
    {"code": "5500", "name": "Depreciation and Amortisation", "type": X, "parent": "5000", "mapping": "PL_DEPRECIATION"},
    {"code": "5510", "name": "Depreciation on PPE", "type": X, "parent": "5500"},
    {"code": "5520", "name": "Amortisation of Intangibles", "type": X, "parent": "5500"},
    {"code": "5600", "name": "Other Expenses", "type": X, "parent": "5000", "mapping": "PL_OTHER_EXPENSES"},
    {"code": "5610", "name": "Rent", "type": X, "parent": "5600"},
    {"code": "5620", "name": "Electricity", "type": X, "parent": "5600"},
    {"code": "5630", "name": "Communication Expenses", "type": X, "parent": "5600"},
    {"code": "5640", "name": "Travelling and Conveyance", "type": X, "parent": "5600"},
    {"code": "5650", "name": "Printing and Stationery", "type": X, "parent": "5600"},
    {"code": "5660", "name": "Professional Fees", "type": X, "parent": "5600"},
    {"code": "5670", "name": "Legal Expenses", "type": X, "parent": "5600"},
    {"code": "5680", "name": "Repairs and Maintenance", "type": X, "parent": "5600"},
    {"code": "5690", "name": "Insurance", "type": X, "parent": "5600"},
    {"code": "5691", "name": "Rates and Taxes", "type": X, "parent": "5600"},
    {"code": "5692", "name": "Advertisement", "type": X, "parent": "5600"},
    {"code": "5693", "name": "Audit Fees", "type": X, "parent": "5600"},
    {"code": "5694", "name": "Bad Debts", "type": X, "parent": "5600"},
    {"code": "5695", "name": "Miscellaneous Expenses", "type": X, "parent": "5600"},
    {"code": "5700", "name": "Tax Expense", "type": X, "parent": "5000", "mapping": "PL_TAX_EXPENSE"},
    {"code": "5710", "name": "Current Tax", "type": X, "parent": "5700"},
    {"code": "5720", "name": "Deferred Tax", "type": X, "parent": "5700"},
]


def effective_mapping_codes(accounts: Iterable[Account]) -> Dict[uuid.UUID, Optional[str]]:
    """
    Resolve each account's statement mapping code.

    An account without its own mapping code inherits the code of its
    nearest ancestor that has one.
    """
    by_id = {account.id: account for account in accounts}
    resolved: Dict[uuid.UUID, Optional[str]] = {}

    def resolve(account: Account) -> Optional[str]:
        if account.id in resolved:
            return resolved[account.id]
        code = account.mapping_code
        if not code and account.parent_id in by_id:
            code = resolve(by_id[account.parent_id])
        resolved[account.id] = code
        return code

    for account in by_id.values():
        resolve(account)
    return resolved


def validate_cash_flow_class(
    account_type: AccountType,
    cash_flow_class: Optional[CashFlowClass],
) -> None:
    """Balance sheet accounts need a class matching their type; P&L accounts take none."""
    allowed = CASH_FLOW_CLASSES_BY_TYPE[account_type]
    if not allowed:
        if cash_flow_class is not None:
            raise ValidationException(
                message=f"{account_type.value.title()} accounts do not take a cash flow class",
                field="cash_flow_class",
            )
        return
    if cash_flow_class is None:
        raise ValidationException(
            message=f"A cash flow class is required for {account_type.value} accounts",
            field="cash_flow_class",
            details={"allowed": sorted(c.value for c in allowed)},
        )
    if cash_flow_class not in allowed:
        raise ValidationException(
            message=f"Cash flow class '{cash_flow_class.value}' is not valid for {account_type.value} accounts",
            field="cash_flow_class",
            details={"allowed": sorted(c.value for c in allowed)},
        )


class ChartOfAccountsService:
    """Service for the chart of accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_accounts(
        self,
        ctx: LedgerContext,
        account_type: Optional[AccountType] = None,
        include_inactive: bool = True,
    ) -> List[Account]:
        """Get the company's accounts ordered by code."""
        query = select(Account).where(Account.company_id == ctx.company_id)

        if account_type:
            query = query.where(Account.account_type == account_type)
        if not include_inactive:
            query = query.where(Account.is_active == True)  # noqa: E712

        query = query.order_by(Account.code)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_ledgers(self, ctx: LedgerContext) -> List[Account]:
        """Accounts that can receive postings (leaf and active)."""
        result = await self.db.execute(
            select(Account)
            .where(
                and_(
                    Account.company_id == ctx.company_id,
                    Account.is_group == False,  # noqa: E712
                    Account.is_active == True,  # noqa: E712
                )
            )
            .order_by(Account.code)
        )
        return list(result.scalars().all())

    async def get_account(self, ctx: LedgerContext, account_id: uuid.UUID) -> Account:
        result = await self.db.execute(
            select(Account).where(
                and_(
                    Account.id == account_id,
                    Account.company_id == ctx.company_id,
                )
            )
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_account_by_code(self, ctx: LedgerContext, code: str) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(
                and_(
                    Account.company_id == ctx.company_id,
                    Account.code == code,
                )
            )
        )
        return result.scalar_one_or_none()

    async def build_tree(
        self,
        ctx: LedgerContext,
        parent_id: Optional[uuid.UUID] = None,
    ) -> List[AccountTree]:
        """
        Build nested account nodes below parent_id (roots when None).

        Built from one flat query; children are ordered by code.
        """
        accounts = await self.list_accounts(ctx)
        children: Dict[Optional[uuid.UUID], List[Account]] = {}
        for account in accounts:
            children.setdefault(account.parent_id, []).append(account)

        def build(node_parent: Optional[uuid.UUID]) -> List[AccountTree]:
            nodes = []
            for account in children.get(node_parent, []):
                node = AccountTree.model_validate(account)
                node.children = build(account.id)
                nodes.append(node)
            return nodes

        return build(parent_id)

    async def resolve_effective_mapping_codes(
        self,
        ctx: LedgerContext,
    ) -> Dict[uuid.UUID, Optional[str]]:
        return effective_mapping_codes(await self.list_accounts(ctx))

    async def has_postings(self, account_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(exists().where(JournalEntryLine.account_id == account_id))
        )
        return bool(result.scalar())

    async def _check_can_become_group(self, parent: Account) -> None:
        """A leaf turning into a group must not carry postings or an opening balance."""
        if parent.is_group:
            return
        if await self.has_postings(parent.id):
            raise AccountHasPostingsError(
                parent.code,
                message=f"Account {parent.code} has postings and cannot become a group account",
            )
        if parent.opening_balance:
            raise AccountHasOpeningBalanceError(
                parent.code,
                message=f"Account {parent.code} has an opening balance and cannot become a group account",
            )

    async def _child_count(self, ctx: LedgerContext, account_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Account.id)).where(
                and_(
                    Account.company_id == ctx.company_id,
                    Account.parent_id == account_id,
                )
            )
        )
        return result.scalar() or 0

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def create_account(self, ctx: LedgerContext, data: AccountCreate) -> Account:
        """Create an account; the parent becomes a group account."""
        async with atomic(self.db):
            account = await self._create_account(ctx, data)
        logger.info(f"Account {account.code} created for company {ctx.company_id}")
        return account

    async def _create_account(self, ctx: LedgerContext, data: AccountCreate) -> Account:
        if await self.get_account_by_code(ctx, data.code):
            raise DuplicateAccountCodeError(data.code)

        level = 1
        parent = None
        if data.parent_id:
            parent = await self.get_account(ctx, data.parent_id)
            if parent.account_type != data.account_type:
                raise ValidationException(
                    message=f"Child account type must match parent account type ({parent.account_type.value})",
                    field="account_type",
                )
            await self._check_can_become_group(parent)
            level = parent.level + 1

        validate_cash_flow_class(data.account_type, data.cash_flow_class)

        account = Account(
            company_id=ctx.company_id,
            code=data.code,
            name=data.name,
            description=data.description,
            account_type=data.account_type,
            parent_id=data.parent_id,
            level=level,
            is_group=False,
            mapping_code=data.mapping_code,
            cash_flow_class=data.cash_flow_class,
            opening_balance=to_money(data.opening_balance),
            opening_balance_side=data.opening_balance_side,
            is_system=data.is_system,
            created_by_id=ctx.user_id,
            updated_by_id=ctx.user_id,
        )
        self.db.add(account)

        if parent is not None and not parent.is_group:
            parent.is_group = True

        await self.db.flush()

        if account.opening_balance:
            await TrialBalanceService(self.db).mark_stale(ctx)
        return account

    async def update_account(
        self,
        ctx: LedgerContext,
        account_id: uuid.UUID,
        data: AccountUpdate,
    ) -> Account:
        """
        Update an account.

        Moving an account re-levels its whole subtree and re-derives is_group
        on the old and new parents.
        """
        async with atomic(self.db):
            account = await self.get_account(ctx, account_id)
            changes = data.model_dump(exclude_unset=True)

            new_code = changes.get("code")
            if new_code and new_code != account.code:
                if await self.get_account_by_code(ctx, new_code):
                    raise DuplicateAccountCodeError(new_code)
                account.code = new_code

            for field in ("name", "description", "mapping_code", "opening_balance_side", "is_active"):
                if field in changes and (changes[field] is not None or field in ("description", "mapping_code")):
                    setattr(account, field, changes[field])
            if changes.get("opening_balance") is not None:
                if account.is_group and to_money(changes["opening_balance"]):
                    raise AccountHasOpeningBalanceError(account.code)
                account.opening_balance = to_money(changes["opening_balance"])

            if "cash_flow_class" in changes:
                validate_cash_flow_class(account.account_type, changes["cash_flow_class"])
                account.cash_flow_class = changes["cash_flow_class"]

            moved = "parent_id" in changes and changes["parent_id"] != account.parent_id
            if moved:
                await self._move_account(ctx, account, changes["parent_id"])

            account.updated_by_id = ctx.user_id
            await self.db.flush()

            # Opening balances and the hierarchy both feed trial balance rows
            if moved or {"opening_balance", "opening_balance_side"} & changes.keys():
                await TrialBalanceService(self.db).mark_stale(ctx)

        logger.info(f"Account {account.code} updated for company {ctx.company_id}")
        return account

    async def _move_account(
        self,
        ctx: LedgerContext,
        account: Account,
        new_parent_id: Optional[uuid.UUID],
    ) -> None:
        accounts = {a.id: a for a in await self.list_accounts(ctx)}
        old_parent_id = account.parent_id

        new_parent = None
        if new_parent_id is not None:
            new_parent = accounts.get(new_parent_id)
            if new_parent is None:
                raise AccountNotFoundError(new_parent_id)
            if new_parent.account_type != account.account_type:
                raise ValidationException(
                    message=f"Child account type must match parent account type ({new_parent.account_type.value})",
                    field="parent_id",
                )
            # Walk up from the new parent; meeting the account itself means a cycle
            cursor = new_parent
            while cursor is not None:
                if cursor.id == account.id:
                    raise ValidationException(
                        message="An account cannot be moved under itself or one of its descendants",
                        field="parent_id",
                    )
                cursor = accounts.get(cursor.parent_id)
            await self._check_can_become_group(new_parent)

        account.parent_id = new_parent_id
        account.level = new_parent.level + 1 if new_parent else 1
        if new_parent is not None:
            new_parent.is_group = True

        children: Dict[uuid.UUID, List[Account]] = {}
        for candidate in accounts.values():
            if candidate.parent_id is not None:
                children.setdefault(candidate.parent_id, []).append(candidate)

        stack = [account]
        while stack:
            node = stack.pop()
            for child in children.get(node.id, []):
                child.level = node.level + 1
                stack.append(child)

        if old_parent_id is not None and old_parent_id in accounts:
            accounts[old_parent_id].is_group = bool(children.get(old_parent_id))

    async def delete_account(self, ctx: LedgerContext, account_id: uuid.UUID) -> None:
        """Delete a childless, unposted, non-system account."""
        async with atomic(self.db):
            account = await self.get_account(ctx, account_id)

            if account.is_system:
                raise SystemAccountProtectedError(account.code)

            child_count = await self._child_count(ctx, account.id)
            if child_count:
                raise HasChildrenError(account.code, child_count)

            if await self.has_postings(account.id):
                raise AccountHasPostingsError(account.code)

            parent_id = account.parent_id
            code = account.code
            await self.db.delete(account)
            await self.db.flush()

            if parent_id is not None:
                parent = await self.get_account(ctx, parent_id)
                parent.is_group = await self._child_count(ctx, parent_id) > 0

        logger.info(f"Account {code} deleted for company {ctx.company_id}")

    async def create_default_chart_of_accounts(self, ctx: LedgerContext) -> List[Account]:
        """Create the default Schedule III chart of accounts."""
        async with atomic(self.db):
            accounts = await self.seed_default_chart(ctx)
        logger.info(f"Default chart of accounts ({len(accounts)} accounts) created for company {ctx.company_id}")
        return accounts

    async def seed_default_chart(self, ctx: LedgerContext) -> List[Account]:
        existing = await self.db.execute(
            select(func.count(Account.id)).where(Account.company_id == ctx.company_id)
        )
        if existing.scalar():
            raise ConflictException(
                message="Chart of Accounts already exists. Cannot reinitialize.",
                resource_type="Account",
            )

        parent_codes = {row["parent"] for row in DEFAULT_CHART_OF_ACCOUNTS if row.get("parent")}
        by_code: Dict[str, Account] = {}
        created = []

        for row in DEFAULT_CHART_OF_ACCOUNTS:
            parent = by_code.get(row.get("parent"))
            account = Account(
                id=uuid.uuid4(),
                company_id=ctx.company_id,
                code=row["code"],
                name=row["name"],
                account_type=row["type"],
                parent_id=parent.id if parent else None,
                level=parent.level + 1 if parent else 1,
                is_group=row["code"] in parent_codes,
                mapping_code=row.get("mapping"),
                cash_flow_class=row.get("cf"),
                opening_balance=to_money(0),
                opening_balance_side=(
                    BalanceSide.DEBIT if row["type"] in (A, X) else BalanceSide.CREDIT
                ),
                is_system=row.get("system", False),
                created_by_id=ctx.user_id,
                updated_by_id=ctx.user_id,
            )
            self.db.add(account)
            by_code[account.code] = account
            created.append(account)

        await self.db.flush()
        return created
