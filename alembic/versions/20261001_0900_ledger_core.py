"""Ledger core tables: companies, chart of accounts, journals, reporting

Revision ID: 20261001_0900_ledger_core
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20261001_0900_ledger_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enum types (SQLAlchemy stores member names)
    gaap_standard_enum = postgresql.ENUM(
        'INDIA_GAAP', 'US_GAAP', 'IFRS',
        name='gaapstandard',
        create_type=False
    )
    gaap_standard_enum.create(op.get_bind(), checkfirst=True)

    account_type_enum = postgresql.ENUM(
        'ASSET', 'LIABILITY', 'EQUITY', 'INCOME', 'EXPENSE',
        name='accounttype',
        create_type=False
    )
    account_type_enum.create(op.get_bind(), checkfirst=True)

    balance_side_enum = postgresql.ENUM(
        'DEBIT', 'CREDIT',
        name='balanceside',
        create_type=False
    )
    balance_side_enum.create(op.get_bind(), checkfirst=True)

    cash_flow_class_enum = postgresql.ENUM(
        'CASH', 'RECEIVABLE', 'INVENTORY', 'OTHER_CURRENT_ASSET', 'FIXED_ASSET',
        'ACCUMULATED_DEPRECIATION', 'INVESTMENT', 'PAYABLE',
        'OTHER_CURRENT_LIABILITY', 'BORROWING', 'EQUITY',
        name='cashflowclass',
        create_type=False
    )
    cash_flow_class_enum.create(op.get_bind(), checkfirst=True)

    entry_status_enum = postgresql.ENUM(
        'DRAFT', 'POSTED',
        name='journalentrystatus',
        create_type=False
    )
    entry_status_enum.create(op.get_bind(), checkfirst=True)

    entry_type_enum = postgresql.ENUM(
        'MANUAL', 'AUTO_INVOICE', 'AUTO_PAYMENT', 'AUTO_EXPENSE', 'RECURRING',
        'REVERSAL', 'BANK_IMPORT', 'OPENING',
        name='journalentrytype',
        create_type=False
    )
    entry_type_enum.create(op.get_bind(), checkfirst=True)

    party_type_enum = postgresql.ENUM(
        'CUSTOMER', 'VENDOR', 'EMPLOYEE',
        name='partytype',
        create_type=False
    )
    party_type_enum.create(op.get_bind(), checkfirst=True)

    statement_type_enum = postgresql.ENUM(
        'BALANCE_SHEET', 'PROFIT_LOSS', 'CASH_FLOW',
        name='statementtype',
        create_type=False
    )
    statement_type_enum.create(op.get_bind(), checkfirst=True)

    # =========================================================================
    # COMPANIES TABLE
    # =========================================================================
    op.create_table(
        'companies',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('gaap_standard', gaap_standard_enum, nullable=False),
        sa.Column('base_currency', sa.String(3), nullable=False, server_default='INR'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # =========================================================================
    # CHART OF ACCOUNTS TABLE
    # =========================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_id', sa.UUID(), nullable=False),
        sa.Column('code', sa.String(20), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('account_type', account_type_enum, nullable=False),
        sa.Column('cash_flow_class', cash_flow_class_enum, nullable=True),
        sa.Column('mapping_code', sa.String(50), nullable=True),
        sa.Column('parent_id', sa.UUID(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_group', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('opening_balance', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('opening_balance_side', balance_side_enum, nullable=False),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_by_id', sa.UUID(), nullable=True),
        sa.Column('updated_by_id', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['accounts.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('company_id', 'code', name='uq_accounts_company_code'),
        sa.CheckConstraint('opening_balance >= 0', name='opening_balance_non_negative'),
    )
    op.create_index('ix_accounts_company_id', 'accounts', ['company_id'])
    op.create_index('ix_accounts_company_type', 'accounts', ['company_id', 'account_type'])
    op.create_index('ix_accounts_company_parent', 'accounts', ['company_id', 'parent_id'])

    # =========================================================================
    # FISCAL YEARS TABLE
    # =========================================================================
    op.create_table(
        'fiscal_years',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_by_id', sa.UUID(), nullable=True),
        sa.Column('created_by_id', sa.UUID(), nullable=True),
        sa.Column('updated_by_id', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('company_id', 'name', name='uq_fiscal_years_company_name'),
        sa.CheckConstraint('start_date < end_date', name='fiscal_year_range'),
    )
    op.create_index('ix_fiscal_years_company_id', 'fiscal_years', ['company_id'])

    # =========================================================================
    # JOURNAL SEQUENCES TABLE
    # =========================================================================
    op.create_table(
        'journal_sequences',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_id', sa.UUID(), nullable=False),
        sa.Column('fiscal_year_id', sa.UUID(), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['fiscal_year_id'], ['fiscal_years.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('company_id', 'fiscal_year_id', name='uq_journal_sequences_company_year'),
    )

    # =========================================================================
    # JOURNAL ENTRIES TABLE
    # =========================================================================
    op.create_table(
        'journal_entries',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_id', sa.UUID(), nullable=False),
        sa.Column('fiscal_year_id', sa.UUID(), nullable=False),
        sa.Column('entry_number', sa.String(50), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('posting_date', sa.Date(), nullable=True),
        sa.Column('entry_type', entry_type_enum, nullable=False),
        sa.Column('narration', sa.Text(), nullable=True),
        sa.Column('reference_number', sa.String(100), nullable=True),
        sa.Column('source_type', sa.String(50), nullable=True),
        sa.Column('source_id', sa.UUID(), nullable=True),
        sa.Column('total_debit', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('total_credit', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('status', entry_status_enum, nullable=False),
        sa.Column('is_reversed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('reversed_entry_id', sa.UUID(), nullable=True),
        sa.Column('created_by_id', sa.UUID(), nullable=True),
        sa.Column('updated_by_id', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['fiscal_year_id'], ['fiscal_years.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['reversed_entry_id'], ['journal_entries.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('company_id', 'entry_number', name='uq_journal_entries_company_number'),
    )
    op.create_index('ix_journal_entries_company_id', 'journal_entries', ['company_id'])
    op.create_index('ix_journal_entries_fiscal_year_id', 'journal_entries', ['fiscal_year_id'])
    op.create_index('ix_journal_entries_entry_date', 'journal_entries', ['entry_date'])
    op.create_index('ix_journal_entries_company_date', 'journal_entries', ['company_id', 'entry_date'])
    op.create_index('ix_journal_entries_source', 'journal_entries', ['company_id', 'source_type', 'source_id'])
    op.create_index(
        'uq_journal_entries_live_source', 'journal_entries', ['company_id', 'source_type', 'source_id'],
        unique=True,
        postgresql_where=sa.text(
            "source_id IS NOT NULL AND status = 'POSTED' "
            "AND NOT is_reversed AND entry_type <> 'REVERSAL'"
        ),
    )

    # =========================================================================
    # JOURNAL ENTRY LINES TABLE
    # =========================================================================
    op.create_table(
        'journal_entry_lines',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('journal_entry_id', sa.UUID(), nullable=False),
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('debit_amount', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('credit_amount', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('party_type', party_type_enum, nullable=True),
        sa.Column('party_id', sa.UUID(), nullable=True),
        sa.Column('cost_center_id', sa.UUID(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('journal_entry_id', 'sort_order', name='uq_journal_entry_lines_entry_order'),
        sa.CheckConstraint(
            'debit_amount >= 0 AND credit_amount >= 0',
            name='line_amounts_non_negative',
        ),
    )
    op.create_index('ix_journal_entry_lines_journal_entry_id', 'journal_entry_lines', ['journal_entry_id'])
    op.create_index('ix_journal_entry_lines_account_id', 'journal_entry_lines', ['account_id'])

    # =========================================================================
    # TRIAL BALANCE CACHE TABLE
    # =========================================================================
    op.create_table(
        'trial_balance_cache',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_id', sa.UUID(), nullable=False),
        sa.Column('is_stale', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('marked_stale_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('company_id'),
    )

    # =========================================================================
    # SCHEDULE MAPPINGS TABLE
    # =========================================================================
    op.create_table(
        'schedule_mappings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('gaap_standard', gaap_standard_enum, nullable=False),
        sa.Column('line_item_code', sa.String(50), nullable=False),
        sa.Column('line_item_name', sa.String(255), nullable=False),
        sa.Column('statement_type', statement_type_enum, nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('indent_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_bold', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_header', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_total', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('has_sub_schedule', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('rollup_parent_code', sa.String(50), nullable=True),
        sa.Column('rollup_sign', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gaap_standard', 'line_item_code', name='uq_schedule_mappings_standard_code'),
        sa.CheckConstraint('rollup_sign IN (1, -1)', name='rollup_sign_unit'),
    )
    op.create_index(
        'ix_schedule_mappings_standard_type', 'schedule_mappings', ['gaap_standard', 'statement_type']
    )

    # =========================================================================
    # FINANCIAL STATEMENT RUNS TABLE
    # =========================================================================
    op.create_table(
        'financial_statement_runs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_id', sa.UUID(), nullable=False),
        sa.Column('fiscal_year_id', sa.UUID(), nullable=True),
        sa.Column('statement_type', statement_type_enum, nullable=False),
        sa.Column('as_of_date', sa.Date(), nullable=False),
        sa.Column('from_date', sa.Date(), nullable=True),
        sa.Column('to_date', sa.Date(), nullable=True),
        sa.Column('generated_data', sa.JSON(), nullable=False),
        sa.Column('generated_by_id', sa.UUID(), nullable=True),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['fiscal_year_id'], ['fiscal_years.id'], ondelete='SET NULL'),
    )
    op.create_index(
        'ix_financial_statement_runs_lookup',
        'financial_statement_runs',
        ['company_id', 'fiscal_year_id', 'statement_type', 'as_of_date'],
    )


def downgrade() -> None:
    op.drop_table('financial_statement_runs')
    op.drop_table('schedule_mappings')
    op.drop_table('trial_balance_cache')
    op.drop_table('journal_entry_lines')
    op.drop_table('journal_entries')
    op.drop_table('journal_sequences')
    op.drop_table('fiscal_years')
    op.drop_table('accounts')
    op.drop_table('companies')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS statementtype')
    op.execute('DROP TYPE IF EXISTS partytype')
    op.execute('DROP TYPE IF EXISTS journalentrytype')
    op.execute('DROP TYPE IF EXISTS journalentrystatus')
    op.execute('DROP TYPE IF EXISTS cashflowclass')
    op.execute('DROP TYPE IF EXISTS balanceside')
    op.execute('DROP TYPE IF EXISTS accounttype')
    op.execute('DROP TYPE IF EXISTS gaapstandard')
