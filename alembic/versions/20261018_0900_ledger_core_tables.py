"""Ledger core tables: owners, commodities, ledgers, accounts, transactions, splits

Revision ID: 20261018_0900_ledger_core_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018_0900_ledger_core_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # =========================================================================
    # OWNERS & COMMODITIES
    # =========================================================================
    op.create_table(
        'account_owners',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_account_owners'),
    )

    op.create_table(
        'commodities',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('namespace', sa.String(40), nullable=False),
        sa.Column('mnemonic', sa.String(20), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('fraction', sa.Integer, nullable=False, comment='Smallest currency unit per whole unit (100 for cents)'),
        sa.Column('is_active', sa.Boolean, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_commodities'),
    )

    # =========================================================================
    # LEDGERS
    # =========================================================================
    # root_account_id gets its foreign key once accounts exists
    op.create_table(
        'ledgers',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('currency_code', sa.String(10), nullable=False),
        sa.Column('precision', sa.SmallInteger, nullable=False, comment='Display decimal places'),
        sa.Column('is_active', sa.Boolean, nullable=False, comment='False once archived (read-only)'),
        sa.Column('owner_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('currency_commodity_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('root_account_id', sa.Uuid(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_ledgers'),
        sa.ForeignKeyConstraint(
            ['owner_id'], ['account_owners.id'],
            name='fk_ledgers_owner_id_account_owners', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['currency_commodity_id'], ['commodities.id'],
            name='fk_ledgers_currency_commodity_id_commodities', ondelete='SET NULL',
        ),
    )
    op.create_index('ix_ledgers_owner_id', 'ledgers', ['owner_id'])

    # =========================================================================
    # ACCOUNTS
    # =========================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('ledger_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('parent_id', sa.Uuid(as_uuid=True), nullable=True, comment="Null only for the ledger's root account"),

        # Identification
        sa.Column('code', sa.String(60), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),

        # Classification
        sa.Column('kind', sa.SmallInteger, nullable=True),
        sa.Column('role', sa.SmallInteger, nullable=True),

        # Flags
        sa.Column('is_placeholder', sa.Boolean, nullable=False, comment='Organizes descendants only; must not receive postings'),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('is_hidden', sa.Boolean, nullable=False),

        # Commodity
        sa.Column('commodity_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('commodity_scu', sa.Integer, nullable=False, comment='Smallest commodity unit'),

        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_accounts'),
        sa.ForeignKeyConstraint(['ledger_id'], ['ledgers.id'], name='fk_accounts_ledger_id_ledgers', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['accounts.id'], name='fk_accounts_parent_id_accounts', ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['commodity_id'], ['commodities.id'], name='fk_accounts_commodity_id_commodities', ondelete='SET NULL'),
        sa.UniqueConstraint('ledger_id', 'code', name='uq_account_ledger_code'),
    )
    op.create_index('ix_accounts_ledger_id', 'accounts', ['ledger_id'])
    op.create_index('ix_account_ledger_parent', 'accounts', ['ledger_id', 'parent_id'])

    op.create_foreign_key(
        'fk_ledgers_root_account_id_accounts', 'ledgers', 'accounts',
        ['root_account_id'], ['id'], ondelete='SET NULL',
    )

    # =========================================================================
    # TRANSACTIONS & SPLITS
    # =========================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('ledger_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('post_date', sa.Date, nullable=False),
        sa.Column('num', sa.String(40), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_transactions'),
        sa.ForeignKeyConstraint(['ledger_id'], ['ledgers.id'], name='fk_transactions_ledger_id_ledgers', ondelete='CASCADE'),
    )
    op.create_index('ix_transactions_ledger_id', 'transactions', ['ledger_id'])

    op.create_table(
        'splits',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('transaction_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('account_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('side', sa.SmallInteger, nullable=False, comment='0 = debit, 1 = credit'),
        sa.Column('value_num', sa.BigInteger, nullable=False),
        sa.Column('value_denom', sa.BigInteger, nullable=False),
        sa.Column('memo', sa.String(500), nullable=True),
        sa.Column('reconciled', sa.Boolean, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_splits'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], name='fk_splits_transaction_id_transactions', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_splits_account_id_accounts', ondelete='SET NULL'),
    )
    op.create_index('ix_splits_transaction_id', 'splits', ['transaction_id'])
    op.create_index('ix_splits_account_id', 'splits', ['account_id'])


def downgrade() -> None:
    op.drop_table('splits')
    op.drop_table('transactions')
    op.drop_constraint('fk_ledgers_root_account_id_accounts', 'ledgers', type_='foreignkey')
    op.drop_table('accounts')
    op.drop_table('ledgers')
    op.drop_table('commodities')
    op.drop_table('account_owners')
