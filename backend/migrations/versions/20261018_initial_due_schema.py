"""initial disposal due schema

Revision ID: 20261018_initial_due_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete schema from scratch:
- users, businesses, retailers, companies: the paying parties
- retailer_business_links: business registered with a retailer
- company_products, retailer_inventory: stock and plastic cost per unit
- transactions, inventory_transactions, business_transactions,
  retailer_transactions, company_payments: money and stock logs
- consumer/business/retailer/company_disposal_dues: one table per tier,
  identical layout, parent_due_id pointing one tier down
- due_events: append-only audit of the due lifecycle
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial_due_schema'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('CURRENT_TIMESTAMP')


def _create_due_table(name, owner_table, parent_table, extra_columns=()):
    """
    All four due tables share one layout.

    WHY: the cascade engine treats tiers generically (owner_id + parent_due_id),
    so the columns must match exactly.
    """
    columns = [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
    ]
    if parent_table is not None:
        columns.append(sa.Column('parent_due_id', sa.Integer(), nullable=True))
    columns.extend(extra_columns)
    columns.extend([
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('source_type', sa.String(length=32), nullable=False, server_default='origin'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('overdue_at', sa.DateTime(timezone=True), nullable=True),
    ])

    constraints = [
        sa.ForeignKeyConstraint(['owner_id'], [f'{owner_table}.id'], ),
        sa.CheckConstraint('amount >= 0', name=f"ck_{name.replace('_disposal', '')}_amount_nonneg"),
        sa.PrimaryKeyConstraint('id'),
    ]
    if parent_table is not None:
        constraints.append(sa.ForeignKeyConstraint(['parent_due_id'], [f'{parent_table}.id'], ))

    op.create_table(name, *columns, *constraints, sqlite_autoincrement=True)

    op.create_index(f'ix_{name}_owner_id', name, ['owner_id'])
    op.create_index(f'ix_{name}_due_date', name, ['due_date'])
    op.create_index(f'ix_{name}_status', name, ['status'])
    op.create_index(f'ix_{name}_source_type', name, ['source_type'])
    if parent_table is not None:
        op.create_index(f'ix_{name}_parent_due_id', name, ['parent_due_id'])


def upgrade():
    # ============================================================================
    # Parties
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('user_type', sa.String(length=16), nullable=False, server_default='consumer'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_user_type', 'users', ['user_type'])

    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False, server_default='general'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_businesses_owner_id', 'businesses', ['owner_id'])

    op.create_table(
        'retailers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_retailers_user_id', 'retailers', ['user_id'])

    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('total_disposal_collected', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_companies_user_id', 'companies', ['user_id'])

    op.create_table(
        'retailer_business_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('retailer_id', sa.Integer(), nullable=False),
        sa.Column('established_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'retailer_id', name='uq_retailer_business'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_retailer_business_links_business_id', 'retailer_business_links', ['business_id'])
    op.create_index('ix_retailer_business_links_retailer_id', 'retailer_business_links', ['retailer_id'])

    # ============================================================================
    # Products and stock
    # ============================================================================
    op.create_table(
        'company_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('retailer_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False, server_default='material'),
        sa.Column('disposal_cost', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_company_products_company_id', 'company_products', ['company_id'])
    op.create_index('ix_company_products_retailer_id', 'company_products', ['retailer_id'])

    op.create_table(
        'retailer_inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('retailer_id', sa.Integer(), nullable=False),
        sa.Column('company_product_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('plastic_quantity_grams', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('plastic_cost_per_gram', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('total_plastic_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('product_category', sa.String(length=64), nullable=True),
        sa.Column('product_description', sa.Text(), nullable=True),
        sa.Column('is_custom_product', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.ForeignKeyConstraint(['company_product_id'], ['company_products.id'], ),
        sa.CheckConstraint('quantity >= 0', name='ck_retailer_inventory_quantity_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_retailer_inventory_retailer_id', 'retailer_inventory', ['retailer_id'])
    op.create_index('ix_retailer_inventory_company_product_id', 'retailer_inventory', ['company_product_id'])
    op.create_index('ix_retailer_inventory_status', 'retailer_inventory', ['status'])
    op.create_index('ix_retailer_inventory_retailer_product', 'retailer_inventory',
                    ['retailer_id', 'company_product_id'])

    # ============================================================================
    # Money and stock logs
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('inventory_id', sa.Integer(), nullable=True),
        sa.Column('cost_paid', sa.Numeric(12, 2), nullable=False),
        sa.Column('plastic_disposal_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['inventory_id'], ['retailer_inventory.id'], ),
        sa.CheckConstraint('plastic_disposal_fee >= 0', name='ck_transactions_fee_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_inventory_id', 'transactions', ['inventory_id'])
    op.create_index('ix_transactions_occurred_at', 'transactions', ['occurred_at'])

    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('plastic_quantity_purchased', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('plastic_disposal_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['inventory_id'], ['retailer_inventory.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_transactions_inventory_id', 'inventory_transactions', ['inventory_id'])
    op.create_index('ix_inventory_transactions_business_id', 'inventory_transactions', ['business_id'])
    op.create_index('ix_inventory_transactions_transaction_type', 'inventory_transactions', ['transaction_type'])
    op.create_index('ix_inventory_transactions_occurred_at', 'inventory_transactions', ['occurred_at'])

    op.create_table(
        'business_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['inventory_id'], ['retailer_inventory.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_business_transactions_business_id', 'business_transactions', ['business_id'])
    op.create_index('ix_business_transactions_inventory_id', 'business_transactions', ['inventory_id'])

    op.create_table(
        'retailer_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('retailer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_retailer_transactions_retailer_id', 'retailer_transactions', ['retailer_id'])
    op.create_index('ix_retailer_transactions_business_id', 'retailer_transactions', ['business_id'])
    op.create_index('ix_retailer_transactions_occurred_at', 'retailer_transactions', ['occurred_at'])

    op.create_table(
        'company_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('retailer_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_company_payments_company_id', 'company_payments', ['company_id'])
    op.create_index('ix_company_payments_retailer_id', 'company_payments', ['retailer_id'])
    op.create_index('ix_company_payments_status', 'company_payments', ['status'])
    op.create_index('ix_company_payments_occurred_at', 'company_payments', ['occurred_at'])

    # ============================================================================
    # Disposal dues (leaf to root)
    # ============================================================================
    _create_due_table(
        'consumer_disposal_dues', 'users', None,
        extra_columns=[sa.Column('origin_transaction_id', sa.Integer(),
                                 sa.ForeignKey('transactions.id'), nullable=True)],
    )
    op.create_index('ix_consumer_disposal_dues_origin_transaction_id',
                    'consumer_disposal_dues', ['origin_transaction_id'])
    _create_due_table('business_disposal_dues', 'businesses', 'consumer_disposal_dues')
    _create_due_table('retailer_disposal_dues', 'retailers', 'business_disposal_dues')
    _create_due_table('company_disposal_dues', 'companies', 'retailer_disposal_dues')

    # ============================================================================
    # due_events: append-only audit
    # ============================================================================
    op.create_table(
        'due_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('tier', sa.String(length=16), nullable=False),
        sa.Column('due_id', sa.Integer(), nullable=True),
        sa.Column('related_tier', sa.String(length=16), nullable=True),
        sa.Column('related_due_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_due_events_event_type', 'due_events', ['event_type'])
    op.create_index('ix_due_events_tier', 'due_events', ['tier'])
    op.create_index('ix_due_events_occurred_at', 'due_events', ['occurred_at'])
    op.create_index('ix_due_events_tier_due', 'due_events', ['tier', 'due_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('due_events')
    op.drop_table('company_disposal_dues')
    op.drop_table('retailer_disposal_dues')
    op.drop_table('business_disposal_dues')
    op.drop_table('consumer_disposal_dues')
    op.drop_table('company_payments')
    op.drop_table('retailer_transactions')
    op.drop_table('business_transactions')
    op.drop_table('inventory_transactions')
    op.drop_table('transactions')
    op.drop_table('retailer_inventory')
    op.drop_table('company_products')
    op.drop_table('retailer_business_links')
    op.drop_table('companies')
    op.drop_table('retailers')
    op.drop_table('businesses')
    op.drop_table('users')
