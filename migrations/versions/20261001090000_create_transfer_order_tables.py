"""Create branches, inventory registries, transfer orders and outbox_events

Revision ID: 20261001090000
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261001090000'
down_revision = None
branch_labels = None
depends_on = None

ITEM_STATUSES = ('NEW', 'STANDBY', 'IN_TRANSIT', 'EXTERNAL_REPAIR', 'RECEIVED_AT_CENTER', 'DEFECTIVE',
                 'ASSIGNED', 'UNDER_MAINTENANCE', 'SOLD', 'SCRAPPED')
TRANSFER_KINDS = ('MACHINE', 'SIM', 'MAINTENANCE')


def _in(column: str, values: tuple[str, ...]) -> str:
    return f"{column} in ({', '.join(repr(v) for v in values)})"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def _inventory_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('serial_number', sa.String(length=100), nullable=False),
        sa.Column('branch_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.String(length=100), nullable=True),
        sa.Column('request_id', sa.Uuid(), nullable=True),
        sa.Column('origin_branch_id', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *extra,
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=f'pk_{name}'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], name=f'fk_{name}_branch_id_branches'),
        sa.ForeignKeyConstraint(['origin_branch_id'], ['branches.id'], name=f'fk_{name}_origin_branch_id_branches'),
        sa.CheckConstraint(_in('status', ITEM_STATUSES), name=f'ck_{name}_item_status'),
    )
    op.create_index(f'ix_{name}_serial_number', name, ['serial_number'], unique=True)
    op.create_index(f'ix_{name}_branch_id', name, ['branch_id'])
    op.create_index(f'ix_{name}_status', name, ['status'])


def upgrade() -> None:
    op.create_table(
        'branches',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_branches'),
        sa.CheckConstraint(_in('kind', ('ORDINARY', 'MAINTENANCE_CENTER', 'ADMIN_AFFAIRS')), name='ck_branches_branch_kind'),
    )
    op.create_index('ix_branches_kind', 'branches', ['kind'])

    _inventory_table(
        'warehouse_machines',
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('manufacturer', sa.String(length=100), nullable=True),
    )
    _inventory_table(
        'warehouse_sims',
        sa.Column('sim_type', sa.String(length=100), nullable=True, comment='Оператор или тариф SIM'),
    )

    op.create_table(
        'maintenance_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('serial_number', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('branch_id', sa.Uuid(), nullable=False),
        sa.Column('serviced_by_branch_id', sa.Uuid(), nullable=True),
        sa.Column('customer_id', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_maintenance_requests'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], name='fk_maintenance_requests_branch_id_branches'),
        sa.ForeignKeyConstraint(['serviced_by_branch_id'], ['branches.id'],
                                name='fk_maintenance_requests_serviced_by_branch_id_branches'),
        sa.CheckConstraint(_in('status', ('Open', 'In Progress', 'PENDING_TRANSFER', 'Closed', 'Cancelled')),
                           name='ck_maintenance_requests_service_request_status'),
    )
    op.create_index('ix_maintenance_requests_serial_number', 'maintenance_requests', ['serial_number'])
    op.create_index('ix_maintenance_requests_status', 'maintenance_requests', ['status'])
    op.create_index('ix_maintenance_requests_branch_id', 'maintenance_requests', ['branch_id'])

    op.create_table(
        'transfer_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False, comment='TO-YYYYMMDD-NNN'),
        sa.Column('from_branch_id', sa.Uuid(), nullable=False),
        sa.Column('to_branch_id', sa.Uuid(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=100), nullable=False),
        sa.Column('created_by_name', sa.String(length=200), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('waybill_number', sa.String(length=100), nullable=True, comment='Номер накладной курьера'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('received_by', sa.String(length=100), nullable=True),
        sa.Column('received_by_name', sa.String(length=200), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_transfer_orders'),
        sa.UniqueConstraint('order_number', name='uq_transfer_orders_order_number'),
        sa.ForeignKeyConstraint(['from_branch_id'], ['branches.id'], name='fk_transfer_orders_from_branch_id_branches'),
        sa.ForeignKeyConstraint(['to_branch_id'], ['branches.id'], name='fk_transfer_orders_to_branch_id_branches'),
        sa.CheckConstraint('from_branch_id <> to_branch_id', name='ck_transfer_orders_distinct_branches'),
        sa.CheckConstraint(_in('kind', TRANSFER_KINDS), name='ck_transfer_orders_transfer_kind'),
        sa.CheckConstraint(_in('status', ('PENDING', 'PARTIAL', 'RECEIVED', 'REJECTED', 'CANCELLED')),
                           name='ck_transfer_orders_transfer_status'),
    )
    op.create_index('ix_transfer_orders_from_branch_id', 'transfer_orders', ['from_branch_id'])
    op.create_index('ix_transfer_orders_to_branch_id', 'transfer_orders', ['to_branch_id'])
    op.create_index('ix_transfer_orders_kind', 'transfer_orders', ['kind'])
    op.create_index('ix_transfer_orders_status', 'transfer_orders', ['status'])

    op.create_table(
        'transfer_order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('serial_number', sa.String(length=100), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('manufacturer', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_received', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_transfer_order_items'),
        sa.ForeignKeyConstraint(['order_id'], ['transfer_orders.id'], name='fk_transfer_order_items_order_id_transfer_orders'),
        sa.CheckConstraint(_in('kind', TRANSFER_KINDS), name='ck_transfer_order_items_transfer_kind'),
        sa.CheckConstraint(_in('status', ('PENDING', 'RECEIVED', 'REJECTED', 'CANCELLED')),
                           name='ck_transfer_order_items_transfer_item_status'),
    )
    op.create_index('ix_transfer_order_items_order_id', 'transfer_order_items', ['order_id'])
    op.create_index('ix_transfer_order_items_serial_number', 'transfer_order_items', ['serial_number'])

    op.create_table(
        'outbox_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False,
                  comment='Тип события, например TRANSFER_ORDER_CREATED'),
        sa.Column('target_branch_id', sa.Uuid(), nullable=False, comment='Филиал-получатель уведомления'),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, comment='PENDING, PROCESSED, FAILED'),
        sa.Column('related_entity_id', sa.String(), nullable=True, comment='ID заказа на перемещение'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_outbox_events'),
        sa.CheckConstraint(_in('status', ('PENDING', 'PROCESSED', 'FAILED')), name='ck_outbox_events_outbox_status'),
    )
    op.create_index('ix_outbox_events_event_type', 'outbox_events', ['event_type'])
    op.create_index('ix_outbox_events_target_branch_id', 'outbox_events', ['target_branch_id'])
    op.create_index('ix_outbox_events_status', 'outbox_events', ['status'])


def downgrade() -> None:
    op.drop_table('outbox_events')
    op.drop_table('transfer_order_items')
    op.drop_table('transfer_orders')
    op.drop_table('maintenance_requests')
    op.drop_table('warehouse_sims')
    op.drop_table('warehouse_machines')
    op.drop_table('branches')
