"""create_checkout_tables

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c1e2a7d9b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 商品与购物车（由目录服务维护，结算只读取/扣减/删除）
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('name', sa.String(length=255), nullable=False, comment='商品名称'),
        sa.Column('price', sa.Numeric(precision=15, scale=2), nullable=False, comment='当前单价'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0', comment='库存'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否上架'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
    )

    op.create_table(
        'cart_items',
        sa.Column('id', sa.String(length=64), nullable=False, comment='购物车条目ID'),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID'),
        sa.Column('product_id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='加入时间'),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'], ondelete='CASCADE', name='fk_cart_items_product_id_products'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_cart_items'),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'], unique=False)
    op.create_index('ix_cart_items_user_product', 'cart_items', ['user_id', 'product_id'], unique=False)

    # 订单
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=64), nullable=False, comment='订单ID'),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID'),
        sa.Column('total_amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='订单总额'),
        sa.Column('payment_method', sa.String(length=20), nullable=False, comment='支付方式: ONLINE/COD'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='PENDING', comment='支付状态'),
        sa.Column('delivery_status', sa.String(length=20), nullable=False, server_default='PENDING', comment='配送状态'),
        sa.Column('shipping_address', sa.JSON(), nullable=False, comment='收货地址（复制自支付会话）'),
        sa.Column('transaction_id', sa.String(length=100), nullable=True, comment='支付会话交易ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('transaction_id', name='uq_orders_transaction_id'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'], unique=False)
    op.create_index('ix_orders_delivery_status', 'orders', ['delivery_status'], unique=False)
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False, comment='订单ID'),
        sa.Column('product_id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('price', sa.Numeric(precision=15, scale=2), nullable=False, comment='下单时单价'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'], ondelete='CASCADE', name='fk_order_items_order_id_orders'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'], unique=False)
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'], unique=False)

    # 支付会话（永不删除，支付尝试的审计记录）
    op.create_table(
        'payment_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('transaction_id', sa.String(length=100), nullable=False, comment='交易关联ID'),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='会话金额'),
        sa.Column('cart_item_ids', sa.JSON(), nullable=False, comment='所选购物车条目ID（有序）'),
        sa.Column('items', sa.JSON(), nullable=False, comment='条目快照'),
        sa.Column('shipping_address', sa.JSON(), nullable=False, comment='收货地址快照'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING', comment='会话状态: PENDING/SUCCESS/FAILED/EXPIRED'),
        sa.Column('provider', sa.String(length=50), nullable=False, comment='支付网关: phonepe/mock'),
        sa.Column('gateway_transaction_id', sa.String(length=200), nullable=True, comment='网关交易ID'),
        sa.Column('payment_url', sa.String(length=1000), nullable=True, comment='网关支付页地址'),
        sa.Column('payment_method', sa.String(length=50), nullable=True, comment='网关回报的支付方式'),
        sa.Column('failure_reason', sa.Text(), nullable=True, comment='发起失败原因'),
        sa.Column('order_id', sa.String(length=64), nullable=True, comment='物化后的订单ID（只设置一次）'),
        sa.Column('materialization_state', sa.String(length=20), nullable=False, server_default='NOT_STARTED', comment='订单物化状态'),
        sa.Column('materialization_error', sa.Text(), nullable=True, comment='物化失败原因（待人工对账）'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False, comment='过期时间'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.PrimaryKeyConstraint('id', name='pk_payment_sessions'),
        sa.UniqueConstraint('order_id', name='uq_payment_sessions_order_id'),
    )
    op.create_index('ix_payment_sessions_id', 'payment_sessions', ['id'], unique=False)
    op.create_index('ix_payment_sessions_transaction_id', 'payment_sessions', ['transaction_id'], unique=True)
    op.create_index('ix_payment_sessions_user_id', 'payment_sessions', ['user_id'], unique=False)
    op.create_index('ix_payment_sessions_status', 'payment_sessions', ['status'], unique=False)
    op.create_index('ix_payment_sessions_gateway_transaction_id', 'payment_sessions', ['gateway_transaction_id'], unique=False)
    # 过期清理扫描：status='PENDING' AND expires_at < now
    op.create_index('ix_payment_sessions_status_expires', 'payment_sessions', ['status', 'expires_at'], unique=False)
    op.create_index('ix_payment_sessions_user_created', 'payment_sessions', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_payment_sessions_user_created', table_name='payment_sessions')
    op.drop_index('ix_payment_sessions_status_expires', table_name='payment_sessions')
    op.drop_index('ix_payment_sessions_gateway_transaction_id', table_name='payment_sessions')
    op.drop_index('ix_payment_sessions_status', table_name='payment_sessions')
    op.drop_index('ix_payment_sessions_user_id', table_name='payment_sessions')
    op.drop_index('ix_payment_sessions_transaction_id', table_name='payment_sessions')
    op.drop_index('ix_payment_sessions_id', table_name='payment_sessions')
    op.drop_table('payment_sessions')

    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_index('ix_orders_delivery_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_cart_items_user_product', table_name='cart_items')
    op.drop_index('ix_cart_items_user_id', table_name='cart_items')
    op.drop_table('cart_items')
    op.drop_table('products')
