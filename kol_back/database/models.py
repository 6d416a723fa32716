from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()

# 状态取值
KOL_STATUSES = ('pending', 'active', 'suspended', 'banned')
ORDER_STATUSES = ('pending', 'processing', 'shipped', 'delivered', 'completed', 'cancelled', 'returned')
PAYOUT_STATUSES = ('pending', 'completed', 'failed')
# 已存在这些状态的结算单时，同一区间不再重复生成
BLOCKING_PAYOUT_STATUSES = ('pending', 'completed')
# 可计入结算的订单状态
PAYABLE_ORDER_STATUSES = ('delivered', 'completed')
# 统计面板中不计入的订单状态
EXCLUDED_ORDER_STATUSES = ('cancelled', 'returned')


# 用户表
class User(Base):
    __tablename__ = 'users'
    user_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=True, comment='用户名')
    email = Column(String(255), nullable=True, comment='邮箱')
    first_name = Column(String(100), nullable=True, comment='名字')
    last_name = Column(String(100), nullable=True, comment='姓氏')
    created_at = Column(DateTime, default=datetime.now, comment='注册时间')


# KOL等级表（等级佣金比例，百分比）
class InfluencerTier(Base):
    __tablename__ = 'influencer_tier'
    tier_id = Column(Integer, primary_key=True, autoincrement=True)
    tier_name = Column(String(50), unique=True, nullable=False, comment='等级名称')
    min_successful_purchases = Column(Integer, nullable=False, default=0, comment='达到该等级所需成交数')
    commission_rate = Column(Numeric(5, 2, asdecimal=False), nullable=False, default=0, comment='等级佣金比例（如5表示5%）')


# KOL表
class Influencer(Base):
    __tablename__ = 'influencer'
    influencer_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.user_id'), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default='pending', comment='状态（pending/active/suspended/banned）')
    status_reason = Column(String(255), nullable=True)
    tier_id = Column(Integer, ForeignKey('influencer_tier.tier_id'), nullable=True, index=True)
    modified_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# 商品表（商品自身佣金比例，百分比）
class Product(Base):
    __tablename__ = 'product'
    product_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    small_image = Column(String(255), nullable=True)
    commission_rate = Column(Integer, nullable=True, comment='商品佣金比例（如10表示10%）')
    creation_at = Column(DateTime, default=datetime.now)
    modified_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# 商品库存（规格）表
class ProductInventory(Base):
    __tablename__ = 'product_inventory'
    inventory_id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('product.product_id'), nullable=False, index=True)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=True, comment='单价')


# 订单表
class Order(Base):
    __tablename__ = 'order'
    order_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.user_id'), nullable=False, index=True)
    total = Column(Numeric(10, 2, asdecimal=False), default=0)
    status = Column(String(20), nullable=True, comment='状态（pending/processing/shipped/delivered/completed/cancelled/returned）')
    creation_at = Column(DateTime, default=datetime.now)
    modified_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index('idx_order_status_created', 'status', 'creation_at'),
    )


# 订单明细表（link_id 为空表示非推广成交）
class OrderItem(Base):
    __tablename__ = 'order_item'
    order_item_id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('order.order_id'), nullable=False, index=True)
    inventory_id = Column(Integer, ForeignKey('product_inventory.inventory_id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    link_id = Column(Integer, ForeignKey('influencer_affiliate_link.link_id'), nullable=True, index=True, comment='关联推广链接')
    creation_at = Column(DateTime, default=datetime.now)
    modified_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# 推广链接表（每个KOL+商品仅一条）
class InfluencerAffiliateLink(Base):
    __tablename__ = 'influencer_affiliate_link'
    link_id = Column(Integer, primary_key=True, autoincrement=True)
    affiliate_link = Column(String(512), nullable=False, default='', comment='跟踪链接URL')
    influencer_id = Column(Integer, ForeignKey('influencer.influencer_id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('product.product_id'), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.now)

    __table_args__ = (
        UniqueConstraint('influencer_id', 'product_id', name='uq_link_influencer_product'),
    )


# 结算单表（由结算生成器创建，管理员更新状态）
class KolPayout(Base):
    __tablename__ = 'kol_payout'
    payout_id = Column(Integer, primary_key=True, autoincrement=True)
    kol_id = Column(Integer, ForeignKey('influencer.influencer_id'), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2, asdecimal=False), nullable=False, comment='本次结算总金额')
    payment_status = Column(String(20), nullable=False, default='pending', comment='状态（pending/completed/failed）')
    payout_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True, comment='备注说明')
    created_at = Column(DateTime, default=datetime.now)
    modified_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        # 加速资格检查（按KOL+状态+创建时间过滤）
        Index('idx_payout_kol_status_created', 'kol_id', 'payment_status', 'created_at'),
    )


# 结算单覆盖的订单明细（生成时写入）
class KolPayoutItem(Base):
    __tablename__ = 'kol_payout_item'
    id = Column(Integer, primary_key=True, autoincrement=True)
    payout_id = Column(Integer, ForeignKey('kol_payout.payout_id', ondelete='CASCADE'), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey('order_item.order_item_id'), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey('order.order_id'), nullable=False)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False, comment='该明细佣金')

    __table_args__ = (
        UniqueConstraint('payout_id', 'order_item_id', name='uq_payout_item'),
    )


# 点击/成交计数（按KOL+商品+日）
class KolAffiliateStats(Base):
    __tablename__ = 'kol_affiliate_stats'
    id = Column(Integer, primary_key=True, autoincrement=True)
    kol_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    clicks = Column(Integer, nullable=False, default=0)
    successful_purchases = Column(Integer, nullable=False, default=0)
    conversion_rate = Column(Numeric(7, 2, asdecimal=False), nullable=False, default=0)
    hour_of_day = Column(Integer, nullable=True)
    day_of_week = Column(Integer, nullable=True)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    utm_source = Column(String(100), nullable=True)
    utm_medium = Column(String(100), nullable=True)
    utm_campaign = Column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint('kol_id', 'product_id', 'date', name='uq_stats_kol_product_date'),
    )
