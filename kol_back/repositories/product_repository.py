from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..database.models import OrderItem, Product, ProductInventory


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.product_id == product_id).first()

    # 可推广商品（佣金比例>0），附最低价与销量
    def list_commission_products(self, page: int, limit: int, search: Optional[str] = None) -> Tuple[List, int]:
        min_price = self.db.query(func.min(ProductInventory.price)) \
                           .filter(ProductInventory.product_id == Product.product_id) \
                           .correlate(Product) \
                           .scalar_subquery()
        sold_count = self.db.query(func.count(OrderItem.order_item_id.distinct())) \
                            .join(ProductInventory, ProductInventory.inventory_id == OrderItem.inventory_id) \
                            .filter(ProductInventory.product_id == Product.product_id) \
                            .correlate(Product) \
                            .scalar_subquery()

        query = self.db.query(Product).filter(Product.commission_rate > 0)
        if search:
            keyword = f'%{search}%'
            query = query.filter(or_(Product.name.like(keyword), Product.description.like(keyword)))
        total = query.count()
        records = query.add_columns(min_price.label('min_price'), sold_count.label('sold_count')) \
                       .order_by(Product.modified_at.desc(), Product.product_id.desc()) \
                       .offset((page - 1) * limit) \
                       .limit(limit) \
                       .all()
        return records, total
