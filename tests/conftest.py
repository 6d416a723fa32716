"""Pytest configuration for kol_back tests

Provides an in-memory SQLite database shared by the session and the
TestClient, plus small seed helpers for users, KOLs, products and orders.
"""

import os
import tempfile
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before the app reads its settings
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('LOG_FILE', os.path.join(tempfile.gettempdir(), 'kol_back_test.log'))
os.environ.setdefault('AFFILIATE_SECRET', 'test-secret')
os.environ.setdefault('WEBSITE_URL', 'http://shop.test')

from kol_back.config import Settings, get_settings  # noqa: E402
from kol_back.database import Base, get_db  # noqa: E402
from kol_back.database.models import (  # noqa: E402
    Influencer, InfluencerAffiliateLink, InfluencerTier, Order, OrderItem, Product, ProductInventory, User
)

TEST_SETTINGS = Settings(
    DATABASE_URL='sqlite:///:memory:',
    AFFILIATE_SECRET='test-secret',
    WEBSITE_URL='http://shop.test',
)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(db):
    from kol_back.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ============================================================================
# Seed helpers
# ============================================================================

class Seed:
    def __init__(self, db):
        self.db = db

    def tier(self, name='Gold', rate=5, min_purchases=0):
        tier = InfluencerTier(tier_name=name, commission_rate=rate, min_successful_purchases=min_purchases)
        self.db.add(tier)
        self.db.commit()
        return tier

    def kol(self, username='alice', tier=None, status='active', first_name=None, last_name=None, email=None):
        user = User(username=username, email=email or f'{username}@example.com',
                    first_name=first_name, last_name=last_name)
        self.db.add(user)
        self.db.flush()
        kol = Influencer(user_id=user.user_id, status=status, tier_id=tier.tier_id if tier else None)
        self.db.add(kol)
        self.db.commit()
        return kol

    def product(self, name='Lamp', rate=10, price=50.0, description=None):
        product = Product(name=name, commission_rate=rate, description=description)
        self.db.add(product)
        self.db.flush()
        inventory = ProductInventory(product_id=product.product_id, price=price)
        self.db.add(inventory)
        self.db.commit()
        return product, inventory

    def link(self, kol, product):
        link = InfluencerAffiliateLink(influencer_id=kol.influencer_id, product_id=product.product_id,
                                       affiliate_link=f'http://shop.test/api/track/{kol.influencer_id}')
        self.db.add(link)
        self.db.commit()
        return link

    def order(self, items, status='delivered', created_at=None):
        """items: [(inventory, quantity, link or None)]"""
        created_at = created_at or datetime(2024, 1, 10, 12, 0)
        buyer = User(username=None, email='buyer@example.com')
        self.db.add(buyer)
        self.db.flush()
        order = Order(user_id=buyer.user_id, status=status, creation_at=created_at)
        self.db.add(order)
        self.db.flush()
        for inventory, quantity, link in items:
            self.db.add(OrderItem(
                order_id=order.order_id,
                inventory_id=inventory.inventory_id,
                quantity=quantity,
                link_id=link.link_id if link else None,
                creation_at=created_at,
            ))
        self.db.commit()
        return order


@pytest.fixture
def seed(db):
    return Seed(db)
