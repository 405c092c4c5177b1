import os
import tempfile
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ["ENVIRONMENT"] = "development"

import coupon_engine.models  # noqa: F401
from coupon_engine.db.base_class import Base
from coupon_engine.db.session import get_db
from coupon_engine.main import app
from coupon_engine.models.coupon import Coupon, DiscountType, ProductInclusionType
from coupon_engine.models.coupon_product import CouponProduct


@pytest.fixture()
def db_engine() -> Generator[Engine, None, None]:
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_file.close()

    engine = create_engine(
        f"sqlite:///{db_file.name}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_file.name)


@pytest.fixture()
def session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def create_coupon(db_session: Session):
    """Insert a coupon row; keyword arguments override the SAVE10 defaults."""

    def _create(code: str = "SAVE10", product_ids=(), **overrides) -> Coupon:
        values = {
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "minimum_order_amount": Decimal("0"),
            "usage_count": 0,
            "is_active": True,
            "first_time_only": False,
            "is_product_specific": bool(product_ids),
            "product_inclusion_type": ProductInclusionType.INCLUDE,
        }
        values.update(overrides)
        coupon = Coupon(code=code, **values)
        db_session.add(coupon)
        db_session.flush()
        for product_id in product_ids:
            db_session.add(CouponProduct(coupon_id=coupon.id, product_id=product_id))
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _create


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
