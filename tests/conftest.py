"""Pytest fixtures for testing"""

import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from xiaoe_gateway.api.main import create_app
from xiaoe_gateway.infrastructure.clients.mock_payment import MockPaymentProvider
from xiaoe_gateway.infrastructure.database.models import Base
from xiaoe_gateway.infrastructure.database.session import get_db
from xiaoe_gateway.infrastructure.database.repositories import UserRepository
from xiaoe_gateway.infrastructure.security.passwords import hash_password
from xiaoe_gateway.domain.exceptions import UserExistsError
from xiaoe_gateway.domain.models import (
    CommentSection,
    OrderStatus,
    PendingOrder,
    StudentComment,
    StudentProfile,
    User,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PAYMENT_SECRET = "test-secret"


class FakeGenerator:
    """Stands in for GenerationGateway and counts invocations"""

    def __init__(self, result: Optional[List[Any]] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def invoke(self, model: str, prompt: str, expect_strings: bool) -> List[Any]:
        self.calls.append({"model": model, "prompt": prompt, "expect_strings": expect_strings})
        if self.error is not None:
            raise self.error
        return self.result

    def vendor_status(self) -> Dict[str, bool]:
        return {"fake": True}


class InMemoryUserStore:
    """Dict-backed UserStore; increments are atomic because they never await"""

    def __init__(self):
        self.users: Dict[str, User] = {}

    def get(self, username: str) -> Optional[User]:
        user = self.users.get(username)
        return User(user.username, user.password_hash, user.credits) if user else None

    def create(self, user: User) -> User:
        if user.username in self.users:
            raise UserExistsError(user.username)
        self.users[user.username] = User(user.username, user.password_hash, user.credits)
        return user

    def increment_credits(self, username: str, delta: int) -> Optional[int]:
        user = self.users.get(username)
        if user is None or user.credits + delta < 0:
            return None
        user.credits += delta
        return user.credits


class InMemoryOrderStore:
    def __init__(self):
        self.orders: Dict[str, PendingOrder] = {}

    def create(self, order: PendingOrder) -> PendingOrder:
        self.orders[order.order_id] = order
        return order

    def get(self, order_id: str) -> Optional[PendingOrder]:
        return self.orders.get(order_id)

    def _transition(self, order_id: str, target: OrderStatus) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.status != OrderStatus.PENDING:
            return False
        order.status = target
        return True

    def mark_paid(self, order_id: str) -> bool:
        return self._transition(order_id, OrderStatus.PAID)

    def mark_cancelled(self, order_id: str) -> bool:
        return self._transition(order_id, OrderStatus.CANCELLED)


def make_comment(name: str) -> StudentComment:
    return StudentComment(
        student_name=name,
        intro=f"{name}是一个认真的学生。",
        body=[CommentSection(source="认真", text="你做事一丝不苟。")],
        conclusion="继续加油！",
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(result=[make_comment("张三"), make_comment("李四")])


@pytest.fixture
def payment_provider() -> MockPaymentProvider:
    """Mock provider without automatic settlement"""
    return MockPaymentProvider(TEST_PAYMENT_SECRET, delay=0.0)


@pytest.fixture
def client(db: Session, generator: FakeGenerator, payment_provider: MockPaymentProvider) -> TestClient:
    """Create FastAPI test client with test database and fake providers"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.generation_gateway = generator
    app.state.payment_provider = payment_provider
    return TestClient(app)


@pytest.fixture
def make_user(db: Session):
    """Insert a user with a given balance directly through the repository"""

    def _make_user(username: str, credits: int = 50, password: str = "pw") -> User:
        user = UserRepository(db).create(User(username=username, password_hash=hash_password(password), credits=credits))
        db.commit()
        return user

    return _make_user


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def profiles() -> List[StudentProfile]:
    return [
        StudentProfile(name="张三", role="班长", incidents="运动会带队夺冠", tags="认真,乐于助人"),
        StudentProfile(name="李四", role="none", incidents="none", tags="活泼"),
    ]
