"""
Shared fixtures

The services take a session factory, so tests hand them an in-memory
session double instead of a Postgres connection. FakeSession understands
the subset of SQLAlchemy the services use: session.get/add/delete/commit
and select(Model).where(...) with comparison, IN, AND and OR clauses.
The client fixture runs the app with its dependencies pointed at the same
store.
"""
import operator
import uuid
from collections import defaultdict
from datetime import date, datetime, time
from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import BinaryExpression, BindParameter, BooleanClauseList, Grouping, Null

from lavtutor.models import Appointment, Evaluation, Notification, Profile, Schedule, User
from lavtutor.models.user import Role
from lavtutor.services.action_guard import ActionGuard
from lavtutor.services.appointment_service import AppointmentService
from lavtutor.services.bulletin import BulletinService
from lavtutor.services.change_feed import DataSync
from lavtutor.services.evaluation_service import EvaluationService
from lavtutor.services.events import EventBus
from lavtutor.services.notifications import NotificationService
from lavtutor.services.profile_service import ProfileService

# Wednesday morning, local wall clock
NOW = datetime(2026, 3, 4, 10, 0)


_OPERATORS = {
    operators.eq: operator.eq,
    operators.ne: operator.ne,
    operators.gt: lambda a, b: a is not None and a > b,
    operators.ge: lambda a, b: a is not None and a >= b,
    operators.lt: lambda a, b: a is not None and a < b,
    operators.le: lambda a, b: a is not None and a <= b,
    operators.in_op: lambda a, b: a in b,
    operators.not_in_op: lambda a, b: a not in b,
    operators.is_: lambda a, b: a is b,
    operators.is_not: lambda a, b: a is not b,
}


def _clause_value(clause):
    if isinstance(clause, BindParameter):
        return clause.effective_value
    if isinstance(clause, Null):
        return None
    if isinstance(clause, Grouping):
        return _clause_value(clause.element)
    raise NotImplementedError(f"Unsupported clause value: {clause!r}")


def _matches(obj, clause) -> bool:
    if clause is None:
        return True
    if isinstance(clause, Grouping):
        return _matches(obj, clause.element)
    if isinstance(clause, BooleanClauseList):
        results = [_matches(obj, c) for c in clause.clauses]
        return all(results) if clause.operator is operators.and_ else any(results)
    if isinstance(clause, BinaryExpression):
        compare = _OPERATORS[clause.operator]
        return compare(getattr(obj, clause.left.key), _clause_value(clause.right))
    raise NotImplementedError(f"Unsupported where clause: {clause!r}")


class FakeResult:
    def __init__(self, rows):
        self._rows = list(rows)

    def scalars(self):
        return self

    def all(self):
        return list(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None

    def scalar_one_or_none(self):
        return self.first()


class FakeStore:
    """Rows by model class, keyed by primary key"""

    def __init__(self):
        self.tables = defaultdict(dict)
        self.commits = 0
        self.fail_commit = False

    @staticmethod
    def _pk_name(model) -> str:
        return sa_inspect(model).primary_key[0].key

    def put(self, obj):
        model = type(obj)
        pk_name = self._pk_name(model)
        if getattr(obj, pk_name) is None:
            setattr(obj, pk_name, uuid.uuid4())
        for column in sa_inspect(model).columns:
            default = column.default
            if default is not None and default.is_scalar and getattr(obj, column.key) is None:
                setattr(obj, column.key, default.arg)
        self.tables[model][getattr(obj, pk_name)] = obj
        return obj

    def remove(self, obj):
        model = type(obj)
        self.tables[model].pop(getattr(obj, self._pk_name(model)), None)

    def all(self, model):
        return list(self.tables[model].values())


class FakeSession:

    def __init__(self, store: FakeStore):
        self.store = store

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def add(self, obj):
        self.store.put(obj)

    def add_all(self, objs):
        for obj in objs:
            self.store.put(obj)

    async def get(self, model, pk):
        return self.store.tables[model].get(pk)

    async def delete(self, obj):
        self.store.remove(obj)

    async def execute(self, stmt):
        entity = stmt.column_descriptions[0]["entity"]
        rows = [row for row in self.store.all(entity) if _matches(row, stmt.whereclause)]
        return FakeResult(rows)

    async def commit(self):
        if self.store.fail_commit:
            raise RuntimeError("database unavailable")
        self.store.commits += 1

    async def rollback(self):
        pass

    async def flush(self):
        pass

    async def refresh(self, obj):
        pass

    async def close(self):
        pass


class FakeSessionFactory:
    def __init__(self, store: FakeStore):
        self.store = store

    def __call__(self):
        return FakeSession(self.store)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def session_factory(store):
    return FakeSessionFactory(store)


@pytest.fixture
def data_sync():
    return DataSync(redis_getter=lambda: None, debounce_ms=0)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def guard():
    return ActionGuard()


@pytest.fixture
def timers():
    timers = MagicMock()
    timers.arm.return_value = True
    return timers


@pytest.fixture
def notifier(session_factory, data_sync):
    return NotificationService(session_factory=session_factory, data_sync=data_sync)


@pytest.fixture
def appointment_service(session_factory, notifier, data_sync, timers, guard, bus):
    return AppointmentService(
        session_factory=session_factory,
        notifier=notifier,
        data_sync=data_sync,
        timers=timers,
        guard=guard,
        events=bus,
        clock=lambda: NOW,
    )


@pytest.fixture
def evaluation_service(session_factory, data_sync, guard, bus, appointment_service):
    return EvaluationService(
        session_factory=session_factory,
        data_sync=data_sync,
        guard=guard,
        events=bus,
        appointments=appointment_service,
    )


@pytest.fixture
def profile_service(session_factory, data_sync):
    return ProfileService(session_factory=session_factory, data_sync=data_sync)


@pytest.fixture
def bulletin(session_factory, data_sync, notifier):
    return BulletinService(session_factory=session_factory, data_sync=data_sync, notifier=notifier, clock=lambda: NOW)

@pytest.fixture
def make_user(store):
    def factory(role: Role = Role.TUTEE, name: str = None, token: str = None) -> User:
        user_id = uuid.uuid4()
        return store.put(User(
            user_id=user_id,
            name=name or f"{role.value.title()} {str(user_id)[:4]}",
            email=f"{user_id}@lav.example",
            role=role.value,
            access_token=token,
        ))
    return factory


@pytest.fixture
def tutor(make_user):
    return make_user(Role.TUTOR, name="Ana Reyes", token="tutor-token")


@pytest.fixture
def tutee(make_user):
    return make_user(Role.TUTEE, name="Ben Cruz", token="tutee-token")


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, name="Admin", token="admin-token")


@pytest.fixture
def make_appointment(store):
    def factory(tutor, tutee, status="pending", on: date = date(2026, 3, 9),
                start: time = time(9, 0), end: time = time(10, 0), **fields) -> Appointment:
        values = dict(
            appointment_id=uuid.uuid4(),
            tutor_id=tutor.user_id,
            user_id=tutee.user_id,
            date=on,
            start_time=start,
            end_time=end,
            subject="Calculus",
            topic="Limits",
            mode_of_session="Online",
            number_of_tutees=1,
            status=status,
        )
        values.update(fields)
        return store.put(Appointment(**values))
    return factory


@pytest.fixture
def make_slot(store):
    def factory(tutor, day="Monday", start=time(8, 0), end=time(12, 0)) -> Schedule:
        return store.put(Schedule(
            schedule_id=uuid.uuid4(), tutor_id=tutor.user_id, day=day, start_time=start, end_time=end,
        ))
    return factory


def notifications_for(store, user) -> list:
    return [n for n in store.all(Notification) if n.user_id == user.user_id]


def evaluations_for(store, appointment) -> list:
    return [e for e in store.all(Evaluation) if e.appointment_id == appointment.appointment_id]


def profile_for(store, tutor, **fields) -> Profile:
    return store.put(Profile(profile_id=uuid.uuid4(), user_id=tutor.user_id, **fields))


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(store, session_factory, data_sync, bus, notifier, appointment_service, evaluation_service,
           profile_service, bulletin):
    """
    TestClient with the database session and service singletons swapped for
    the in-memory doubles. Used without its context manager so the lifespan
    (Redis, scheduler) does not start.
    """
    from fastapi.testclient import TestClient

    from lavtutor.database import get_db
    from lavtutor.services.appointment_service import get_appointment_service
    from lavtutor.services.bulletin import get_bulletin_service
    from lavtutor.services.change_feed import get_data_sync
    from lavtutor.services.evaluation_service import get_evaluation_service
    from lavtutor.services.notifications import get_notification_service
    from lavtutor.services.profile_service import get_profile_service
    from lavtutor.services.reports import ReportService, get_report_service
    from lavtutor.services.schedule_service import ScheduleService, get_schedule_service
    from lavtutor.services.user_service import UserService, get_user_service
    from main import app

    async def override_get_db():
        yield FakeSession(store)

    app.dependency_overrides = {
        get_db: override_get_db,
        get_data_sync: lambda: data_sync,
        get_notification_service: lambda: notifier,
        get_appointment_service: lambda: appointment_service,
        get_evaluation_service: lambda: evaluation_service,
        get_profile_service: lambda: profile_service,
        get_bulletin_service: lambda: bulletin,
        get_schedule_service: lambda: ScheduleService(session_factory=session_factory, data_sync=data_sync),
        get_report_service: lambda: ReportService(session_factory=session_factory, clock=lambda: NOW),
        get_user_service: lambda: UserService(session_factory=session_factory, events=bus),
    }
    yield TestClient(app)
    app.dependency_overrides = {}
