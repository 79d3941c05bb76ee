import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REFRESH_SCHEDULER_ENABLED", "false")
os.environ.setdefault("SUPABASE_URL", "https://supabase.test")
os.environ.setdefault("SUPABASE_KEY", "anon-test-key")

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from narra.core.dependencies import get_current_user, get_optional_user
from narra.database.supabase_client import SupabaseClient, get_supabase, get_service_supabase
from narra.main import create_app
from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient, get_scrape_client
from narra.modules.notifications.service import EmailService, get_email_service

SCRAPE_BASE_URL = "https://scrape.test"

# Column that receives the insert timestamp when a row does not carry one
_TIMESTAMP_COLUMNS = {"board_posts": "added_at"}


class FakeResult:
    def __init__(self, data, count: Optional[int] = None):
        self.data = data
        self.count = count


def _split_columns(columns: str) -> List[str]:
    parts, depth, current = [], 0, ""
    for ch in columns:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


class FakeQuery:
    """Subset of the postgrest query builder used by the services, evaluated over dict rows"""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self._op = "select"
        self._columns = "*"
        self._count = None
        self._head = False
        self._payload = None
        self._on_conflict = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: List[tuple] = []
        self._range = None
        self._limit = None
        self._single = None

    # operations
    def select(self, columns: str = "*", count: Optional[str] = None, head: bool = False):
        self._columns = columns
        self._count = count
        self._head = head
        return self

    def insert(self, rows):
        self._op = "insert"
        self._payload = rows
        return self

    def upsert(self, rows, on_conflict: Optional[str] = None):
        self._op = "upsert"
        self._payload = rows
        self._on_conflict = on_conflict
        return self

    def update(self, values: Dict[str, Any]):
        self._op = "update"
        self._payload = values
        return self

    def delete(self):
        self._op = "delete"
        return self

    # filters
    def eq(self, column, value):
        self._filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda r: r.get(column) != value)
        return self

    def lt(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r[column] < value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r[column] <= value)
        return self

    def gt(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r[column] > value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r[column] >= value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda r: r.get(column) in values)
        return self

    # modifiers
    def order(self, column, desc: bool = False):
        self._order.append((column, desc))
        return self

    def range(self, start: int, end: int):
        self._range = (start, end)
        return self

    def limit(self, size: int):
        self._limit = size
        return self

    def maybe_single(self):
        self._single = "maybe"
        return self

    def single(self):
        self._single = "one"
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self._filters)]

    def execute(self):
        if (self.table, self._op) in self.db.fail_on:
            raise Exception(f"simulated {self._op} failure on {self.table}")
        self.db.calls.append((self.table, self._op))
        handler = getattr(self, f"_execute_{self._op}")
        return handler()

    def _execute_select(self):
        rows = self._matching()
        for column, desc in reversed(self._order):
            rows = sorted(rows, key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        total = len(rows)
        if self._range is not None:
            rows = rows[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            rows = rows[:self._limit]
        data = [self.db.project(self.table, r, self._columns) for r in rows]
        count = total if self._count else None
        if self._head:
            data = []
        if self._single == "maybe":
            if not data:
                return None
            if len(data) > 1:
                raise Exception("maybe_single() matched more than one row")
            return FakeResult(data[0], count)
        if self._single == "one":
            if len(data) != 1:
                raise Exception(f"single() matched {len(data)} rows")
            return FakeResult(data[0], count)
        return FakeResult(data, count)

    def _rows_payload(self) -> List[Dict[str, Any]]:
        payload = self._payload if isinstance(self._payload, list) else [self._payload]
        return [dict(row) for row in payload]

    def _execute_insert(self):
        return FakeResult([copy.deepcopy(self.db.add(self.table, row)) for row in self._rows_payload()])

    def _execute_upsert(self):
        keys = [k.strip() for k in (self._on_conflict or "id").split(",")]
        out = []
        for row in self._rows_payload():
            existing = None
            if all(k in row for k in keys):
                existing = next(
                    (r for r in self.db.tables.setdefault(self.table, []) if all(r.get(k) == row[k] for k in keys)),
                    None
                )
            if existing is not None:
                existing.update(row)
                out.append(copy.deepcopy(existing))
            else:
                out.append(copy.deepcopy(self.db.add(self.table, row)))
        return FakeResult(out)

    def _execute_update(self):
        rows = self._matching()
        for row in rows:
            row.update(copy.deepcopy(self._payload))
        return FakeResult([copy.deepcopy(r) for r in rows])

    def _execute_delete(self):
        rows = self._matching()
        self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in rows]
        return FakeResult([copy.deepcopy(r) for r in rows])


class FakeSupabase:
    """In-memory stand-in for the Supabase client.

    Embedded selects such as "*, boards(*)" resolve through foreign keys named
    <singular>_id: a row holding boards' key gets one object, otherwise the
    child rows pointing back at the row are returned as a list.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_on = set()
        self.calls: List[tuple] = []
        self._tick = 0
        self._epoch = datetime.now(timezone.utc)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def now_iso(self) -> str:
        self._tick += 1
        return (self._epoch + timedelta(milliseconds=self._tick)).isoformat()

    def add(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        row = copy.deepcopy(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault(_TIMESTAMP_COLUMNS.get(table, "created_at"), self.now_iso())
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str, **filters) -> List[Dict[str, Any]]:
        return [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in filters.items())
        ]

    def writes(self) -> List[tuple]:
        return [call for call in self.calls if call[1] != "select"]

    def project(self, table: str, row: Dict[str, Any], columns: str) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for part in _split_columns(columns):
            if part == "*":
                out.update(copy.deepcopy(row))
            elif "(" in part:
                name = part[:part.index("(")].strip()
                inner = part[part.index("(") + 1:part.rindex(")")]
                out[name] = self._embed(table, row, name, inner)
            else:
                out[part] = copy.deepcopy(row.get(part))
        return out

    def _embed(self, table: str, row: Dict[str, Any], name: str, columns: str):
        singular = name[:-1] if name.endswith("s") else name
        foreign_key = f"{singular}_id"
        if foreign_key in row:
            target = next((r for r in self.tables.get(name, []) if r.get("id") == row[foreign_key]), None)
            return self.project(name, target, columns) if target else None
        parent_key = f"{table[:-1] if table.endswith('s') else table}_id"
        return [
            self.project(name, r, columns)
            for r in self.tables.get(name, [])
            if r.get(parent_key) == row.get("id")
        ]


def seed_plan(db: FakeSupabase, plan_id: str = "growth", **limits) -> Dict[str, Any]:
    plan_limits = {"profile_discoveries": 100, "transcript_views": 50, "profile_follows": 10}
    plan_limits.update(limits)
    return db.add("plans", {
        "id": plan_id,
        "name": plan_id.title(),
        "description": f"{plan_id} plan",
        "price_monthly": 29.0,
        "price_yearly": 290.0,
        "limits": plan_limits,
        "features": [],
    })


def seed_user(
    db: FakeSupabase,
    user_id: str = "user_1",
    plan_id: Optional[str] = None,
    role: str = "user",
    **fields
) -> Dict[str, Any]:
    row = {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "role": role,
        "plan_id": plan_id,
        "subscription_status": "active" if plan_id else "inactive",
        "monthly_profile_discoveries": 0,
        "monthly_transcripts_viewed": 0,
        "usage_reset_date": (datetime.now(timezone.utc) + timedelta(days=10)).isoformat(),
    }
    row.update(fields)
    return db.add("users", row)


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def http_mock():
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def scrape_client(http_mock):
    client = ScrapeCreatorsClient(
        api_key="scrape-test-key",
        base_url=SCRAPE_BASE_URL,
        cache_ttl=300,
        http_client=httpx.Client(),
    )
    yield client
    client.close()


@pytest.fixture
def email_service(mocker):
    service = mocker.create_autospec(EmailService, instance=True)
    service.send_template.return_value = True
    return service


@pytest.fixture
def app(db, scrape_client, email_service, monkeypatch):
    application = create_app()
    application.dependency_overrides[get_supabase] = lambda: db
    application.dependency_overrides[get_service_supabase] = lambda: db
    application.dependency_overrides[get_scrape_client] = lambda: scrape_client
    application.dependency_overrides[get_email_service] = lambda: email_service
    monkeypatch.setattr(SupabaseClient, "_service_client", db)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_cache(app):
    return app.state.auth_cache


@pytest.fixture
def login(app):
    """Sign a user in by replacing the session check"""

    def _login(user_id: str = "user_1", email: Optional[str] = None):
        user = {"id": user_id, "email": email or f"{user_id}@example.com", "session_id": f"sess_{user_id}"}
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user
        return user

    return _login
