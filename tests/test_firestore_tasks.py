from types import SimpleNamespace

import pytest
from google.api_core.exceptions import FailedPrecondition

from utils.firestore_tasks import FirestoreTaskStore
from worker.task_queue import TaskStatus


class FakeSnapshot:
    def __init__(self, reference, data, update_time):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return None if self._data is None else dict(self._data)


class FakeDocument:
    def __init__(self, db, doc_id):
        self.db = db
        self.id = doc_id

    def get(self):
        snap = FakeSnapshot(self, self.db.docs.get(self.id), self.db.times.get(self.id))
        if self.db.interfere_on_get:
            self.db.interfere_on_get = False
            self.db.touch(self.id)
        return snap

    def set(self, data):
        self.db.docs[self.id] = dict(data)
        self.db.touch(self.id)

    def update(self, data, option=None):
        if option is not None and option.last_update_time != self.db.times.get(self.id):
            raise FailedPrecondition("document changed since read")
        self.db.docs[self.id].update(data)
        self.db.touch(self.id)


class FakeQuery:
    def __init__(self, db, filters=(), order=None, limit=None):
        self.db = db
        self.filters = filters
        self.order = order
        self.max = limit

    def where(self, filter):
        return FakeQuery(self.db, self.filters + (filter,), self.order, self.max)

    def order_by(self, field):
        return FakeQuery(self.db, self.filters, field, self.max)

    def limit(self, n):
        return FakeQuery(self.db, self.filters, self.order, n)

    def stream(self):
        rows = [
            (doc_id, data) for doc_id, data in self.db.docs.items()
            if all(f.op_string == "==" and data.get(f.field_path) == f.value for f in self.filters)
        ]
        if self.order:
            rows.sort(key=lambda row: row[1].get(self.order))
        if self.max is not None:
            rows = rows[:self.max]
        return [FakeSnapshot(FakeDocument(self.db, doc_id), dict(data), self.db.times[doc_id])
                for doc_id, data in rows]


class FakeCollection(FakeQuery):
    def document(self, doc_id):
        return FakeDocument(self.db, doc_id)


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.times = {}
        self.tick = 0
        self.interfere_on_get = False
        self.collections = []

    def touch(self, doc_id):
        self.tick += 1
        self.times[doc_id] = self.tick

    def collection(self, name):
        self.collections.append(name)
        return FakeCollection(self)

    @staticmethod
    def write_option(last_update_time):
        return SimpleNamespace(last_update_time=last_update_time)


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(db, clock):
    return FirestoreTaskStore(client=db, stale_after_s=60, max_attempts=2, clock=clock)


def test_create_writes_document(store, db):
    task = store.create({"fps": 30}, "other")
    assert db.collections == ["analysis_tasks"]
    doc = db.docs[task.task_id]
    assert doc["status"] == "pending"
    assert doc["camera_angle"] == "other"
    assert store.get(task.task_id).pose_sequence == {"fps": 30}
    assert store.get("missing") is None


def test_claim_once(store):
    task = store.create({})
    claimed = store.claim(task.task_id)
    assert claimed.status is TaskStatus.PROCESSING
    assert claimed.attempts == 1
    assert store.claim(task.task_id) is None
    assert store.claim("missing") is None


def test_concurrent_claim_loses(store, db):
    task = store.create({})
    db.interfere_on_get = True
    assert store.claim(task.task_id) is None
    assert store.get(task.task_id).status is TaskStatus.PENDING


def test_load_pending_claims_oldest(store, clock):
    first = store.create({})
    clock.now += 5
    store.create({})
    claimed = store.load_pending()
    assert claimed.task_id == first.task_id
    assert store.get(first.task_id).status is TaskStatus.PROCESSING


def test_save_and_fail(store):
    ok = store.create({})
    store.claim(ok.task_id)
    assert store.save(ok.task_id, {"overall_score": 70}).status is TaskStatus.COMPLETED
    assert store.get(ok.task_id).result == {"overall_score": 70}

    bad = store.create({})
    store.claim(bad.task_id)
    assert store.mark_failed(bad.task_id, "transient").status is TaskStatus.PENDING
    store.claim(bad.task_id)
    assert store.mark_failed(bad.task_id, "transient").status is TaskStatus.FAILED

    with pytest.raises(KeyError):
        store.save("missing", {})


def test_requeue_stale(store, clock):
    task = store.create({})
    store.claim(task.task_id)
    clock.now += 61
    changed = store.requeue_stale()
    assert [t.task_id for t in changed] == [task.task_id]
    assert store.get(task.task_id).status is TaskStatus.PENDING
