"""Unit tests for the SyncCoordinator."""

import asyncio

import pytest

from client_tracker.application.interfaces import ConnectivityMonitor, LocalStore, RemoteClient
from client_tracker.application.services import LocalMirror, OfflineQueue, SyncCoordinator
from client_tracker.domain.entities import (
    MutationStatus,
    OperationKind,
    QueuedOperation,
    is_temp_id,
)
from client_tracker.domain.exceptions import (
    ClientError,
    ConnectivityError,
    LocalPersistenceError,
    RemoteRequestError,
    ServerError,
)


# ── Fakes ──


class MemoryStore(LocalStore):
    def __init__(self, data: dict | None = None):
        self.data = dict(data or {})
        self.failing: set[str] = set()

    def read(self, key):
        return self.data.get(key)

    def write(self, key, value):
        if key in self.failing:
            raise LocalPersistenceError(key, "disk full")
        self.data[key] = value


class FakeTrackerApi(RemoteClient):
    """In-memory stand-in for the tracker API.

    ``failures`` are raised (in order) before any request is served;
    ``failure`` is raised for every request while set.
    """

    def __init__(self):
        self.clients: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: list[RemoteRequestError] = []
        self.failure: RemoteRequestError | None = None
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()
        self._next_id = 1

    async def send(self, resource, *, method="GET", payload=None, params=None):
        self.calls.append((method, resource))
        if self.gate is not None:
            self.entered.set()
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.failures:
            raise self.failures.pop(0)
        if self.failure is not None:
            raise self.failure
        return self._serve(method, resource.strip("/").split("/"), payload or {})

    def _serve(self, method, parts, payload):
        if parts == ["clients"]:
            if method == "GET":
                return {"clients": list(self.clients.values())}
            client = {"id": f"srv-{self._next_id}", **payload, "notes": [], "services": [], "documents": []}
            self._next_id += 1
            self.clients[client["id"]] = client
            return {"client": dict(client)}

        client = self.clients.get(parts[1])
        if client is None:
            raise ClientError(404, "Client not found", "/".join(parts))
        if len(parts) == 3:
            client[parts[2]] = [*client[parts[2]], {"id": f"sub-{self._next_id}", **payload}]
            self._next_id += 1
        elif method == "PATCH":
            client.update(payload)
        elif method == "DELETE":
            del self.clients[parts[1]]
            return {}
        return {"client": dict(client)}

    def methods(self) -> list[str]:
        return [f"{method} {resource}" for method, resource in self.calls]


class ManualConnectivity(ConnectivityMonitor):
    """Connectivity driven by the test."""

    async def go_online(self):
        await self._set_online(True)

    async def go_offline(self):
        await self._set_online(False)

    def force(self, online: bool):
        """Change the state without notifying listeners."""
        self._online = online


def _build(online: bool = True, store: MemoryStore | None = None):
    remote = FakeTrackerApi()
    connectivity = ManualConnectivity(online=online)
    store = store or MemoryStore()
    coordinator = SyncCoordinator(remote, store, connectivity)
    return coordinator, remote, connectivity, store


def _create(**payload) -> QueuedOperation:
    return QueuedOperation(
        kind=OperationKind.CREATE, resource="/clients", entity_key="client", payload=payload
    )


def _update(client_id: str, **payload) -> QueuedOperation:
    return QueuedOperation(
        kind=OperationKind.UPDATE,
        resource=f"/clients/{client_id}",
        entity_key="client",
        target_id=client_id,
        payload=payload,
    )


def _delete(client_id: str) -> QueuedOperation:
    return QueuedOperation(
        kind=OperationKind.DELETE,
        resource=f"/clients/{client_id}",
        entity_key="client",
        target_id=client_id,
    )


def _note(client_id: str, content: str) -> QueuedOperation:
    return QueuedOperation(
        kind=OperationKind.APPEND,
        resource=f"/clients/{client_id}/notes",
        entity_key="client",
        target_id=client_id,
        payload={"content": content},
        collection="notes",
    )


# ── Live mutations ──


@pytest.mark.asyncio
async def test_live_create_is_confirmed():
    coordinator, remote, _, _ = _build()
    await coordinator.init()

    result = await coordinator.mutate(_create(name="Acme"))

    assert result.status is MutationStatus.CONFIRMED
    assert result.record.id == "srv-1"
    assert result.record.provisional is False
    assert result.completion is None
    assert len(coordinator.queue) == 0
    assert [r.id for r in coordinator.mirror.snapshot()] == ["srv-1"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [ConnectivityError("connection refused"), ServerError(503, "unavailable")],
)
async def test_transient_failure_queues_exactly_once(failure):
    coordinator, remote, connectivity, _ = _build()
    await coordinator.init()
    remote.failures = [failure]

    result = await coordinator.mutate(_create(name="Acme"))

    assert result.status is MutationStatus.QUEUED
    assert [op.id for op in coordinator.queue.peek_all()] == [result.operation.id]
    assert remote.methods() == ["POST /clients"]
    assert connectivity.is_online is False


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 422])
async def test_client_error_is_surfaced_and_never_queued(status_code):
    coordinator, remote, _, store = _build()
    await coordinator.init()
    remote.failures = [ClientError(status_code, "rejected")]

    with pytest.raises(ClientError):
        await coordinator.mutate(_create(name=""))

    assert len(coordinator.queue) == 0
    assert len(coordinator.mirror) == 0
    assert store.data.get(OfflineQueue.STORAGE_KEY) in (None, [])


@pytest.mark.asyncio
async def test_offline_mutation_is_queued_without_a_network_call():
    coordinator, remote, _, _ = _build(online=False)
    await coordinator.init()

    result = await coordinator.mutate(_create(name="Acme"))

    assert result.is_queued
    assert remote.calls == []


@pytest.mark.asyncio
async def test_mutation_on_entity_with_queued_work_is_queued_even_when_online():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    remote.clients["c1"] = {"id": "c1", "name": "Acme", "notes": [], "services": [], "documents": []}
    await coordinator.mutate(_update("c1", name="First"))
    connectivity.force(True)

    result = await coordinator.mutate(_update("c1", name="Second"))
    other = await coordinator.mutate(_create(name="Unrelated"))

    assert result.is_queued
    assert other.is_confirmed
    assert remote.methods() == ["POST /clients"]


@pytest.mark.asyncio
async def test_live_delete_removes_record():
    coordinator, _, _, _ = _build()
    await coordinator.init()
    created = await coordinator.mutate(_create(name="Acme"))

    result = await coordinator.mutate(_delete(created.record.id))

    assert result.is_confirmed
    assert result.record is None
    assert len(coordinator.mirror) == 0


# ── Optimistic mirror ──


@pytest.mark.asyncio
async def test_provisional_record_is_replaced_after_drain():
    """createClient({name: "Acme"}) failing with ServerError, then a successful drain."""
    coordinator, remote, connectivity, _ = _build()
    await coordinator.init()
    remote.failures = [ServerError(500, "Internal Server Error")]

    queued = await coordinator.mutate(_create(name="Acme"))

    records = coordinator.mirror.snapshot()
    assert len(records) == 1
    assert is_temp_id(records[0].id)
    assert records[0].provisional is True
    assert queued.record.id == records[0].id

    await connectivity.go_online()
    report = await coordinator.drain()

    records = coordinator.mirror.snapshot()
    assert report.delivered == 1
    assert len(records) == 1
    assert records[0].id == "srv-1"
    assert records[0].provisional is False
    assert records[0].fields["name"] == "Acme"

    confirmed = await queued.completion
    assert confirmed.is_confirmed
    assert confirmed.record.id == "srv-1"


@pytest.mark.asyncio
async def test_offline_update_and_note_are_provisional_until_drained():
    coordinator, remote, connectivity, _ = _build()
    await coordinator.init()
    created = await coordinator.mutate(_create(name="Acme", status="New"))
    client_id = created.record.id
    await connectivity.go_offline()

    updated = await coordinator.mutate(_update(client_id, status="Active"))
    noted = await coordinator.mutate(_note(client_id, "Call back Monday"))

    assert updated.record.provisional is True
    assert updated.record.fields["status"] == "Active"
    assert noted.record.notes[0]["provisional"] is True

    await connectivity.go_online()
    await coordinator.drain()

    record = coordinator.mirror.get(client_id)
    assert record.provisional is False
    assert record.fields["status"] == "Active"
    assert [n["content"] for n in record.notes] == ["Call back Monday"]
    assert not is_temp_id(record.notes[0]["id"])


@pytest.mark.asyncio
async def test_offline_delete_is_applied_optimistically():
    coordinator, remote, connectivity, _ = _build()
    await coordinator.init()
    created = await coordinator.mutate(_create(name="Acme"))
    await connectivity.go_offline()

    result = await coordinator.mutate(_delete(created.record.id))

    assert result.is_queued
    assert len(coordinator.mirror) == 0

    await connectivity.go_online()
    await coordinator.drain()
    assert remote.clients == {}


# ── Draining ──


@pytest.mark.asyncio
async def test_drain_of_empty_queue_never_calls_the_backend():
    coordinator, remote, _, _ = _build()
    await coordinator.init()

    report = await coordinator.drain()

    assert report.attempted == 0
    assert remote.calls == []


@pytest.mark.asyncio
async def test_drain_replays_in_enqueue_order():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    await coordinator.mutate(_create(name="A"))
    await coordinator.mutate(_create(name="B"))

    await connectivity.go_online()
    await coordinator.drain()

    assert [c["name"] for c in remote.clients.values()] == ["A", "B"]
    assert remote.methods() == ["POST /clients", "POST /clients"]


@pytest.mark.asyncio
async def test_operations_on_a_provisional_record_follow_its_server_id():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    created = await coordinator.mutate(_create(name="Draft"))
    temp_id = created.record.id
    await coordinator.mutate(_update(temp_id, name="Final"))
    await coordinator.mutate(_note(temp_id, "First visit"))

    await connectivity.go_online()
    report = await coordinator.drain()

    assert report.delivered == 3
    assert remote.methods() == ["POST /clients", "PATCH /clients/srv-1", "POST /clients/srv-1/notes"]
    records = coordinator.mirror.snapshot()
    assert len(records) == 1
    assert records[0].id == "srv-1"
    assert records[0].fields["name"] == "Final"
    assert records[0].provisional is False


@pytest.mark.asyncio
async def test_concurrent_drains_attempt_each_operation_once():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    await coordinator.mutate(_create(name="A"))
    await coordinator.mutate(_create(name="B"))
    connectivity.force(True)

    first, second = await asyncio.gather(coordinator.drain(), coordinator.drain())

    assert remote.methods() == ["POST /clients", "POST /clients"]
    assert first.delivered == 2
    assert second is first


@pytest.mark.asyncio
async def test_reconnect_triggers_exactly_one_drain():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    await coordinator.mutate(_create(name="Oak St Job", email="a@b.com"))

    await connectivity.go_online()
    await connectivity.go_online()  # no transition, no second drain
    await coordinator.drain()

    assert remote.methods() == ["POST /clients"]
    assert len(coordinator.queue) == 0


@pytest.mark.asyncio
async def test_transient_failure_during_drain_keeps_operation_queued():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    queued = await coordinator.mutate(_create(name="A"))
    connectivity.force(True)
    remote.failures = [ServerError(502, "Bad Gateway")]

    report = await coordinator.drain()

    assert report.retried == 1
    assert len(coordinator.queue) == 1
    assert not queued.completion.done()
    assert coordinator.mirror.get(queued.record.id).provisional is True
    assert connectivity.is_online is False

    await connectivity.go_online()
    await coordinator.drain()
    assert (await queued.completion).is_confirmed


@pytest.mark.asyncio
async def test_rejected_create_removes_provisional_record_and_fails_completion():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    queued = await coordinator.mutate(_create(name=""))
    follow_up = await coordinator.mutate(_update(queued.record.id, name="x"))
    connectivity.force(True)
    remote.failures = [ClientError(400, "Please provide client name")]

    report = await coordinator.drain()

    assert report.rejected == 2
    assert remote.methods() == ["POST /clients"]
    assert len(coordinator.mirror) == 0
    with pytest.raises(ClientError):
        await queued.completion
    with pytest.raises(ClientError):
        await follow_up.completion


@pytest.mark.asyncio
async def test_rejected_update_rolls_back_to_server_version():
    coordinator, remote, connectivity, _ = _build()
    await coordinator.init()
    created = await coordinator.mutate(_create(name="Acme"))
    client_id = created.record.id
    await connectivity.go_offline()
    await coordinator.mutate(_update(client_id, email="not-an-email"))
    connectivity.force(True)
    remote.failures = [ClientError(400, "Please provide a valid email")]

    await coordinator.drain()

    record = coordinator.mirror.get(client_id)
    assert record.provisional is False
    assert "email" not in record.fields
    assert remote.methods()[-1] == f"GET /clients/{client_id}"


@pytest.mark.asyncio
async def test_work_queued_during_a_drain_is_delivered_in_a_follow_up_pass():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    await coordinator.mutate(_create(name="A"))
    second = await coordinator.mutate(_create(name="B"))
    connectivity.force(True)
    remote.gate = asyncio.Event()

    drain = asyncio.create_task(coordinator.drain())
    await remote.entered.wait()
    late = await coordinator.mutate(_update(second.record.id, name="B2"))
    remote.gate.set()
    report = await drain

    assert late.is_queued
    assert report.delivered == 3
    assert remote.methods() == ["POST /clients", "POST /clients", "PATCH /clients/srv-2"]
    assert coordinator.mirror.get("srv-2").fields["name"] == "B2"
    assert len(coordinator.queue) == 0


@pytest.mark.asyncio
async def test_change_waiting_on_a_draining_create_uses_the_server_id():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    created = await coordinator.mutate(_create(name="A"))
    connectivity.force(True)
    remote.gate = asyncio.Event()

    drain = asyncio.create_task(coordinator.drain())
    await remote.entered.wait()
    late = asyncio.create_task(coordinator.mutate(_update(created.record.id, name="B")))
    await asyncio.sleep(0)
    remote.gate.set()
    await drain
    await late

    assert remote.methods() == ["POST /clients", "PATCH /clients/srv-1"]
    assert coordinator.mirror.get("srv-1").fields["name"] == "B"
    assert len(coordinator.mirror) == 1
    assert len(coordinator.queue) == 0
    assert coordinator._entity_locks == {}
    assert coordinator._aliases == {}


# ── Lifecycle and cancellation ──


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_in_flight_request():
    coordinator, remote, _, _ = _build()
    await coordinator.init()
    remote.gate = asyncio.Event()

    task = asyncio.create_task(coordinator.mutate(_create(name="Acme")))
    await remote.entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    remote.gate.set()
    await coordinator.teardown()

    assert [r.id for r in coordinator.mirror.snapshot()] == ["srv-1"]


@pytest.mark.asyncio
async def test_init_restores_state_and_flushes_queue():
    first, _, _, store = _build(online=False)
    await first.init()
    queued = await first.mutate(_create(name="Survivor"))
    await first.teardown()

    coordinator, remote, _, _ = _build(online=True, store=store)
    await coordinator.init()

    assert remote.methods() == ["POST /clients"]
    records = coordinator.mirror.snapshot()
    assert [r.id for r in records] == ["srv-1"]
    assert records[0].id != queued.record.id
    assert len(coordinator.queue) == 0


@pytest.mark.asyncio
async def test_teardown_stops_reacting_to_connectivity():
    coordinator, remote, connectivity, _ = _build(online=False)
    await coordinator.init()
    await coordinator.mutate(_create(name="A"))
    await coordinator.teardown()

    await connectivity.go_online()
    await asyncio.sleep(0)

    assert remote.calls == []


# ── Local storage failures ──


@pytest.mark.asyncio
async def test_queued_change_is_withdrawn_when_the_mirror_cannot_store_it():
    coordinator, remote, connectivity, store = _build(online=False)
    await coordinator.init()
    store.failing.add(LocalMirror.STORAGE_KEY)

    with pytest.raises(LocalPersistenceError):
        await coordinator.mutate(_create(name="Acme"))

    assert len(coordinator.queue) == 0
    assert store.data[OfflineQueue.STORAGE_KEY] == []
    assert len(coordinator.mirror) == 0
    assert coordinator._completions == {}

    store.failing.clear()
    await connectivity.go_online()
    await coordinator.drain()

    assert remote.calls == []


@pytest.mark.asyncio
async def test_drain_recovers_after_the_queue_cannot_be_stored():
    coordinator, remote, connectivity, store = _build(online=False)
    await coordinator.init()
    first = await coordinator.mutate(_create(name="A"))
    second = await coordinator.mutate(_create(name="B"))
    connectivity.force(True)
    store.failing.add(OfflineQueue.STORAGE_KEY)

    with pytest.raises(LocalPersistenceError):
        await coordinator.drain()

    assert not coordinator.is_draining
    assert (await first.completion).record.id == "srv-1"
    assert [op.id for op in coordinator.queue.peek_all()] == [second.operation.id]

    store.failing.clear()
    report = await coordinator.drain()

    assert report.delivered == 1
    assert remote.methods() == ["POST /clients", "POST /clients"]
    assert store.data[OfflineQueue.STORAGE_KEY] == []
    assert sorted(r.id for r in coordinator.mirror.snapshot()) == ["srv-1", "srv-2"]


# ── Bookkeeping ──


@pytest.mark.asyncio
async def test_entity_locks_and_aliases_do_not_outlive_their_users():
    coordinator, _, connectivity, _ = _build()
    await coordinator.init()

    for n in range(200):
        created = await coordinator.mutate(_create(name=f"C{n}"))
        await coordinator.mutate(_update(created.record.id, name=f"D{n}"))

    assert coordinator._entity_locks == {}
    assert coordinator._aliases == {}

    await connectivity.go_offline()
    queued = await coordinator.mutate(_create(name="Late"))
    await coordinator.mutate(_update(queued.record.id, name="Later"))
    await connectivity.go_online()
    await coordinator.drain()

    assert len(coordinator.queue) == 0
    assert len(coordinator.mirror) == 201
    assert coordinator._entity_locks == {}
    assert coordinator._aliases == {}
