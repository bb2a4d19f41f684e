"""Behaviour of the design registry, run against both record store backends."""
import pytest

from app.dvr import create_app
from app.dvr.modules.design_verification import DesignRegistry, ErrorCode, MemoryRecordStore, Outcome

AUTHORITY = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"
ALICE = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"
BOB = "ST2JHG361ZXG51QTKY2NQCVBPPRRE2KZB1HR05NNC"


class FakeClock:
    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


@pytest.fixture(params=["memory", "sql"])
def app(request, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("RECORD_STORE", request.param)
    monkeypatch.setenv("AUTHORITY_IDENTITY", AUTHORITY)
    monkeypatch.setenv("DB_CREATE_ALL", "1")
    return create_app()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def registry(app, clock):
    return DesignRegistry(app.extensions["record_store"], authority=AUTHORITY, clock=clock)


def _register(registry, design_id="design-123", caller=ALICE):
    return registry.register(design_id, "Test Design", "1.0.0", "This is a test design specification", caller)


def test_register_creates_pending_design(registry, clock):
    r = _register(registry)
    assert r.ok
    assert r.as_dict() == {"success": True}

    d = registry.get_design("design-123")
    assert d is not None
    assert d.name == "Test Design"
    assert d.version == "1.0.0"
    assert d.specifications == "This is a test design specification"
    assert d.status == "pending"
    assert d.verified_by == ALICE
    assert d.timestamp == clock.now


def test_register_duplicate_fails_and_keeps_original(registry, clock):
    assert _register(registry)
    clock.advance(60)

    r = registry.register("design-123", "Updated Design", "1.0.1", "Updated specifications", BOB)
    assert not r
    assert r.error is ErrorCode.ALREADY_EXISTS
    assert r.as_dict() == {"error": "ALREADY_EXISTS"}

    d = registry.get_design("design-123")
    assert d.name == "Test Design"
    assert d.version == "1.0.0"
    assert d.verified_by == ALICE
    assert d.timestamp == clock.now - 60


def test_approve_records_decision(registry):
    _register(registry)
    r = registry.approve("design-123", "Looks good to me", ALICE)
    assert r == Outcome.success()

    a = registry.get_approval("design-123", ALICE)
    assert a is not None
    assert a.approved is True
    assert a.comments == "Looks good to me"
    assert a.approver == ALICE


def test_reject_is_per_approver(registry):
    _register(registry)
    registry.approve("design-123", "Looks good", ALICE)

    r = registry.reject("design-123", "Not enough detail", BOB)
    assert r.ok

    bob = registry.get_approval("design-123", BOB)
    assert bob.approved is False
    assert bob.comments == "Not enough detail"

    alice = registry.get_approval("design-123", ALICE)
    assert alice.approved is True
    assert alice.comments == "Looks good"


def test_decisions_on_missing_design_fail(registry):
    assert registry.approve("nope", "x", ALICE).error is ErrorCode.NOT_FOUND
    assert registry.reject("nope", "x", ALICE).error is ErrorCode.NOT_FOUND
    assert registry.get_approval("nope", ALICE) is None


def test_later_decision_overwrites_earlier(registry, clock):
    _register(registry)
    registry.approve("design-123", "first pass", ALICE)
    clock.advance(30)
    registry.approve("design-123", "second pass", ALICE)

    a = registry.get_approval("design-123", ALICE)
    assert a.comments == "second pass"
    assert a.timestamp == clock.now

    clock.advance(30)
    registry.reject("design-123", "changed my mind", ALICE)
    a = registry.get_approval("design-123", ALICE)
    assert a.approved is False
    assert a.comments == "changed my mind"
    assert a.timestamp == clock.now


def test_decisions_never_touch_status(registry):
    _register(registry)
    registry.approve("design-123", "ok", ALICE)
    registry.approve("design-123", "ok", AUTHORITY)
    assert registry.get_design("design-123").status == "pending"

    registry.update_status("design-123", "approved", AUTHORITY)
    registry.reject("design-123", "regression found", BOB)
    assert registry.get_design("design-123").status == "approved"


def test_update_status_by_authority(registry):
    _register(registry)
    before = registry.get_design("design-123")

    r = registry.update_status("design-123", "approved", AUTHORITY)
    assert r.ok

    after = registry.get_design("design-123")
    assert after.status == "approved"
    assert after.name == before.name
    assert after.version == before.version
    assert after.specifications == before.specifications
    assert after.verified_by == before.verified_by
    assert after.timestamp == before.timestamp


def test_update_status_unauthorized_leaves_status(registry):
    _register(registry)
    r = registry.update_status("design-123", "approved", ALICE)
    assert r.error is ErrorCode.UNAUTHORIZED
    assert r.as_dict() == {"error": "UNAUTHORIZED"}
    assert registry.get_design("design-123").status == "pending"


def test_registrant_gets_no_status_privilege(registry):
    _register(registry, caller=BOB)
    assert registry.update_status("design-123", "approved", BOB).error is ErrorCode.UNAUTHORIZED


@pytest.mark.parametrize("caller", [AUTHORITY, ALICE])
def test_update_status_missing_design_reports_not_found_first(registry, caller):
    r = registry.update_status("design-999", "approved", caller)
    assert r.error is ErrorCode.NOT_FOUND


def test_any_status_may_follow_any_other(registry):
    _register(registry)
    for status in ("approved", "pending", "rejected", "archived", "pending"):
        assert registry.update_status("design-123", status, AUTHORITY).ok
        assert registry.get_design("design-123").status == status


def test_reads_return_none_when_absent(registry):
    assert registry.get_design("missing") is None
    _register(registry)
    assert registry.get_approval("design-123", BOB) is None


def test_approval_keys_do_not_collide(registry):
    # Keys that would collide if joined with a separator.
    _register(registry, design_id="a:b")
    _register(registry, design_id="a")
    registry.approve("a:b", "first", "c")
    registry.reject("a", "second", "b:c")

    assert registry.get_approval("a:b", "c").comments == "first"
    assert registry.get_approval("a", "b:c").comments == "second"
    assert registry.get_approval("a", "b:c").approved is False


def test_audit_trail_records_successful_changes_only(registry):
    _register(registry)
    _register(registry)  # duplicate, not audited
    registry.approve("design-123", "ok", ALICE)
    registry.approve("design-123", "still ok", ALICE)
    registry.update_status("design-123", "approved", ALICE)  # unauthorized, not audited
    registry.update_status("design-123", "approved", AUTHORITY)
    registry.approve("missing", "x", ALICE)  # not found, not audited

    events = registry.store.audit_events("design-123")
    assert [e.action for e in events] == [
        "design.register",
        "design.approve",
        "design.approve",
        "design.status",
    ]
    assert events[0].actor == ALICE
    assert events[0].metadata == {"name": "Test Design", "version": "1.0.0"}
    assert events[1].metadata["replaced"] is False
    assert events[2].metadata["replaced"] is True
    assert events[3].actor == AUTHORITY
    assert events[3].metadata == {"from": "pending", "to": "approved"}
    assert registry.store.audit_events("missing") == []


def test_authority_is_required():
    with pytest.raises(ValueError):
        DesignRegistry(MemoryRecordStore(), authority="  ")
