from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import click
from flask import current_app
from flask.cli import AppGroup

from app.dvr.modules.design_verification import DesignRegistry, Outcome

designs_cli = AppGroup("designs", help="Design verification registry operations.")

caller_option = click.option(
    "--caller",
    envvar="DVR_CALLER",
    required=True,
    help="Identity performing the operation (or set DVR_CALLER).",
)


def _registry() -> DesignRegistry:
    return current_app.extensions["design_registry"]


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, sort_keys=True))


def _finish(outcome: Outcome) -> None:
    _emit(outcome.as_dict())
    if not outcome:
        click.get_current_context().exit(1)


@designs_cli.command("register")
@click.argument("design_id")
@click.option("--name", required=True)
@click.option("--version", "version_", required=True, help="Design version label, e.g. 1.0.0.")
@click.option("--specifications", default="", help="Free-form specification text.")
@caller_option
def register_cmd(design_id: str, name: str, version_: str, specifications: str, caller: str) -> None:
    """Register a new design (starts out pending)."""
    _finish(_registry().register(design_id, name, version_, specifications, caller))


@designs_cli.command("approve")
@click.argument("design_id")
@click.option("--comments", default="")
@caller_option
def approve_cmd(design_id: str, comments: str, caller: str) -> None:
    """Record the caller's approval of a design."""
    _finish(_registry().approve(design_id, comments, caller))


@designs_cli.command("reject")
@click.argument("design_id")
@click.option("--comments", default="")
@caller_option
def reject_cmd(design_id: str, comments: str, caller: str) -> None:
    """Record the caller's rejection of a design."""
    _finish(_registry().reject(design_id, comments, caller))


@designs_cli.command("set-status")
@click.argument("design_id")
@click.argument("status")
@caller_option
def set_status_cmd(design_id: str, status: str, caller: str) -> None:
    """Change a design's status (authority only)."""
    _finish(_registry().update_status(design_id, status, caller))


@designs_cli.command("show")
@click.argument("design_id")
def show_cmd(design_id: str) -> None:
    """Print a design as JSON (null when unknown)."""
    d = _registry().get_design(design_id)
    _emit(d.to_dict() if d else None)


@designs_cli.command("show-approval")
@click.argument("design_id")
@click.argument("approver")
def show_approval_cmd(design_id: str, approver: str) -> None:
    """Print one approver's decision on a design as JSON (null when none)."""
    a = _registry().get_approval(design_id, approver)
    _emit(a.to_dict() if a else None)


@designs_cli.command("audit")
@click.argument("design_id", required=False)
def audit_cmd(design_id: str | None) -> None:
    """Dump the audit trail, optionally for one design."""
    events = _registry().store.audit_events(entity_id=design_id)
    _emit([asdict(e) for e in events])
