"""Project and phase lifecycle engines for Projectdock.

Public API:
    Actor, ActorCapabilities, resolve_capabilities: Permission resolution.
    ProjectLifecycle: Project status transitions.
    PhaseLifecycle: Phase batch creation and phase management.
    ActivityRecorder: Audit trail writes and reads.
    PhaseDraft, propose_phases: Phase proposals.
"""

from projectdock.lifecycle.permissions import (
    Actor,
    ActorCapabilities,
    ActorRole,
    resolve_capabilities,
)
from projectdock.lifecycle.activity import ActivityRecorder
from projectdock.lifecycle.phase_source import PhaseDraft, propose_phases
from projectdock.lifecycle.phase_machine import PhaseLifecycle, PhaseUpdate
from projectdock.lifecycle.project_machine import ProjectLifecycle

__all__ = [
    "Actor",
    "ActorCapabilities",
    "ActorRole",
    "resolve_capabilities",
    "ActivityRecorder",
    "PhaseDraft",
    "propose_phases",
    "PhaseLifecycle",
    "PhaseUpdate",
    "ProjectLifecycle",
]
