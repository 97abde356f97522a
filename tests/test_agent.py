"""Tests for the migration workflow agent and batch runs."""

import pytest
import yaml

from pipeline_migrate.agents import (
    EventKind,
    InvalidTransitionError,
    MigrationAgent,
    MigrationJob,
    WorkflowPhase,
    migrate_batch,
)
from pipeline_migrate.config import DowngradeOptions

from samples import GITHUB_WORKFLOW, GITLAB_CI, JENKINS_XML


class TestMigrationAgent:
    def test_run_to_done(self):
        state = MigrationAgent().run("github", GITHUB_WORKFLOW)
        assert state.phase == WorkflowPhase.DONE
        assert state.succeeded
        assert yaml.safe_load(state.output)["version"] == 1
        assert state.legacy is None

    def test_run_with_downgrade(self):
        agent = MigrationAgent(downgrade_options=DowngradeOptions(project="web"))
        state = agent.run("jenkinsxml", JENKINS_XML, downgrade=True, fmt="json")
        assert state.succeeded
        assert state.legacy is not None
        assert b'"projectIdentifier": "web"' in state.output

    def test_phase_events(self):
        agent = MigrationAgent()
        events = []
        agent.subscribe(events.append)
        agent.run("github", GITHUB_WORKFLOW)
        phases = [e.payload["current"] for e in events if e.kind == EventKind.PHASE_CHANGED]
        assert phases == ["PARSING", "PARSED", "CONVERTING", "CONVERTED", "DONE"]

    def test_degraded_steps_emit_events(self):
        agent = MigrationAgent()
        events = []
        agent.subscribe(events.append)
        agent.run("gitlab", "deploy:\n  trigger: other/project\n")
        degraded = [e for e in events if e.kind == EventKind.STEP_DEGRADED]
        assert degraded[0].payload["construct_kind"] == "gitlab.trigger"

    def test_parse_error_ends_in_error_phase(self):
        state = MigrationAgent().run("github", "jobs: [")
        assert state.phase == WorkflowPhase.ERROR
        assert "Failed to parse github pipeline" in state.error_message
        assert state.output is None

    def test_unsupported_dialect(self):
        state = MigrationAgent().run("travis", "language: python")
        assert state.phase == WorkflowPhase.ERROR
        assert "Unsupported dialect" in state.error_message

    def test_serialization_error_ends_in_error_phase(self):
        state = MigrationAgent().run("github", GITHUB_WORKFLOW, fmt="xml")
        assert state.phase == WorkflowPhase.ERROR
        assert "Unsupported output format" in state.error_message

    def test_convert_before_parse_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            MigrationAgent().convert()

    def test_agent_can_be_reused_after_error(self):
        agent = MigrationAgent()
        agent.run("github", "jobs: [")
        state = agent.run("github", GITHUB_WORKFLOW)
        assert state.succeeded
        assert state.error_message is None


class TestMigrateBatch:
    def test_failed_job_does_not_stop_batch(self):
        jobs = [
            MigrationJob(dialect="github", text="jobs: [", source="broken.yml"),
            MigrationJob(dialect="github", text=GITHUB_WORKFLOW, source="ok.yml"),
        ]
        states = migrate_batch(jobs)
        assert [s.phase for s in states] == [WorkflowPhase.ERROR, WorkflowPhase.DONE]
        assert [s.source for s in states] == ["broken.yml", "ok.yml"]

    def test_jobs_do_not_share_identifier_state(self):
        jobs = [MigrationJob(dialect="github", text=GITHUB_WORKFLOW) for _ in range(2)]
        first, second = migrate_batch(jobs)
        assert first.output == second.output
        assert b"_1\n" not in second.output

    def test_malformed_section_does_not_stop_batch(self):
        jobs = [
            MigrationJob(dialect="circle", text="orbs: [node]\njobs:\n  build:\n    steps:\n      - run: make\n"),
            MigrationJob(dialect="gitlab", text=GITLAB_CI),
        ]
        states = migrate_batch(jobs)
        assert [s.succeeded for s in states] == [False, True]
        assert "`orbs` must be a mapping" in states[0].error_message
