import pytest
from pydantic import ValidationError

from build_orchestrator.models.build import (
    BuildMode,
    BuildPlan,
    BuildReport,
    EnvironmentVariableSet,
    OutcomeStatus,
    Service,
)
from build_orchestrator.models.gitlab import (
    JobRun,
    JobStatus,
    PipelineCreateRequest,
    PipelineRun,
    PipelineStatus,
    PipelineVariable,
)
from build_orchestrator.services.gitlab.log_processor import LogProcessor


class TestEnvironmentVariableSet:
    def test_for_environment_selects_by_prefix(self):
        variables = EnvironmentVariableSet.from_flat({
            "dev.ENV": "pre",
            "dev.API_URL": "https://dev",
            "test.API_URL": "https://test",
        })

        assert variables.for_environment("dev") == {"ENV": "pre", "API_URL": "https://dev"}
        assert variables.for_environment("test") == {"API_URL": "https://test"}

    def test_from_flat_ignores_malformed_keys(self):
        variables = EnvironmentVariableSet.from_flat({
            "nodot": "x",
            "dev.": "y",
            ".NAME": "z",
            "dev.  ": "blank",
        })

        assert variables.flatten() == {}
        assert variables.for_environment("dev") == {}

    def test_variable_names_may_contain_dots(self):
        variables = EnvironmentVariableSet.from_flat({"dev.spring.profile": "dev"})

        assert variables.for_environment("dev") == {"spring.profile": "dev"}

    def test_environment_names_may_contain_dots(self):
        variables = EnvironmentVariableSet.from_flat({
            "dev.eu.API_URL": "https://dev.eu",
            "dev.API_URL": "https://dev",
        })

        assert variables.for_environment("dev.eu") == {"API_URL": "https://dev.eu"}
        assert variables.for_environment("dev")["API_URL"] == "https://dev"

    def test_flatten_restores_flat_form(self):
        flat = {"dev.A": "1", "test.B": "2"}

        assert EnvironmentVariableSet.from_flat(flat).flatten() == flat

    def test_for_environment_returns_copy(self):
        variables = EnvironmentVariableSet.from_flat({"dev.A": "1"})

        sub_map = variables.for_environment("dev")
        sub_map["B"] = "2"

        assert variables.for_environment("dev") == {"A": "1"}
        assert variables.for_environment("prod") == {}


class TestBuildPlan:
    def test_to_request_uses_plan_defaults(self):
        plan = BuildPlan(
            services=[Service(name="a", project_id=1), Service(name="b", project_id=2)],
            environments=["dev", "test"],
            env_variables={"dev.X": "1"},
            build_branch="release",
        )

        request = plan.to_request()

        assert [service.name for service in request.services] == ["a", "b"]
        assert request.environments == ("dev", "test")
        assert request.build_branch == "release"
        assert request.mode == BuildMode.DIRECT
        assert request.variables.for_environment("dev") == {"X": "1"}

    def test_to_request_filters_services_and_environments(self):
        plan = BuildPlan(services=[Service(name="a"), Service(name="b")], environments=["dev"])

        request = plan.to_request(build_branch="main", services=["b"], environments=["test"])

        assert [service.name for service in request.services] == ["b"]
        assert request.environments == ("test",)

    def test_feature_branch_only_kept_when_merging(self):
        plan = BuildPlan(services=[Service(name="a")], feature_branch="feature/x")

        assert plan.to_request(build_branch="release").feature_branch is None
        merged = plan.to_request(build_branch="release", mode=BuildMode.MERGE)
        assert merged.feature_branch == "feature/x"

    def test_plan_from_json(self):
        plan = BuildPlan.model_validate_json(
            '{"services": [{"name": "api", "project_id": 7, "is_api_project": true}],'
            ' "env_variables": {"dev.ENV": "pre"}}'
        )

        assert plan.services[0].is_api_project
        assert plan.environments == ["dev"]

    def test_request_is_frozen(self):
        request = BuildPlan(services=[Service(name="a")]).to_request(build_branch="main")

        with pytest.raises(ValidationError):
            request.build_branch = "other"


class TestBuildReport:
    def test_empty_report_is_successful_noop(self):
        report = BuildReport()

        assert report.succeeded
        assert report.is_noop

    def test_up_to_date_outcomes_do_not_fail_the_report(self):
        report = BuildReport()
        report.add(Service(name="a"), OutcomeStatus.UP_TO_DATE)

        assert report.succeeded
        assert report.is_noop

    def test_skipped_with_error_fails_the_report(self):
        report = BuildReport()
        report.add(Service(name="a"), OutcomeStatus.SKIPPED, "staleness check failed")

        assert not report.succeeded

    def test_failed_outcomes_are_listed(self):
        report = BuildReport()
        report.add(Service(name="a"), OutcomeStatus.SUCCEEDED, environment="dev")
        failed = report.add(Service(name="a"), OutcomeStatus.FAILED, "boom", environment="test")

        assert report.failed == [failed]
        assert failed.label == "a >>> test"
        assert not report.is_noop


class TestGitLabModels:
    def test_pipeline_status_is_case_insensitive(self):
        assert PipelineStatus("Running") == PipelineStatus.RUNNING

    def test_unknown_pipeline_status(self):
        run = PipelineRun(id=1, status="something_new", ref="main")

        assert run.status == PipelineStatus.UNKNOWN
        assert not run.status.is_terminal

    @pytest.mark.parametrize("status", ["success", "failed", "canceled"])
    def test_terminal_states(self, status):
        assert PipelineStatus(status).is_terminal

    def test_job_with_blank_start_has_not_started(self):
        job = JobRun(id=1, name="build", status="created", started_at="")

        assert not job.has_started
        assert JobRun(id=2, name="x", status="running", started_at="2025-01-01T00:00:00Z").has_started

    def test_unknown_job_status(self):
        assert JobRun(id=1, name="build", status="bogus").status == JobStatus.UNKNOWN

    def test_create_request_payload(self):
        request = PipelineCreateRequest(ref="release", variables=[PipelineVariable(key="ENV", value="dev")])

        assert request.to_payload() == {
            "ref": "release",
            "variables": [{"key": "ENV", "value": "dev", "variable_type": "env_var"}],
        }
        assert PipelineCreateRequest(ref="main").to_payload() == {"ref": "main"}


class TestLogProcessor:
    def test_emits_only_new_suffix(self):
        cursors = LogProcessor()

        assert cursors.consume(1, "line 1\n") == "line 1\n"
        assert cursors.consume(1, "line 1\n") is None
        assert cursors.consume(1, "line 1\nline 2\n") == "line 2\n"
        assert cursors.offset(1) == len("line 1\nline 2\n")

    def test_cursors_are_per_job(self):
        cursors = LogProcessor()
        cursors.consume(1, "aaaa")

        assert cursors.consume(2, "bb") == "bb"
        assert cursors.offset(1) == 4

    def test_shrunk_trace_emits_nothing(self):
        cursors = LogProcessor()
        cursors.consume(1, "abcdef")

        assert cursors.consume(1, "abc") is None
        assert cursors.offset(1) == 6
