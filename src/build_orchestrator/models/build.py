"""Build request, plan and outcome models."""

from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class Service(BaseModel):
    """One buildable unit: a local working copy plus its GitLab project."""
    model_config = ConfigDict(frozen=True)

    name: str
    git_repo_path: Optional[str] = None
    project_id: Optional[Union[int, str]] = None
    is_api_project: bool = False


class BuildMode(str, Enum):
    """How a build request is executed."""
    DIRECT = "direct"
    MERGE = "merge"


class EnvironmentVariableSet(BaseModel):
    """Pipeline variables per target environment.

    Kept in the flattened ``environment.NAME`` form, e.g. ``{"dev.ENV": "pre"}``,
    and resolved by environment prefix so environment names may contain dots.
    """
    model_config = ConfigDict(frozen=True)

    variables: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_flat(cls, flat: Mapping[str, str]) -> "EnvironmentVariableSet":
        variables: Dict[str, str] = {}
        for key, value in flat.items():
            environment, sep, name = key.partition(".")
            if not sep or not environment or not name.strip():
                continue
            variables[key] = value
        return cls(variables=variables)

    def flatten(self) -> Dict[str, str]:
        return dict(self.variables)

    def for_environment(self, environment: str) -> Dict[str, str]:
        """Return a copy of the variables configured for one environment."""
        prefix = f"{environment}."
        resolved: Dict[str, str] = {}
        for key, value in self.variables.items():
            name = key[len(prefix):]
            if key.startswith(prefix) and name.strip():
                resolved[name] = value
        return resolved


class BuildRequest(BaseModel):
    """Immutable snapshot of one orchestrator run."""
    model_config = ConfigDict(frozen=True)

    services: Tuple[Service, ...]
    environments: Tuple[str, ...]
    build_branch: str
    feature_branch: Optional[str] = None
    mode: BuildMode = BuildMode.DIRECT
    variables: EnvironmentVariableSet = Field(default_factory=EnvironmentVariableSet)

    @property
    def api_services(self) -> List[Service]:
        return [service for service in self.services if service.is_api_project]

    @property
    def regular_services(self) -> List[Service]:
        return [service for service in self.services if not service.is_api_project]


class OutcomeStatus(str, Enum):
    """Result of one (service, environment) entry in a build report."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    UP_TO_DATE = "up_to_date"


class BuildOutcome(BaseModel):
    """Outcome for one service, optionally for one environment."""
    service: str
    environment: Optional[str] = None
    status: OutcomeStatus
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @property
    def label(self) -> str:
        if self.environment:
            return f"{self.service} >>> {self.environment}"
        return self.service


class BuildReport(BaseModel):
    """Aggregated result of an orchestrator run."""
    outcomes: List[BuildOutcome] = Field(default_factory=list)
    aborted: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        if self.aborted:
            return False
        return all(
            outcome.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.UP_TO_DATE)
            for outcome in self.outcomes
        )

    @property
    def is_noop(self) -> bool:
        """True when no pipeline was triggered."""
        return not any(
            outcome.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.FAILED)
            for outcome in self.outcomes
        )

    @property
    def failed(self) -> List[BuildOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == OutcomeStatus.FAILED]

    def add(
        self,
        service: Service,
        status: OutcomeStatus,
        message: str = "",
        environment: Optional[str] = None,
    ) -> BuildOutcome:
        outcome = BuildOutcome(
            service=service.name,
            environment=environment,
            status=status,
            message=message,
        )
        self.outcomes.append(outcome)
        return outcome


class BuildPlan(BaseModel):
    """Services, environments and variables a build is selected from.

    Usually loaded from a JSON file handed over by the surrounding tooling.
    """
    services: List[Service] = Field(default_factory=list)
    environments: List[str] = Field(default_factory=lambda: ["dev"])
    env_variables: Dict[str, str] = Field(default_factory=dict)
    build_branch: Optional[str] = None
    feature_branch: Optional[str] = None

    def select_services(self, names: Optional[Iterable[str]] = None) -> List[Service]:
        if not names:
            return list(self.services)
        wanted = set(names)
        return [service for service in self.services if service.name in wanted]

    def to_request(
        self,
        build_branch: Optional[str] = None,
        feature_branch: Optional[str] = None,
        mode: BuildMode = BuildMode.DIRECT,
        services: Optional[Iterable[str]] = None,
        environments: Optional[Sequence[str]] = None,
    ) -> BuildRequest:
        feature = None
        if mode == BuildMode.MERGE:
            feature = (feature_branch or self.feature_branch or "").strip() or None
        return BuildRequest(
            services=tuple(self.select_services(services)),
            environments=tuple(environments if environments else self.environments),
            build_branch=(build_branch or self.build_branch or "").strip(),
            feature_branch=feature,
            mode=mode,
            variables=EnvironmentVariableSet.from_flat(self.env_variables),
        )
