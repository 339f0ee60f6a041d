"""Record types for the workflow state and batch session files."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from stackshift.constants import ROUTE_DESCRIPTIONS, STATE_VERSION, STEP_IDS

StepId = Literal[
    "analyze",
    "reverse-engineer",
    "create-specs",
    "gap-analysis",
    "complete-spec",
    "implement",
]
Route = Literal["greenfield", "brownfield"]
StepStatus = Literal["in_progress", "completed"]

# Top-level keys written by older tools, folded into ``config`` on load
LEGACY_CONFIG_KEYS = ("auto_mode", "auto_config", "modernize")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def next_step(step: str, completed: list[str]) -> Optional[str]:
    """Find the first step after ``step`` that is not completed.

    Args:
        step: Step that just finished
        completed: Steps already completed

    Returns:
        Next step ID, or None when everything after ``step`` is done
    """
    index = STEP_IDS.index(step)
    for candidate in STEP_IDS[index + 1:]:
        if candidate not in completed:
            return candidate
    return None


class _CamelModel(BaseModel):
    """Base for documents stored with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


class WorkflowOptions(BaseModel):
    """Workflow options shared by the state config and batch answers.

    Only these keys are accepted; anything else is a validation error.
    """

    model_config = ConfigDict(extra="forbid")

    route: Optional[Route] = None
    detection_type: Optional[
        Literal["generic", "monorepo-service", "nx-app", "turborepo-package", "lerna-package"]
    ] = None
    brownfield_mode: Optional[Literal["standard", "upgrade"]] = None
    transmission: Optional[Literal["manual", "cruise-control"]] = None
    clarifications_strategy: Optional[Literal["defer", "prompt", "skip"]] = None
    implementation_scope: Optional[Literal["none", "p0", "p0_p1", "all"]] = None
    spec_output_location: Optional[str] = None
    target_stack: Optional[str] = None
    build_location: Optional[str] = None
    build_location_type: Optional[Literal["subfolder", "separate", "replace"]] = None

    def to_document(self) -> dict[str, Any]:
        """Serialize only the options that are set."""
        return self.model_dump(mode="json", exclude_none=True)


class WorkflowConfig(WorkflowOptions):
    """Per-directory workflow options, including cruise-control flags."""

    auto_mode: Optional[bool] = None
    pause_between_gears: Optional[bool] = None
    modernize: Optional[bool] = None


class BatchAnswers(WorkflowOptions):
    """Configuration answers collected once and reused across a batch."""


class StepDetail(BaseModel):
    """Audit trail entry for one step."""

    model_config = ConfigDict(extra="forbid")

    started: Optional[datetime] = None
    completed: Optional[datetime] = None
    status: StepStatus = "in_progress"
    details: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_extra_keys(cls, data: Any) -> Any:
        # Older entries carry their details inline
        if not isinstance(data, dict):
            return data
        extra = {key: value for key, value in data.items() if key not in cls.model_fields}
        if not extra:
            return data
        folded = {key: value for key, value in data.items() if key in cls.model_fields}
        details = folded.get("details", {})
        if isinstance(details, dict):
            folded["details"] = {**extra, **details}
        return folded


class Metadata(_CamelModel):
    """Project identity recorded in the state file."""

    project_name: str = Field(min_length=1)
    project_path: str = Field(min_length=1)
    path_description: Optional[str] = None


class WorkflowState(_CamelModel):
    """The per-directory workflow state document.

    Attributes:
        version: Schema version (must equal STATE_VERSION)
        created: Creation time
        updated: Last write time
        route: Greenfield/brownfield classification (legacy key: ``path``)
        current_step: Step in progress, or None
        completed_steps: Completed steps in completion order
        metadata: Project identity
        config: Allow-listed workflow options
        step_details: Per-step audit trail
    """

    version: str
    created: datetime
    updated: datetime
    route: Optional[Route] = Field(
        default=None,
        validation_alias=AliasChoices("route", "path"),
    )
    current_step: Optional[StepId] = None
    completed_steps: list[StepId] = Field(default_factory=list)
    metadata: Metadata
    config: WorkflowConfig = Field(default_factory=WorkflowConfig)
    step_details: dict[StepId, StepDetail] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_legacy_config(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not any(key in data for key in LEGACY_CONFIG_KEYS):
            return data

        data = dict(data)
        config = data.get("config")
        if config is None:
            config = {}
        elif isinstance(config, WorkflowConfig):
            config = config.to_document()
        elif isinstance(config, dict):
            config = dict(config)
        else:
            return data

        auto_config = data.pop("auto_config", None)
        if isinstance(auto_config, dict):
            for key, value in auto_config.items():
                if key in WorkflowConfig.model_fields:
                    config.setdefault(key, value)

        for key in ("auto_mode", "modernize"):
            if key in data:
                config.setdefault(key, data.pop(key))

        data["config"] = config
        return data

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if value != STATE_VERSION:
            raise ValueError(f"Unsupported state version: {value}")
        return value

    @field_validator("completed_steps")
    @classmethod
    def _check_unique_steps(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("completedSteps contains duplicates")
        return value

    @model_validator(mode="after")
    def _check_current_step(self) -> "WorkflowState":
        if self.current_step is not None and self.current_step in self.completed_steps:
            raise ValueError(f"currentStep {self.current_step} is already completed")
        return self

    def to_document(self) -> dict[str, Any]:
        document = super().to_document()
        document["config"] = self.config.to_document()
        return document

    @classmethod
    def default(cls, directory: Path, route: Optional[str] = None) -> "WorkflowState":
        """Create a fresh, not-started state for a directory.

        Args:
            directory: Absolute project directory
            route: Optional route to record

        Returns:
            WorkflowState with no current or completed steps
        """
        now = utc_now()
        return cls(
            version=STATE_VERSION,
            created=now,
            updated=now,
            route=route,
            current_step=None,
            completed_steps=[],
            metadata=Metadata(
                project_name=directory.name or str(directory),
                project_path=str(directory),
                path_description=ROUTE_DESCRIPTIONS.get(route) if route else None,
            ),
            config=WorkflowConfig(route=route),
            step_details={},
        )


class BatchSession(_CamelModel):
    """Shared configuration and progress ledger for a batch of directories."""

    session_id: str = Field(min_length=1)
    started_at: datetime
    batch_root_directory: str = Field(min_length=1)
    total_repos: int = Field(ge=0)
    batch_size: int = Field(ge=1)
    answers: BatchAnswers = Field(default_factory=BatchAnswers)
    processed_repos: list[str] = Field(default_factory=list)

    @field_validator("processed_repos")
    @classmethod
    def _check_unique_repos(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("processedRepos contains duplicates")
        return value

    @model_validator(mode="after")
    def _check_processed_count(self) -> "BatchSession":
        if len(self.processed_repos) > self.total_repos:
            raise ValueError("processedRepos exceeds totalRepos")
        return self

    def to_document(self) -> dict[str, Any]:
        document = super().to_document()
        document["answers"] = self.answers.to_document()
        return document
