"""Workflow state persistence with atomic read-modify-write updates."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError as SchemaError

from stackshift.constants import ROUTE_DESCRIPTIONS, STATE_FILENAME, STEP_IDS, STEPS
from stackshift.errors import ErrorType, ValidationError
from stackshift.state import StepDetail, WorkflowConfig, WorkflowState, next_step, utc_now
from stackshift.tools.file_io import SafeFileIO
from stackshift.utils.logging import get_logger
from stackshift.utils.security import PathLike, PathValidator, validate_route

logger = get_logger("state")

Mutator = Callable[[WorkflowState], WorkflowState]


class StateStore:
    """Owns the state file of one working directory.

    ``update`` is the only mutation path: it re-reads the file, applies a
    mutator, validates the result and writes it atomically. Concurrent
    updates from several processes are last-writer-wins; no lock is taken.
    """

    def __init__(
        self,
        directory: PathLike,
        validator: PathValidator,
        file_io: Optional[SafeFileIO] = None,
    ):
        """Initialize the store.

        Args:
            directory: Working directory that owns the state file
            validator: Validator for the directory and state file path
            file_io: File I/O helper (default: SafeFileIO bound to validator)
        """
        self.directory = validator.validate_directory(directory)
        self.state_path = validator.validate_file_path(self.directory, STATE_FILENAME)
        self.file_io = file_io or SafeFileIO(validator)

    def load(self) -> WorkflowState:
        """Load the current state, falling back to a default state.

        A missing, unparsable or schema-invalid file yields a fresh default
        state. Security-relevant failures are raised.

        Returns:
            WorkflowState

        Raises:
            ValidationError: pathTraversal, fileTooLarge or permissionDenied
        """
        state = self._read()
        return state if state is not None else WorkflowState.default(self.directory)

    def exists(self) -> bool:
        """Check if the state file exists."""
        return self.file_io.exists(self.state_path)

    def initialize(self, route: Optional[str] = None) -> WorkflowState:
        """Create the state file if it is absent or invalid.

        Args:
            route: Optional route for a newly created state

        Returns:
            The existing or newly created state
        """
        route = validate_route(route)

        existing = self._read()
        if existing is not None:
            return existing

        state = WorkflowState.default(self.directory, route=route)
        self.file_io.write_json_atomic(self.state_path, state.to_document())
        logger.info("Initialized workflow state", extra={"context": {"directory": str(self.directory)}})
        return state

    def update(self, mutator: Mutator) -> WorkflowState:
        """Apply a mutation to the latest on-disk state.

        Args:
            mutator: Receives a copy of the current state, returns the new state

        Returns:
            The state that was written

        Raises:
            ValidationError: invalidStructure if the mutated state breaks an
                invariant, plus any security error from I/O
        """
        current = self.load()
        updated = mutator(current.model_copy(deep=True))
        if updated is None:
            raise ValidationError(
                ErrorType.INVALID_STRUCTURE,
                "State update did not return a state",
            )

        updated.updated = utc_now()

        try:
            new_state = WorkflowState.model_validate(updated.to_document())
        except SchemaError as e:
            logger.error("Rejected invalid state update", extra={"context": {"errors": e.errors()}})
            raise ValidationError(
                ErrorType.INVALID_STRUCTURE,
                "Updated state is invalid",
                details={"errors": str(e)},
            ) from e

        self.file_io.write_json_atomic(self.state_path, new_state.to_document())
        return new_state

    def start_step(self, step: str) -> WorkflowState:
        """Mark a step as in progress.

        Restarting a completed step reopens it.

        Args:
            step: Step ID

        Returns:
            Updated state
        """
        self._check_step(step)

        def mutate(state: WorkflowState) -> WorkflowState:
            state.completed_steps = [s for s in state.completed_steps if s != step]
            state.current_step = step
            state.step_details[step] = StepDetail(started=utc_now(), status="in_progress")
            return state

        return self.update(mutate)

    def complete_step(self, step: str, details: Optional[Mapping[str, Any]] = None) -> WorkflowState:
        """Mark a step as completed and advance to the next pending step.

        Args:
            step: Step ID
            details: Optional details merged into the step's audit entry

        Returns:
            Updated state
        """
        self._check_step(step)

        def mutate(state: WorkflowState) -> WorkflowState:
            if step not in state.completed_steps:
                state.completed_steps.append(step)

            previous = state.step_details.get(step) or StepDetail()
            state.step_details[step] = StepDetail(
                started=previous.started,
                completed=utc_now(),
                status="completed",
                details={**previous.details, **(details or {})},
            )
            state.current_step = next_step(step, state.completed_steps)
            return state

        return self.update(mutate)

    def set_route(self, route: str) -> WorkflowState:
        """Set the greenfield/brownfield route.

        Args:
            route: Route name

        Returns:
            Updated state
        """
        route = validate_route(route)
        if route is None:
            raise ValidationError(ErrorType.INVALID_INPUT, "Route is required")

        def mutate(state: WorkflowState) -> WorkflowState:
            state.route = route
            state.config.route = route
            state.metadata.path_description = ROUTE_DESCRIPTIONS[route]
            return state

        return self.update(mutate)

    def configure(self, options: Mapping[str, Any]) -> WorkflowState:
        """Merge workflow options into the state config.

        Args:
            options: Allow-listed option names and values

        Returns:
            Updated state

        Raises:
            ValidationError: invalidInput for unknown keys or bad values
        """

        def mutate(state: WorkflowState) -> WorkflowState:
            merged = {**state.config.to_document(), **options}
            try:
                state.config = WorkflowConfig.model_validate(merged)
            except SchemaError as e:
                raise ValidationError(
                    ErrorType.INVALID_INPUT,
                    "Unknown or invalid workflow option",
                    details={"errors": str(e)},
                ) from e
            if state.config.route is not None and state.config.route != state.route:
                state.route = state.config.route
                state.metadata.path_description = ROUTE_DESCRIPTIONS[state.route]
            return state

        return self.update(mutate)

    def reset(self) -> bool:
        """Delete the state file.

        Returns:
            True if a file was removed
        """
        removed = self.file_io.remove(self.state_path)
        if removed:
            logger.info("Reset workflow state", extra={"context": {"directory": str(self.directory)}})
        return removed

    def status(self) -> dict[str, Any]:
        """Summarize progress for display.

        Returns:
            Status dictionary
        """
        state = self._read()
        if state is None:
            return {
                "initialized": False,
                "message": "No state file found. Run: stackshift init",
            }

        completed = len(state.completed_steps)
        total = len(STEPS)
        percent = round(completed / total * 100)
        current = _step_info(state.current_step) if state.current_step else None

        return {
            "initialized": True,
            "progress": f"{completed}/{total} ({percent}%)",
            "currentStep": current["name"] if current else "All steps complete!",
            "currentStepId": state.current_step,
            "completedSteps": list(state.completed_steps),
            "route": state.route,
            "metadata": state.metadata.to_document(),
            "updated": state.updated.isoformat(),
        }

    def progress_summary(self) -> list[dict[str, Any]]:
        """Per-step progress, in workflow order.

        Returns:
            One entry per step
        """
        state = self.load()
        summary = []

        for step in STEPS:
            detail = state.step_details.get(step["id"])
            if step["id"] in state.completed_steps:
                status = "complete"
            elif state.current_step == step["id"]:
                status = "in_progress"
            else:
                status = "pending"

            summary.append({
                "id": step["id"],
                "name": step["name"],
                "output": step["output"],
                "status": status,
                "started": detail.started if detail else None,
                "completed": detail.completed if detail else None,
            })

        return summary

    def check_step_output(self, step: str) -> bool:
        """Check if a step's expected output exists in the directory.

        Args:
            step: Step ID

        Returns:
            True if the output file or directory exists
        """
        self._check_step(step)
        target = (self.directory / Path(_step_info(step)["output"])).resolve()

        try:
            target.relative_to(self.directory)
        except ValueError:
            return False
        return target.exists()

    def _read(self) -> Optional[WorkflowState]:
        """Read and validate the state file, or None if absent or invalid."""
        try:
            document = self.file_io.read_structured_safe(self.state_path)
        except ValidationError as e:
            if e.error_type == ErrorType.NOT_FOUND:
                return None
            if e.error_type == ErrorType.INVALID_STRUCTURE:
                logger.warning("State file is not valid JSON, using defaults", extra={"context": e.details})
                return None
            raise

        try:
            return WorkflowState.model_validate(document)
        except SchemaError as e:
            logger.warning(
                "State file failed schema validation, using defaults",
                extra={"context": {"path": str(self.state_path), "errors": e.error_count()}},
            )
            return None

    @staticmethod
    def _check_step(step: str) -> None:
        if step not in STEP_IDS:
            raise ValidationError(
                ErrorType.INVALID_INPUT,
                f"Unknown step. Must be one of: {', '.join(STEP_IDS)}",
                details={"step": step},
            )


def _step_info(step_id: str) -> dict[str, str]:
    return next(step for step in STEPS if step["id"] == step_id)
