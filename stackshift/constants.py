"""Constants and default values for StackShift."""

# State files
STATE_FILENAME = ".stackshift-state.json"
BATCH_SESSION_FILENAME = ".stackshift-batch-session.json"
STATE_VERSION = "1.0.0"

# File size ceiling for any state document (10 MiB)
MAX_FILE_BYTES = 10 * 1024 * 1024

# Characters rejected in any externally supplied path
SHELL_METACHARACTERS = frozenset(";&|`$(){}[]<>\\!'\"\n\r")

# Keys stripped from every parsed document root
FORBIDDEN_KEYS = ("__proto__", "constructor", "prototype")

# Directory entries that mark a repository root (bounds the batch session walk)
REPOSITORY_ROOT_MARKERS = (".git",)

# Workflow steps, in order
STEPS = [
    {"id": "analyze", "name": "Initial Analysis", "output": "analysis-report.md"},
    {"id": "reverse-engineer", "name": "Reverse Engineer", "output": "docs/reverse-engineering/"},
    {"id": "create-specs", "name": "Create Specifications", "output": "specs/"},
    {"id": "gap-analysis", "name": "Gap Analysis", "output": "specs/gap-analysis.md"},
    {"id": "complete-spec", "name": "Complete Specification", "output": "specs/"},
    {"id": "implement", "name": "Implement from Spec", "output": "specs/"},
]
STEP_IDS = [step["id"] for step in STEPS]

ROUTE_DESCRIPTIONS = {
    "greenfield": "Build new app from business logic (tech-agnostic)",
    "brownfield": "Manage existing app with Spec Kit (tech-prescriptive)",
}

CLARIFICATIONS_STRATEGIES = ("defer", "prompt", "skip")
IMPLEMENTATION_SCOPES = ("none", "p0", "p0_p1", "all")

# Environment variables
ENV_TEST_MODE = "STACKSHIFT_TEST_MODE"
ENV_LOG_LEVEL = "STACKSHIFT_LOG_LEVEL"
ENV_LOG_FORMAT = "STACKSHIFT_LOG_FORMAT"
ENV_LOG_SILENT = "STACKSHIFT_LOG_SILENT"

# Logging defaults
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_FORMAT = "pretty"
LOG_LEVELS = ("debug", "info", "warning", "error")
LOG_FORMATS = ("pretty", "json")

# Appended to external messages for path, notFound and permission errors
REMEDIATION_HINT = "Ensure you are running from your project root."
