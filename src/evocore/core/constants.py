"""Global constants for evocore.

Centralizes the magic numbers of the learning and community components,
making them discoverable and consistent.
"""

# =============================================================================
# Persisted collection file names
# =============================================================================

LEARNED_PATTERNS_FILE = "learned-patterns.json"
SUCCESSFUL_WORKFLOWS_FILE = "successful-workflows.json"
FAILED_ATTEMPTS_FILE = "failed-attempts.json"
SKILL_TEMPLATES_FILE = "skill-templates.json"
SHARED_PATTERNS_FILE = "shared-patterns.json"
REQUESTED_CAPABILITIES_FILE = "requested-capabilities.json"
VOTES_FILE = "votes.json"
FEEDBACK_FILE = "feedback.json"

# =============================================================================
# Suggestion ranking
# =============================================================================

DEFAULT_MAX_SUGGESTIONS = 5
"""Maximum number of suggestions returned for a context."""

DEFAULT_RELEVANCE_THRESHOLD = 0.3
"""Patterns must score strictly above this relevance to be suggested."""

DEFAULT_SUCCESS_RATE_TOLERANCE = 0.1
"""Success rate differences up to this are ranked by relevance instead."""

# =============================================================================
# Learning system lookups
# =============================================================================

DURATION_MATCH_THRESHOLD = 0.5
"""Goal similarity a duration estimate needs to count toward an estimate."""

SIMILAR_WORKFLOW_THRESHOLD = 0.4
"""Goal similarity a past workflow needs to be reported as similar."""

SIMILAR_WORKFLOW_TOLERANCE = 0.1
"""Similarity band inside which more recent workflows are preferred."""

RECENT_LEARNING_DAYS = 7
"""Window for counting recently created patterns in reports."""

DEFAULT_RETENTION_DAYS = 30
"""Workflow and failure records older than this are dropped by cleanup."""

# =============================================================================
# Templates
# =============================================================================

DEFAULT_MAX_TEMPLATE_EXAMPLES = 20
"""Context snapshots kept per template; oldest are dropped first."""

TEMPLATE_SEARCH_LIMIT = 10
"""Maximum number of templates returned by a search."""

# =============================================================================
# Community
# =============================================================================

MILLIS_PER_WEEK = 7 * 24 * 60 * 60 * 1000
"""One unit of trending age penalty."""

REQUEST_VOTE_WEIGHT = 10
"""Score contributed by each up vote on a capability request."""

HIGH_URGENCY_BONUS = 50
"""Score bonus for capability requests with high urgency."""

SHARED_EXAMPLES_LIMIT = 3
"""Examples carried along when a pattern is shared."""

DEFAULT_AUTHOR = "autonomous-evolution-core"
ANONYMOUS_AUTHOR = "anonymous"

# =============================================================================
# Persistence
# =============================================================================

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0
"""How long a flush waits for the advisory collection lock."""

LOCK_POLL_INTERVAL_SECONDS = 0.05
"""Sleep between non-blocking lock attempts."""
