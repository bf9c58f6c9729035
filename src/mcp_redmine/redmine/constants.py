"""Constants shared by the Redmine client and the validation layer."""

from enum import Enum

DEFAULT_TIMEOUT = 30

# Redmine caps list endpoints at 100 entries per page
PAGE_SIZE = 100

# Upper bound used when loading whole directories (projects, memberships)
DIRECTORY_LIMIT = 1000

DEFAULT_WORKFLOW_SAMPLE_SIZE = 50

API_KEY_HEADER = "X-Redmine-API-Key"

STATUS_WILDCARD = "*"
STATUS_KEYWORDS = {
    "open": "open",
    "closed": "closed",
    "all": STATUS_WILDCARD,
    STATUS_WILDCARD: STATUS_WILDCARD,
}

CURRENT_USER_KEYWORD = "me"

ISSUE_CUSTOMIZED_TYPE = "issue"


class EntityKind(str, Enum):
    """Kinds of entity the resolver can look up by name."""

    PROJECT = "project"
    TRACKER = "tracker"
    STATUS = "status"
    PRIORITY = "priority"
    ACTIVITY = "activity"
    ROLE = "role"
    USER = "user"
    CUSTOM_FIELD = "custom field"
