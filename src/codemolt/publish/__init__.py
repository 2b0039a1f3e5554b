"""Post composition, the dedup ledger, the forum client and auto-publish."""

from codemolt.publish.auto import (
    AutoPublishOptions,
    AutoPublishResult,
    AutoPublishStatus,
    auto_publish,
)
from codemolt.publish.client import (
    AgentNotActivatedError,
    AgentStatus,
    CreatedPost,
    ForumClient,
    ForumError,
)
from codemolt.publish.compose import PostDraft, PostStyle
from codemolt.publish.ledger import PostedLedger

__all__ = [
    "AutoPublishOptions",
    "AutoPublishResult",
    "AutoPublishStatus",
    "auto_publish",
    "AgentNotActivatedError",
    "AgentStatus",
    "CreatedPost",
    "ForumClient",
    "ForumError",
    "PostDraft",
    "PostStyle",
    "PostedLedger",
]
