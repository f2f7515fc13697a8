"""Search key builder and cache/rate-limit key names.

The key format is shared with the analysis worker, which writes the
by-key projection on completion, so it must stay byte-compatible:

    searchKey:{"topic":"react hooks","tags":["ask_hn"],"timeRange":"month","minUpvotes":10,"sortBy":"relevance"}

Field order is significant: topic, tags, timeRange, minUpvotes, sortBy.
"""

import json

from painpoint.orchestrator.schemas import SearchRequest

SEARCH_KEY_PREFIX = "searchKey"

RATE_LIMIT_GLOBAL_PREFIX = "rate:global"
RATE_LIMIT_IP_PREFIX = "rate:ip"
RATE_LIMIT_IP_DAILY_PREFIX = "rate:ip:daily"
RATE_LIMIT_TOPIC_PREFIX = "rate:topic"


def normalize_request(request: SearchRequest) -> dict:
    """Lower-cased trimmed topic, sorted lower-cased tags, other filters verbatim."""
    return {
        "topic": request.topic.strip().lower(),
        "tags": sorted(t.value.lower() for t in request.tags),
        "timeRange": request.time_range.value,
        "minUpvotes": request.min_upvotes,
        "sortBy": request.sort_by.value,
    }


def build_search_key(request: SearchRequest) -> str:
    """Deterministic cache key for a search request."""
    normalized = json.dumps(
        normalize_request(request),
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return f"{SEARCH_KEY_PREFIX}:{normalized}"


def result_by_id_key(search_id: str) -> str:
    return f"search:result:id:{search_id}"


def result_by_key_key(search_key: str) -> str:
    return f"search:result:key:{search_key}"


def search_map_key(search_key: str) -> str:
    return f"search:map:{search_key}"


def rate_limit_key(prefix: str, identifier: str) -> str:
    return f"{prefix}:{identifier}"
