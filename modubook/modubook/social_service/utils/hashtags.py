import re
from typing import List

HASHTAG_MAX_LENGTH = 30

_HASHTAG_IN_TEXT_RE = re.compile(r"#([가-힣a-zA-Z0-9_]+)")
_HASHTAG_RE = re.compile(r"^[가-힣a-zA-Z0-9_]{1,%d}$" % HASHTAG_MAX_LENGTH)


def is_valid_hashtag(hashtag: str) -> bool:
    if not hashtag or not isinstance(hashtag, str):
        return False
    return bool(_HASHTAG_RE.match(hashtag))


def extract_hashtags(content: str) -> List[str]:
    """
    Pull unique hashtags (without '#') out of post content, in first-seen order.
    Tags longer than HASHTAG_MAX_LENGTH are skipped.
    """
    if not content or not isinstance(content, str):
        return []

    seen = []
    for tag in _HASHTAG_IN_TEXT_RE.findall(content):
        if tag not in seen and is_valid_hashtag(tag):
            seen.append(tag)
    return seen
