"""Group ratings by context and thread their comments for display."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError


class RatingComment(BaseModel):
    id: str
    created: int = 0
    text: str = ""


class Rating(BaseModel):
    id: str
    title: str = ""
    created: int = 0
    value: int = 0
    context: str
    source: Optional[str] = None
    comments: List[RatingComment] = Field(default_factory=list)


class EmptyRatingError(ValueError):
    """A rating arrived without its root comment."""


@dataclass(frozen=True)
class RatingThread:
    rating: Rating
    root: RatingComment
    replies: Tuple[RatingComment, ...]


_HTTP_URL = TypeAdapter(HttpUrl)
_TIME_UNITS = (
    ("years", "year"),
    ("months", "month"),
    ("days", "day"),
    ("hours", "hour"),
    ("minutes", "minute"),
)


def group_ratings(ratings: Iterable[Rating]) -> Dict[str, List[Rating]]:
    """Return ratings grouped by context, contexts sorted lexicographically.

    Within a context the input order is kept.
    """

    groups: Dict[str, List[Rating]] = {}
    for rating in ratings:
        groups.setdefault(rating.context, []).append(rating)
    return {context: groups[context] for context in sorted(groups)}


def thread_rating(rating: Rating) -> RatingThread:
    """Split the comments of ``rating`` into its root comment and the replies.

    The first comment is the rating text itself; a rating without comments is
    a data error and raises :class:`EmptyRatingError`.
    """

    if not rating.comments:
        raise EmptyRatingError(f"rating {rating.id} has no comments")
    root, *replies = rating.comments
    return RatingThread(rating=rating, root=root, replies=tuple(replies))


def is_web_source(source: Optional[str]) -> bool:
    """Return ``True`` if the rating source is an http(s) URL."""

    if not source:
        return False
    try:
        _HTTP_URL.validate_python(source.strip())
    except ValidationError:
        return False
    return True


def humanize_timestamp(created: int, now: Optional[datetime] = None) -> str:
    """Return a relative description such as ``3 days ago``."""

    now = now or datetime.now(timezone.utc)
    moment = datetime.fromtimestamp(created, tz=timezone.utc)
    future = moment > now
    delta = relativedelta(moment, now) if future else relativedelta(now, moment)
    for attribute, label in _TIME_UNITS:
        amount = getattr(delta, attribute)
        if amount:
            text = f"{amount} {label}" if amount == 1 else f"{amount} {label}s"
            return f"in {text}" if future else f"{text} ago"
    return "just now"


def _comment_view(comment: RatingComment, now: Optional[datetime]) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "text": comment.text,
        "created": comment.created,
        "created_human": humanize_timestamp(comment.created, now),
    }


def build_ratings_view(
    ratings: Iterable[Rating], now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Return grouped, threaded ratings ready for display."""

    view: List[Dict[str, Any]] = []
    for context, context_ratings in group_ratings(ratings).items():
        items = []
        for rating in context_ratings:
            thread = thread_rating(rating)
            items.append(
                {
                    "id": rating.id,
                    "title": rating.title,
                    "value": rating.value,
                    "source": rating.source or None,
                    "source_is_link": is_web_source(rating.source),
                    "root": _comment_view(thread.root, now),
                    "replies": [_comment_view(reply, now) for reply in thread.replies],
                }
            )
        view.append({"context": context, "ratings": items})
    return view
