"""Data models for Kiyoh API payloads."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

OPINION_GROUP = "DEFAULT_OPINION"
ONELINER_GROUP = "DEFAULT_ONELINER"


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    # Stored as naive local time like every other timestamp
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass
class KiyohReview:
    """One review as published by Kiyoh."""

    review_id: str
    rating: float
    author: str = "Anonymous"
    city: str | None = None
    created_at: datetime | None = None
    opinion: str = ""
    one_liner: str = ""

    @property
    def text(self) -> str:
        """Review body, falling back to the one-liner."""
        return self.opinion or self.one_liner or "No review text"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "KiyohReview":
        opinion = ""
        one_liner = ""
        for content in data.get("reviewContent") or []:
            group = content.get("questionGroup")
            answer = content.get("rating")
            if group == OPINION_GROUP:
                opinion = "" if answer is None else str(answer)
            elif group == ONELINER_GROUP:
                one_liner = "" if answer is None else str(answer)

        rating = data.get("rating")
        return cls(
            review_id=str(data.get("reviewId", "")),
            rating=float(rating) if isinstance(rating, (int, float)) else 0.0,
            author=data.get("reviewAuthor") or "Anonymous",
            city=data.get("city"),
            created_at=_parse_datetime(data.get("dateSince")),
            opinion=opinion,
            one_liner=one_liner,
        )


@dataclass
class KiyohReviewPage:
    """Reviews returned by one fetch, plus location summary."""

    reviews: list[KiyohReview] = field(default_factory=list)
    location_name: str = ""
    average_rating: float = 0.0
    number_reviews: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "KiyohReviewPage":
        reviews = [
            KiyohReview.from_api(item)
            for item in data.get("reviews") or []
            if item.get("reviewId")
        ]
        return cls(
            reviews=reviews,
            location_name=data.get("locationName") or "",
            average_rating=float(data.get("averageRating") or 0),
            number_reviews=int(data.get("numberReviews") or 0),
        )
