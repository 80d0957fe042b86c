"""Actor presets: typed input configurations for well-known Apify actors.

Each preset is a variant keyed by its `actor_type` discriminant. A variant
knows the Apify actor it runs, validates its own configuration, and serializes
its own request body. Configs are accepted in camelCase, as the actors
themselves expect.

New actors are added by defining a subclass of `ActorConfig` and listing it
in `ACTOR_CONFIGS`.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional, Type

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationError


class ActorConfig(BaseModel):
    """Base class for actor presets."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    actor_type: ClassVar[str]
    actor_name: ClassVar[str]

    def to_body(self) -> Dict[str, Any]:
        """Actor input body sent with the run request."""
        return self.model_dump(by_alias=True)

    @classmethod
    def metadata(cls) -> Dict[str, Any]:
        return {
            "actor_type": cls.actor_type,
            "actor_name": cls.actor_name,
            "schema": cls.model_json_schema(by_alias=True),
        }


class WebScraperConfig(ActorConfig):
    """Scrapes web pages starting from given URLs."""

    actor_type: ClassVar[str] = "web_scraper"
    actor_name: ClassVar[str] = "apify/web-scraper"

    start_urls: List[str] = Field(..., description="URLs to start scraping from")
    max_pages: int = Field(100, description="Maximum pages to crawl")
    content_selector: Optional[str] = Field(None, description="CSS selector for content extraction")
    use_apify_proxy: bool = Field(False, description="Whether to use Apify proxy")

    @field_validator("start_urls")
    @classmethod
    def _check_urls(cls, urls: List[str]) -> List[str]:
        if not urls:
            raise ValueError("start_urls cannot be empty")
        for url in urls:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Invalid URL: {url}")
        return urls

    @field_validator("max_pages")
    @classmethod
    def _check_max_pages(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_pages must be greater than 0")
        return value


class GoogleSearchConfig(ActorConfig):
    """Scrapes Google search results for given queries."""

    actor_type: ClassVar[str] = "google_search"
    actor_name: ClassVar[str] = "apify/google-search-scraper"

    queries: List[str] = Field(..., description="Search queries to execute")
    max_results: int = Field(10, description="Maximum results per query (1-100)")
    language: str = Field("en", description='Language code (e.g., "en", "fr")')
    country_code: Optional[str] = Field(None, description='Country code for localized results (e.g., "us", "uk")')

    @field_validator("queries")
    @classmethod
    def _check_queries(cls, queries: List[str]) -> List[str]:
        if not queries:
            raise ValueError("queries cannot be empty")
        if any(not q.strip() for q in queries):
            raise ValueError("query cannot be empty")
        return queries

    @field_validator("max_results")
    @classmethod
    def _check_max_results(cls, value: int) -> int:
        if not 1 <= value <= 100:
            raise ValueError("max_results must be between 1 and 100")
        return value

    @field_validator("country_code")
    @classmethod
    def _check_country_code(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) != 2:
            raise ValueError("country_code must be 2 characters")
        return value


class InstagramScraperConfig(ActorConfig):
    """Scrapes Instagram profiles and posts."""

    actor_type: ClassVar[str] = "instagram"
    actor_name: ClassVar[str] = "apify/instagram-scraper"

    usernames: List[str] = Field(..., description="Instagram usernames to scrape")
    max_posts: int = Field(50, description="Maximum posts per profile")
    include_profile_info: bool = Field(False, description="Include profile information")
    include_comments: bool = Field(False, description="Include comments on posts")

    @field_validator("usernames")
    @classmethod
    def _check_usernames(cls, usernames: List[str]) -> List[str]:
        if not usernames:
            raise ValueError("usernames cannot be empty")
        for name in usernames:
            if not name.strip():
                raise ValueError("username cannot be empty")
            if " " in name or len(name) > 30:
                raise ValueError(f"Invalid Instagram username: {name}")
        return usernames

    @field_validator("max_posts")
    @classmethod
    def _check_max_posts(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_posts must be greater than 0")
        return value


class TripAdvisorConfig(ActorConfig):
    """Scrapes reviews from TripAdvisor attraction, restaurant, or hotel pages."""

    actor_type: ClassVar[str] = "tripadvisor"
    actor_name: ClassVar[str] = "Hvp4YfFGyLM635Q2F"

    url: str = Field(..., description="TripAdvisor URL to scrape reviews from")
    review_ratings: List[str] = Field(
        default_factory=lambda: ["ALL_REVIEW_RATINGS"],
        description='Filter reviews by rating (e.g., ["ALL_REVIEW_RATINGS"] or ["5", "4"])',
    )
    reviews_languages: List[str] = Field(
        default_factory=lambda: ["ALL_REVIEW_LANGUAGES"],
        description='Filter reviews by language (e.g., ["ALL_REVIEW_LANGUAGES"] or ["en", "fr"])',
    )
    max_reviews: int = Field(0, ge=0, description="Maximum number of reviews to scrape (0 = unlimited)")
    include_reviewer_info: bool = Field(False, description="Include reviewer details")

    @field_validator("url")
    @classmethod
    def _check_url(cls, url: str) -> str:
        if not url:
            raise ValueError("url cannot be empty")
        if "tripadvisor" not in url:
            raise ValueError(f"URL does not appear to be a TripAdvisor URL: {url}")
        return url

    def to_body(self) -> Dict[str, Any]:
        # The actor takes a startUrls array rather than a single url.
        body: Dict[str, Any] = {
            "startUrls": [{"url": self.url, "method": "GET"}],
            "reviewRatings": list(self.review_ratings),
            "reviewsLanguages": list(self.reviews_languages),
        }
        if self.max_reviews > 0:
            body["maxReviews"] = self.max_reviews
        if self.include_reviewer_info:
            body["includeReviewerInfo"] = True
        return body


ACTOR_CONFIGS: Dict[str, Type[ActorConfig]] = {
    cls.actor_type: cls
    for cls in (WebScraperConfig, GoogleSearchConfig, InstagramScraperConfig, TripAdvisorConfig)
}


def list_available_actors() -> List[Dict[str, Any]]:
    """Metadata (type, Apify actor, JSON schema) for every preset."""
    return [cls.metadata() for cls in ACTOR_CONFIGS.values()]


def get_actor_metadata(actor_type: str) -> Optional[Dict[str, Any]]:
    cls = ACTOR_CONFIGS.get(actor_type)
    return cls.metadata() if cls else None


def parse_actor_config(actor_type: str, config: Any) -> ActorConfig:
    """Build the preset for `actor_type` from its raw JSON config.

    Raises:
        ValidationError: unknown actor type or invalid configuration.
    """
    cls = ACTOR_CONFIGS.get(actor_type)
    if cls is None:
        raise ValidationError(f"Unknown actor type: {actor_type}")
    try:
        return cls.model_validate(config)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {actor_type} config: {exc}") from exc
