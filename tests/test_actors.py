import pytest

from apify_connector.actors import (
    GoogleSearchConfig,
    get_actor_metadata,
    list_available_actors,
    parse_actor_config,
)
from apify_connector.errors import ValidationError


def test_list_available_actors():
    actors = {a["actor_type"]: a for a in list_available_actors()}

    assert set(actors) == {"web_scraper", "google_search", "instagram", "tripadvisor"}
    assert actors["web_scraper"]["actor_name"] == "apify/web-scraper"
    assert actors["tripadvisor"]["actor_name"] == "Hvp4YfFGyLM635Q2F"


def test_schema_uses_camel_case_and_descriptions():
    schema = get_actor_metadata("web_scraper")["schema"]

    assert schema["title"] == "WebScraperConfig"
    assert "Scrapes web pages" in schema["description"]
    assert {"startUrls", "maxPages", "contentSelector", "useApifyProxy"} <= set(schema["properties"])
    assert "URLs" in schema["properties"]["startUrls"]["description"]


def test_unknown_actor_metadata():
    assert get_actor_metadata("unknown_actor") is None


def test_google_search_defaults_and_body():
    config = parse_actor_config("google_search", {"queries": ["coffee montreal"]})

    assert isinstance(config, GoogleSearchConfig)
    assert config.to_body() == {
        "queries": ["coffee montreal"],
        "maxResults": 10,
        "language": "en",
        "countryCode": None,
    }


def test_tripadvisor_body_uses_start_urls():
    config = parse_actor_config("tripadvisor", {"url": "https://www.tripadvisor.com/Attraction_Review-g1", "maxReviews": 25})

    assert config.to_body() == {
        "startUrls": [{"url": "https://www.tripadvisor.com/Attraction_Review-g1", "method": "GET"}],
        "reviewRatings": ["ALL_REVIEW_RATINGS"],
        "reviewsLanguages": ["ALL_REVIEW_LANGUAGES"],
        "maxReviews": 25,
    }


@pytest.mark.parametrize(
    "actor_type, config, message",
    [
        ("web_scraper", {"startUrls": []}, "start_urls cannot be empty"),
        ("web_scraper", {"startUrls": ["ftp://x"]}, "Invalid URL"),
        ("web_scraper", {"startUrls": ["https://x"], "maxPages": 0}, "max_pages"),
        ("google_search", {"queries": [" "]}, "query cannot be empty"),
        ("google_search", {"queries": ["q"], "maxResults": 101}, "between 1 and 100"),
        ("google_search", {"queries": ["q"], "countryCode": "usa"}, "2 characters"),
        ("instagram", {"usernames": ["has space"]}, "Invalid Instagram username"),
        ("instagram", {"usernames": ["a" * 31]}, "Invalid Instagram username"),
        ("instagram", {"usernames": ["nasa"], "maxPosts": 0}, "max_posts"),
        ("tripadvisor", {"url": "https://www.yelp.com/biz/x"}, "TripAdvisor URL"),
        ("tripadvisor", {}, "url"),
    ],
)
def test_invalid_configs(actor_type, config, message):
    with pytest.raises(ValidationError, match=message):
        parse_actor_config(actor_type, config)


def test_unknown_actor_type():
    with pytest.raises(ValidationError, match="Unknown actor type"):
        parse_actor_config("facebook", {})
