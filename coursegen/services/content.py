"""Input validation and normalization for submitted course content."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from coursegen.jobs.errors import InvalidInputError
from coursegen.jobs.models import ContentType

MIN_TEXT_CHARS = 10
MAX_TEXT_CHARS = 10_000
MAX_AI_CHARS = 8_000

_TWEET_DOMAINS = {"twitter.com", "x.com", "mobile.twitter.com"}
_TWEET_ID_PATTERNS = (
  re.compile(r"twitter\.com/\w+/status/(\d+)", re.ASCII),
  re.compile(r"x\.com/\w+/status/(\d+)", re.ASCII),
  re.compile(r"mobile\.twitter\.com/\w+/status/(\d+)", re.ASCII),
  re.compile(r"twitter\.com/i/web/status/(\d+)", re.ASCII),
)
_EMBEDDED_URL = re.compile(r"(https?://\S+)")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED_CHARS = re.compile(r"[^\w\s.,!?;:()\-\"']", re.ASCII)


@dataclass(frozen=True)
class NormalizedContent:
  content: str
  content_type: ContentType
  tweet_id: str | None = None


def extract_tweet_id(url: str) -> str | None:
  for pattern in _TWEET_ID_PATTERNS:
    match = pattern.search(url)
    if match:
      return match.group(1)
  return None


def is_valid_tweet_url(url: str) -> bool:
  """Return True for http(s) tweet permalinks on twitter.com or x.com."""
  try:
    parsed = urlparse(url)
  except ValueError:
    return False
  if parsed.scheme not in {"http", "https"} or (parsed.hostname or "") not in _TWEET_DOMAINS:
    return False
  return extract_tweet_id(url) is not None


def normalize_submission(content: str | None, content_type: str | None = None) -> NormalizedContent:
  """Validate raw input and decide whether it is a tweet URL or free text."""

  trimmed = (content or "").strip()
  if not trimmed:
    raise InvalidInputError("Content is required.")

  if content_type not in {None, "text", "url"}:
    raise InvalidInputError("Content type must be 'text' or 'url'.")

  looks_like_url = is_valid_tweet_url(trimmed)
  if content_type == "url" or (content_type is None and looks_like_url):
    if not looks_like_url:
      raise InvalidInputError("Invalid Twitter/X URL format.")
    return NormalizedContent(content=trimmed, content_type="url", tweet_id=extract_tweet_id(trimmed))

  embedded = _EMBEDDED_URL.search(trimmed)
  if embedded and is_valid_tweet_url(embedded.group(1)):
    raise InvalidInputError("Please provide either a tweet URL only, or paste the tweet content as text.")

  if len(trimmed) < MIN_TEXT_CHARS:
    raise InvalidInputError(f"Content is too short. Please provide at least {MIN_TEXT_CHARS} characters.")

  if len(trimmed) > MAX_TEXT_CHARS:
    raise InvalidInputError(f"Content is too long. Please limit to {MAX_TEXT_CHARS:,} characters.")

  return NormalizedContent(content=trimmed, content_type="text")


def prepare_content_for_ai(content: str) -> str:
  """Collapse whitespace, drop unusual symbols and cap length before generation."""
  collapsed = _WHITESPACE.sub(" ", content.strip())
  return _DISALLOWED_CHARS.sub("", collapsed)[:MAX_AI_CHARS]
