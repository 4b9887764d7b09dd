import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from coursegen.core.database import dispose_engine
from coursegen.core.firebase import initialize_firebase
from coursegen.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and Firebase after uvicorn starts; dispose the engine on shutdown."""
  from coursegen.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("coursegen.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
    initialize_firebase()
    logger.info("Job store: %s", _redact_dsn(settings.pg_dsn))
  except RuntimeError:
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  yield

  await dispose_engine()


def _redact_dsn(raw: str | None) -> str:
  """Strip credentials from a DSN while keeping host and database visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
