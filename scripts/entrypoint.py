import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Exec uvicorn for the course generation API; migrations run in the deploy step."""
  port = os.getenv("PORT", "8080")
  logger.info("Starting coursegen API on port %s (run scripts/migrate_with_lock.py in the deploy pipeline)", port)
  # Replace this process so uvicorn receives SIGTERM directly.
  os.execvp("uvicorn", ["uvicorn", "coursegen.main:app", "--host", "0.0.0.0", "--port", port, "--no-server-header"])


if __name__ == "__main__":
  main()
