"""Entry point for running murmur as a module: python -m murmur"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (before reading config)
env_path = Path.cwd() / ".env"
if env_path.exists():
    load_dotenv(env_path)

from murmur.app import DictationApp
from murmur.config import Config

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "groq",
    "anthropic",
    "google_genai",
    "urllib3",
    "uvicorn.access",
)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity setting."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from third-party libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def main() -> int:
    """Main entry point."""
    config = Config.from_env()

    setup_logging(config.verbose)

    app = DictationApp(config)

    try:
        app.run()
        return 0
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 130
    except Exception as e:
        logging.exception("Fatal error: %s", e)
        return 1
    finally:
        app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
