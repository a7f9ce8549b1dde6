import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables before Config is imported
# Try .env.local first (for local development), then fall back to .env
base_path = Path(__file__).parent
dotenv_local = base_path / '.env.local'
dotenv_default = base_path / '.env'

if dotenv_local.exists():
    load_dotenv(dotenv_local)
    loaded_from = dotenv_local
elif dotenv_default.exists():
    load_dotenv(dotenv_default)
    loaded_from = dotenv_default
else:
    loaded_from = None

from printmarket import create_app  # noqa: E402

app = create_app()

if loaded_from:
    logging.getLogger(__name__).info("Loaded environment from: %s", loaded_from)
else:
    logging.getLogger(__name__).warning("No .env or .env.local file found. Using system environment variables.")

if __name__ == "__main__":
    app.run(debug=True)
