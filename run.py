"""Development server for the storefront API.

    python run.py

Reads .env, then serves on PORT (default 9191) with the reloader on.
"""

import os

from dotenv import load_dotenv

load_dotenv()

from storefront import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, port=int(os.environ.get("PORT", 9191)))
