"""Development entrypoint: ``python app.py``.

Production: ``gunicorn "src.presence_system.presence_system.main:create_app()"``.
"""

import os

from src.presence_system.presence_system.main import create_app

app = create_app()


if __name__ == "__main__":
    app.run(host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "5000")))
