import os

# Force production env if nothing else is set
os.environ.setdefault("ENV", "production")

from clubsponsor import create_app  # noqa: E402

app = create_app()
