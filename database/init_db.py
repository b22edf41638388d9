import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from production_kpi import create_app
from production_kpi.db import get_db, init_db
from production_kpi.production.sample_data import seed_sample_data


app = create_app()


if __name__ == "__main__":
    with app.app_context():
        init_db()
        if os.environ.get("SEED_SAMPLE_DATA", "0").strip().lower() in {"1", "true", "yes", "on"}:
            counts = seed_sample_data(get_db())
            print(f"Sample data: {counts}")
    print("Database initialized.")
