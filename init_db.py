import sys

from app import app, db, save_result, SavedResult
from nutrition import demo_summary


def init_database(drop=False, seed=False):
    with app.app_context():
        if drop:
            db.drop_all()
        db.create_all()

        # one example row so a fresh history page is not empty
        if seed and db.session.query(SavedResult).count() == 0:
            save_result(
                "venice",
                demo_summary(b"seed"),
                display_name="Venice AI",
                language="english",
                mode="two_stage",
                analysis_time=0.0,
            )
        count = db.session.query(SavedResult).count()
    print(f"Database initialized ({count} saved results)")
    return count


if __name__ == '__main__':
    init_database(drop="--drop" in sys.argv, seed="--seed" in sys.argv)
