# init_db.py
# Create every table directly from the models, then bootstrap the admin account.
from portfolio.core.config import settings
from portfolio.core.database import SessionLocal, init_db
from portfolio.core.logging_config import configure_logging
from portfolio import crud

if __name__ == "__main__":
    configure_logging(settings.log_level)
    init_db()
    db = SessionLocal()
    try:
        crud.ensure_admin_user(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME)
    finally:
        db.close()
    print("Created all tables")
