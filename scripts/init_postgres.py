"""
Check the PostgreSQL database for the identity service.
Run once before applying migrations: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER identity WITH PASSWORD 'identity';
  CREATE DATABASE identity_db OWNER identity;
  GRANT ALL PRIVILEGES ON DATABASE identity_db TO identity;
  \\q
"""

import sys

from sqlalchemy import create_engine, text
from identity_service.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
        print("Apply the schema with: alembic upgrade head")
    except Exception as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print(f"  psql -U postgres -c \"CREATE USER {settings.POSTGRES_USER} WITH PASSWORD '<password>';\"")
        print(f"  psql -U postgres -c \"CREATE DATABASE {settings.POSTGRES_DB} OWNER {settings.POSTGRES_USER};\"")
        print(
            f"  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE {settings.POSTGRES_DB} "
            f"TO {settings.POSTGRES_USER};\""
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
