from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on Postgres, plain JSON elsewhere (SQLite for local dev/tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

class Base(DeclarativeBase):
    pass

# Import models so metadata.create_all can discover them
from app.models import *  # noqa
