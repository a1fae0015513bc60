from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import the models so they register with Base.metadata
from app.models import user, student, lecturer, otp_token  # noqa: E402,F401
