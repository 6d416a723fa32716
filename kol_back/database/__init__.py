from .models import Base
from .session import SessionLocal, engine, get_db
