from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models are registered by importing app.db.models; they import Base from here
