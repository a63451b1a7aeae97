"""Repository model keyed by the upstream repository id."""

from sqlalchemy import JSON, Column, String, Text

from stars_keeper.config.database import Base


class Repository(Base):
    """Repository snapshot mapped to `repositories` table."""

    __tablename__ = "repositories"

    id = Column(String(100), primary_key=True)
    description = Column(Text, nullable=True)
    topics = Column(JSON, nullable=True)
    readme = Column(Text, nullable=True)
    body = Column(Text, nullable=False)

    def __repr__(self):
        return f"<Repository {self.id}>"
