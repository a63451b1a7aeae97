"""Star model: one row per (repository, starred_at) favoriting event."""

from sqlalchemy import Column, Index, String, Text

from stars_keeper.config.database import Base


class Star(Base):
    """Star entity mapped to `stars` table."""

    __tablename__ = "stars"

    id = Column(String(512), primary_key=True)
    starred_at = Column(String(40), nullable=False)
    repository_id = Column(String(100), nullable=False)
    body = Column(Text, nullable=False)

    __table_args__ = (
        Index("idx_stars_repository_id", "repository_id"),
    )

    def __repr__(self):
        return f"<Star {self.repository_id} at {self.starred_at}>"
