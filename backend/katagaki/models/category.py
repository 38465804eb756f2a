from sqlalchemy import Column, Integer, String

from katagaki.db.base import Base, TimestampMixin, new_id


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    category_id = Column(String(32), primary_key=True, default=new_id)
    name_ja = Column(String(100), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0, index=True)

    def __repr__(self) -> str:
        return f"<Category(id={self.category_id}, name={self.name_ja}, order={self.sort_order})>"
