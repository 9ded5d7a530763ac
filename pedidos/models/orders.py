from sqlalchemy import Column, Integer, Numeric, String, ForeignKey, Date, CheckConstraint
from sqlalchemy.orm import relationship
from pedidos.database import Base
from datetime import date

class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_date = Column(Date, nullable=False, default=date.today, index=True)
    total = Column(Numeric(10, 2), CheckConstraint("total >= 0"), nullable=False)
    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderLine.id",
    )

class OrderLine(Base):
    __tablename__ = "order_lines"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    color = Column(String, nullable=True)
    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    # nombre historico, no cambia aunque se edite el producto
    name = Column(String, nullable=True)
    order = relationship("Order", back_populates="lines")
