"""Project model — one bid-award engagement with its embedded sub-records."""

from sqlalchemy import JSON, Column, Date, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from app.database import Base


class Project(Base):
    """A bid-award project tracked from tender to settlement.

    The award notice, contract and construction material sections are owned
    by value and stored as JSON documents.  Their shape is enforced by the
    pydantic schemas in ``app.schemas.project``; services always replace a
    whole section rather than mutating it in place.

    Attributes:
        id: Primary key.
        year: Year bucket the project belongs to (matches ``Year.year``).
        project_number: Human project code, unique within a year.
        project_name: Display name; embedded in derived task titles.
        category: "工程", "服务" or "采购".
        estimated_amount: Estimated amount (yuan).
        budget_price: Budget / ceiling price (yuan).
        tender_date: Date of the tender.
        award_notice: ``AwardNotice`` document.
        contract: ``Contract`` document (payment and insurance terms).
        construction_material: ``ConstructionMaterial`` document.
        created_at: Record creation timestamp.
    """

    __tablename__ = "project"

    id = Column(Integer, primary_key=True, autoincrement=True)
    year = Column(Integer, nullable=False, index=True)
    project_number = Column(String(100), nullable=False)
    project_name = Column(String(500), nullable=False)
    category = Column(String(20), nullable=False)
    estimated_amount = Column(Float, default=0, nullable=False)
    budget_price = Column(Float, default=0, nullable=False)
    tender_date = Column(Date, nullable=True)
    award_notice = Column(JSON, nullable=False, default=dict)
    contract = Column(JSON, nullable=False, default=dict)
    construction_material = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=func.now(), nullable=False)
