import enum

from sqlalchemy import Column, Index, String
from sqlalchemy.orm import relationship

from a11y_api.platform.db.base import BaseModel


class ScanStatus(str, enum.Enum):
    """Scan lifecycle: pending -> running -> completed | failed"""
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class ScannerType(str, enum.Enum):
    htmlcs = "htmlcs"
    axe = "axe"


DEFAULT_SCANNER_TYPE = ScannerType.htmlcs
DEFAULT_LANGUAGE = "en"


class Scan(BaseModel):
    __tablename__ = "scans"

    # url and scanner_type are fixed at creation
    url = Column(String(2048), nullable=False, index=True)
    language = Column(String(16), nullable=False, default=DEFAULT_LANGUAGE)
    root_element = Column(String(512), nullable=True)
    scanner_type = Column(String(32), nullable=False, default=DEFAULT_SCANNER_TYPE.value)
    status = Column(String(16), nullable=False, default=ScanStatus.pending.value, index=True)

    issues = relationship(
        "Issue",
        back_populates="scan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Issue.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_scans_url_created", "url", "created_at"),
    )
