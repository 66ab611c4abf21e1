import enum

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from a11y_api.platform.db.base import Base


class IssueImpact(str, enum.Enum):
    """Issue severity levels"""
    error = "error"
    warning = "warning"
    notice = "notice"


class Issue(Base):
    """
    One accessibility finding within a scan.

    Written once when a scan's results are persisted and removed only through
    the cascade from its Scan. screenshot_filename is a weak reference to a
    file in the screenshot directory.
    """
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    scan_id = Column(Integer, ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)

    rule_id = Column(String(512), nullable=False)
    description = Column(Text, nullable=False)
    impact = Column(String(16), nullable=False)

    selector = Column(Text, nullable=True)
    context = Column(Text, nullable=True)
    screenshot_filename = Column(String(255), nullable=True, index=True)

    scan = relationship("Scan", back_populates="issues")
