import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text
from db.database import Base


class QuestionHistory(Base):
    __tablename__ = "question_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    problem_text = Column(Text, nullable=True)
    solution_mode = Column(String(20), nullable=False)  # similar / step_by_step
    # {status?, solution?, rawSolution?, completedSteps?, totalSteps?}
    solution_data = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
