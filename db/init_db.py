# python -m db.init_db

from db.database import Base, engine
from db.models.profiles import Profile
from db.models.question_history import QuestionHistory
from db.models.study_guides import StudyGuide
from db.models.problem_reports import ProblemReport

if __name__ == "__main__":
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)
    print("Done")
