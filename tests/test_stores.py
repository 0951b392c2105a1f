from datetime import datetime

import pytest

import stores
from models import Goal, JournalEntry, MeditationRun, MeditationSession, MoodEntry, User
from schemas import GoalCreate, JournalEntryCreate, MeditationRunCreate, MeditationSessionCreate, MoodEntryCreate

CHILD_TABLES = (Goal, MoodEntry, MeditationSession, MeditationRun, JournalEntry)


def make_user_with_data(db, email):
    user = User(name="Carla", email=email, password_hash="x")
    db.add(user)
    db.commit()

    stores.create_goal(db, user.id, GoalCreate(title="Run 5k"))
    stores.create_mood(db, user.id, MoodEntryCreate(score=4, date=datetime(2024, 5, 1)))
    session = stores.create_session(db, user.id, MeditationSessionCreate(title="Respirar"))
    stores.create_run(db, user.id, MeditationRunCreate(session_id=session.id, started_at=datetime(2024, 5, 1, 7)))
    stores.create_entry(db, user.id, JournalEntryCreate(text="Buen día"))
    return user.id


def counts(db, user_id):
    return [db.query(table).filter(table.user_id == user_id).count() for table in CHILD_TABLES]


@pytest.mark.parametrize("bulk", [False, True])
def test_deleting_user_removes_their_data(db, bulk):
    user_id = make_user_with_data(db, "carla@example.com")
    other_id = make_user_with_data(db, "dani@example.com")
    assert counts(db, user_id) == [1, 1, 1, 1, 1]

    if bulk:
        # DELETE directo en SQL: lo borra el ON DELETE CASCADE de la BD
        db.query(User).filter(User.id == user_id).delete()
    else:
        db.delete(db.get(User, user_id))
    db.commit()
    db.expire_all()

    assert counts(db, user_id) == [0, 0, 0, 0, 0]
    assert counts(db, other_id) == [1, 1, 1, 1, 1]
