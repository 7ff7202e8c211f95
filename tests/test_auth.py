from billsplit.auth import upsert_google_user
from billsplit.models.user import User


def test_new_google_user_is_created(session):
    user = upsert_google_user(session, "g-1", "new@example.com", "New Person")
    assert user.id is not None
    assert session.get(User, user.id).google_id == "g-1"


def test_existing_email_is_reused(session, users):
    user = upsert_google_user(session, "g-bob", "bob@example.com", "Bob Brown")
    assert user.id == users["bob"].id
    assert user.google_id == "g-bob"


def test_profile_changes_are_saved(session, users):
    upsert_google_user(session, "g-carol", "carol@example.com", "Carol Jones")
    user = upsert_google_user(session, "g-carol", "carol@example.com", "Carol J.")
    assert user.id == users["carol"].id
    assert user.name == "Carol J."
