"""Factories shared by the test modules."""

from formbuilder.models import Form, FormField, User
from formbuilder.services.auth import create_access_token, hash_password

PASSWORD = "strongpassword123"


def create_test_user(db, email="owner@example.com", name="Owner") -> User:
    """Insert a user directly into the DB and return it."""
    user = User(email=email, name=name, password_hash=hash_password(PASSWORD))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def create_test_form(db, user: User, name="Customer Survey", **values) -> Form:
    form = Form(user_id=user.id, name=name, **values)
    db.add(form)
    db.commit()
    db.refresh(form)
    return form


def create_test_field(db, form: Form, label="Name", type="TEXT", order=0, settings=None) -> FormField:
    field = FormField(
        form_id=form.id,
        type=type,
        label=label,
        order=order,
        settings=settings or {},
    )
    db.add(field)
    db.commit()
    db.refresh(field)
    return field
