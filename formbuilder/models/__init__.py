from formbuilder.models.form import Form
from formbuilder.models.form_field import FormField
from formbuilder.models.form_response import FormResponse
from formbuilder.models.password_reset_token import PasswordResetToken
from formbuilder.models.user import User

__all__ = [
    "Form",
    "FormField",
    "FormResponse",
    "PasswordResetToken",
    "User",
]
