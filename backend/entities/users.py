from api.builder import EntityDefinition
from core.validation import DateField, EnumField, ObjectField, StringField
from repositories import UniqueField

USER_SCHEMA = {
    "username": StringField(min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$", example="jdoe"),
    "email": StringField(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", example="jdoe@example.com"),
    "password": StringField(min_length=8),
    "role": EnumField(values=("admin", "editor", "viewer"), default="viewer"),
    "birthDate": DateField(required=False),
    "address": ObjectField(
        properties={
            "street": StringField(),
            "city": StringField(),
            "zip": StringField(required=False),
        },
        required=False,
    ),
}

USERS = EntityDefinition(
    collection="users",
    schema=USER_SCHEMA,
    unique_fields=(
        UniqueField("username", "Username is already taken"),
        UniqueField("email", "Email is already registered"),
    ),
    entity_name="User",
    title="Users API",
)
