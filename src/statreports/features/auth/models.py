from enum import Enum

from tortoise import fields

from ...common.models import TimestampMixin, generate_ksuid


class ReportAccess(str, Enum):
    """Subscription packages that unlock report families."""

    STATISTICAL = "statistical_access"
    OLEFINS = "olefins_access"
    POLISH_CHEMICALS = "polish_chemicals_access"


class User(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(max_length=27, unique=True, default=generate_ksuid, db_index=True)
    username = fields.CharField(max_length=100, unique=True, db_index=True)
    email = fields.CharField(max_length=255, unique=True, db_index=True)
    hashed_password = fields.CharField(max_length=255)
    role = fields.CharField(max_length=50, default="subscriber")  # "subscriber" or "admin"
    is_active = fields.BooleanField(default=True)

    statistical_access = fields.BooleanField(default=False)
    olefins_access = fields.BooleanField(default=False)
    polish_chemicals_access = fields.BooleanField(default=False)

    authorized_products: fields.ManyToManyRelation["Product"] = fields.ManyToManyField(
        "models.Product", related_name="authorized_users", through="user_authorized_products"
    )

    def has_access(self, access: ReportAccess) -> bool:
        return self.role == "admin" or bool(getattr(self, access.value))

    def __str__(self):
        return f"{self.username} ({self.role})"

    class Meta:
        table = "users"
