"""Relational schema shared by every repository."""

import sqlalchemy as sa

metadata = sa.MetaData()

ROLES = ("customer", "staff", "admin")
CATEGORIES = ("men", "kids", "fabric")

# HTML escaping widens one character to at most six, e.g. "&#x27;".
ESCAPED_CHAR_WIDTH = 6


def escaped_string(max_chars: int) -> sa.String:
    """VARCHAR wide enough for `max_chars` of user text after HTML escaping."""
    return sa.String(max_chars * ESCAPED_CHAR_WIDTH)

users = sa.Table(
    "users",
    metadata,
    sa.Column("user_id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("first_name", escaped_string(50), nullable=False),
    sa.Column("last_name", escaped_string(50), nullable=False),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("phone", sa.String(20)),
    sa.Column("password_hash", sa.String(255), nullable=False),
    sa.Column("role", sa.Enum(*ROLES, name="user_role", native_enum=False), nullable=False, server_default="customer"),
    sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

customers = sa.Table(
    "customers",
    metadata,
    sa.Column("customer_id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column(
        "user_id",
        sa.Integer,
        sa.ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    sa.Column("date_of_birth", sa.Date),
    sa.Column("address_1", escaped_string(255)),
    sa.Column("address_2", escaped_string(255)),
)

staff = sa.Table(
    "staff",
    metadata,
    sa.Column("staff_id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column(
        "user_id",
        sa.Integer,
        sa.ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    sa.Column("position", sa.String(100)),
    sa.Column("department", sa.String(100)),
    sa.Column("start_date", sa.Date),
)

products = sa.Table(
    "products",
    metadata,
    sa.Column("id", sa.String(20), primary_key=True),
    sa.Column("name", escaped_string(255), nullable=False),
    sa.Column("price", sa.Numeric(10, 2), nullable=False),
    sa.Column("price_min", sa.Numeric(10, 2)),
    sa.Column("price_max", sa.Numeric(10, 2)),
    sa.Column("category", sa.Enum(*CATEGORIES, name="product_category", native_enum=False), nullable=False),
    sa.Column("subcategory", escaped_string(50), nullable=False),
    sa.Column("description", sa.Text, nullable=False),
    sa.Column("composition", escaped_string(255), nullable=False),
    sa.Column("fabric_pattern", escaped_string(50)),
    # JSON-encoded arrays
    sa.Column("images", sa.Text, nullable=False),
    sa.Column("colors", sa.Text, nullable=False),
    sa.Column("featured", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("best_seller", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("new_arrival", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.Index("idx_products_category", "category", "subcategory"),
)

audit_logs = sa.Table(
    "audit_logs",
    metadata,
    sa.Column("log_id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.user_id", ondelete="SET NULL")),
    sa.Column("action", sa.String(50), nullable=False, index=True),
    sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, index=True),
    sa.Column("ip_address", sa.String(64)),
    sa.Column("details", sa.Text),
)

contact_inquiries = sa.Table(
    "contact_inquiries",
    metadata,
    sa.Column("inquiry_id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", escaped_string(100), nullable=False),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("phone", sa.String(20)),
    sa.Column("subject", escaped_string(200), nullable=False),
    sa.Column("message", sa.Text, nullable=False),
    sa.Column("ip_address", sa.String(64)),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

customization_requests = sa.Table(
    "customization_requests",
    metadata,
    sa.Column("request_id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", escaped_string(100), nullable=False),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("phone", sa.String(20), nullable=False),
    sa.Column("service_type", sa.String(50), nullable=False),
    sa.Column("description", sa.Text, nullable=False),
    sa.Column("budget", escaped_string(100)),
    sa.Column("timeline", escaped_string(100)),
    sa.Column("measurements", sa.Text),
    sa.Column("ip_address", sa.String(64)),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
