"""Collection set of the travel-booking backend.

Declares the schemas of the booking platform's partitions and wires the
relations between them.  Bookings can look up their package schedule, but
only deleting a schedule cascades: it removes the bookings on it along
with their payments and invoices.

Usage:
    from docstore.registry import CollectionRegistry
    from docstore.stores.memory import InMemoryDocumentStore
    from docstore.travel import register_travel_collections

    registry = CollectionRegistry(InMemoryDocumentStore())
    register_travel_collections(registry)
    bookings = registry["bookings"]
"""

from docstore.collection.relations import RelationKind
from docstore.registry import CollectionRegistry

# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

USER_FIELDS = {
    "name": "string",
    "email": "string",
    "password": "string",
    "phone": "string",
    "role": "string",        # "admin" | "customer"
    "image_id": "string",
}

BOOKING_FIELDS = {
    "user_id": "string",
    "package_schedule_id": "string",
    "booking_date": "string",
    "number_of_seats": "number",
    "total_price": "number",
    "payment_status": "string",   # "pending" | "paid" | "cancelled"
}

PAYMENT_FIELDS = {
    "booking_id": "string",
    "payment_method_id": "string",
    "payment_date": "string",
    "payment_amount": "number",
    "payment_proof": "string",
    "status": "string",
    "is_approved": "boolean",
    "approved_by": "string",
    "approved_at": "string",
}

INVOICE_FIELDS = {
    "booking_id": "string",
    "invoice_number": "string",
    "issued_date": "string",
    "due_date": "string",
    "status": "string",       # "unpaid" | "paid"
}

PACKAGE_SCHEDULE_FIELDS = {
    "package_id": "string",
    "destination_ids": ["string"],
    "fleet_id": "string",
    "departure_date": "string",   # YYYY-MM-DD
    "return_date": "string",      # YYYY-MM-DD
    "departure_time": "string",   # HH:mm:ss
    "available_seats": "number",
}

PACKAGE_FIELDS = {
    "name": "string",
    "description": "string",
    "destination": "string",
    "destination_id": "string",
    "price": "number",
    "available_seats": "number",
    "start_date": "string",
    "end_date": "string",
}

FLEET_FIELDS = {
    "name": "string",
    "type": "string",         # "bus" | "van" | "car" | "motorcycle" | "boat"
    "plate_number": "string",
    "capacity": "number",
    "driver_name": "string",
    "status": "string",       # "available" | "maintenance" | "on_trip"
}

DESTINATION_FIELDS = {
    "name": "string",
    "slug": "string",
    "description": "string",
    "location_point": "string",   # '{"lat": -6.1, "lng": 106.4}'
    "province": "string",
    "city": "string",
    "country": "string",
    "category": "string",
    "popularity": "number",
    "featured": "boolean",
    "image_id": "string",
    "gallery": "string",          # JSON-encoded list
    "average_rating": "number",
    "review_count": "number",
    "is_active": "boolean",
    "meta_keywords": "string",
    "meta_description": "string",
}

IMAGE_FIELDS = {
    "FK": "string",           # id of the owning record
    "image_base64": "string",
}

PAYMENT_METHOD_FIELDS = {
    "name": "string",
    "provider": "string",
    "type": "string",         # "bank_transfer" | "credit_card" | "e-wallet"
    "account_number": "string",
    "account_name": "string",
    "is_active": "boolean",
}

TRAVEL_COLLECTIONS: dict[str, dict] = {
    "users": USER_FIELDS,
    "bookings": BOOKING_FIELDS,
    "payments": PAYMENT_FIELDS,
    "invoices": INVOICE_FIELDS,
    "package_schedules": PACKAGE_SCHEDULE_FIELDS,
    "packages": PACKAGE_FIELDS,
    "fleets": FLEET_FIELDS,
    "destinations": DESTINATION_FIELDS,
    "images": IMAGE_FIELDS,
    "payment_methods": PAYMENT_METHOD_FIELDS,
}


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_travel_collections(registry: CollectionRegistry) -> CollectionRegistry:
    """Register every travel collection on *registry* and wire relations.

    Relations:
        - users.bookings: one-to-many on ``bookings.user_id``
        - bookings.payments / bookings.invoices: one-to-many on ``booking_id``
        - bookings.schedule: one-to-one, the schedule whose id is the
          booking's ``package_schedule_id``; lookup only, never cascaded
        - package_schedules.bookings: one-to-many on
          ``bookings.package_schedule_id``
        - packages.package_schedules: one-to-many on ``package_id``
        - fleets.package_schedules: one-to-many on ``fleet_id``
        - destinations.images: one-to-many on ``images.FK``
        - destinations.packages: one-to-many on ``packages.destination_id``
        - images.users: one-to-many on ``users.image_id``, nulled on delete
        - payment_methods.payments: one-to-many on ``payment_method_id``

    Returns:
        The same registry, for chaining.

    Raises:
        ValueError: If any travel collection is already registered.
    """
    for name, fields in TRAVEL_COLLECTIONS.items():
        registry.register(name, fields)

    many = RelationKind.ONE_TO_MANY
    registry["users"].set_relation("bookings", "bookings", many, "user_id")

    bookings = registry["bookings"]
    bookings.set_relation("payments", "payments", many, "booking_id")
    bookings.set_relation("invoices", "invoices", many, "booking_id")
    bookings.set_relation(
        "schedule",
        "package_schedules",
        RelationKind.ONE_TO_ONE,
        foreign_key="id",
        local_key="package_schedule_id",
        cascade=False,
    )

    registry["package_schedules"].set_relation(
        "bookings", "bookings", many, "package_schedule_id"
    )
    registry["packages"].set_relation(
        "package_schedules", "package_schedules", many, "package_id"
    )
    registry["fleets"].set_relation(
        "package_schedules", "package_schedules", many, "fleet_id"
    )

    destinations = registry["destinations"]
    destinations.set_relation("images", "images", many, "FK")
    destinations.set_relation("packages", "packages", many, "destination_id")

    registry["images"].set_relation("users", "users", many, "image_id", on_delete_null=True)
    registry["payment_methods"].set_relation("payments", "payments", many, "payment_method_id")
    return registry
