"""
Single source of truth for database tables that exist after migrations (001–002).

users, trips and trip_members are owned by the trip service; only the columns
recipient resolution needs are modelled here.
"""
# All tables that exist in the DB. Must match models and migrations 001–002.
ALL_TABLE_NAMES = (
    "users",
    "trips",
    "trip_members",
    "email_queue",
)
