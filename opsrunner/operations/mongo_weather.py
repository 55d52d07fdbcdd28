# ==============================================
# Weather Operations — MongoDB
# ==============================================
#
# PURPOSE:
#   The document-store operations of the weather example and the
#   fixed order they run in.
#
#   Every operation has the signature
#       func(store: MongoStore, context: OperationContext, ...) -> result
#   It asks the store for the handles it needs, prints what it did or
#   what it found, and returns the result to the runner.
#
# SEQUENCE (mongo_operations()):
# ------------------------------
#    1. create_cities_with_validation
#    2. enable_sharding                ("weatherDB")
#    3. ensure_city_indexes
#    4. insert_initial_data
#    5. update_weather_data
#    6. delete_weather_data
#    7. select_all_weather
#    8. select_documents
#    9. join_data
#   10. aggregate_functions
#   11. count_and_group_by
#   12. count_group_by_and_filter
#   13. create_view
#   14. union_like_functionality
#   15. reenable_sharding              (enable_sharding, run again)
#   16. reapply_cities_validation      (create_cities_with_validation, run again)
#   17. watch_changes_with_filter
#   18. complex_aggregation
#   19. run_stored_procedure
#   20. find_cities_within_distance    ([102.0, 2.0], 100 miles)
#   21. advanced_text_search           ("Hayward")
#   22. create_user_with_permissions
#   23. backup_hint
#
#   Insert → update → delete must stay in this order: each one
#   works on what the previous one left behind.
#
# ==============================================

from functools import partial
from typing import Any, Dict, List, Optional

from pymongo import GEOSPHERE, TEXT
from pymongo.errors import OperationFailure

from opsrunner.runner.operation import Operation, OperationContext
from opsrunner.storage.change_stream import ChangeSubscription

WEATHER = "weather"
CITIES = "cities"

# Server error codes
NAMESPACE_EXISTS = 48
USER_ALREADY_EXISTS = 51003

# Earth radius in miles; $centerSphere takes its radius in radians
MILES_PER_RADIAN = 3963.2

CITIES_VALIDATOR: Dict[str, Any] = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["name", "location"],
        "properties": {
            "name": {"bsonType": "string"},
            "location": {
                "bsonType": "object",
                "required": ["type"],
                "properties": {
                    "type": {"enum": ["Point"]},
                    "coordinates": {
                        "bsonType": "array",
                        "items": {"bsonType": "double"}
                    }
                }
            }
        }
    }
}

INITIAL_WEATHER: List[Dict[str, Any]] = [
    {"date": "1994-11-29", "city": "Hayward", "temp_hi": 54, "temp_lo": 37},
    {"date": "1994-11-30", "city": "Hayward", "temp_hi": 56, "temp_lo": 39},
]

CITY_LOOKUP = {
    "$lookup": {
        "from": CITIES,
        "localField": "city",
        "foreignField": "name",
        "as": "city_info"
    }
}

GROUP_BY_CITY = {
    "$group": {
        "_id": "$city",
        "count": {"$sum": 1},
        "max_temp_lo": {"$max": "$temp_lo"}
    }
}


# ----------------------------------------------
# Schema, sharding, indexes
# ----------------------------------------------

def create_cities_with_validation(store, context: OperationContext) -> str:
    """
    Create the cities collection with a $jsonSchema validator.

    Running it again re-applies the validator to the existing
    collection with collMod instead of failing.
    """
    database = store.database
    try:
        database.create_collection(CITIES, validator=CITIES_VALIDATOR, check_exists=False)
        print("Cities collection created with validation.")
        return "created"
    except OperationFailure as e:
        if e.code != NAMESPACE_EXISTS:
            raise
    database.command("collMod", CITIES, validator=CITIES_VALIDATOR)
    print("Cities collection already existed; validator re-applied.")
    return "updated"


def enable_sharding(store, context: OperationContext, db_name: str) -> dict:
    result = store.admin_command({"enableSharding": db_name})
    print(f"Sharding enabled for database: {db_name}")
    return result


def ensure_city_indexes(store, context: OperationContext) -> List[str]:
    # $geoWithin works without an index, $text does not
    cities = store.collection(CITIES)
    names = [
        cities.create_index([("location", GEOSPHERE)]),
        cities.create_index([("name", TEXT)]),
    ]
    print(f"City indexes ensured: {', '.join(names)}")
    return names


# ----------------------------------------------
# Writes
# ----------------------------------------------

def insert_initial_data(store, context: OperationContext) -> list:
    # Copies, because insert_many adds _id to the dicts it is given
    result = store.collection(WEATHER).insert_many([dict(doc) for doc in INITIAL_WEATHER])
    print("Initial data inserted into weather collection.")
    return list(result.inserted_ids)


def update_weather_data(store, context: OperationContext) -> int:
    result = store.collection(WEATHER).update_many(
        {"date": {"$gt": "1994-11-28"}},
        {"$inc": {"temp_hi": -2, "temp_lo": -2}}
    )
    print(f"Weather data updated ({result.modified_count} documents).")
    return result.modified_count


def delete_weather_data(store, context: OperationContext) -> int:
    result = store.collection(WEATHER).delete_one({"city": "Hayward"})
    print(f"Hayward data deleted from weather collection ({result.deleted_count} document).")
    return result.deleted_count


# ----------------------------------------------
# Reads
# ----------------------------------------------

def select_all_weather(store, context: OperationContext) -> list:
    documents = list(store.collection(WEATHER).find({}))
    print(f"All weather documents: {documents}")
    return documents


def select_documents(store, context: OperationContext) -> dict:
    weather = store.collection(WEATHER)

    distinct_cities = weather.distinct("city")
    print(f"Distinct cities: {distinct_cities}")

    temp_average = list(weather.aggregate([
        {"$group": {"_id": "$city", "temp_avg": {"$avg": {"$avg": ["$temp_hi", "$temp_lo"]}}}}
    ]))
    print(f"Average temperatures by city: {temp_average}")

    return {"distinct_cities": distinct_cities, "temp_average": temp_average}


def join_data(store, context: OperationContext) -> list:
    result = list(store.collection(WEATHER).aggregate([CITY_LOOKUP]))
    print(f"Join results: {result}")
    return result


def aggregate_functions(store, context: OperationContext) -> list:
    max_temp_lo = list(store.collection(WEATHER).find({}).sort("temp_lo", -1).limit(1))
    print(f"Max temp_lo: {max_temp_lo}")
    return max_temp_lo


def count_and_group_by(store, context: OperationContext) -> list:
    result = list(store.collection(WEATHER).aggregate([GROUP_BY_CITY]))
    print(f"Count and Group By result: {result}")
    return result


def count_group_by_and_filter(store, context: OperationContext) -> list:
    result = list(store.collection(WEATHER).aggregate([
        GROUP_BY_CITY,
        {"$match": {"max_temp_lo": {"$lt": 40}}}
    ]))
    print(f"Count, Group By and Filter result: {result}")
    return result


def create_view(store, context: OperationContext) -> list:
    # Same shape as the SQL view: weather joined with the city location
    result = list(store.collection(WEATHER).aggregate([
        CITY_LOOKUP,
        {
            "$project": {
                "_id": 0,
                "city": 1,
                "temp_lo": 1,
                "temp_hi": 1,
                "prcp": 1,
                "date": 1,
                "location": {"$arrayElemAt": ["$city_info.location", 0]}
            }
        }
    ]))
    print(f"Simulated View Results: {result}")
    return result


def union_like_functionality(store, context: OperationContext) -> list:
    weather = store.collection(WEATHER)
    result1 = list(weather.find({"city": "Hayward"}))
    result2 = list(weather.find({"city": "Oakland"}))
    union_result = result1 + result2
    print(f"Union-like results: {union_result}")
    return union_result


def watch_changes_with_filter(store, context: OperationContext,
                              max_await_ms: int = 1000) -> ChangeSubscription:
    """
    Subscribe to inserts/updates whose document has temp_lo > 40.

    The subscription is handed to the context; the runner cancels it
    when the run ends.
    """
    subscription = ChangeSubscription(
        store.collection(WEATHER),
        pipeline=[{"$match": {"fullDocument.temp_lo": {"$gt": 40}}}],
        max_await_ms=max_await_ms
    )
    context.track(subscription.start())
    print("Watching weather changes with temp_lo > 40.")
    return subscription


def complex_aggregation(store, context: OperationContext) -> list:
    result = list(store.collection(WEATHER).aggregate([
        {
            "$facet": {
                "byCity": [
                    {"$group": {"_id": "$city", "avg_temp_hi": {"$avg": "$temp_hi"}, "count": {"$sum": 1}}}
                ],
                "byDate": [
                    {"$group": {"_id": "$date", "total_prcp": {"$sum": "$prcp"}}}
                ]
            }
        }
    ]))
    print(f"Complex Aggregation Results: {result}")
    return result


def run_stored_procedure(store, context: OperationContext) -> list:
    """Run server-side JavaScript through the $function aggregation operator."""
    result = list(store.collection(WEATHER).aggregate([
        {
            "$project": {
                "_id": 0,
                "city": 1,
                "date": 1,
                "temp_spread": {
                    "$function": {
                        "body": "function(hi, lo) { return hi - lo; }",
                        "args": ["$temp_hi", "$temp_lo"],
                        "lang": "js"
                    }
                }
            }
        }
    ]))
    print(f"Stored Procedure results: {result}")
    return result


def find_cities_within_distance(store, context: OperationContext,
                                location: List[float], distance: float) -> list:
    """Cities within `distance` miles of `location` ([lng, lat])."""
    nearby_cities = list(store.collection(CITIES).find({
        "location": {
            "$geoWithin": {
                "$centerSphere": [location, distance / MILES_PER_RADIAN]
            }
        }
    }))
    print(f"Cities within distance: {nearby_cities}")
    return nearby_cities


def advanced_text_search(store, context: OperationContext, search_string: str) -> list:
    results = list(store.collection(CITIES).find({
        "$text": {
            "$search": search_string,
            "$caseSensitive": False,
            "$diacriticSensitive": False
        }
    }))
    print(f"Advanced Text Search Results: {results}")
    return results


# ----------------------------------------------
# Security, backup
# ----------------------------------------------

def create_user_with_permissions(store, context: OperationContext,
                                 user: str = "newUser", password: str = "password123",
                                 db_name: Optional[str] = None) -> str:
    """Create `user` with readWrite on the working database, or reset its roles."""
    roles = [{"role": "readWrite", "db": db_name or store.database_name}]
    try:
        store.admin_command({"createUser": user, "pwd": password, "roles": roles})
        print("User created with readWrite permissions.")
        return "created"
    except OperationFailure as e:
        if e.code != USER_ALREADY_EXISTS:
            raise
    store.admin_command({"updateUser": user, "pwd": password, "roles": roles})
    print("User already existed; readWrite permissions re-applied.")
    return "updated"


def backup_hint(store, context: OperationContext, out_dir: str = "/path/to/backup") -> str:
    command = f"mongodump --db {store.database_name} --out {out_dir}"
    print(f"Backup command (run in shell): {command}")
    return command


def mongo_operations(db_name: str = "weatherDB", max_await_ms: int = 1000) -> List[Operation]:
    """The fixed document-store sequence, in execution order."""
    return [
        Operation("create_cities_with_validation", create_cities_with_validation),
        Operation("enable_sharding", partial(enable_sharding, db_name=db_name)),
        Operation("ensure_city_indexes", ensure_city_indexes),
        Operation("insert_initial_data", insert_initial_data),
        Operation("update_weather_data", update_weather_data),
        Operation("delete_weather_data", delete_weather_data),
        Operation("select_all_weather", select_all_weather),
        Operation("select_documents", select_documents),
        Operation("join_data", join_data),
        Operation("aggregate_functions", aggregate_functions),
        Operation("count_and_group_by", count_and_group_by),
        Operation("count_group_by_and_filter", count_group_by_and_filter),
        Operation("create_view", create_view),
        Operation("union_like_functionality", union_like_functionality),
        Operation("reenable_sharding", partial(enable_sharding, db_name=db_name)),
        Operation("reapply_cities_validation", create_cities_with_validation),
        Operation("watch_changes_with_filter", partial(watch_changes_with_filter, max_await_ms=max_await_ms)),
        Operation("complex_aggregation", complex_aggregation),
        Operation("run_stored_procedure", run_stored_procedure),
        Operation("find_cities_within_distance",
                  partial(find_cities_within_distance, location=[102.0, 2.0], distance=100)),
        Operation("advanced_text_search", partial(advanced_text_search, search_string="Hayward")),
        Operation("create_user_with_permissions",
                  partial(create_user_with_permissions, db_name=db_name)),
        Operation("backup_hint", backup_hint),
    ]
