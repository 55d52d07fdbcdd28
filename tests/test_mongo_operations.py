# ==============================================
# Tests for the MongoDB weather operations
# ==============================================

import pytest
from pymongo.errors import OperationFailure

from opsrunner.operations import mongo_operations
from opsrunner.operations import mongo_weather as ops
from opsrunner.runner import FailurePolicy, Operation, OperationRunner
from opsrunner.storage import ChangeSubscription


class TestSequence:

    def test_crud_sequence_call_log(self, mongo_store):
        """create → insert → update → delete → select hit the store in that order."""
        operations = [
            Operation("create_cities_with_validation", ops.create_cities_with_validation),
            Operation("insert_initial_data", ops.insert_initial_data),
            Operation("update_weather_data", ops.update_weather_data),
            Operation("delete_weather_data", ops.delete_weather_data),
            Operation("select_all_weather", ops.select_all_weather),
        ]

        report = OperationRunner(mongo_store).run(operations)

        assert report.ok
        assert mongo_store.calls == [
            "create_collection",
            "insert_many",
            "update_many",
            "delete_one",
            "find",
        ]

    def test_full_sequence_order(self):
        names = [op.name for op in mongo_operations()]

        assert names[0] == "create_cities_with_validation"
        assert names.index("insert_initial_data") < names.index("update_weather_data")
        assert names.index("update_weather_data") < names.index("delete_weather_data")
        assert names.index("ensure_city_indexes") < names.index("advanced_text_search")
        assert names[-1] == "backup_hint"
        assert len(names) == len(set(names)) == 23

    def test_full_sequence_runs_against_fake(self, mongo_store):
        report = OperationRunner(mongo_store, FailurePolicy.BEST_EFFORT).run(
            mongo_operations(max_await_ms=10)
        )

        assert report.ok, report.errors
        assert mongo_store.lifecycle == ["connect", "disconnect"]
        # The change subscription was cancelled with the run
        assert mongo_store.collection("weather").stream.closed

    def test_full_sequence_reapplies_sharding_and_validator(self, mongo_store, capsys):
        report = OperationRunner(mongo_store).run(mongo_operations(max_await_ms=10))

        assert report.ok, report.errors
        assert "validator re-applied" in capsys.readouterr().out
        assert mongo_store.calls.count("admin:enableSharding") == 2
        assert "command:collMod" in mongo_store.calls
        names = [op.name for op in mongo_operations()]
        assert names.index("union_like_functionality") < names.index("reenable_sharding")
        assert names.index("reapply_cities_validation") < names.index("watch_changes_with_filter")


class TestValidation:

    def test_validator_shape(self, mongo_store, context):
        ops.create_cities_with_validation(mongo_store, context)

        schema = mongo_store.database.created_with["validator"]["$jsonSchema"]
        assert schema["required"] == ["name", "location"]
        assert schema["properties"]["name"] == {"bsonType": "string"}
        assert schema["properties"]["location"]["properties"]["type"] == {"enum": ["Point"]}

    def test_second_call_reapplies_validator(self, mongo_store, context):
        assert ops.create_cities_with_validation(mongo_store, context) == "created"
        assert ops.create_cities_with_validation(mongo_store, context) == "updated"

        args, kwargs = mongo_store.database.commands[-1]
        assert args == ("collMod", "cities")
        assert kwargs["validator"] == ops.CITIES_VALIDATOR

    def test_other_create_errors_propagate(self, mongo_store, context, monkeypatch):
        def unauthorized(name, **kwargs):
            raise OperationFailure("not authorized", code=13)

        monkeypatch.setattr(mongo_store.database, "create_collection", unauthorized)

        with pytest.raises(OperationFailure):
            ops.create_cities_with_validation(mongo_store, context)


class TestWrites:

    def test_insert_does_not_mutate_module_data(self, mongo_store, context):
        ops.insert_initial_data(mongo_store, context)

        inserted = mongo_store.collection("weather").documents
        assert [doc["temp_hi"] for doc in inserted] == [54, 56]
        assert inserted[0] is not ops.INITIAL_WEATHER[0]

    def test_update_and_delete_counts(self, mongo_store, context):
        ops.insert_initial_data(mongo_store, context)

        assert ops.update_weather_data(mongo_store, context) == 2
        assert ops.delete_weather_data(mongo_store, context) == 1


class TestQueries:

    def test_center_sphere_radius_in_radians(self, mongo_store, context):
        ops.find_cities_within_distance(mongo_store, context, location=[102.0, 2.0], distance=100)

        query = mongo_store.collection("cities").find_filters[-1]
        center, radius = query["location"]["$geoWithin"]["$centerSphere"]
        assert center == [102.0, 2.0]
        assert radius == pytest.approx(100 / 3963.2)

    def test_text_search_options(self, mongo_store, context):
        ops.advanced_text_search(mongo_store, context, search_string="Hayward")

        text = mongo_store.collection("cities").find_filters[-1]["$text"]
        assert text == {"$search": "Hayward", "$caseSensitive": False, "$diacriticSensitive": False}

    def test_group_and_filter_pipeline(self, mongo_store, context):
        ops.count_group_by_and_filter(mongo_store, context)

        pipeline = mongo_store.collection("weather").aggregate_pipelines[-1]
        assert pipeline[0]["$group"]["_id"] == "$city"
        assert pipeline[1] == {"$match": {"max_temp_lo": {"$lt": 40}}}

    def test_stored_procedure_uses_server_side_function(self, mongo_store, context):
        ops.run_stored_procedure(mongo_store, context)

        stage = mongo_store.collection("weather").aggregate_pipelines[-1][0]
        function = stage["$project"]["temp_spread"]["$function"]
        assert function["lang"] == "js"
        assert function["args"] == ["$temp_hi", "$temp_lo"]

    def test_union_concatenates_in_order(self, mongo_store, context):
        weather = mongo_store.collection("weather")
        ops.union_like_functionality(mongo_store, context)

        assert weather.find_filters[-2:] == [{"city": "Hayward"}, {"city": "Oakland"}]


class TestAdmin:

    def test_enable_sharding(self, mongo_store, context):
        ops.enable_sharding(mongo_store, context, db_name="weatherDB")

        assert mongo_store.admin_commands == [{"enableSharding": "weatherDB"}]

    def test_create_user(self, mongo_store, context):
        assert ops.create_user_with_permissions(mongo_store, context) == "created"

        command = mongo_store.admin_commands[-1]
        assert command["createUser"] == "newUser"
        assert command["roles"] == [{"role": "readWrite", "db": "weatherDB"}]

    def test_existing_user_is_updated(self, mongo_store, context):
        mongo_store.admin_errors["createUser"] = OperationFailure("User already exists", code=51003)

        assert ops.create_user_with_permissions(mongo_store, context) == "updated"
        assert mongo_store.calls[-2:] == ["admin:createUser", "admin:updateUser"]

    def test_backup_hint_makes_no_remote_call(self, mongo_store, context, capsys):
        command = ops.backup_hint(mongo_store, context)

        assert command == "mongodump --db weatherDB --out /path/to/backup"
        assert mongo_store.calls == []
        assert "mongodump --db weatherDB" in capsys.readouterr().out


class TestWatch:

    def test_subscription_is_tracked_by_context(self, mongo_store, context):
        subscription = ops.watch_changes_with_filter(mongo_store, context, max_await_ms=10)

        assert isinstance(subscription, ChangeSubscription)
        assert context.resources == [subscription]
        pipeline, max_await = mongo_store.collection("weather").watch_args
        assert pipeline == [{"$match": {"fullDocument.temp_lo": {"$gt": 40}}}]
        assert max_await == 10

        context.close()
        assert not subscription.is_active

    def test_watch_error_is_an_operation_failure(self, mongo_store):
        mongo_store.collection("weather").watch_error = OperationFailure(
            "The $changeStream stage is only supported on replica sets", code=40573
        )

        report = OperationRunner(mongo_store).run([
            Operation("watch_changes_with_filter", ops.watch_changes_with_filter)
        ])

        assert report.failed == ["watch_changes_with_filter"]
        assert mongo_store.disconnect_count == 1
