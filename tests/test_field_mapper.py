import datetime as dt

from recordkit.mapping import (
    COMMON_MAPPINGS,
    FieldMapper,
    camel_to_snake,
    mapping_from_sample,
    merge_mappings,
    snake_to_camel,
)


def test_automatic_conversion():
    assert camel_to_snake("developmentAreaId") == "development_area_id"
    assert camel_to_snake("posXY") == "pos_x_y"
    assert camel_to_snake("Name") == "name"
    assert snake_to_camel("development_area_id") == "developmentAreaId"
    assert snake_to_camel("_private") == "_private"


def test_explicit_mapping_wins_both_ways():
    mapper = FieldMapper({"ownerId": "owner"})
    assert mapper.to_storage({"ownerId": "u1", "createdAt": 1}) == {"owner": "u1", "created_at": 1}
    assert mapper.to_application({"owner": "u1", "created_at": 1}) == {"ownerId": "u1", "createdAt": 1}


def test_nested_objects_recurse_but_lists_and_dates_do_not():
    when = dt.datetime(2024, 1, 1)
    mapper = FieldMapper()
    out = mapper.to_storage({
        "metaInfo": {"lastSeen": when, "tagList": [{"innerKey": 1}]},
    })
    assert out == {"meta_info": {"last_seen": when, "tag_list": [{"innerKey": 1}]}}


def test_depth_guard_stops_recursion():
    mapper = FieldMapper(max_depth=2)
    out = mapper.to_storage({"levelOne": {"levelTwo": {"levelThree": 1}}})
    assert out == {"level_one": {"level_two": {"levelThree": 1}}}


def test_map_filter_fields_and_lists():
    mapper = FieldMapper({"userId": "user"})
    assert mapper.map_filter_fields({"userId": "u1", "isActive": True}) == {"user": "u1", "is_active": True}
    assert mapper.map_list_to_application([{"user": "u1"}, {"is_active": True}]) == [
        {"userId": "u1"},
        {"isActive": True},
    ]
    assert mapper.map_list_to_storage([{"userId": "u1"}]) == [{"user": "u1"}]


def test_common_mappings_keep_system_fields():
    mapper = FieldMapper.with_common_mappings({"ownerId": "owner"})
    assert mapper.to_storage({"collectionId": "c", "userId": "u", "ownerId": "o"}) == {
        "collectionId": "c",
        "user_id": "u",
        "owner": "o",
    }
    assert "ownerId" not in COMMON_MAPPINGS


def test_helpers():
    assert FieldMapper.has_fields({"a": 1, "b": 2}, ["a", "b"])
    assert not FieldMapper.has_fields({"a": 1}, ["a", "b"])
    assert not FieldMapper.has_fields(None, ["a"])
    assert merge_mappings({"a": "x"}, {"a": "y", "b": "z"}) == {"a": "y", "b": "z"}
    assert mapping_from_sample({"userId": 1, "title": 2}, {"title": "name"}) == {
        "userId": "user_id",
        "title": "name",
    }


def test_storage_records_survive_a_round_trip():
    mapper = FieldMapper()
    record = {
        "a_b_c": 1,
        "pos_x_y": 2,
        "development_area_id": 3,
        "item_2_count": 4,
        "_private_key": 5,
        "nested_obj": {"x_y_z": {"last_seen_at": None}},
    }
    assert mapper.to_storage(mapper.to_application(record)) == record


def test_common_mapper_round_trip_keeps_system_fields():
    mapper = FieldMapper.with_common_mappings()
    record = {"collectionId": "c1", "user_id": "u1", "is_active": True, "pos_x_y": 0}
    assert mapper.to_storage(mapper.to_application(record)) == record
