"""
Tests for the library listing.
"""

from polyglot.mirror.libraries import list_libraries

from tests.helpers import ALT_ID, SOURCE_ID


def test_source_library_is_not_a_mirror(host, store):
    [info] = list_libraries(host, store)

    assert info.id == SOURCE_ID
    assert info.name == "Movies"
    assert info.collection_type == "movies"
    assert info.preferred_metadata_language == "en"
    assert info.metadata_country_code == "US"
    assert info.is_mirror is False
    assert info.language_alternative_id is None


def test_mirror_target_is_flagged(host, store, created_mirror):
    libraries = {info.id: info for info in list_libraries(host, store)}

    target = libraries[created_mirror.target_library_id]
    assert target.is_mirror is True
    assert target.language_alternative_id == ALT_ID
    assert target.preferred_metadata_language == "pt"
    assert libraries[SOURCE_ID].is_mirror is False


def test_listing_does_not_modify_configuration(host, store, created_mirror):
    before = store.snapshot().model_dump()
    list_libraries(host, store)
    assert store.snapshot().model_dump() == before
