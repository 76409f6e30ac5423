from datetime import datetime

import pytest
from bson import ObjectId

from database import aggregate_paginate, create_document, objid, to_str_id
from errors import ValidationError


def test_objid_parses_and_labels_errors():
    oid = ObjectId()
    assert objid(str(oid)) == oid
    assert objid(oid) is oid
    with pytest.raises(ValidationError) as exc:
        objid("123", "videoId")
    assert exc.value.message == "Invalid videoId"
    with pytest.raises(ValidationError):
        objid(None)


def test_to_str_id_is_recursive():
    vid, owner = ObjectId(), ObjectId()
    when = datetime(2024, 5, 6, 7, 8, 9)

    result = to_str_id({
        "_id": vid,
        "createdAt": when,
        "ownerDetails": {"_id": owner, "username": "ann"},
        "watchHistory": [vid],
    })

    assert result == {
        "id": str(vid),
        "createdAt": when.isoformat(),
        "ownerDetails": {"id": str(owner), "username": "ann"},
        "watchHistory": [str(vid)],
    }


def test_create_document_stamps_timestamps(mock_db):
    mock_db["videos"].insert_one.return_value.inserted_id = "abc"

    assert create_document(mock_db, "videos", {"title": "t"}) == "abc"

    doc = mock_db["videos"].insert_one.call_args.args[0]
    assert doc["title"] == "t"
    assert isinstance(doc["createdAt"], datetime)
    assert doc["createdAt"] == doc["updatedAt"]


class TestAggregatePaginate:
    def test_middle_page(self, mock_db):
        mock_db["videos"].aggregate.return_value = [{"metadata": [{"total": 25}], "docs": [{"n": 11}]}]

        page = aggregate_paginate(mock_db, "videos", [{"$match": {"isPublished": True}}], page=2, limit=10)

        assert page == {
            "docs": [{"n": 11}],
            "totalDocs": 25,
            "limit": 10,
            "page": 2,
            "totalPages": 3,
            "pagingCounter": 11,
            "hasPrevPage": True,
            "hasNextPage": True,
            "prevPage": 1,
            "nextPage": 3,
        }
        pipeline = mock_db["videos"].aggregate.call_args.args[0]
        assert pipeline[0] == {"$match": {"isPublished": True}}
        assert pipeline[1] == {
            "$facet": {
                "metadata": [{"$count": "total"}],
                "docs": [{"$skip": 10}, {"$limit": 10}],
            }
        }

    def test_last_page(self, mock_db):
        mock_db["videos"].aggregate.return_value = [{"metadata": [{"total": 20}], "docs": []}]

        page = aggregate_paginate(mock_db, "videos", [], page=2, limit=10)

        assert page["totalPages"] == 2
        assert page["hasNextPage"] is False
        assert page["nextPage"] is None

    def test_no_results(self, mock_db):
        mock_db["videos"].aggregate.return_value = []

        page = aggregate_paginate(mock_db, "videos", [])

        assert page["docs"] == []
        assert page["totalDocs"] == 0
        assert page["totalPages"] == 1
        assert page["hasPrevPage"] is False
        assert page["prevPage"] is None
