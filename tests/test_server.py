import json
import os
import tempfile
from unittest.mock import patch
import pytest
from aiohttp.test_utils import AioHTTPTestCase

from vivtracks.catalog import Catalog
from vivtracks.catalogdb import CatalogDB
from vivtracks.records.track import Track
from vivtracks.server import (
    ListTracksParams,
    make_app,
    TRACKS_ENDPOINT,
    LEGACY_TRACKS_ENDPOINT,
    main,
)

CLIENT_ORIGIN = "http://localhost:5173"

PATCH_HEADERS = {"Content-Type": "application/json"}


class TestServer(AioHTTPTestCase):
    """Test cases for the tracks API endpoints."""

    def setUp(self):
        """Set up test database and other resources."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test_tracks.db")

        self.catalog_db = CatalogDB(self.db_path)
        self.catalog_db.insert_tracks(
            [
                Track(idx=0, id="a", title="3AM", tempo=108.0),
                Track(idx=1, id="b", title="4 Walls", tempo=99.5),
                Track(idx=2, id="c", title="21 Guns", tempo=105.0),
                Track(idx=3, id="d", title="Guns of Brixton", tempo=98.0),
            ]
        )
        self.catalog = Catalog(self.catalog_db)

        super().setUp()

    def tearDown(self):
        """Clean up test resources."""
        self.catalog_db.close()
        self.temp_dir.cleanup()
        super().tearDown()

    async def get_application(self):
        """Create application for testing."""
        return make_app(self.catalog, CLIENT_ORIGIN)

    async def patch_track(self, query, ops):
        return await self.client.request(
            "PATCH",
            f"{TRACKS_ENDPOINT}?{query}",
            data=json.dumps(ops),
            headers=PATCH_HEADERS,
        )

    # ----------------------
    # GET
    # ----------------------

    async def test_get_all_tracks(self):
        resp = await self.client.request("GET", TRACKS_ENDPOINT)

        assert resp.status == 200
        data = await resp.json()
        assert [t["idx"] for t in data] == [0, 1, 2, 3]
        assert data[0]["title"] == "3AM"
        assert data[0]["rating"] == -1
        assert "class" in data[0]
        assert "duration_ms" in data[0]

    async def test_get_tracks_filtered(self):
        resp = await self.client.request(
            "GET", f"{TRACKS_ENDPOINT}?title=guns&offset=1&limit=1"
        )

        assert resp.status == 200
        data = await resp.json()
        assert [t["title"] for t in data] == ["21 Guns"]

    async def test_get_invalid_offset(self):
        resp = await self.client.request(
            "GET", f"{TRACKS_ENDPOINT}?title=test&offset=abc&limit=xyz"
        )

        assert resp.status == 400
        data = await resp.json()
        assert data == {"data": None, "error": "`start` must be a valid integer"}

    async def test_get_zero_limit(self):
        resp = await self.client.request("GET", f"{TRACKS_ENDPOINT}?limit=0")

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "`limit` must be a valid integer greater than 0."

    async def test_get_empty_title(self):
        resp = await self.client.request("GET", f"{TRACKS_ENDPOINT}?title=")

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "Invalid title"

    async def test_get_integers_out_of_range(self):
        for query, error in (
            ("limit=99999999999999999999", "`limit` must be a valid integer greater than 0."),
            ("offset=99999999999999999999", "`start` must be a valid integer"),
            ("offset=-99999999999999999999", "`start` must be a valid integer"),
        ):
            resp = await self.client.request("GET", f"{TRACKS_ENDPOINT}?{query}")

            assert resp.status == 400
            data = await resp.json()
            assert data == {"data": None, "error": error}

    async def test_get_largest_integers(self):
        resp = await self.client.request(
            "GET",
            TRACKS_ENDPOINT,
            params={"offset": "-9223372036854775808", "limit": "9223372036854775807"},
        )

        assert resp.status == 200
        assert len(await resp.json()) == 4

    async def test_get_offset_must_be_ascii_digits(self):
        for offset in ("0_0", "+1", "٣", "1.0"):
            resp = await self.client.request(
                "GET", TRACKS_ENDPOINT, params={"offset": offset}
            )

            assert resp.status == 400
            data = await resp.json()
            assert data["error"] == "`start` must be a valid integer"

    async def test_get_storage_error(self):
        with patch.object(self.catalog, "get", side_effect=Exception("DB Error")):
            resp = await self.client.request("GET", TRACKS_ENDPOINT)

        assert resp.status == 500
        data = await resp.json()
        assert data == {
            "data": None,
            "error": "An Unknown Error occurred. Please try again.",
        }

    # ----------------------
    # PATCH
    # ----------------------

    async def test_patch_title(self):
        resp = await self.patch_track(
            "id=c&idx=2", [{"op": "replace", "path": "/title", "value": "Gravity"}]
        )

        assert resp.status == 200
        data = await resp.json()
        assert data == {"data": True, "error": None}

        track = self.catalog_db.get_track(2, "c")
        assert track.title == "Gravity"
        assert track.tempo == 105.0

    async def test_patch_twice(self):
        ops = [{"op": "replace", "path": "/rating", "value": 4}]

        for _ in range(2):
            resp = await self.patch_track("id=a&idx=0", ops)
            assert resp.status == 200
            assert (await resp.json())["data"] is True

        assert self.catalog_db.get_track(0, "a").rating == 4

    async def test_patch_missing_params(self):
        for query in (
            "id=a",
            "idx=0",
            "id=a&idx=zero",
            "id=&idx=0",
            "id=a&idx=0_0",
            "id=a&idx=%D9%A3",
        ):
            resp = await self.patch_track(query, [])

            assert resp.status == 400
            data = await resp.json()
            assert data["error"] == (
                "The Update Request must specify the ID and the Idx of the track to be updated in the request URL."
            )

    async def test_patch_wrong_content_type(self):
        resp = await self.client.request(
            "PATCH",
            f"{TRACKS_ENDPOINT}?id=a&idx=0",
            data="[]",
            headers={"Content-Type": "text/plain"},
        )

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "Request body must be in JSON."

    async def test_patch_missing_track(self):
        with patch.object(self.catalog_db, "update_track") as update_track:
            resp = await self.patch_track(
                "id=a&idx=1", [{"op": "replace", "path": "/title", "value": "x"}]
            )

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "Track to be updated does not exist"
        update_track.assert_not_called()

    async def test_patch_idx_out_of_range(self):
        resp = await self.patch_track(
            "id=a&idx=99999999999999999999",
            [{"op": "replace", "path": "/title", "value": "x"}],
        )

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "Track to be updated does not exist"

    async def test_patch_malformed_body(self):
        resp = await self.client.request(
            "PATCH",
            f"{TRACKS_ENDPOINT}?id=a&idx=0",
            data="{not json",
            headers=PATCH_HEADERS,
        )

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "Body is not valid JSON Patch spec."

    async def test_patch_body_not_utf8(self):
        resp = await self.client.request(
            "PATCH",
            f"{TRACKS_ENDPOINT}?id=a&idx=0",
            data=b"[\xff]",
            headers=PATCH_HEADERS,
        )

        assert resp.status == 400
        data = await resp.json()
        assert data["error"] == "Body is not valid JSON Patch spec."
        assert self.catalog_db.get_track(0, "a").title == "3AM"

    async def test_patch_invalid_operations(self):
        for ops in (
            {"op": "replace", "path": "/title", "value": "x"},
            [{"op": "replace", "path": "/nope", "value": 1}],
            [{"op": "replace", "path": "/idx", "value": 9}],
            [{"op": "replace", "path": "/rating", "value": "five"}],
            [
                {"op": "add", "path": "/x", "value": [1]},
                {"op": "replace", "path": "/x/²", "value": 2},
            ],
        ):
            resp = await self.patch_track("id=a&idx=0", ops)

            assert resp.status == 400
            data = await resp.json()
            assert data["error"] == "Body is not valid JSON Patch spec."

        track = self.catalog_db.get_track(0, "a")
        assert track.title == "3AM"
        assert track.rating == -1

    async def test_patch_failed_test_is_atomic(self):
        resp = await self.patch_track(
            "id=a&idx=0",
            [
                {"op": "replace", "path": "/title", "value": "Gravity"},
                {"op": "test", "path": "/rating", "value": 5},
            ],
        )

        assert resp.status == 400
        assert self.catalog_db.get_track(0, "a").title == "3AM"

    async def test_patch_no_change(self):
        with patch.object(self.catalog_db, "update_track", return_value=False):
            resp = await self.patch_track(
                "id=a&idx=0", [{"op": "replace", "path": "/title", "value": "x"}]
            )

        assert resp.status == 200
        data = await resp.json()
        assert data == {"data": False, "error": None}

    async def test_patch_storage_error(self):
        with patch.object(
            self.catalog_db, "update_track", side_effect=Exception("DB Error")
        ):
            resp = await self.patch_track(
                "id=a&idx=0", [{"op": "replace", "path": "/title", "value": "x"}]
            )

        assert resp.status == 500
        data = await resp.json()
        assert data["error"] == "An unknown error occurred. Please try again later."

    # ----------------------
    # Everything else
    # ----------------------

    async def test_unsupported_method(self):
        resp = await self.client.request("DELETE", TRACKS_ENDPOINT)

        assert resp.status == 501
        data = await resp.json()
        assert data == {"data": None, "error": "Not supported."}

    async def test_head_not_supported(self):
        resp = await self.client.request("HEAD", TRACKS_ENDPOINT)

        assert resp.status == 501

    async def test_options(self):
        for path in (TRACKS_ENDPOINT, "/somewhere/else"):
            resp = await self.client.request("OPTIONS", path)

            assert resp.status == 204
            assert resp.headers["Access-Control-Allow-Origin"] == CLIENT_ORIGIN
            assert "PATCH" in resp.headers["Access-Control-Allow-Methods"]
            assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type"

    async def test_cors_headers_on_responses(self):
        resp = await self.client.request("GET", TRACKS_ENDPOINT)

        assert resp.headers["Access-Control-Allow-Origin"] == CLIENT_ORIGIN

    async def test_legacy_endpoint_redirects(self):
        resp = await self.client.request(
            "GET", f"{LEGACY_TRACKS_ENDPOINT}?limit=2", allow_redirects=False
        )

        assert resp.status == 301
        assert resp.headers["Location"] == f"{TRACKS_ENDPOINT}?limit=2"

    async def test_legacy_endpoint_followed(self):
        resp = await self.client.request("GET", f"{LEGACY_TRACKS_ENDPOINT}?limit=2")

        assert resp.status == 200
        assert len(await resp.json()) == 2

    async def test_unknown_path(self):
        resp = await self.client.request("GET", "/api/v1/albums")

        assert resp.status == 404
        data = await resp.json()
        assert data == {
            "data": None,
            "error": "Bad Request: This endpoint does not exist.",
        }


def test_list_params_keep_first_error():
    """Test that title, offset and limit are checked in that order."""
    from pydantic import ValidationError

    try:
        ListTracksParams(title="", offset="abc", limit="0")
    except ValidationError as e:
        assert [err["msg"] for err in e.errors()] == [
            "Invalid title",
            "`start` must be a valid integer",
            "`limit` must be a valid integer greater than 0.",
        ]
    else:
        assert False, "expected a ValidationError"

    params = ListTracksParams(offset=" 3 ", limit="10")
    assert params.offset == 3
    assert params.limit == 10
    assert params.title is None


@pytest.mark.parametrize("dataset", ["missing.json", "a_directory"])
def test_main_exits_on_startup_error(tmp_path, caplog, dataset):
    """Test that a bad dataset stops the server before it listens."""
    (tmp_path / "a_directory").mkdir()
    argv = [
        "vivtracks-server",
        "-f",
        str(tmp_path / dataset),
        "-d",
        str(tmp_path / "db"),
    ]

    with patch("sys.argv", argv), patch("aiohttp.web.TCPSite") as tcp_site:
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 1
    tcp_site.assert_not_called()
    assert any(r.levelname == "CRITICAL" for r in caplog.records)
