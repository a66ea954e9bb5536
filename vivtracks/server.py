# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

# Web Server for the vivtracks project
#
# Loads the dataset into the catalog database at startup, then serves
# a small JSON API for listing tracks and patching them.

from aiohttp import web
import asyncio

import argparse
import json
import logging
import os
import re
import sys
import traceback

from pydantic import BaseModel, ValidationError, field_validator
from pydantic_core import PydanticCustomError
from typing import Optional

from .catalog import Catalog
from .catalogdb import CatalogDB
from .errors import PatchError, RequestError, StartupError
from .schema import INT64_MAX, INT64_MIN

TRACKS_ENDPOINT = "/api/v1/tracks"
LEGACY_TRACKS_ENDPOINT = "/api/tracks"

DEFAULT_PORT = 3000
DEFAULT_CLIENT_ORIGIN = "http://localhost:5173"

routes = web.RouteTableDef()


def parse_int(value) -> Optional[int]:
    """Parse an optionally negative run of ASCII digits, or return None"""
    value = str(value).strip()
    if not re.fullmatch(r"-?[0-9]+", value):
        return None
    return int(value)


def parse_int64(value) -> Optional[int]:
    """Like parse_int, but only values SQLite can store"""
    parsed = parse_int(value)
    if parsed is None or not INT64_MIN <= parsed <= INT64_MAX:
        return None
    return parsed


class ListTracksParams(BaseModel):
    title: Optional[str] = None
    offset: Optional[int] = None
    limit: Optional[int] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v):
        if v == "":
            raise PydanticCustomError("title", "Invalid title")
        return v

    @field_validator("offset", mode="before")
    @classmethod
    def check_offset(cls, v):
        if v is None:
            return v
        offset = parse_int64(v)
        if offset is None:
            raise PydanticCustomError("start", "`start` must be a valid integer")
        return offset

    @field_validator("limit", mode="before")
    @classmethod
    def check_limit(cls, v):
        if v is None:
            return v
        limit = parse_int64(v)
        if limit is None or limit < 1:
            raise PydanticCustomError(
                "limit", "`limit` must be a valid integer greater than 0."
            )
        return limit


def error_response(message: str, status: int):
    return web.json_response({"data": None, "error": message}, status=status)


@web.middleware
async def cors_middleware(request, handler):
    origin = request.app["client_origin"]
    cors_headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, PATCH",
        "Access-Control-Allow-Headers": "Content-Type",
    }

    # Pre-flight for any path
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=cors_headers)

    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(cors_headers)
        raise

    response.headers.update(cors_headers)
    return response


@web.middleware
async def error_middleware(request, handler):
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return error_response("Bad Request: This endpoint does not exist.", 404)


@routes.get(TRACKS_ENDPOINT, allow_head=False)
async def get_tracks(request):
    try:
        params = ListTracksParams(
            **{k: v for k, v in request.query.items() if k in ListTracksParams.model_fields}
        )
    except ValidationError as e:
        return error_response(e.errors()[0]["msg"], 400)

    try:
        tracks = request.app["catalog"].get(params.title, params.offset, params.limit)

        return web.json_response([t.to_dict() for t in tracks])
    except Exception as e:
        logger = logging.getLogger(__name__)
        logger.error(f"Error in get_tracks: {str(e)}\n{traceback.format_exc()}")
        return error_response("An Unknown Error occurred. Please try again.", 500)


@routes.patch(TRACKS_ENDPOINT)
async def update_track(request):
    track_id = request.query.get("id")
    idx = parse_int(request.query.get("idx", ""))
    if not track_id or idx is None:
        return error_response(
            "The Update Request must specify the ID and the Idx of the track to be updated in the request URL.",
            400,
        )

    if request.content_type != "application/json":
        return error_response("Request body must be in JSON.", 400)

    try:
        operations = await request.json()

        success = request.app["catalog"].update(track_id, idx, operations)

        return web.json_response({"data": bool(success), "error": None})
    except (json.JSONDecodeError, UnicodeDecodeError, PatchError) as e:
        logger = logging.getLogger(__name__)
        logger.debug(f"Rejected patch for ({idx}, {track_id}): {str(e)}")
        return error_response("Body is not valid JSON Patch spec.", 400)
    except RequestError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger = logging.getLogger(__name__)
        logger.error(f"Error in update_track: {str(e)}\n{traceback.format_exc()}")
        return error_response("An unknown error occurred. Please try again later.", 500)


@routes.route("*", TRACKS_ENDPOINT)
async def unsupported_method(request):
    return error_response("Not supported.", 501)


@routes.route("*", LEGACY_TRACKS_ENDPOINT)
async def legacy_tracks(request):
    location = TRACKS_ENDPOINT
    if request.query_string:
        location = f"{location}?{request.query_string}"
    raise web.HTTPMovedPermanently(location)


def make_app(catalog: Catalog, client_origin: str = DEFAULT_CLIENT_ORIGIN):
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app.add_routes(routes)

    app["catalog"] = catalog
    app["client_origin"] = client_origin

    return app


async def go(file_path, db_path, port, client_origin):
    logger = logging.getLogger(__name__)

    os.makedirs(db_path, exist_ok=True)
    catalog_db = CatalogDB(os.path.join(db_path, "tracks.db"))
    catalog = Catalog(catalog_db)

    # The whole dataset is in the database before we accept any request
    catalog.write_tracks_from_file(file_path)
    logger.info(f"Catalog has {catalog_db.count_tracks()} tracks")

    app = make_app(catalog, client_origin)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    logger.info(f"Server running on port {port}")
    await asyncio.Future()


def main():
    parser = argparse.ArgumentParser(
        description="The backend server for vivtracks. Serves data describing the tracks (songs)."
    )
    parser.add_argument(
        "-f",
        "--file",
        required=True,
        help="Path of the file containing the formatted tracks data, relative to the cwd",
    )
    parser.add_argument(
        "-d",
        "--db-path",
        default=os.getenv("VIVTRACKS_DB_PATH", "./db"),
        dest="db_path",
        help="Directory of the catalog database",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=int(os.getenv("PORT", DEFAULT_PORT)),
        help="Port to run the web server on",
    )
    parser.add_argument(
        "--client-origin",
        default=os.getenv("CLIENT_ORIGIN", DEFAULT_CLIENT_ORIGIN),
        dest="client_origin",
        help="Origin allowed to call the API from a browser",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args()

    # set up the logger
    log_level = logging.DEBUG if args.verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        asyncio.run(
            go(os.path.abspath(args.file), args.db_path, args.port, args.client_origin)
        )
    except StartupError as e:
        logging.getLogger(__name__).critical(f"Unable to start: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
