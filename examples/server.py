# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "apiroute[pydantic]",
#     "granian[uvloop]>=2.6.0,<3.0.0",
# ]
#
# [tool.uv.sources]
# apiroute = { path = "../", editable = true }
# ///
"""RSGI server demo.

A single users endpoint served by Granian: GET lists users (optionally
filtered by name prefix), POST creates one. Every route shares a logged base
builder.
"""

import asyncio
import logging
import sqlite3

from granian.server.embed import Server
from pydantic import BaseModel, Field

from apiroute import HandlerParams, create_router, format_routes
from apiroute.middleware.access_log import access_log
from apiroute.middleware.timeout import timeout
from apiroute.rsgi import rsgi
from apiroute.schemas.pydantic import PydanticSchema

ADDRESS = "127.0.0.1"
PORT = 8000

_db = sqlite3.connect(":memory:")
_db.cursor().executescript("""
CREATE TABLE IF NOT EXISTS user (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);
""")


class UserQuery(BaseModel):
    prefix: str = ""
    limit: int = Field(default=50, ge=1, le=500)


class NewUser(BaseModel):
    name: str = Field(min_length=1)


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    router = create_router(users_routes)
    print(format_routes(router))

    server = Server(rsgi(router), address=ADDRESS, port=PORT, log_access=False)
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass


def users_routes(r):
    logged = r().use(access_log())
    return {
        "GET": logged.use(timeout(2))
        .query(PydanticSchema(UserQuery))
        .build(list_users(_db)),
        "POST": logged.body(PydanticSchema(NewUser)).build(create_user(_db)),
    }


# closure over handler to inject dependencies
def list_users(db: sqlite3.Connection):
    def handler(p: HandlerParams[object, UserQuery]) -> list[dict[str, object]]:
        cur = db.cursor()
        cur.execute(
            "SELECT * FROM user WHERE name LIKE ? LIMIT ?",
            (p.query.prefix + "%", p.query.limit),
        )
        return [{"id": row[0], "name": row[1]} for row in cur.fetchall()]

    return handler


def create_user(db: sqlite3.Connection):
    def handler(p: HandlerParams[NewUser, object]) -> dict[str, object]:
        cur = db.cursor()
        cur.execute("INSERT INTO user (name) VALUES (?) RETURNING *", (p.body.name,))
        result = cur.fetchone()
        p.response.set_status(201)
        return {"id": result[0], "name": result[1]}

    return handler


if __name__ == "__main__":
    asyncio.run(main())
