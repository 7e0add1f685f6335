#!/usr/bin/env python3
"""
Feeder login state.

The FeederSession is kept in the signed Flask session cookie from login until
logout and handed explicitly to every CatalogClient that needs it.
"""

import functools
import logging
from typing import Optional

from flask import g, redirect, request, session, url_for

from catalog_api import CatalogClient, FeederSession, get_catalog_client

SESSION_KEY = "feeder"


def store_session(feeder: FeederSession) -> None:
    session[SESSION_KEY] = feeder.to_dict()
    # Later calls in this request carry the new tokens
    close_catalog_client()
    logging.info("Feeder logged in: %s", feeder.email or feeder.name)


def clear_session() -> None:
    feeder = session.pop(SESSION_KEY, None)
    if feeder:
        logging.info("Feeder logged out: %s", feeder.get("email") or feeder.get("name"))


def current_session() -> Optional[FeederSession]:
    data = session.get(SESSION_KEY)
    if not data:
        return None
    try:
        return FeederSession.from_dict(data)
    except (KeyError, TypeError):
        logging.warning("Discarding malformed feeder session")
        session.pop(SESSION_KEY, None)
        return None


def is_feeder_authenticated() -> bool:
    feeder = current_session()
    return feeder is not None and feeder.is_authenticated


def catalog_client() -> CatalogClient:
    """Client carrying the current feeder's tokens, if any. One per request."""
    if "catalog_client" not in g:
        g.catalog_client = get_catalog_client(session=current_session())
    return g.catalog_client


def close_catalog_client(exc=None) -> None:
    """Teardown handler: close the request's HTTP session."""
    client = g.pop("catalog_client", None)
    if client is not None:
        client.close()


def login_required(view):
    """Send anonymous visitors to the login page."""
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        if not is_feeder_authenticated():
            if request.path.startswith("/api/"):
                return {"success": False, "message": "Not authenticated"}, 401
            return redirect(url_for("login", next=request.path))
        return view(*args, **kwargs)
    return wrapped
