"""Textual integration for tickdict. Opt-in — requires textual.

Runs cooperative traversals on a Textual app's message pump, so each step is
interleaved with the app's own message processing instead of blocking it.

// [LAW:single-enforcer] Guard + NoMatches + thread-marshal enforced here, not at callsites.
// [LAW:locality-or-seam] Textual coupling isolated in this module — core tickdict stays agnostic.
// [LAW:no-shared-mutable-globals] _paused_apps has single owner (this module), explicit API
//   (pause/is_safe), documented invariant (id present ↔ inside pause context).
"""

import logging
import threading
import weakref
from contextlib import contextmanager

from textual.css.query import NoMatches

logger = logging.getLogger("tickdict.textual")

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()

# One defer() per app, dropped with the app.
_schedulers = weakref.WeakKeyDictionary()


@contextmanager
def pause(app):
    """Skip guarded steps during widget replacement. Traversals keep advancing."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_paused(app) -> bool:
    return id(app) in _paused_apps


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and not is_paused(app)


def scheduler(app):
    """defer() primitive backed by app.call_next, cached per app.

    Tasks deferred from any thread other than the app's own are marshaled
    through call_from_thread first. Before the app runs there is no app
    thread yet, so tasks go straight to call_next.
    """
    cached = _schedulers.get(app)
    if cached is not None:
        return cached

    # Weak, so the cache entry does not keep its own key alive.
    app_ref = weakref.ref(app)

    def _defer(fn):
        target = app_ref()
        if target is None:
            logger.debug("App gone; dropping deferred task")
            return
        app_thread = target._thread_id
        if app_thread and threading.get_ident() != app_thread:
            target.call_from_thread(target.call_next, fn)
        else:
            target.call_next(fn)

    _schedulers[app] = _defer
    return _defer


def async_for_each(app, dictionary, step, on_complete=None):
    """async_for_each() that safely drives widget updates.

    Stops when the app is no longer running, skips steps while paused, and
    treats NoMatches from widget queries as the end of the traversal.
    """

    def _guarded(key, value, advance):
        if not app.is_running:
            return False
        if is_paused(app):
            advance()
            return None
        try:
            return step(key, value, advance)
        except NoMatches:
            logger.debug("Widget query failed on key %r; ending traversal", key)
            return False

    return dictionary.async_for_each(_guarded, on_complete, scheduler=scheduler(app))
