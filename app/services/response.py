import inspect


class ListResponseMixin:
    """Wrap a manager's ``list`` result in the ``{items, count, limit, offset}`` envelope."""

    @classmethod
    def list_response(cls, db, *args, **kwargs):
        items = cls.list(db, *args, **kwargs)
        params = inspect.signature(cls.list).parameters
        bound = inspect.signature(cls.list).bind_partial(db, *args, **kwargs)
        limit = bound.arguments.get("limit", params["limit"].default if "limit" in params else None)
        offset = bound.arguments.get("offset", params["offset"].default if "offset" in params else 0)
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
