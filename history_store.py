from sqlalchemy import func, or_

from extensions import db
from models import HistoryItem

SORTABLE_COLUMNS = {
    'timestamp': HistoryItem.timestamp,
    'title': HistoryItem.title,
    'url': HistoryItem.url,
    'domain': HistoryItem.domain,
    'createdAt': HistoryItem.created_at,
}


class UnscopedQueryError(RuntimeError):
    """Raised when a history query is issued without an owning user."""


def _escape_like(text):
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _contains_folded(column, text):
    """Case-insensitive substring match, folding non-ASCII text as well."""
    if db.engine.dialect.name == 'sqlite':
        # casefold() is registered on every SQLite connection in extensions.py
        return func.casefold(column).like(f"%{_escape_like(text.casefold())}%", escape='\\')
    return column.ilike(f"%{_escape_like(text)}%", escape='\\')


class HistoryStore:
    """Persistence primitives for history items.

    Every read and delete is filtered by ``user_id``; calls without one are
    rejected before any SQL is issued.
    """

    def _scoped(self, user_id):
        if user_id is None or user_id == '':
            raise UnscopedQueryError('history queries must be scoped to a user')
        return HistoryItem.query.filter(HistoryItem.user_id == user_id)

    def _filtered(self, user_id, domain=None, search=None, before=None):
        query = self._scoped(user_id)
        if domain:
            query = query.filter(HistoryItem.domain == domain)
        if search:
            query = query.filter(or_(
                _contains_folded(HistoryItem.title, search),
                _contains_folded(HistoryItem.url, search),
            ))
        if before is not None:
            query = query.filter(HistoryItem.timestamp < before)
        return query

    def create(self, user_id, **fields):
        if user_id is None or user_id == '':
            raise UnscopedQueryError('history items must belong to a user')
        item = HistoryItem(user_id=user_id, **fields)
        db.session.add(item)
        db.session.commit()
        return item

    def find(self, user_id, domain=None, search=None, sort_by='timestamp', descending=True, skip=0, limit=50):
        column = SORTABLE_COLUMNS.get(sort_by, HistoryItem.timestamp)
        if descending:
            order = (column.desc(), HistoryItem.id.desc())
        else:
            order = (column.asc(), HistoryItem.id.asc())
        return (self._filtered(user_id, domain, search)
                .order_by(*order)
                .offset(skip)
                .limit(limit)
                .all())

    def count(self, user_id, domain=None, search=None):
        return self._filtered(user_id, domain, search).count()

    def domain_counts(self, user_id):
        self._scoped(user_id)
        count = func.count(HistoryItem.id)
        rows = (db.session.query(HistoryItem.domain, count)
                .filter(HistoryItem.user_id == user_id)
                .group_by(HistoryItem.domain)
                .order_by(count.desc(), HistoryItem.domain.asc())
                .all())
        return [{'domain': domain, 'count': total} for domain, total in rows]

    def delete_one(self, user_id, item_id):
        deleted = (self._scoped(user_id)
                   .filter(HistoryItem.id == str(item_id))
                   .delete(synchronize_session=False))
        db.session.commit()
        return deleted == 1

    def delete_where(self, user_id, domain=None, before=None):
        deleted = (self._filtered(user_id, domain=domain, before=before)
                   .delete(synchronize_session=False))
        db.session.commit()
        return deleted
