from datetime import timedelta

from flask import current_app

from errors import NotFound
from history_store import HistoryStore
from models import User, utcnow
from validators import decode_image, extract_domain, parse_positive_int, validate_screenshot_upload


class CaptureDisabled:
    """Returned by ``add_history_item`` when the user switched capturing off."""

    message = 'Screenshot capture is disabled'

    def __repr__(self):
        return '<CaptureDisabled>'


class HistoryService:
    def __init__(self, store, image_host, executor, users=User.find, default_limit=50, max_limit=100):
        self.store = store or HistoryStore()
        self.image_host = image_host
        self.executor = executor
        self.users = users
        self.default_limit = default_limit
        self.max_limit = max_limit

    def _load_user(self, user_id):
        user = self.users(user_id)
        if user is None:
            raise NotFound('User not found')
        return user

    def add_history_item(self, user_id, data):
        """Upload a screenshot and record the visit.

        Returns the stored ``HistoryItem``, or a ``CaptureDisabled`` marker
        when the user has capturing switched off; in that case nothing is
        validated, uploaded or stored.
        """
        user = self._load_user(user_id)
        if not user.capture_enabled:
            current_app.logger.debug(f"Screenshot capture disabled for user {user.id}")
            return CaptureDisabled()

        validate_screenshot_upload(data)
        image_bytes = decode_image(data['imageBase64'])

        image_url = self.image_host.upload(image_bytes)

        url = data['url']
        item = self.store.create(
            user.id,
            url=url,
            title=data['title'],
            image_url=image_url,
            favicon=data.get('favicon') or None,
            domain=extract_domain(url),
            timestamp=utcnow(),
        )
        current_app.logger.info(f"Screenshot stored for {item.domain} (user {user.id})")

        if user.retention_days and user.retention_days > 0:
            self.schedule_cleanup(user.id, user.retention_days)
        return item

    def schedule_cleanup(self, user_id, days):
        app = current_app._get_current_object()

        def run():
            with app.app_context():
                try:
                    deleted = self.delete_older_than(user_id, days)
                    app.logger.debug(f"Deleted {deleted} old history items for user {user_id}")
                except Exception:
                    app.logger.exception(f"Error cleaning up old history items for user {user_id}")

        return self.executor.submit(run)

    def delete_older_than(self, user_id, days):
        cutoff = utcnow() - timedelta(days=days)
        return self.store.delete_where(user_id, before=cutoff)

    def prune_all(self):
        """Apply every user's retention window; returns the number of items removed."""
        total = 0
        for user in User.query.order_by(User.id).all():
            if user.retention_days and user.retention_days > 0:
                total += self.delete_older_than(user.id, user.retention_days)
        return total

    def get_user_history(self, user_id, options=None):
        options = options or {}
        limit = min(parse_positive_int(options.get('limit'), self.default_limit), self.max_limit)
        page = parse_positive_int(options.get('page'), 1)
        domain = options.get('domain') or None
        search = options.get('search') or None
        sort_by = options.get('sortBy') or 'timestamp'
        descending = options.get('sortOrder') != 'asc'

        total = self.store.count(user_id, domain=domain, search=search)
        items = self.store.find(
            user_id,
            domain=domain,
            search=search,
            sort_by=sort_by,
            descending=descending,
            skip=(page - 1) * limit,
            limit=limit,
        )

        total_pages = -(-total // limit)
        return {
            'items': items,
            'pagination': {
                'total': total,
                'limit': limit,
                'page': page,
                'totalPages': total_pages,
                'hasNextPage': page < total_pages,
                'hasPrevPage': page > 1,
            },
        }

    def get_user_domains(self, user_id):
        return self.store.domain_counts(user_id)

    def delete_history_item(self, user_id, item_id):
        if not self.store.delete_one(user_id, item_id):
            raise NotFound('History item not found')

    def clear_user_history(self, user_id, domain=None, before=None):
        deleted = self.store.delete_where(user_id, domain=domain or None, before=before)
        current_app.logger.info(f"Cleared {deleted} history items for user {user_id}")
        return {'deletedCount': deleted}
