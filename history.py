from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from errors import BadRequest
from history_service import CaptureDisabled
from validators import parse_datetime


history_bp = Blueprint('history', __name__, url_prefix='/api/history')


def _history_service():
    return current_app.extensions['history_service']


@history_bp.route('/screenshot', methods=['POST'])
@login_required
def upload_screenshot():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')

    result = _history_service().add_history_item(current_user.id, {
        'imageBase64': data.get('imageBase64'),
        'url': data.get('url'),
        'title': data.get('title'),
        'favicon': data.get('favicon'),
    })

    if isinstance(result, CaptureDisabled):
        return jsonify({'success': True, 'captured': False, 'message': result.message})

    current_app.logger.info(f"Screenshot uploaded for URL: {result.url}")
    return jsonify({'success': True, 'data': result.to_dict()}), 201


@history_bp.route('', methods=['GET'])
@login_required
def get_history():
    options = {key: request.args.get(key) for key in ('limit', 'page', 'domain', 'search', 'sortBy', 'sortOrder')}
    result = _history_service().get_user_history(current_user.id, options)
    return jsonify({
        'success': True,
        'data': {
            'items': [item.to_dict() for item in result['items']],
            'pagination': result['pagination'],
        },
    })


@history_bp.route('/domains')
@login_required
def get_domains():
    return jsonify({'success': True, 'data': _history_service().get_user_domains(current_user.id)})


@history_bp.route('/<item_id>', methods=['DELETE'])
@login_required
def delete_item(item_id):
    _history_service().delete_history_item(current_user.id, item_id)
    current_app.logger.info(f"History item deleted: {item_id}")
    return jsonify({'success': True, 'message': 'History item deleted successfully'})


@history_bp.route('', methods=['DELETE'])
@login_required
def clear_history():
    before = request.args.get('before')
    result = _history_service().clear_user_history(
        current_user.id,
        domain=request.args.get('domain') or None,
        before=parse_datetime(before) if before else None,
    )
    return jsonify({'success': True, 'data': result})
