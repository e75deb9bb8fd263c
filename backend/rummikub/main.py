from datetime import datetime, timezone

from flask import Blueprint, jsonify
from rummikub import sessions

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Rummikub game server!'})

@main.route('/api/health')
def health():
    return jsonify({
        'status': 'ok',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'tables': len(sessions.table_ids()),
    })
