from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from tictactoe import socketio
from tictactoe.services.games.coordinator import SessionCoordinator
from typing import Any, Dict


class SocketIOTransport:
    """Room-based messaging substrate used by the coordinator.

    A session's group is the Socket.IO room named after its id.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    def join_group(self, connection_id: str, group: str) -> None:
        join_room(group, sid=connection_id, namespace=self.namespace)

    def leave_group(self, connection_id: str, group: str) -> None:
        leave_room(group, sid=connection_id, namespace=self.namespace)

    def send_to_group(self, group: str, event: str, payload: Dict[str, Any]) -> None:
        socketio.emit(event, payload, to=group, namespace=self.namespace)

    def send_to_connection(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        socketio.emit(event, payload, to=connection_id, namespace=self.namespace)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _coordinator() -> SessionCoordinator:
    return current_app.extensions['tictactoe']['coordinator']


def _fail(action: str) -> None:
    current_app.logger.exception(f"[error] action={action} sid={_get_sid()}")
    emit('error', {'message': f'Failed to {action}'})


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected'})


def handle_disconnect(reason=None):
    sid = _get_sid()
    try:
        current_app.logger.info(f"[disconnect] sid={sid} reason={reason}")
        _coordinator().disconnect(sid)
    except Exception:
        # The connection is gone; nothing to report back to
        current_app.logger.exception(f"[error] action=disconnect sid={sid}")


def handle_join_session(data):
    data = data if isinstance(data, dict) else {}
    try:
        _coordinator().join(_get_sid(), data.get('session_id'), data.get('display_name'))
    except Exception:
        _fail('join session')


def handle_make_move(data):
    data = data if isinstance(data, dict) else {}
    try:
        _coordinator().move(_get_sid(), data.get('session_id'), data.get('cell_index'))
    except Exception:
        _fail('make move')


def handle_reset_session(data):
    data = data if isinstance(data, dict) else {}
    try:
        _coordinator().reset(_get_sid(), data.get('session_id'))
    except Exception:
        _fail('reset session')


def handle_leave_session(data=None):
    try:
        _coordinator().leave(_get_sid())
    except Exception:
        _fail('leave session')


def handle_get_stats(data=None):
    try:
        _coordinator().stats(_get_sid())
    except Exception:
        _fail('get stats')


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join_session', handle_join_session, namespace=namespace)
    socketio.on_event('make_move', handle_make_move, namespace=namespace)
    socketio.on_event('reset_session', handle_reset_session, namespace=namespace)
    socketio.on_event('leave_session', handle_leave_session, namespace=namespace)
    socketio.on_event('get_stats', handle_get_stats, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
