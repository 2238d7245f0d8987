import os


def _env_flag(name, default='false'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list; '*' allows any origin (LAN play)
    CORS_ALLOWED_ORIGINS = [o.strip() for o in os.environ.get('CORS_ALLOWED_ORIGINS', '*').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    # Session ids are drawn from [a-z0-9]^SESSION_ID_LENGTH
    SESSION_ID_LENGTH = int(os.environ.get('SESSION_ID_LENGTH', '6'))
    # Joining an unknown non-empty session id creates a new session instead of failing
    CREATE_ON_UNKNOWN_SESSION = _env_flag('CREATE_ON_UNKNOWN_SESSION')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '3000'))
