import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Allowed browser origins for CORS and Socket.IO (comma-separated)
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
        ).split(',') if o.strip()
    ]
    # Turn timer (seconds)
    TURN_DURATION_SEC = int(os.environ.get('TURN_DURATION_SEC', '60'))
    # Tiles dealt to each player at init
    HAND_SIZE = int(os.environ.get('HAND_SIZE', '14'))
    # Roster limits checked at init
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '4'))
    # Points required for a player's first meld
    INITIAL_MELD_POINTS = int(os.environ.get('INITIAL_MELD_POINTS', '30'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Level for the application logger and the game services beneath it
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
